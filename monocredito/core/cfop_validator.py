"""
================================================================================
MÓDULO: cfop_validator.py - Validação de CFOP para Crédito Monofásico
================================================================================

CONTEXTO DE NEGÓCIO:
--------------------
Empresas do Simples Nacional que VENDERAM produtos monofásicos deveriam ter
SEGREGADO essas receitas no PGDAS-D (sem recolher PIS/COFINS sobre elas).
Quem não segregou pagou DAS a mais e tem direito ao crédito.

Por isso validamos CFOPs de SAÍDA (vendas), não de entrada (compras):

    5xxx  saída dentro do estado
    6xxx  saída para outro estado
    7xxx  saída para o exterior
    1xxx / 2xxx / 3xxx  entradas (compras) → nunca geram este crédito

Referência: Receita Federal - CFOPs de saída de mercadorias.
================================================================================
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional


# CFOPs de venda que deveriam ter sido segregados no PGDAS
VALID_SALES_CFOPS: FrozenSet[str] = frozenset({
    # Vendas dentro do estado (5.xxx)
    "5101",  # Venda de produção do estabelecimento
    "5102",  # Venda de mercadoria adquirida ou recebida de terceiros
    "5103",  # Venda de produção do estabelecimento, efetuada fora do estabelecimento
    "5104",  # Venda de mercadoria de terceiros, efetuada fora do estabelecimento
    "5105",  # Venda de produção do estabelecimento que não deva por ele transitar
    "5106",  # Venda de mercadoria de terceiros que não deva por ele transitar
    "5109",  # Venda de produção destinada à Zona Franca de Manaus ou ALC
    "5110",  # Venda de mercadoria de terceiros destinada à Zona Franca de Manaus ou ALC
    "5116",  # Venda de produção originada de encomenda para entrega futura
    "5117",  # Venda de mercadoria de terceiros originada de encomenda para entrega futura
    "5118",  # Venda de produção entregue por conta e ordem do adquirente originário
    "5119",  # Venda de mercadoria de terceiros entregue por conta e ordem do adquirente
    "5120",  # Venda de mercadoria de terceiros entregue pelo vendedor remetente, em venda à ordem

    # Vendas para outros estados (6.xxx)
    "6101",
    "6102",
    "6103",
    "6104",
    "6105",
    "6106",
    "6107",  # Venda de produção destinada a não contribuinte
    "6108",  # Venda de mercadoria de terceiros destinada a não contribuinte
    "6109",
    "6110",
    "6116",
    "6117",
    "6118",
    "6119",
    "6120",

    # Vendas para o exterior (7.xxx)
    "7101",
    "7102",
    "7105",
    "7106",

    # Substituição tributária
    "5405",  # Venda com ST, na condição de contribuinte substituído
    "6403",  # Venda com ST, na condição de contribuinte substituto
    "6404",  # Venda com ST cujo imposto já tenha sido retido anteriormente
})

CFOP_AUSENTE = "ausente"
CFOP_INVALIDO = "invalido"
CFOP_SAIDA = "saida"
CFOP_ENTRADA = "entrada"


@dataclass(frozen=True)
class CfopValidationResult:
    is_valid_for_credit: bool
    reason: str
    cfop_type: str  # saida | entrada | ausente | invalido


def normalize_cfop(cfop: Optional[str]) -> str:
    return re.sub(r"\D", "", cfop or "")


def is_sales_cfop(cfop: Optional[str]) -> bool:
    """True se o CFOP está na lista de vendas que geram receita segregável."""
    return normalize_cfop(cfop) in VALID_SALES_CFOPS


def classify_operation(cfop_code: Optional[str]) -> CfopValidationResult:
    """
    Valida se um CFOP representa uma VENDA que deveria ter sido segregada.

    Nunca levanta exceção: CFOP vazio ou malformado vira "sem crédito" com
    uma mensagem explicativa.

    Args:
        cfop_code (str | None): CFOP como veio na nota ("5102", "5.102"...).

    Returns:
        CfopValidationResult: Elegibilidade, motivo e tipo do CFOP.

    Example:
        >>> classify_operation("5102").is_valid_for_credit
        True
        >>> classify_operation("1102").cfop_type
        'entrada'
    """
    if not cfop_code or not cfop_code.strip():
        return CfopValidationResult(
            False,
            "CFOP ausente. Não é possível determinar se a receita deveria ter sido segregada no PGDAS.",
            CFOP_AUSENTE,
        )

    cfop = normalize_cfop(cfop_code)
    if len(cfop) != 4:
        return CfopValidationResult(
            False,
            f'CFOP "{cfop_code}" inválido (deve ter 4 dígitos).',
            CFOP_INVALIDO,
        )

    if cfop in VALID_SALES_CFOPS:
        return CfopValidationResult(
            True,
            f"CFOP {cfop} é uma operação de VENDA. Receita monofásica deveria ter sido segregada no PGDAS.",
            CFOP_SAIDA,
        )

    if cfop[0] in ("1", "2", "3"):
        return CfopValidationResult(
            False,
            f"CFOP {cfop} é uma operação de ENTRADA/COMPRA. No Simples Nacional, o crédito vem "
            f"da segregação de VENDAS monofásicas, não de compras.",
            CFOP_ENTRADA,
        )

    return CfopValidationResult(
        False,
        f"CFOP {cfop} é uma saída, mas pode não gerar direito a crédito. Requer revisão humana.",
        CFOP_SAIDA,
    )
