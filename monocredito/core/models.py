"""
================================================================================
MÓDULO: models.py - Estruturas de Dados do MonoCredito
================================================================================

Define os registros que circulam entre o parser, o classificador e a
calculadora:

    Invoice ─┬─ InvoiceItem (N)          ← criado pelo NFeParser
             │
    CalculationInput (por mês YYYY-MM)   ← informado pelo usuário
             │
    CalculationResult (por mês)          ← derivado pela calculadora
    PeriodSummary (ano / total)          ← consolidação dos resultados

CONVENÇÕES:
-----------
    - Valores monetários em R$ (float), sem arredondamento interno.
    - Campos percentuais (effective_aliquot, pis_cofins_share) são FRAÇÕES
      (0.06 = 6%), nunca multiplicados por 100.
    - CalculationResult e PeriodSummary são imutáveis: sempre recalculados
      a partir das notas e dos inputs.

Autor: Equipe MonoCredito
Versão: 1.0
================================================================================
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# Anexos disponíveis na tabela do Simples Nacional
ANEXO_KEYS = ("anexo1", "anexo2", "anexo3", "anexo4", "anexo5")


class UploadStatus(Enum):
    """Situação de um arquivo enviado. Controlada pelo chamador, não pelo parser."""

    PENDING = "AGUARDANDO"
    FAILED = "FALHA NO PROCESSAMENTO"
    PROCESSED = "PROCESSADO"


# =============================================================================
# NOTA FISCAL
# =============================================================================

@dataclass
class InvoiceItem:
    """
    Um item (<det>) da NF-e já classificado.

    Os campos de classificação vêm do classificador (ver classifier.py):
        - is_monofasico: decisão FINAL (NCM monofásico E CFOP de venda)
        - needs_human_review: NCM monofásico mas CFOP bloqueia o crédito
        - credit_blocked_reason: explicação quando needs_human_review=True

    manual_override e human_reviewed só são alterados pelo fluxo de revisão
    manual (ver review.py).
    """

    id: str
    product_code: str = ""
    ncm_code: str = ""
    cfop: str = ""
    cst_pis: str = ""
    cst_cofins: str = ""
    description: str = ""
    total_value: float = 0.0
    item_number: str = ""
    is_monofasico: bool = False
    classification_confidence: float = 1.0
    classification_rule: str = "N/A"
    needs_human_review: bool = False
    manual_override: Optional[bool] = None
    human_reviewed: Optional[bool] = None
    cfop_valid_for_credit: Optional[bool] = None
    cfop_validation_message: Optional[str] = None
    credit_blocked_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Invoice:
    """Uma NF-e processada: cabeçalho + itens na ordem do documento."""

    id: str
    access_key: str
    issue_date: str  # "YYYY-MM-DD"
    total_value: float
    items: List[InvoiceItem] = field(default_factory=list)
    file_name: Optional[str] = None

    @property
    def competence_month(self) -> str:
        """Mês de competência (YYYY-MM) derivado da data de emissão."""
        return self.issue_date[:7]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# APURAÇÃO
# =============================================================================

@dataclass
class CalculationInput:
    """
    Dados informados pelo usuário para um mês de competência.

    Attributes:
        das_paid: Valor do DAS efetivamente pago no mês.
        anexo: Chave do anexo ("anexo1" ... "anexo5").
        rbt12: Receita bruta dos últimos 12 meses (define a faixa).
        manual_effective_aliquot: Alíquota efetiva informada em PORCENTAGEM
            (0-100). Quando > 0, substitui o cálculo DAS / faturamento.
        include_in_report: False exclui o mês dos relatórios. None = incluir.
    """

    das_paid: Optional[float] = None
    anexo: Optional[str] = None
    rbt12: Optional[float] = None
    manual_effective_aliquot: Optional[float] = None
    include_in_report: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalculationInput":
        """
        Cria um input a partir de um dicionário (JSON do usuário).

        Aceita tanto "include_in_report" quanto "includeInReport".
        Chaves desconhecidas são ignoradas.

        Example:
            >>> CalculationInput.from_dict({"das_paid": 60, "anexo": "anexo1"})
            CalculationInput(das_paid=60.0, anexo='anexo1', rbt12=None, ...)
        """
        include = data.get("include_in_report", data.get("includeInReport"))
        return cls(
            das_paid=_optional_float(data.get("das_paid")),
            anexo=data.get("anexo") or None,
            rbt12=_optional_float(data.get("rbt12")),
            manual_effective_aliquot=_optional_float(data.get("manual_effective_aliquot")),
            include_in_report=include if isinstance(include, bool) else None,
        )


@dataclass(frozen=True)
class CalculationResult:
    """
    Resultado da apuração de um mês. Sempre derivado, nunca persistido.

    Invariantes:
        credit_amount = max(0, monofasico_revenue × effective_aliquot × pis_cofins_share)
        recalculated_das_due = max(0, das_paid - credit_amount)
    """

    competence_month: str
    total_revenue: float
    monofasico_revenue: float
    das_paid: float
    anexo_used: str
    effective_aliquot: float
    pis_cofins_share: float
    recalculated_das_due: float
    credit_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonthlyRevenue:
    """Receita de vendas agregada de um mês (somente CFOPs de venda)."""

    total_revenue: float = 0.0
    monofasico_revenue: float = 0.0


@dataclass(frozen=True)
class PeriodSummary:
    """
    Consolidação de vários meses (um ano ou o período total).

    As médias de alíquota e partilha são MÉDIAS SIMPLES entre os meses
    incluídos, não ponderadas pelo faturamento.
    """

    period: str
    months: int
    total_revenue: float
    monofasico_revenue: float
    das_paid: float
    recalculated_das_due: float
    credit_amount: float
    effective_aliquot_avg: float
    pis_cofins_share_avg: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
