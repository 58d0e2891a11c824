"""
================================================================================
MÓDULO: ncm_matcher.py - Verificação de NCM Monofásico
================================================================================

Decide se um produto (pelo NCM) está sujeito à tributação monofásica de
PIS/COFINS.

ORDEM DE VERIFICAÇÃO:
---------------------
    1. Normalização: apenas dígitos, exatamente 8 → senão "NCM INVÁLIDO/VAZIO"
    2. Exceções (maior prioridade): NCM listado → NÃO monofásico
    3. Tabela oficial de prefixos: igualdade exata ou startswith → monofásico
    4. Tabela legada: códigos específicos e ranges [start, end] → monofásico
    5. Nenhuma regra → "NÃO MONOFÁSICO"

Cada etapa é uma estratégia (matcher) que devolve um NcmMatchResult ou None.
A primeira estratégia que decidir encerra a busca, então exceções sempre
vencem e a tabela oficial sempre é consultada antes dos ranges legados.

Exemplo:
    >>> classify_product("2202.10.00")
    NcmMatchResult(is_monofasico=True, rule_description='MONOFÁSICO: Tabela oficial 2202 - ...')
    >>> classify_product("22010100")
    NcmMatchResult(is_monofasico=False, rule_description='EXCEÇÃO: Não é monofásico (...)')
================================================================================
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .rules import MonofasicoRules, load_monofasico_rules


INVALID_NCM_RULE = "NCM INVÁLIDO/VAZIO"
NOT_MONOFASICO_RULE = "NÃO MONOFÁSICO"


@dataclass(frozen=True)
class NcmMatchResult:
    is_monofasico: bool
    rule_description: str


Matcher = Callable[[str, MonofasicoRules], Optional[NcmMatchResult]]


def normalize_ncm(ncm: Optional[str]) -> str:
    """Remove tudo que não for dígito ("2202.10.00" -> "22021000")."""
    return re.sub(r"\D", "", ncm or "")


# =============================================================================
# ESTRATÉGIAS (na ordem de prioridade)
# =============================================================================

def _match_exception(ncm: str, rules: MonofasicoRules) -> Optional[NcmMatchResult]:
    description = rules.exceptions.get(ncm)
    if description is not None:
        return NcmMatchResult(False, description or "EXCEÇÃO: Não é monofásico")
    return None


def _match_official_table(ncm: str, rules: MonofasicoRules) -> Optional[NcmMatchResult]:
    # official_prefixes já vem ordenado do mais longo para o mais curto,
    # então um código de 8 dígitos idêntico ganha de um prefixo de 4.
    for entry in rules.official_prefixes:
        if entry.matches(ncm):
            rule = f"MONOFÁSICO: Tabela oficial {entry.prefixo} - {entry.descricao}"
            if entry.possui_excecoes:
                rule += " (prefixo com exceções conhecidas; NCM não consta na lista de exceções)"
            return NcmMatchResult(True, rule)
    return None


def _match_legacy_specific(ncm: str, rules: MonofasicoRules) -> Optional[NcmMatchResult]:
    if ncm in rules.specific:
        return NcmMatchResult(True, "MONOFÁSICO: Código específico")
    return None


def _match_legacy_ranges(ncm: str, rules: MonofasicoRules) -> Optional[NcmMatchResult]:
    for ncm_range in rules.ranges:
        if ncm_range.contains(ncm):
            return NcmMatchResult(
                True, f"MONOFÁSICO: Dentro do range {ncm_range.start}-{ncm_range.end}"
            )
    return None


MATCHERS: Tuple[Matcher, ...] = (
    _match_exception,
    _match_official_table,
    _match_legacy_specific,
    _match_legacy_ranges,
)


# =============================================================================
# API PÚBLICA
# =============================================================================

def classify_product(
    ncm_code: Optional[str],
    rules: Optional[MonofasicoRules] = None,
) -> NcmMatchResult:
    """
    Classifica um NCM como monofásico ou não.

    Nunca levanta exceção: códigos vazios ou malformados resultam em
    "não monofásico" com a regra "NCM INVÁLIDO/VAZIO".

    Args:
        ncm_code (str | None): NCM como veio na nota (com ou sem pontos).
        rules (MonofasicoRules | None): Regras a usar. Default: tabelas do pacote.

    Returns:
        NcmMatchResult: Decisão e descrição da regra aplicada.
    """
    ncm = normalize_ncm(ncm_code)
    if len(ncm) != 8:
        return NcmMatchResult(False, INVALID_NCM_RULE)

    rules = rules or load_monofasico_rules()

    for matcher in MATCHERS:
        result = matcher(ncm, rules)
        if result is not None:
            return result

    return NcmMatchResult(False, NOT_MONOFASICO_RULE)
