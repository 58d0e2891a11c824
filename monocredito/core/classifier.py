"""
================================================================================
MÓDULO: classifier.py - Decisão Combinada por Item (NCM + CFOP)
================================================================================

Combina as duas verificações independentes em uma única decisão:

    | NCM monofásico | CFOP de venda | is_monofasico | needs_human_review |
    |----------------|---------------|---------------|--------------------|
    | sim            | sim           | True          | False              |
    | sim            | não           | False         | True  ← bloqueado  |
    | não            | sim / não     | False         | False              |

O caso "NCM sim / CFOP não" é o mais relevante para o revisor: o produto
teria direito ao crédito, mas a operação registrada impede. O item entra
como NÃO monofásico (padrão conservador) até um humano confirmar.
================================================================================
"""

from dataclasses import dataclass, replace
from typing import Optional

from .cfop_validator import classify_operation
from .models import InvoiceItem
from .ncm_matcher import classify_product
from .rules import MonofasicoRules


@dataclass(frozen=True)
class ItemDecision:
    eligible: bool
    needs_review: bool
    reason: str
    confidence: float
    cfop_valid_for_credit: bool
    cfop_validation_message: str
    credit_blocked_reason: Optional[str] = None


def classify_item(
    ncm_code: Optional[str],
    cfop_code: Optional[str],
    rules: Optional[MonofasicoRules] = None,
) -> ItemDecision:
    """
    Classifica um item pela combinação NCM (produto) + CFOP (operação).

    Args:
        ncm_code (str | None): NCM do item.
        cfop_code (str | None): CFOP do item.
        rules (MonofasicoRules | None): Regras de NCM. Default: tabelas do pacote.

    Returns:
        ItemDecision: Decisão final, flag de revisão e mensagens.
    """
    product = classify_product(ncm_code, rules)
    operation = classify_operation(cfop_code)

    needs_review = product.is_monofasico and not operation.is_valid_for_credit

    blocked_reason = None
    if needs_review:
        blocked_reason = (
            f"Produto monofásico (NCM {ncm_code}; {product.rule_description}), "
            f"porém {operation.reason}"
        )

    return ItemDecision(
        eligible=product.is_monofasico and operation.is_valid_for_credit,
        needs_review=needs_review,
        reason=product.rule_description,
        confidence=1.0 if product.is_monofasico else 0.0,
        cfop_valid_for_credit=operation.is_valid_for_credit,
        cfop_validation_message=operation.reason,
        credit_blocked_reason=blocked_reason,
    )


def apply_decision(item: InvoiceItem, decision: ItemDecision) -> InvoiceItem:
    """Retorna uma cópia do item com a decisão aplicada."""
    return replace(
        item,
        is_monofasico=decision.eligible,
        classification_rule=decision.reason,
        classification_confidence=decision.confidence,
        needs_human_review=decision.needs_review,
        cfop_valid_for_credit=decision.cfop_valid_for_credit,
        cfop_validation_message=decision.cfop_validation_message,
        credit_blocked_reason=decision.credit_blocked_reason,
    )
