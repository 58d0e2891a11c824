"""
================================================================================
MÓDULO: review.py - Fluxo de Revisão Manual dos Itens
================================================================================

Cada item passa por dois estados:

    PENDING_REVIEW ──(confirmação ou edição humana)──▶ REVIEWED

A transição nunca é automática, com uma exceção: salvar um lote revisado
sem editar um item equivale a ACEITAR a decisão padrão do sistema para ele.

Todas as funções devolvem novas listas de notas; as notas recebidas não são
alteradas. Depois de qualquer mudança a apuração deve ser recalculada
(calculator.compute), já que is_monofasico pode ter mudado.
================================================================================
"""

from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .models import Invoice, InvoiceItem


class ReviewState(Enum):
    PENDING_REVIEW = "PENDENTE"
    REVIEWED = "REVISADO"


FILTER_ALL = "all"
FILTER_PENDING = "pending_review"
FILTER_MONOFASICO = "monofasico"
FILTER_TRIBUTADO = "tributado"

# Campos que a revisão manual pode alterar
EDITABLE_FIELDS = frozenset({"is_monofasico", "ncm_code", "cfop", "description"})


def review_state(item: InvoiceItem) -> ReviewState:
    return ReviewState.REVIEWED if item.human_reviewed else ReviewState.PENDING_REVIEW


def _update_item(
    invoices: List[Invoice],
    invoice_id: str,
    item_id: str,
    change: Callable[[InvoiceItem], InvoiceItem],
) -> List[Invoice]:
    updated = []
    for invoice in invoices:
        if invoice.id != invoice_id:
            updated.append(invoice)
            continue
        items = [change(item) if item.id == item_id else item for item in invoice.items]
        updated.append(replace(invoice, items=items))
    return updated


def toggle_item_status(invoices: List[Invoice], invoice_id: str, item_id: str) -> List[Invoice]:
    """Inverte is_monofasico do item. Alterar o status conta como revisão."""
    return _update_item(
        invoices,
        invoice_id,
        item_id,
        lambda item: replace(
            item,
            is_monofasico=not item.is_monofasico,
            manual_override=True,
            human_reviewed=True,
        ),
    )


def confirm_item_review(invoices: List[Invoice], invoice_id: str, item_id: str) -> List[Invoice]:
    """Confirma a decisão atual do item sem alterá-la."""
    return _update_item(
        invoices,
        invoice_id,
        item_id,
        lambda item: replace(item, human_reviewed=True),
    )


def save_review(
    invoices: List[Invoice],
    edits: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> List[Invoice]:
    """
    Salva um lote revisado.

    Args:
        invoices: Notas em revisão.
        edits: item_id -> {campo: valor}. Só campos de EDITABLE_FIELDS são
            aplicados; mudar is_monofasico marca manual_override.

    Returns:
        List[Invoice]: Notas com:
            - itens editados: mudanças aplicadas, needs_human_review=False,
              human_reviewed=True
            - itens que estavam com needs_human_review e não foram editados:
              decisão padrão aceita (needs_human_review=False, human_reviewed=True)
            - demais itens: inalterados
    """
    edits = edits or {}
    updated = []

    for invoice in invoices:
        items = []
        for item in invoice.items:
            if item.id in edits:
                changes: Dict[str, Any] = {
                    k: v for k, v in edits[item.id].items() if k in EDITABLE_FIELDS
                }
                if "is_monofasico" in changes and changes["is_monofasico"] != item.is_monofasico:
                    changes["manual_override"] = True
                item = replace(item, **changes, needs_human_review=False, human_reviewed=True)
            elif item.needs_human_review:
                item = replace(item, needs_human_review=False, human_reviewed=True)
            items.append(item)
        updated.append(replace(invoice, items=items))

    return updated


def pending_review_count(invoices: List[Invoice]) -> int:
    """Quantidade de itens ainda não revisados por um humano."""
    return sum(
        1
        for invoice in invoices
        for item in invoice.items
        if review_state(item) is ReviewState.PENDING_REVIEW
    )


def filter_invoices(
    invoices: List[Invoice],
    search: str = "",
    status: str = FILTER_ALL,
) -> List[Invoice]:
    """
    Filtra notas para a tela de revisão.

    Args:
        search: Trecho da chave de acesso ou da descrição de algum item
            (descrição sem diferenciar maiúsculas).
        status: "all", "pending_review", "monofasico" ou "tributado".
    """
    term = search.strip()
    term_lower = term.lower()
    selected = []

    for invoice in invoices:
        if term and term not in invoice.access_key and not any(
            term_lower in item.description.lower() for item in invoice.items
        ):
            continue

        if status == FILTER_PENDING:
            keep = any(review_state(i) is ReviewState.PENDING_REVIEW for i in invoice.items)
        elif status == FILTER_MONOFASICO:
            keep = any(i.is_monofasico for i in invoice.items)
        elif status == FILTER_TRIBUTADO:
            keep = any(not i.is_monofasico for i in invoice.items)
        else:
            keep = True

        if keep:
            selected.append(invoice)

    return selected
