"""
Fixtures compartilhadas: geração de XMLs de NF-e e notas já classificadas.
"""

import os
import sys

import pytest

# Permite rodar "pytest" da raiz sem instalar o pacote
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from monocredito.core.models import Invoice, InvoiceItem


ACCESS_KEY = "35240312345678000190550010000012341000012345"
PORTAL_NS = "http://www.portalfiscal.inf.br/nfe"


def build_nfe_xml(
    items,
    issue_date="2024-03-15T10:30:00-03:00",
    date_tag="dhEmi",
    access_key=ACCESS_KEY,
    wrapper="nfeProc",
    prefixed=False,
    v_nf="1000.00",
):
    """
    Monta um XML de NF-e mínimo.

    Args:
        items: Lista de dicts com ncm, cfop, valor, descricao, codigo (opcionais).
        wrapper: "nfeProc" (nota autorizada) ou "NFe" (só a nota).
        prefixed: Usa o prefixo "nfe:" em todas as tags.
    """
    p = "nfe:" if prefixed else ""
    ns_decl = f'xmlns:nfe="{PORTAL_NS}"' if prefixed else f'xmlns="{PORTAL_NS}"'

    dets = []
    for index, item in enumerate(items, start=1):
        dets.append(
            f'<{p}det nItem="{index}">'
            f'<{p}prod>'
            f'<{p}cProd>{item.get("codigo", f"P{index:03d}")}</{p}cProd>'
            f'<{p}xProd>{item.get("descricao", f"PRODUTO {index}")}</{p}xProd>'
            f'<{p}NCM>{item.get("ncm", "")}</{p}NCM>'
            f'<{p}CFOP>{item.get("cfop", "")}</{p}CFOP>'
            f'<{p}vProd>{item.get("valor", "0.00")}</{p}vProd>'
            f'</{p}prod>'
            f'<{p}imposto>'
            f'<{p}PIS><{p}PISAliq><{p}CST>{item.get("cst_pis", "01")}</{p}CST></{p}PISAliq></{p}PIS>'
            f'<{p}COFINS><{p}COFINSNT><{p}CST>{item.get("cst_cofins", "04")}</{p}CST></{p}COFINSNT></{p}COFINS>'
            f'</{p}imposto>'
            f'</{p}det>'
        )

    id_attr = f' Id="NFe{access_key}"' if access_key else ""
    date_xml = f"<{p}{date_tag}>{issue_date}</{p}{date_tag}>" if issue_date is not None else ""

    nfe = (
        f'<{p}NFe{" " + ns_decl if wrapper == "NFe" else ""}>'
        f'<{p}infNFe versao="4.00"{id_attr}>'
        f'<{p}ide><{p}nNF>1234</{p}nNF>{date_xml}</{p}ide>'
        + "".join(dets)
        + f'<{p}total><{p}ICMSTot><{p}vNF>{v_nf}</{p}vNF></{p}ICMSTot></{p}total>'
        f'</{p}infNFe>'
        f'<Signature xmlns="http://www.w3.org/2000/09/xmldsig#"><SignedInfo/></Signature>'
        f'</{p}NFe>'
    )

    if wrapper == "nfeProc":
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<{p}nfeProc {ns_decl} versao="4.00">'
            + nfe
            + f'<{p}protNFe versao="4.00"><{p}infProt><{p}chNFe>{access_key}</{p}chNFe></{p}infProt></{p}protNFe>'
            f'</{p}nfeProc>'
        )
    return '<?xml version="1.0" encoding="UTF-8"?>' + nfe


def make_item(value, cfop="5102", is_monofasico=False, item_id=None, **kwargs):
    """Item já classificado, sem passar pelo parser."""
    fields = dict(
        id=item_id or f"item-{value}-{cfop}-{is_monofasico}",
        product_code="P001",
        ncm_code="22021000" if is_monofasico else "84713012",
        cfop=cfop,
        cst_pis="01",
        cst_cofins="01",
        description="PRODUTO TESTE",
        total_value=value,
        is_monofasico=is_monofasico,
    )
    fields.update(kwargs)
    return InvoiceItem(**fields)


def make_invoice(issue_date, items, invoice_id=None, access_key=ACCESS_KEY):
    return Invoice(
        id=invoice_id or f"inv-{issue_date}",
        access_key=access_key,
        issue_date=issue_date,
        total_value=sum(item.total_value for item in items),
        items=list(items),
    )


@pytest.fixture
def nfe_xml():
    """Nota de março/2024 com um refrigerante (monofásico) e um notebook."""
    return build_nfe_xml([
        {"ncm": "22021000", "cfop": "5102", "valor": "1000.00", "descricao": "REFRIGERANTE COLA 2L"},
        {"ncm": "84713012", "cfop": "5102", "valor": "2500.50", "descricao": "NOTEBOOK"},
    ])


@pytest.fixture
def march_invoice():
    """Venda monofásica de R$ 1.000,00 em 2024-03."""
    return make_invoice("2024-03-15", [make_item(1000.0, "5102", True)])
