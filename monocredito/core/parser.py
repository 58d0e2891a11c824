"""
================================================================================
MÓDULO: parser.py - Extrator de Dados de NF-e (Nota Fiscal Eletrônica)
================================================================================

Este módulo lê o XML de uma Nota Fiscal Eletrônica (NF-e) e devolve uma
Invoice com os itens já classificados (NCM + CFOP).

ESTRUTURA DO XML DE NF-e:
-------------------------
Dois formatos de documento são aceitos:

    <nfeProc>                       <NFe>
        <NFe>                           <infNFe Id="NFe...">
            <infNFe Id="NFe...">            ...
                ...                     </infNFe>
            </infNFe>                   </NFe>
        </NFe>
        <protNFe>...</protNFe>
    </nfeProc>

Dentro de <infNFe>:

    <ide>                       # Identificação (dhEmi / dEmi)
    <det nItem="1">             # Um por item
        <prod>
            <cProd>, <NCM>, <CFOP>, <xProd>, <vProd>
        </prod>
        <imposto>
            <PIS><PISAliq|PISNT|PISOutr|...><CST>..</CST></...></PIS>
            <COFINS><COFINSAliq|COFINSNT|...><CST>..</CST></...></COFINS>
        </imposto>
    </det>
    <total><ICMSTot><vNF>       # Valor total da nota

NAMESPACES:
-----------
O XML pode declarar o namespace padrão do portal fiscal, namespaces
prefixados (nfe:, sig:, xsi:) e prefixos em todas as tags. Antes do parsing
todas as declarações e prefixos são removidos, e as buscas usam apenas o
nome local das tags.

FALHAS (retorno None):
----------------------
    - XML malformado
    - <infNFe> não encontrado em nenhum dos dois formatos
    - <ide> sem data de emissão válida, <ICMSTot> ausente ou nenhum <det>

Campos opcionais ausentes viram "" ou 0.0; um item com problema nunca
derruba a nota inteira.

USO:
----
    from monocredito.core.parser import NFeParser

    parser = NFeParser()
    nota = parser.parse(xml_string, file_name="nota.xml")

    if nota is None:
        print("Arquivo com falha")
    else:
        for item in nota.items:
            print(f"{item.description}: R$ {item.total_value:.2f}")
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

import os
import re
import uuid
import xml.etree.ElementTree as ET
from datetime import date
from typing import List, Optional, Union

from colorama import Fore

from .classifier import apply_decision, classify_item
from .models import Invoice, InvoiceItem
from .rules import MonofasicoRules


# =============================================================================
# CONSTANTES
# =============================================================================

# Declarações de namespace: xmlns="..." e xmlns:prefixo="..."
_NS_DECLARATION = re.compile(r"""\s+xmlns(?::[\w.\-]+)?\s*=\s*("[^"]*"|'[^']*')""")

# Atributos prefixados, como xsi:schemaLocation="..."
_PREFIXED_ATTRIBUTE = re.compile(r"""\s+[\w.\-]+:[\w.\-]+\s*=\s*("[^"]*"|'[^']*')""")

# Prefixo nas tags: <nfe:det> -> <det>, </nfe:det> -> </det>
_TAG_PREFIX = re.compile(r"<(/?)[\w.\-]+:")

_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")


def normalize_xml_namespaces(xml_string: str) -> str:
    """
    Remove declarações de namespace e prefixos de tags/atributos.

    Example:
        >>> normalize_xml_namespaces('<nfe:NFe xmlns:nfe="http://x"><nfe:ide/></nfe:NFe>')
        '<NFe><ide/></NFe>'
    """
    normalized = _NS_DECLARATION.sub("", xml_string)
    normalized = _PREFIXED_ATTRIBUTE.sub("", normalized)
    return _TAG_PREFIX.sub(r"<\1", normalized)


# =============================================================================
# CLASSE PRINCIPAL
# =============================================================================

class NFeParser:
    """
    Parser de XML de NF-e que produz Invoices com itens classificados.

    O parser é uma função pura sobre o texto recebido: não acessa rede nem
    armazenamento (parse_file apenas lê o arquivo e delega para parse).

    Attributes:
        rules (MonofasicoRules | None): Regras de NCM usadas na classificação.
            None = tabelas empacotadas.

    Example:
        >>> parser = NFeParser()
        >>> nota = parser.parse(open("nota.xml").read())
        >>> nota.issue_date
        '2024-03-15'
        >>> [i.is_monofasico for i in nota.items]
        [True, False]
    """

    def __init__(self, rules: Optional[MonofasicoRules] = None):
        self.rules = rules

    # -------------------------------------------------------------------------
    # Helpers de busca (nunca levantam exceção)
    # -------------------------------------------------------------------------

    def _find_child(self, parent: Optional[ET.Element], tag: str) -> Optional[ET.Element]:
        """Filho DIRETO com o nome informado, ou None."""
        if parent is None:
            return None
        return parent.find(tag)

    def _safe_find_text(
        self,
        element: Optional[ET.Element],
        path: str,
        default: str = ""
    ) -> str:
        """
        Busca texto de um elemento XML de forma segura (sem exceções).

        Args:
            element (ET.Element | None): Elemento pai onde buscar.
            path (str): Caminho do elemento filho (sem prefixo de namespace).
            default (str): Valor retornado se o elemento não existir.

        Returns:
            str: Texto do elemento (sem espaços nas pontas) ou o default.
        """
        if element is None:
            return default
        found = element.find(path)
        if found is not None and found.text:
            return found.text.strip()
        return default

    def _safe_find_float(
        self,
        element: Optional[ET.Element],
        path: str,
        default: float = 0.0
    ) -> float:
        """Busca valor numérico; elemento ausente ou inválido retorna o default."""
        text = self._safe_find_text(element, path, "")
        if not text:
            return default
        try:
            return float(text)
        except ValueError:
            return default

    def _find_cst(self, imposto: Optional[ET.Element], tax_name: str) -> str:
        """
        Extrai o CST de PIS ou COFINS.

        O grupo varia conforme a situação tributária (PISAliq, PISQtde, PISNT,
        PISOutr...). Usamos o primeiro filho de <PIS>/<COFINS>, seja qual for.
        """
        tax = self._find_child(imposto, tax_name)
        if tax is None:
            return ""
        groups = list(tax)
        if not groups:
            return ""
        return self._safe_find_text(groups[0], "CST", "")

    def _parse_issue_date(self, ide: ET.Element) -> Optional[str]:
        """
        Converte dhEmi (NF-e 3.10/4.00) ou dEmi (NF-e 2.00) para YYYY-MM-DD.

        Mantém a data civil escrita no documento
        ("2024-03-31T23:30:00-03:00" -> "2024-03-31").
        """
        raw = self._safe_find_text(ide, "dhEmi") or self._safe_find_text(ide, "dEmi")
        match = _ISO_DATE.match(raw)
        if not match:
            return None
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3))).isoformat()
        except ValueError:
            return None

    def _locate_inf_nfe(self, root: ET.Element) -> Optional[ET.Element]:
        """Encontra <infNFe> em <nfeProc><NFe><infNFe> ou <NFe><infNFe>."""
        if root.tag == "nfeProc":
            return self._find_child(self._find_child(root, "NFe"), "infNFe")
        if root.tag == "NFe":
            return self._find_child(root, "infNFe")
        return None

    # -------------------------------------------------------------------------
    # Extração
    # -------------------------------------------------------------------------

    def _extract_access_key(self, inf_nfe: ET.Element, invoice_id: str, file_name: Optional[str]) -> str:
        nfe_id = inf_nfe.get("Id", "").strip()
        # Remove o prefixo "NFe" (Id="NFe3524..." -> "3524...")
        key = re.sub(r"^\D+", "", nfe_id)
        if key:
            return key
        if file_name:
            return os.path.splitext(os.path.basename(file_name))[0]
        return f"INV_{invoice_id}"

    def _extract_item(self, det: ET.Element) -> Optional[InvoiceItem]:
        """
        Extrai os dados estruturais de um <det> e aplica a classificação.

        Returns:
            InvoiceItem | None: Item classificado, ou None se algo inesperado
            acontecer (o item é descartado, a nota continua).
        """
        try:
            prod = self._find_child(det, "prod")
            imposto = self._find_child(det, "imposto")

            item = InvoiceItem(
                id=uuid.uuid4().hex,
                item_number=det.get("nItem", ""),
                product_code=self._safe_find_text(prod, "cProd"),
                ncm_code=self._safe_find_text(prod, "NCM"),
                cfop=self._safe_find_text(prod, "CFOP"),
                description=self._safe_find_text(prod, "xProd"),
                total_value=self._safe_find_float(prod, "vProd"),
                cst_pis=self._find_cst(imposto, "PIS"),
                cst_cofins=self._find_cst(imposto, "COFINS"),
            )

            decision = classify_item(item.ncm_code, item.cfop, self.rules)
            return apply_decision(item, decision)

        except Exception as e:
            print(Fore.YELLOW + f"   ⚠️  Erro ao extrair item {det.get('nItem', '?')}: {e}")
            return None

    def parse(self, raw_xml: Union[str, bytes], file_name: Optional[str] = None) -> Optional[Invoice]:
        """
        Converte o conteúdo de um XML de NF-e em uma Invoice classificada.

        Args:
            raw_xml (str | bytes): Conteúdo do arquivo XML.
            file_name (str | None): Nome do arquivo, usado em mensagens e como
                chave de acesso reserva.

        Returns:
            Invoice | None: Nota com itens classificados, ou None se o
            documento for inválido. Nunca levanta exceção.
        """
        label = file_name or "<xml>"

        try:
            if isinstance(raw_xml, bytes):
                raw_xml = raw_xml.decode("utf-8-sig")

            root = ET.fromstring(normalize_xml_namespaces(raw_xml).strip())

        except ET.ParseError as e:
            print(Fore.RED + f"   ❌ Erro de parsing XML em {label}: {e}")
            return None

        except UnicodeDecodeError as e:
            print(Fore.RED + f"   ❌ Encoding inválido em {label}: {e}")
            return None

        try:
            inf_nfe = self._locate_inf_nfe(root)
            if inf_nfe is None:
                print(Fore.RED + f"   ❌ Tag <infNFe> não encontrada em {label} (raiz: <{root.tag}>)")
                return None

            ide = self._find_child(inf_nfe, "ide")
            icms_tot = self._find_child(self._find_child(inf_nfe, "total"), "ICMSTot")
            dets: List[ET.Element] = inf_nfe.findall("det")

            if ide is None or icms_tot is None or not dets:
                print(Fore.RED + f"   ❌ Tags essenciais ausentes em {label} (<ide>, <ICMSTot> ou <det>)")
                return None

            issue_date = self._parse_issue_date(ide)
            if issue_date is None:
                print(Fore.RED + f"   ❌ Data de emissão ausente ou inválida em {label}")
                return None

            items = []
            for det in dets:
                item = self._extract_item(det)
                if item is not None:
                    items.append(item)

            invoice_id = uuid.uuid4().hex
            return Invoice(
                id=invoice_id,
                access_key=self._extract_access_key(inf_nfe, invoice_id, file_name),
                issue_date=issue_date,
                total_value=self._safe_find_float(icms_tot, "vNF"),
                items=items,
                file_name=file_name,
            )

        except Exception as e:
            # Qualquer outro erro inesperado
            print(Fore.RED + f"   ❌ Erro inesperado ao processar {label}: {e}")
            return None

    def parse_file(self, xml_path: str) -> Optional[Invoice]:
        """
        Lê um arquivo XML do disco e delega para parse().

        Returns:
            Invoice | None: None também quando o arquivo não existe ou não
            pode ser lido.
        """
        try:
            with open(xml_path, "rb") as f:
                content = f.read()
        except FileNotFoundError:
            print(Fore.RED + f"   ❌ Arquivo não encontrado: {xml_path}")
            return None
        except OSError as e:
            print(Fore.RED + f"   ❌ Erro ao ler {xml_path}: {e}")
            return None

        return self.parse(content, file_name=os.path.basename(xml_path))
