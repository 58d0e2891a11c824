"""
================================================================================
MÓDULO: exporter.py - Gerador de Relatórios da Apuração Monofásica
================================================================================

Gera a planilha Excel (.xlsx) com o resultado da apuração do crédito de
PIS/COFINS, para documentar o pedido de restituição/compensação.

ESTRUTURA DO RELATÓRIO:
-----------------------
    Aba "Sumário Total"       → consolidação de todo o período
    Aba "Apuração Mensal"     → um resultado por mês de competência
    Aba "Apuração Anual"      → consolidação por ano
    Aba "Itens Monofásicos"   → itens que geraram receita monofásica
    Aba "Itens para Revisão"  → itens monofásicos com CFOP que bloqueou o crédito

As duas abas de itens só aparecem quando as notas são informadas.

NOMENCLATURA DOS ARQUIVOS:
--------------------------
    Relatorio_Monofasico_20251229_143052.xlsx
                         │       │
                         │       └── Hora (HHMMSS)
                         └────────── Data (YYYYMMDD)

Se já existir um arquivo com o mesmo nome (duas gerações no mesmo segundo)
um sufixo _1, _2... é adicionado. Nenhum relatório é sobrescrito.

DEPENDÊNCIAS:
-------------
    - pandas: Montagem das tabelas e exportação
    - openpyxl: Engine de escrita .xlsx

USO:
----
    from monocredito.utils.exporter import ReportGenerator

    exporter = ReportGenerator(output_folder="meus_relatorios")
    exporter.gerar_excel(resultados, invoices=notas)
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

import os
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pandas as pd
from colorama import Fore

from ..core.calculator import summarize_total, summarize_yearly
from ..core.models import CalculationResult, Invoice, PeriodSummary


# =============================================================================
# CONSTANTES
# =============================================================================

DEFAULT_OUTPUT_FOLDER = "output_reports"
FILE_PREFIX = "Relatorio_Monofasico"

SHEET_TOTAL = "Sumário Total"
SHEET_MONTHLY = "Apuração Mensal"
SHEET_YEARLY = "Apuração Anual"
SHEET_MONOFASICO_ITEMS = "Itens Monofásicos"
SHEET_REVIEW_ITEMS = "Itens para Revisão"

# Chave: campo interno | Valor: nome exibido no Excel
MONTHLY_COLUMNS = {
    "competence_month": "Competência",
    "total_revenue": "Faturamento Total (R$)",
    "monofasico_revenue": "Receita Monofásica (R$)",
    "das_paid": "DAS Pago (R$)",
    "anexo_used": "Anexo",
    "effective_aliquot": "Alíquota Efetiva",
    "pis_cofins_share": "Partilha PIS/COFINS",
    "recalculated_das_due": "Novo DAS Devido (R$)",
    "credit_amount": "Crédito (R$)",
}

SUMMARY_COLUMNS = {
    "period": "Período",
    "months": "Meses",
    "total_revenue": "Faturamento Total (R$)",
    "monofasico_revenue": "Receita Monofásica (R$)",
    "das_paid": "DAS Pago (R$)",
    "recalculated_das_due": "Novo DAS Devido (R$)",
    "credit_amount": "Crédito (R$)",
    "effective_aliquot_avg": "Alíquota Efetiva Média",
    "pis_cofins_share_avg": "Partilha Média",
}

ITEM_COLUMNS = {
    "access_key": "Chave de Acesso",
    "issue_date": "Data Emissão",
    "item_number": "Item",
    "product_code": "Código",
    "description": "Produto",
    "ncm_code": "NCM",
    "cfop": "CFOP",
    "total_value": "Valor (R$)",
    "classification_rule": "Regra",
    "cfop_validation_message": "Validação CFOP",
    "credit_blocked_reason": "Motivo do Bloqueio",
    "human_reviewed": "Revisado",
}


# =============================================================================
# CLASSE PRINCIPAL
# =============================================================================

class ReportGenerator:
    """
    Gerador de relatórios Excel/CSV da apuração.

    Attributes:
        output_folder (str): Diretório onde os relatórios são salvos.
            Criado automaticamente se não existir.

    Example:
        >>> exporter = ReportGenerator("relatorios/2024")
        >>> exporter.gerar_excel(resultados)
        'relatorios/2024/Relatorio_Monofasico_20251229_143052.xlsx'
    """

    def __init__(self, output_folder: str = DEFAULT_OUTPUT_FOLDER):
        self.output_folder = output_folder

        if not os.path.exists(output_folder):
            os.makedirs(output_folder, exist_ok=True)
            print(Fore.BLUE + f"📁 Diretório criado: {output_folder}")

    def _generate_filepath(self, extension: str) -> str:
        """Caminho único com timestamp; nunca aponta para um arquivo existente."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = os.path.join(self.output_folder, f"{FILE_PREFIX}_{timestamp}")

        filepath = f"{base}.{extension}"
        counter = 1
        while os.path.exists(filepath):
            filepath = f"{base}_{counter}.{extension}"
            counter += 1
        return filepath

    # -------------------------------------------------------------------------
    # Montagem das tabelas
    # -------------------------------------------------------------------------

    def _frame(self, rows: List[Dict], columns: Dict[str, str]) -> pd.DataFrame:
        """
        DataFrame com as colunas na ordem de `columns`, já renomeadas.

        Colunas ausentes nos registros entram vazias.
        """
        df = pd.DataFrame(rows)
        for col in columns:
            if col not in df.columns:
                df[col] = ""
        df = df[list(columns)].copy()
        df.columns = list(columns.values())
        return df

    def _monthly_frame(self, results: Sequence[CalculationResult]) -> pd.DataFrame:
        return self._frame([r.to_dict() for r in results], MONTHLY_COLUMNS)

    def _summary_frame(self, summaries: Sequence[PeriodSummary]) -> pd.DataFrame:
        return self._frame([s.to_dict() for s in summaries], SUMMARY_COLUMNS)

    def _items_frame(self, invoices: Sequence[Invoice], needs_review: bool) -> pd.DataFrame:
        """
        Itens monofásicos (needs_review=False) ou itens bloqueados pelo CFOP
        e ainda não revisados (needs_review=True).
        """
        rows = []
        for invoice in invoices:
            for item in invoice.items:
                if needs_review:
                    selected = item.needs_human_review
                else:
                    selected = item.is_monofasico
                if not selected:
                    continue

                row = item.to_dict()
                row["access_key"] = invoice.access_key
                row["issue_date"] = invoice.issue_date
                rows.append(row)
        return self._frame(rows, ITEM_COLUMNS)

    def build_sheets(
        self,
        results: Sequence[CalculationResult],
        invoices: Optional[Sequence[Invoice]] = None,
    ) -> Dict[str, pd.DataFrame]:
        """
        Monta as abas do relatório, na ordem em que são gravadas.

        Returns:
            Dict[str, pd.DataFrame]: Nome da aba -> tabela.
        """
        sheets = {
            SHEET_TOTAL: self._summary_frame([summarize_total(results)]),
            SHEET_MONTHLY: self._monthly_frame(results),
            SHEET_YEARLY: self._summary_frame(summarize_yearly(results)),
        }
        if invoices is not None:
            sheets[SHEET_MONOFASICO_ITEMS] = self._items_frame(invoices, needs_review=False)
            sheets[SHEET_REVIEW_ITEMS] = self._items_frame(invoices, needs_review=True)
        return sheets

    # -------------------------------------------------------------------------
    # Exportação
    # -------------------------------------------------------------------------

    def gerar_excel(
        self,
        results: Sequence[CalculationResult],
        invoices: Optional[Sequence[Invoice]] = None,
    ) -> Optional[str]:
        """
        Gera a planilha Excel da apuração.

        Args:
            results: Resultados mensais (calculator.compute).
            invoices: Notas classificadas. Se informadas, as abas de itens
                são incluídas.

        Returns:
            Optional[str]: Caminho do arquivo gerado, ou None se não houver
            resultados ou se a gravação falhar.
        """
        if not results:
            print(Fore.YELLOW + "⚠️  Nenhum mês apurado. Relatório não gerado.")
            return None

        sheets = self.build_sheets(results, invoices)
        filepath = self._generate_filepath("xlsx")

        try:
            with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
                for name, df in sheets.items():
                    df.to_excel(writer, sheet_name=name, index=False)

            total_credit = summarize_total(results).credit_amount
            print(Fore.GREEN + "\n📊 Relatório Excel gerado com sucesso!")
            print(Fore.WHITE + f"   📁 Arquivo: {filepath}")
            print(Fore.WHITE + f"   📋 Meses apurados: {len(results)}")
            print(Fore.WHITE + f"   💰 Crédito total: R$ {total_credit:.2f}")

            return filepath

        except PermissionError:
            print(Fore.RED + f"❌ Erro: Arquivo {filepath} está aberto em outro programa.")
            print(Fore.YELLOW + "   Feche o Excel e tente novamente.")
            return None

        except OSError as e:
            print(Fore.RED + f"❌ Erro ao salvar Excel: {e}")
            return None

    def gerar_csv(self, results: Sequence[CalculationResult]) -> Optional[str]:
        """
        Exporta a apuração mensal em CSV (separador ';', UTF-8 com BOM para
        o Excel reconhecer acentos).
        """
        if not results:
            print(Fore.YELLOW + "⚠️  Nenhum mês apurado.")
            return None

        df = self._monthly_frame(results)
        filepath = self._generate_filepath("csv")

        try:
            df.to_csv(filepath, index=False, sep=";", encoding="utf-8-sig")
            print(Fore.GREEN + f"📊 Relatório CSV gerado: {filepath}")
            return filepath

        except PermissionError:
            print(Fore.RED + f"❌ Erro: Arquivo {filepath} está aberto em outro programa.")
            return None

        except OSError as e:
            print(Fore.RED + f"❌ Erro ao salvar CSV: {e}")
            return None
