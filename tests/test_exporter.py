"""
Testes do gerador de relatórios.
"""

import os

import pandas as pd
import pytest

from monocredito.core.calculator import compute
from monocredito.utils.exporter import (
    SHEET_MONOFASICO_ITEMS,
    SHEET_MONTHLY,
    SHEET_REVIEW_ITEMS,
    SHEET_TOTAL,
    SHEET_YEARLY,
    ReportGenerator,
)

from conftest import make_invoice, make_item


class TestReportGenerator:

    @pytest.fixture(autouse=True)
    def _setup(self, tmp_path):
        self.output = tmp_path / "relatorios"
        self.exporter = ReportGenerator(output_folder=str(self.output))
        self.invoices = [
            make_invoice("2024-03-15", [
                make_item(1000.0, "5102", True, item_id="mono", description="CERVEJA"),
                make_item(80.0, "1102", False, item_id="bloq", ncm_code="22021000",
                          needs_human_review=True, description="REFRIGERANTE COMPRA"),
            ]),
        ]
        self.results = compute(self.invoices, {"2024-03": {"das_paid": 60, "anexo": "anexo1", "rbt12": 100000}})

    def test_creates_output_folder(self):
        assert os.path.isdir(self.output)

    def test_excel_has_all_sheets(self):
        path = self.exporter.gerar_excel(self.results, invoices=self.invoices)

        assert path is not None and os.path.exists(path)
        assert path.endswith(".xlsx")
        sheets = pd.ExcelFile(path, engine="openpyxl").sheet_names
        assert sheets == [SHEET_TOTAL, SHEET_MONTHLY, SHEET_YEARLY, SHEET_MONOFASICO_ITEMS, SHEET_REVIEW_ITEMS]

    def test_excel_without_invoices_has_period_sheets_only(self):
        path = self.exporter.gerar_excel(self.results)
        assert pd.ExcelFile(path, engine="openpyxl").sheet_names == [SHEET_TOTAL, SHEET_MONTHLY, SHEET_YEARLY]

    def test_monthly_sheet_values(self):
        path = self.exporter.gerar_excel(self.results)
        df = pd.read_excel(path, sheet_name=SHEET_MONTHLY, engine="openpyxl")

        assert list(df["Competência"]) == ["2024-03"]
        assert df["Crédito (R$)"].iloc[0] == pytest.approx(9.30)

    def test_item_sheets(self):
        sheets = self.exporter.build_sheets(self.results, self.invoices)

        assert list(sheets[SHEET_MONOFASICO_ITEMS]["Produto"]) == ["CERVEJA"]
        assert list(sheets[SHEET_REVIEW_ITEMS]["Produto"]) == ["REFRIGERANTE COMPRA"]

    def test_no_results_writes_nothing(self):
        assert self.exporter.gerar_excel([]) is None
        assert self.exporter.gerar_csv([]) is None
        assert os.listdir(self.output) == []

    def test_csv_uses_semicolon(self):
        path = self.exporter.gerar_csv(self.results)
        df = pd.read_csv(path, sep=";", encoding="utf-8-sig")

        assert "Competência" in df.columns
        assert df["Crédito (R$)"].iloc[0] == pytest.approx(9.30)

    def test_reports_are_never_overwritten(self):
        first = self.exporter.gerar_csv(self.results)
        second = self.exporter.gerar_csv(self.results)

        assert first != second
        assert os.path.exists(first) and os.path.exists(second)
