"""
================================================================================
TESTES UNITÁRIOS - Apuração do Crédito
================================================================================
"""

import pytest

from monocredito.core.calculator import (
    aggregate_monthly_revenue,
    compute,
    estimate_rbt12,
    find_faixa,
    summarize_total,
    summarize_yearly,
)
from monocredito.core.models import CalculationInput, MonthlyRevenue

from conftest import make_invoice, make_item


MARCH_INPUT = {"2024-03": CalculationInput(das_paid=60.0, anexo="anexo1", rbt12=100000.0)}


class TestAggregation:

    def test_only_sales_are_counted(self):
        invoice = make_invoice("2024-03-10", [
            make_item(1000.0, "5102", True),
            make_item(500.0, "5102", False),
            make_item(300.0, "1102", True),
            make_item(200.0, "5915", False),
        ])
        revenue = aggregate_monthly_revenue([invoice])["2024-03"]

        assert revenue.total_revenue == 1500.0
        assert revenue.monofasico_revenue == 1000.0

    def test_month_with_only_purchases_is_absent(self):
        invoice = make_invoice("2024-04-01", [make_item(300.0, "1102", False)])
        assert aggregate_monthly_revenue([invoice]) == {}

    def test_groups_by_month(self):
        invoices = [
            make_invoice("2024-03-01", [make_item(100.0)]),
            make_invoice("2024-03-31", [make_item(50.0)]),
            make_invoice("2024-04-01", [make_item(10.0)]),
        ]
        revenues = aggregate_monthly_revenue(invoices)

        assert revenues["2024-03"].total_revenue == 150.0
        assert revenues["2024-04"].total_revenue == 10.0


class TestFindFaixa:

    def test_upper_limit_is_inclusive(self):
        assert find_faixa("anexo1", 180000).de == 0.0

    def test_next_cent_moves_to_next_faixa(self):
        assert find_faixa("anexo1", 180000.01).de == 180000.01

    def test_sub_cent_values_are_rounded(self):
        assert find_faixa("anexo1", 180000.004).de == 0.0

    def test_out_of_table(self):
        assert find_faixa("anexo1", 4800000.01) is None

    def test_unknown_anexo(self):
        assert find_faixa("anexo9", 1000) is None
        assert find_faixa(None, 1000) is None


class TestCompute:

    def test_march_scenario(self, march_invoice):
        results = compute([march_invoice], MARCH_INPUT)

        assert len(results) == 1
        result = results[0]
        assert result.competence_month == "2024-03"
        assert result.total_revenue == 1000.0
        assert result.monofasico_revenue == 1000.0
        assert result.anexo_used == "Anexo I - Comércio"
        assert result.effective_aliquot == pytest.approx(0.06)
        assert result.pis_cofins_share == pytest.approx(0.155)
        assert result.credit_amount == pytest.approx(9.30)
        assert result.recalculated_das_due == pytest.approx(50.70)

    def test_accepts_plain_dicts(self, march_invoice):
        results = compute([march_invoice], {"2024-03": {"das_paid": 60, "anexo": "anexo1", "rbt12": 100000}})
        assert results[0].credit_amount == pytest.approx(9.30)

    def test_missing_input_gives_zero_result(self, march_invoice):
        result = compute([march_invoice])[0]

        assert result.anexo_used == "N/A"
        assert result.das_paid == 0.0
        assert result.effective_aliquot == 0.0
        assert result.pis_cofins_share == 0.0
        assert result.credit_amount == 0.0
        assert result.recalculated_das_due == 0.0
        assert result.monofasico_revenue == 1000.0

    def test_missing_anexo_keeps_das_paid_as_due(self, march_invoice):
        result = compute([march_invoice], {"2024-03": {"das_paid": 60}})[0]

        assert result.anexo_used == "N/A"
        assert result.effective_aliquot == 0.0
        assert result.credit_amount == 0.0
        assert result.recalculated_das_due == 60.0

    def test_negative_das_paid_never_gives_negative_due(self, march_invoice):
        inputs = {"2024-03": CalculationInput(das_paid=-10.0, anexo="anexo1", rbt12=100000.0)}
        result = compute([march_invoice], inputs)[0]

        assert result.credit_amount == 0.0
        assert result.recalculated_das_due == 0.0

    def test_rbt12_out_of_table_gives_zero_credit(self, march_invoice):
        inputs = {"2024-03": CalculationInput(das_paid=60.0, anexo="anexo1", rbt12=5000000.0)}
        result = compute([march_invoice], inputs)[0]

        assert result.anexo_used == "Anexo I - Comércio"
        assert result.credit_amount == 0.0
        assert result.recalculated_das_due == 60.0

    def test_manual_aliquot_is_a_percentage(self, march_invoice):
        inputs = {"2024-03": CalculationInput(
            das_paid=60.0, anexo="anexo1", rbt12=100000.0, manual_effective_aliquot=4.5
        )}
        result = compute([march_invoice], inputs)[0]

        assert result.effective_aliquot == pytest.approx(0.045)
        assert result.credit_amount == pytest.approx(1000 * 0.045 * 0.155)

    def test_recalculated_due_is_never_negative(self, march_invoice):
        inputs = {"2024-03": CalculationInput(
            das_paid=60.0, anexo="anexo1", rbt12=100000.0, manual_effective_aliquot=100
        )}
        result = compute([march_invoice], inputs)[0]

        assert result.credit_amount == pytest.approx(155.0)
        assert result.recalculated_das_due == 0.0

    def test_credit_is_never_negative(self):
        invoice = make_invoice("2024-03-15", [
            make_item(1000.0, "5102", False),
            make_item(-100.0, "5102", True, item_id="devolucao"),
        ])
        result = compute([invoice], MARCH_INPUT)[0]

        assert result.monofasico_revenue == -100.0
        assert result.credit_amount == 0.0
        assert result.recalculated_das_due == 60.0

    def test_non_sale_items_do_not_change_results(self, march_invoice):
        purchase = make_invoice("2024-03-20", [make_item(5000.0, "1102", True)], invoice_id="compra")

        with_purchase = compute([march_invoice, purchase], MARCH_INPUT)
        without_purchase = compute([march_invoice], MARCH_INPUT)

        assert with_purchase == without_purchase

    def test_excluded_month_is_skipped(self, march_invoice):
        april = make_invoice("2024-04-10", [make_item(200.0, "5102", True)])
        inputs = {"2024-04": {"includeInReport": False}}

        results = compute([march_invoice, april], inputs)
        assert [r.competence_month for r in results] == ["2024-03"]

    def test_results_are_sorted_and_order_independent(self):
        invoices = [
            make_invoice("2024-05-02", [make_item(0.1, "5102", True)]),
            make_invoice("2023-12-30", [make_item(0.2, "5102", True)]),
            make_invoice("2024-05-20", [make_item(0.7, "5102", True)]),
        ]
        inputs = {
            "2023-12": {"das_paid": 0.01, "anexo": "anexo1", "rbt12": 1000},
            "2024-05": {"das_paid": 0.05, "anexo": "anexo1", "rbt12": 1000},
        }

        forward = compute(invoices, inputs)
        backward = compute(list(reversed(invoices)), inputs)

        assert [r.competence_month for r in forward] == ["2023-12", "2024-05"]
        assert forward == backward

    def test_compute_is_idempotent(self, march_invoice):
        assert compute([march_invoice], MARCH_INPUT) == compute([march_invoice], MARCH_INPUT)


class TestSummaries:

    def setup_method(self):
        invoices = [
            make_invoice("2023-11-05", [make_item(1000.0, "5102", True)]),
            make_invoice("2023-12-05", [make_item(2000.0, "5102", False)]),
            make_invoice("2024-01-05", [make_item(1000.0, "5102", True)]),
        ]
        inputs = {
            "2023-11": {"das_paid": 60, "anexo": "anexo1", "rbt12": 100000},
            "2023-12": {"das_paid": 100, "anexo": "anexo1", "rbt12": 100000},
            "2024-01": {"das_paid": 40, "anexo": "anexo1", "rbt12": 100000},
        }
        self.results = compute(invoices, inputs)

    def test_yearly(self):
        years = summarize_yearly(self.results)

        assert [y.period for y in years] == ["2023", "2024"]
        y2023 = years[0]
        assert y2023.months == 2
        assert y2023.total_revenue == pytest.approx(3000.0)
        assert y2023.monofasico_revenue == pytest.approx(1000.0)
        assert y2023.das_paid == pytest.approx(160.0)
        assert y2023.credit_amount == pytest.approx(9.30)
        # Média simples: (0.06 + 0.05) / 2
        assert y2023.effective_aliquot_avg == pytest.approx(0.055)
        assert y2023.pis_cofins_share_avg == pytest.approx(0.155)

    def test_total(self):
        total = summarize_total(self.results)

        assert total.period == "TOTAL"
        assert total.months == 3
        assert total.credit_amount == pytest.approx(9.30 + 1000 * 0.04 * 0.155)
        assert total.recalculated_das_due == pytest.approx(200.0 - total.credit_amount)

    def test_empty_total(self):
        total = summarize_total([])
        assert total.months == 0
        assert total.credit_amount == 0.0
        assert total.effective_aliquot_avg == 0.0


class TestEstimateRbt12:

    def test_needs_twelve_months_of_history(self):
        revenues = {f"2023-{m:02d}": MonthlyRevenue(total_revenue=1000.0) for m in range(1, 13)}
        revenues["2024-01"] = MonthlyRevenue(total_revenue=2000.0)

        estimates = estimate_rbt12(revenues)

        assert all(estimates[f"2023-{m:02d}"] is None for m in range(1, 12))
        assert estimates["2023-12"] == 12000.0
        assert estimates["2024-01"] == 13000.0

    def test_new_company_projects_average(self):
        revenues = {
            "2024-01": MonthlyRevenue(total_revenue=1000.0),
            "2024-02": MonthlyRevenue(total_revenue=2000.0),
        }
        estimates = estimate_rbt12(revenues, new_company=True)

        assert estimates == {"2024-01": 12000.0, "2024-02": 18000.0}
