"""
================================================================================
MÓDULO: calculator.py - Apuração Mensal do Crédito de PIS/COFINS
================================================================================

Calcula, por mês de competência, quanto do DAS pago corresponde a PIS/COFINS
sobre receitas monofásicas que NÃO foram segregadas no PGDAS-D.

FLUXO DO CÁLCULO (por mês):
---------------------------
    1. Agregação: soma vProd dos itens com CFOP de VENDA, por mês (YYYY-MM)
       - total_revenue:      todas as vendas
       - monofasico_revenue: vendas com is_monofasico=True
    2. Meses com include_in_report=False são descartados
    3. Sem anexo, DAS pago <= 0 ou faturamento <= 0 → resultado zerado
    4. Faixa do anexo tal que de <= RBT12 <= ate (sem faixa → zerado)
    5. Alíquota efetiva = alíquota manual / 100 (se > 0) ou DAS / faturamento
    6. Partilha = PIS/Pasep + COFINS da faixa
    7. Crédito = receita monofásica × alíquota efetiva × partilha (>= 0)
    8. Novo DAS devido = DAS pago - crédito (>= 0)
    9. Resultados ordenados por mês

EXEMPLO NUMÉRICO:
-----------------
    Venda CFOP 5102 de R$ 1.000,00 (NCM 2202...) em 2024-03
    Input 2024-03: RBT12 = 100.000, DAS pago = 60, Anexo I

    Faixa 1 do Anexo I: partilha = 0,1274 + 0,0276 = 0,1550
    Alíquota efetiva   = 60 / 1000              = 0,06
    Crédito            = 1000 × 0,06 × 0,1550   = 9,30
    Novo DAS devido    = 60 - 9,30              = 50,70

A alíquota NOMINAL e a parcela a deduzir da faixa não entram no cálculo:
a faixa serve apenas para obter a partilha de PIS/COFINS.

Todas as funções são puras: mesmas entradas → mesmas saídas.
================================================================================
"""

import math
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .cfop_validator import is_sales_cfop
from .models import (
    CalculationInput,
    CalculationResult,
    Invoice,
    MonthlyRevenue,
    PeriodSummary,
)
from .rules import Anexo, Faixa, load_simples_tables


PIS_KEY = "PIS/Pasep"
COFINS_KEY = "COFINS"

InputLike = Union[CalculationInput, Mapping[str, Any]]


# =============================================================================
# AGREGAÇÃO
# =============================================================================

def aggregate_monthly_revenue(invoices: Iterable[Invoice]) -> Dict[str, MonthlyRevenue]:
    """
    Soma as receitas de venda por mês de competência.

    Apenas itens com CFOP de venda (mesma lista usada na classificação)
    entram na soma; compras (CFOP 1xxx/2xxx/3xxx) nunca contam.

    As somas usam math.fsum, então a ordem das notas não altera o resultado.

    Returns:
        Dict[str, MonthlyRevenue]: "YYYY-MM" -> receitas do mês.
    """
    totals: Dict[str, List[float]] = {}
    monofasicos: Dict[str, List[float]] = {}

    for invoice in invoices:
        month = invoice.competence_month
        if len(month) != 7:
            continue

        for item in invoice.items:
            if not is_sales_cfop(item.cfop):
                continue

            totals.setdefault(month, []).append(item.total_value)
            bucket = monofasicos.setdefault(month, [])
            if item.is_monofasico:
                bucket.append(item.total_value)

    return {
        month: MonthlyRevenue(
            total_revenue=math.fsum(values),
            monofasico_revenue=math.fsum(monofasicos[month]),
        )
        for month, values in totals.items()
    }


def _as_input(value: Optional[InputLike]) -> CalculationInput:
    if value is None:
        return CalculationInput()
    if isinstance(value, CalculationInput):
        return value
    return CalculationInput.from_dict(dict(value))


# =============================================================================
# FAIXAS
# =============================================================================

def find_faixa(
    anexo_key: Optional[str],
    rbt12: float,
    tables: Optional[Mapping[str, Anexo]] = None,
) -> Optional[Faixa]:
    """
    Encontra a faixa do anexo em que o RBT12 se enquadra.

    Os limites são inclusivos nas duas pontas e as faixas andam de centavo
    em centavo (0-180.000 / 180.000,01-360.000), por isso o RBT12 é
    arredondado para centavos antes da busca.

    Returns:
        Faixa | None: A faixa encontrada, ou None se o anexo não existir ou
        o RBT12 estiver fora da tabela.

    Example:
        >>> find_faixa("anexo1", 180000).de
        0.0
        >>> find_faixa("anexo1", 180000.01).de
        180000.01
    """
    tables = tables if tables is not None else load_simples_tables()
    anexo = tables.get(anexo_key or "")
    if anexo is None:
        return None

    value = round(rbt12, 2)
    for faixa in anexo.faixas:
        if faixa.contains(value):
            return faixa
    return None


# =============================================================================
# APURAÇÃO
# =============================================================================

def _compute_month(
    month: str,
    revenue: MonthlyRevenue,
    user_input: CalculationInput,
    tables: Mapping[str, Anexo],
) -> CalculationResult:
    das_paid = user_input.das_paid or 0.0
    anexo_key = user_input.anexo
    rbt12 = user_input.rbt12 or 0.0

    if anexo_key:
        anexo = tables.get(anexo_key)
        anexo_used = anexo.nome if anexo is not None else anexo_key
    else:
        anexo_used = "N/A"

    zero_result = CalculationResult(
        competence_month=month,
        total_revenue=revenue.total_revenue,
        monofasico_revenue=revenue.monofasico_revenue,
        das_paid=das_paid,
        anexo_used=anexo_used,
        effective_aliquot=0.0,
        pis_cofins_share=0.0,
        recalculated_das_due=max(0.0, das_paid),
        credit_amount=0.0,
    )

    if not anexo_key or das_paid <= 0 or revenue.total_revenue <= 0:
        return zero_result

    faixa = find_faixa(anexo_key, rbt12, tables)
    if faixa is None:
        return zero_result

    manual = user_input.manual_effective_aliquot
    if manual is not None and manual > 0:
        effective_aliquot = manual / 100
    else:
        effective_aliquot = das_paid / revenue.total_revenue

    share = faixa.partilha.get(PIS_KEY, 0.0) + faixa.partilha.get(COFINS_KEY, 0.0)

    credit = max(0.0, revenue.monofasico_revenue * effective_aliquot * share)
    recalculated = max(0.0, das_paid - credit)

    return CalculationResult(
        competence_month=month,
        total_revenue=revenue.total_revenue,
        monofasico_revenue=revenue.monofasico_revenue,
        das_paid=das_paid,
        anexo_used=anexo_used,
        effective_aliquot=effective_aliquot,
        pis_cofins_share=share,
        recalculated_das_due=recalculated,
        credit_amount=credit,
    )


def compute(
    invoices: Iterable[Invoice],
    calculation_inputs: Optional[Mapping[str, InputLike]] = None,
    tables: Optional[Mapping[str, Anexo]] = None,
) -> List[CalculationResult]:
    """
    Apura o crédito de PIS/COFINS de cada mês com vendas.

    Dados incompletos (sem anexo, DAS zerado, RBT12 fora das faixas) não são
    erro: o mês sai com alíquota, partilha e crédito zerados.

    Args:
        invoices: Notas classificadas (a ordem não importa).
        calculation_inputs: "YYYY-MM" -> CalculationInput (ou dict equivalente).
        tables: Anexos do Simples Nacional. Default: tabelas do pacote.

    Returns:
        List[CalculationResult]: Um resultado por mês incluído, ordenado.
    """
    tables = tables if tables is not None else load_simples_tables()
    calculation_inputs = calculation_inputs or {}

    results = []
    for month, revenue in aggregate_monthly_revenue(invoices).items():
        user_input = _as_input(calculation_inputs.get(month))
        if user_input.include_in_report is False:
            continue
        results.append(_compute_month(month, revenue, user_input, tables))

    return sorted(results, key=lambda r: r.competence_month)


# =============================================================================
# CONSOLIDAÇÕES
# =============================================================================

def _summarize(period: str, results: List[CalculationResult]) -> PeriodSummary:
    count = len(results)
    return PeriodSummary(
        period=period,
        months=count,
        total_revenue=math.fsum(r.total_revenue for r in results),
        monofasico_revenue=math.fsum(r.monofasico_revenue for r in results),
        das_paid=math.fsum(r.das_paid for r in results),
        recalculated_das_due=math.fsum(r.recalculated_das_due for r in results),
        credit_amount=math.fsum(r.credit_amount for r in results),
        # Média simples entre os meses, sem ponderar pelo faturamento
        effective_aliquot_avg=math.fsum(r.effective_aliquot for r in results) / count if count else 0.0,
        pis_cofins_share_avg=math.fsum(r.pis_cofins_share for r in results) / count if count else 0.0,
    )


def summarize_yearly(results: Iterable[CalculationResult]) -> List[PeriodSummary]:
    """Agrupa os resultados mensais por ano (YYYY), em ordem crescente."""
    by_year: Dict[str, List[CalculationResult]] = OrderedDict()
    for result in sorted(results, key=lambda r: r.competence_month):
        by_year.setdefault(result.competence_month[:4], []).append(result)

    return [_summarize(year, months) for year, months in by_year.items()]


def summarize_total(results: Iterable[CalculationResult]) -> PeriodSummary:
    """Consolida todo o período em um único PeriodSummary ("TOTAL")."""
    return _summarize("TOTAL", list(results))


# =============================================================================
# ESTIMATIVA DE RBT12
# =============================================================================

def estimate_rbt12(
    monthly_revenues: Mapping[str, MonthlyRevenue],
    new_company: bool = False,
) -> Dict[str, Optional[float]]:
    """
    Sugere o RBT12 de cada mês a partir do faturamento apurado nas notas.

    - Empresa em atividade: soma do mês com os 11 meses anteriores da lista.
      Com menos de 12 meses de histórico o valor fica None (informar manualmente).
    - Empresa nova (menos de 12 meses de atividade): média mensal acumulada
      até o mês × 12.

    Os meses são considerados na ordem cronológica das chaves presentes;
    meses sem nota não entram na contagem.

    Returns:
        Dict[str, float | None]: "YYYY-MM" -> RBT12 sugerido (2 casas).
    """
    months = sorted(monthly_revenues)
    revenues = [monthly_revenues[m].total_revenue for m in months]
    estimates: Dict[str, Optional[float]] = {}

    cumulative = 0.0
    for index, month in enumerate(months):
        if new_company:
            cumulative += revenues[index]
            estimates[month] = round(cumulative / (index + 1) * 12, 2)
        elif index >= 11:
            estimates[month] = round(sum(revenues[index - 11:index + 1]), 2)
        else:
            estimates[month] = None

    return estimates
