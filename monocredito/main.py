"""
================================================================================
MONOCRÉDITO - Apuração de Crédito de PIS/COFINS Monofásico no Simples Nacional
================================================================================

Módulo principal (entry point) do processamento em lote.

Empresas do Simples Nacional que vendem produtos de tributação monofásica
(combustíveis, medicamentos, perfumaria, autopeças, bebidas frias) deveriam
segregar essas receitas no PGDAS-D. Quem não segregou recolheu PIS/COFINS
em duplicidade dentro do DAS e tem crédito a recuperar.

PIPELINE:
---------
    1. PARSING: Lê todos os XMLs de NF-e do diretório de entrada
       (cada arquivo recebe um UploadStatus; um arquivo ruim não para o lote)
    2. CLASSIFICAÇÃO: Feita pelo parser (NCM + CFOP) em cada item
    3. INPUTS: Carrega DAS pago, anexo e RBT12 por mês de um JSON
    4. APURAÇÃO: Crédito e novo DAS devido por mês
    5. EXPORTAÇÃO: Planilha Excel com as abas da apuração

ARQUIVO DE INPUTS (calculation_inputs.json):
--------------------------------------------
    {
        "2024-03": {"das_paid": 60.0, "anexo": "anexo1", "rbt12": 100000},
        "2024-04": {"das_paid": 75.5, "anexo": "anexo1", "rbt12": 110000,
                    "manual_effective_aliquot": 4.5},
        "2024-05": {"includeInReport": false}
    }

CONFIGURAÇÃO (.env):
--------------------
    MONOCREDITO_INPUT_DIR    Diretório dos XMLs      (default: input_xmls)
    MONOCREDITO_OUTPUT_DIR   Diretório dos relatórios (default: output_reports)
    MONOCREDITO_INPUTS_FILE  JSON de inputs mensais  (default: calculation_inputs.json)
    MONOCREDITO_RULES_DIR    Tabelas de regras       (default: monocredito/database)
    MONOCREDITO_NEW_COMPANY  Empresa com menos de 12 meses (default: false)

RBT12 ausente no JSON é estimado a partir do faturamento das notas.
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================
import json
import os
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from colorama import Fore, init
from dotenv import load_dotenv

from monocredito.core.calculator import aggregate_monthly_revenue, compute, estimate_rbt12, summarize_total
from monocredito.core.models import ANEXO_KEYS, CalculationInput, CalculationResult, Invoice, UploadStatus
from monocredito.core.parser import NFeParser
from monocredito.core.review import pending_review_count
from monocredito.utils.exporter import ReportGenerator

# =============================================================================
# INICIALIZAÇÃO
# =============================================================================
init(autoreset=True)
load_dotenv()

# =============================================================================
# CONSTANTES DE CONFIGURAÇÃO
# =============================================================================

DEFAULT_INPUT_DIR = "input_xmls"
DEFAULT_OUTPUT_DIR = "output_reports"
DEFAULT_INPUTS_FILE = "calculation_inputs.json"


@dataclass
class PipelineReport:
    """Resultado de uma execução do pipeline."""

    file_statuses: Dict[str, UploadStatus] = field(default_factory=dict)
    invoices: List[Invoice] = field(default_factory=list)
    results: List[CalculationResult] = field(default_factory=list)
    total_credit: float = 0.0
    report_path: Optional[str] = None

    @property
    def failed_files(self) -> List[str]:
        return [name for name, status in self.file_statuses.items() if status is UploadStatus.FAILED]


# =============================================================================
# FUNÇÕES AUXILIARES
# =============================================================================

def print_header() -> None:
    """Imprime o cabeçalho visual do sistema."""
    print(Fore.CYAN + "=" * 60)
    print(Fore.CYAN + "🚀 MONOCRÉDITO - APURAÇÃO DE PIS/COFINS MONOFÁSICO")
    print(Fore.CYAN + "=" * 60 + "\n")


def print_summary(report: PipelineReport) -> None:
    """Imprime o resumo final da apuração."""
    print("\n" + Fore.GREEN + "=" * 60)
    print(Fore.WHITE + f"💰 CRÉDITO TOTAL: R$ {report.total_credit:.2f}")
    print(Fore.GREEN + "=" * 60)

    processed = len(report.file_statuses) - len(report.failed_files)
    print(Fore.CYAN + "\n📊 Estatísticas:")
    print(Fore.WHITE + f"   • Arquivos processados: {processed}")
    print(Fore.WHITE + f"   • Arquivos com falha: {len(report.failed_files)}")
    print(Fore.WHITE + f"   • Meses apurados: {len(report.results)}")
    print(Fore.WHITE + f"   • Itens pendentes de revisão: {pending_review_count(report.invoices)}")

    for result in report.results:
        print(
            Fore.WHITE
            + f"   {result.competence_month}: receita monofásica R$ {result.monofasico_revenue:.2f}"
            + f" | crédito R$ {result.credit_amount:.2f}"
        )


def load_calculation_inputs(inputs_path: str) -> Dict[str, CalculationInput]:
    """
    Carrega os inputs mensais do arquivo JSON ({"YYYY-MM": {...}}).

    Arquivo ausente não é erro: todos os meses saem zerados na apuração.
    """
    if not os.path.exists(inputs_path):
        print(Fore.YELLOW + f"⚠️  Arquivo de inputs '{inputs_path}' não encontrado. Meses sairão zerados.")
        return {}

    try:
        with open(inputs_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(Fore.RED + f"❌ JSON de inputs inválido ({inputs_path}): {e}")
        return {}
    except OSError as e:
        print(Fore.RED + f"❌ Erro ao ler {inputs_path}: {e}")
        return {}

    if not isinstance(data, dict):
        print(Fore.RED + f"❌ JSON de inputs deve ser um objeto {{'YYYY-MM': {{...}}}}: {inputs_path}")
        return {}

    inputs = {}
    for month, values in data.items():
        if not isinstance(values, dict):
            continue
        user_input = CalculationInput.from_dict(values)
        if user_input.anexo and user_input.anexo not in ANEXO_KEYS:
            print(Fore.YELLOW + f"⚠️  {month}: anexo '{user_input.anexo}' desconhecido (use {', '.join(ANEXO_KEYS)})")
        inputs[month] = user_input

    return inputs


def fill_missing_rbt12(
    calculation_inputs: Dict[str, CalculationInput],
    invoices: List[Invoice],
    new_company: bool = False,
) -> Dict[str, CalculationInput]:
    """
    Completa o RBT12 dos meses que não o informaram com a estimativa
    calculada a partir do faturamento das próprias notas (estimate_rbt12).

    RBT12 informado no JSON nunca é substituído. Sem histórico suficiente
    (empresa em atividade com menos de 12 meses de notas) o mês fica sem
    RBT12 e um aviso é exibido.
    """
    estimates = estimate_rbt12(aggregate_monthly_revenue(invoices), new_company=new_company)

    filled = dict(calculation_inputs)
    for month, user_input in calculation_inputs.items():
        if user_input.rbt12 is not None or month not in estimates:
            continue

        estimate = estimates[month]
        if estimate is None:
            print(Fore.YELLOW + f"⚠️  {month}: RBT12 não informado e histórico insuficiente para estimar")
            continue

        print(Fore.BLUE + f"ℹ️  {month}: RBT12 estimado a partir das notas: R$ {estimate:.2f}")
        filled[month] = replace(user_input, rbt12=estimate)

    return filled


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "sim", "yes")


def parse_directory(parser: NFeParser, input_dir: str, report: PipelineReport) -> None:
    """Lê os XMLs do diretório registrando o status de cada arquivo."""
    arquivos_xml = sorted(f for f in os.listdir(input_dir) if f.lower().endswith(".xml"))

    if not arquivos_xml:
        print(Fore.YELLOW + f"⚠️  Nenhum arquivo XML encontrado em '{input_dir}'.")
        return

    print(Fore.WHITE + f"📋 {len(arquivos_xml)} arquivo(s) para análise.\n")

    for xml_file in arquivos_xml:
        report.file_statuses[xml_file] = UploadStatus.PENDING
        print(f"📂 Processando: {xml_file}...")

        invoice = parser.parse_file(os.path.join(input_dir, xml_file))
        if invoice is None:
            report.file_statuses[xml_file] = UploadStatus.FAILED
            continue

        report.file_statuses[xml_file] = UploadStatus.PROCESSED
        report.invoices.append(invoice)

        monofasicos = sum(1 for item in invoice.items if item.is_monofasico)
        bloqueados = sum(1 for item in invoice.items if item.needs_human_review)
        print(Fore.GREEN + f"   ✅ {len(invoice.items)} item(ns), {monofasicos} monofásico(s)")
        if bloqueados:
            print(Fore.YELLOW + f"   ⚠️  {bloqueados} item(ns) monofásico(s) bloqueado(s) pelo CFOP")


# =============================================================================
# FUNÇÃO PRINCIPAL - PIPELINE DE PROCESSAMENTO
# =============================================================================

def process_pipeline(
    input_dir: Optional[str] = None,
    inputs_path: Optional[str] = None,
    output_dir: Optional[str] = None,
    new_company: Optional[bool] = None,
) -> PipelineReport:
    """
    Executa o pipeline completo de apuração.

    Args:
        input_dir: Diretório dos XMLs. Default: MONOCREDITO_INPUT_DIR.
        inputs_path: JSON de inputs mensais. Default: MONOCREDITO_INPUTS_FILE.
        output_dir: Diretório dos relatórios. Default: MONOCREDITO_OUTPUT_DIR.
        new_company: Empresa com menos de 12 meses de atividade (muda a
            estimativa de RBT12). Default: MONOCREDITO_NEW_COMPANY.

    Returns:
        PipelineReport: Status por arquivo, notas, resultados e crédito total.
    """
    input_dir = input_dir or os.getenv("MONOCREDITO_INPUT_DIR", DEFAULT_INPUT_DIR)
    inputs_path = inputs_path or os.getenv("MONOCREDITO_INPUTS_FILE", DEFAULT_INPUTS_FILE)
    output_dir = output_dir or os.getenv("MONOCREDITO_OUTPUT_DIR", DEFAULT_OUTPUT_DIR)
    if new_company is None:
        new_company = _env_flag("MONOCREDITO_NEW_COMPANY")

    print_header()
    report = PipelineReport()

    # =========================================================================
    # ETAPA 1: PARSING E CLASSIFICAÇÃO
    # =========================================================================

    if not os.path.isdir(input_dir):
        print(Fore.RED + f"❌ Diretório '{input_dir}' não encontrado!")
        print(Fore.YELLOW + "   Crie a pasta e coloque os arquivos XML nela.")
        return report

    parse_directory(NFeParser(), input_dir, report)

    if not report.invoices:
        return report

    # =========================================================================
    # ETAPA 2: APURAÇÃO
    # =========================================================================

    calculation_inputs = fill_missing_rbt12(
        load_calculation_inputs(inputs_path), report.invoices, new_company
    )
    report.results = compute(report.invoices, calculation_inputs)
    report.total_credit = summarize_total(report.results).credit_amount

    # =========================================================================
    # ETAPA 3: RELATÓRIO
    # =========================================================================

    print_summary(report)

    exporter = ReportGenerator(output_folder=output_dir)
    report.report_path = exporter.gerar_excel(report.results, invoices=report.invoices)

    if report.total_credit <= 0:
        print(Fore.GREEN + "\n✅ Nenhum crédito apurado para o período.")

    return report


# =============================================================================
# PONTO DE ENTRADA DO PROGRAMA
# =============================================================================

if __name__ == "__main__":
    process_pipeline()
