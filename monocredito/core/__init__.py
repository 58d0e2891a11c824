"""
Pacote core - Módulos centrais do Monocrédito.

Contém:
    - NFeParser: Extração de dados de XMLs de NF-e
    - classify_item: Decisão combinada NCM + CFOP por item
    - compute: Apuração mensal do crédito de PIS/COFINS
    - load_monofasico_rules / load_simples_tables: Tabelas de regras
"""

from .calculator import compute, summarize_total, summarize_yearly
from .classifier import ItemDecision, classify_item
from .parser import NFeParser
from .rules import RuleTableError, load_monofasico_rules, load_simples_tables

__all__ = [
    'NFeParser',
    'ItemDecision',
    'classify_item',
    'compute',
    'summarize_yearly',
    'summarize_total',
    'RuleTableError',
    'load_monofasico_rules',
    'load_simples_tables',
]
