"""
Monocrédito - Apuração de crédito de PIS/COFINS monofásico para empresas do
Simples Nacional a partir de XMLs de NF-e.
"""

__version__ = "1.0.0"
