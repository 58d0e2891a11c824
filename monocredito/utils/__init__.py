"""
Pacote utils - Utilitários do Monocrédito.

Contém:
    - ReportGenerator: Gerador de relatórios Excel/CSV
"""

from .exporter import ReportGenerator

__all__ = ['ReportGenerator']
