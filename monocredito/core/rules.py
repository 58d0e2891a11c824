"""
================================================================================
MÓDULO: rules.py - Tabelas de Regras (NCM monofásico e Simples Nacional)
================================================================================

Carrega as tabelas estáticas usadas pelo classificador e pela calculadora:

    database/
    ├── monofasico_rules.json           # Tabela legada (ranges, exceções, específicos)
    ├── tabela_oficial_monofasicos.json # Prefixos oficiais + exceções (carve-outs)
    └── simples_nacional.json           # Anexos I a V com faixas e partilha

As tabelas são CONFIGURAÇÃO VERSIONADA: carregadas uma única vez (cache) e
expostas somente para leitura (dataclasses congeladas, tuplas, frozensets e
MappingProxyType). Nenhum módulo altera regras em tempo de execução.

Diferente do classificador, que nunca levanta exceções, o carregamento
FALHA ALTO: sem as tabelas, todos os itens seriam classificados como não
monofásicos sem nenhum aviso.

USO:
----
    from monocredito.core.rules import load_monofasico_rules, load_simples_tables

    regras = load_monofasico_rules()
    print(regras.version, len(regras.ranges))

    anexos = load_simples_tables()
    print(anexos["anexo1"].nome)   # "Anexo I - Comércio"

Autor: Equipe MonoCredito
Versão: 1.0
================================================================================
"""

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from colorama import Fore


# =============================================================================
# CONSTANTES
# =============================================================================

# Diretório padrão das tabelas (empacotado junto com o código).
# Pode ser sobrescrito pela variável de ambiente MONOCREDITO_RULES_DIR.
DEFAULT_RULES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "database")

MONOFASICO_RULES_FILE = "monofasico_rules.json"
OFFICIAL_TABLE_FILE = "tabela_oficial_monofasicos.json"
SIMPLES_TABLES_FILE = "simples_nacional.json"


class RuleTableError(ValueError):
    """Tabela de regras com estrutura inválida."""


# =============================================================================
# ESTRUTURAS
# =============================================================================

@dataclass(frozen=True)
class NcmRange:
    """Intervalo inclusivo de NCMs (comparação lexicográfica, 8 dígitos)."""

    start: str
    end: str
    grupo: str = ""

    def contains(self, ncm: str) -> bool:
        return self.start <= ncm <= self.end


@dataclass(frozen=True)
class OfficialPrefix:
    """Entrada da tabela oficial: prefixo de NCM (2 a 8 dígitos)."""

    prefixo: str
    descricao: str
    grupo: str = ""
    base_legal: str = ""
    possui_excecoes: bool = False

    def matches(self, ncm: str) -> bool:
        return ncm.startswith(self.prefixo)


@dataclass(frozen=True)
class MonofasicoRules:
    """
    Conjunto completo de regras de NCM monofásico.

    Attributes:
        exceptions: NCM -> descrição. União das exceções da tabela legada
            com as exceções (carve-outs) da tabela oficial.
        specific: NCMs monofásicos listados individualmente (tabela legada).
        ranges: Intervalos da tabela legada, na ordem do arquivo.
        official_prefixes: Tabela oficial, prefixos mais longos primeiro.
        version: Versão da tabela legada + versão da tabela oficial.
    """

    exceptions: Mapping[str, str]
    specific: FrozenSet[str]
    ranges: Tuple[NcmRange, ...]
    official_prefixes: Tuple[OfficialPrefix, ...]
    version: str = ""


@dataclass(frozen=True)
class Faixa:
    """Faixa de receita (RBT12) de um anexo. Limites inclusivos."""

    de: float
    ate: float
    aliquota: float
    valor_a_deduzir: float
    partilha: Mapping[str, float]

    def contains(self, rbt12: float) -> bool:
        return self.de <= rbt12 <= self.ate


@dataclass(frozen=True)
class Anexo:
    key: str
    nome: str
    faixas: Tuple[Faixa, ...]


# =============================================================================
# CARREGAMENTO
# =============================================================================

def _rules_dir(rules_dir: Optional[str]) -> str:
    return rules_dir or os.getenv("MONOCREDITO_RULES_DIR") or DEFAULT_RULES_DIR


def _read_json(path: str) -> Dict[str, Any]:
    """
    Lê um arquivo JSON de regras.

    Raises:
        FileNotFoundError: Se o arquivo não existir.
        RuleTableError: Se o JSON estiver malformado.
    """
    if not os.path.exists(path):
        print(Fore.RED + f"❌ Tabela de regras não encontrada: {path}")
        raise FileNotFoundError(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(Fore.RED + f"❌ Erro ao ler JSON de regras {path}: {e}")
        raise RuleTableError(f"JSON inválido em {path}: {e}") from e


def _only_digits(code: Any) -> str:
    return "".join(ch for ch in str(code) if ch.isdigit())


def load_monofasico_rules(rules_dir: Optional[str] = None) -> MonofasicoRules:
    """
    Carrega a tabela legada e a tabela oficial de NCMs monofásicos.

    Args:
        rules_dir (str | None): Diretório com os JSONs. Default:
            MONOCREDITO_RULES_DIR (lido a cada chamada) ou o pacote.

    Returns:
        MonofasicoRules: Regras imutáveis (resultado em cache por diretório).

    Raises:
        FileNotFoundError: Se algum arquivo não existir.
        RuleTableError: Se algum arquivo tiver estrutura inválida.
    """
    return _load_monofasico_rules(_rules_dir(rules_dir))


@lru_cache(maxsize=None)
def _load_monofasico_rules(base: str) -> MonofasicoRules:
    legado = _read_json(os.path.join(base, MONOFASICO_RULES_FILE))
    oficial = _read_json(os.path.join(base, OFFICIAL_TABLE_FILE))

    try:
        exceptions: Dict[str, str] = {
            _only_digits(code): desc for code, desc in legado.get("excecoes", {}).items()
        }
        specific = frozenset(_only_digits(code) for code in legado.get("especificos", []))
        ranges = tuple(
            NcmRange(
                start=_only_digits(r["start"]),
                end=_only_digits(r["end"]),
                grupo=r.get("grupo", ""),
            )
            for r in legado.get("ranges", [])
        )

        prefixes = []
        for entry in oficial.get("prefixos", []):
            prefixo = _only_digits(entry["prefixo"])
            if not 2 <= len(prefixo) <= 8:
                raise RuleTableError(f"Prefixo oficial inválido: {entry['prefixo']!r}")

            prefixes.append(OfficialPrefix(
                prefixo=prefixo,
                descricao=entry.get("descricao", ""),
                grupo=entry.get("grupo", ""),
                base_legal=entry.get("base_legal", ""),
                possui_excecoes=bool(entry.get("possui_excecoes", False)),
            ))

            # Carve-outs da tabela oficial entram na mesma lista de exceções
            for code, desc in entry.get("excecoes", {}).items():
                exceptions.setdefault(_only_digits(code), desc)

    except (KeyError, TypeError, AttributeError) as e:
        raise RuleTableError(f"Estrutura inválida nas tabelas de NCM: {e}") from e

    for r in ranges:
        if len(r.start) != 8 or len(r.end) != 8 or r.start > r.end:
            raise RuleTableError(f"Range de NCM inválido: {r.start}-{r.end}")

    # Prefixos mais específicos primeiro (8 dígitos antes de 4 dígitos)
    prefixes.sort(key=lambda p: len(p.prefixo), reverse=True)

    version = "{}/{}".format(
        legado.get("_metadata", {}).get("versao", "?"),
        oficial.get("_metadata", {}).get("versao", "?"),
    )

    return MonofasicoRules(
        exceptions=MappingProxyType(exceptions),
        specific=specific,
        ranges=ranges,
        official_prefixes=tuple(prefixes),
        version=version,
    )


def load_simples_tables(rules_dir: Optional[str] = None) -> Mapping[str, Anexo]:
    """
    Carrega os anexos do Simples Nacional.

    Valida que as faixas de cada anexo estão em ordem crescente e não se
    sobrepõem, garantindo que cada RBT12 caia em no máximo uma faixa.

    Returns:
        Mapping[str, Anexo]: "anexo1" ... "anexo5" -> Anexo (somente leitura).

    Raises:
        FileNotFoundError: Se o arquivo não existir.
        RuleTableError: Se faixas estiverem fora de ordem ou sobrepostas.
    """
    return _load_simples_tables(_rules_dir(rules_dir))


@lru_cache(maxsize=None)
def _load_simples_tables(base: str) -> Mapping[str, Anexo]:
    data = _read_json(os.path.join(base, SIMPLES_TABLES_FILE))

    anexos: Dict[str, Anexo] = {}
    try:
        for key, raw in data["anexos"].items():
            faixas = tuple(
                Faixa(
                    de=float(f["de"]),
                    ate=float(f["ate"]),
                    aliquota=float(f["aliquota"]),
                    valor_a_deduzir=float(f.get("valor_a_deduzir", 0)),
                    partilha=MappingProxyType(
                        {name: float(share) for name, share in f.get("partilha", {}).items()}
                    ),
                )
                for f in raw["faixas"]
            )
            _validate_faixas(key, faixas)
            anexos[key] = Anexo(key=key, nome=raw.get("nome", key), faixas=faixas)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        if isinstance(e, RuleTableError):
            raise
        raise RuleTableError(f"Estrutura inválida na tabela do Simples Nacional: {e}") from e

    return MappingProxyType(anexos)


def _validate_faixas(key: str, faixas: Tuple[Faixa, ...]) -> None:
    if not faixas:
        raise RuleTableError(f"{key}: anexo sem faixas")

    previous: Optional[Faixa] = None
    for faixa in faixas:
        if faixa.de > faixa.ate:
            raise RuleTableError(f"{key}: faixa com limite inferior maior que o superior ({faixa.de} > {faixa.ate})")
        if previous is not None and faixa.de <= previous.ate:
            raise RuleTableError(f"{key}: faixas sobrepostas ({previous.ate} >= {faixa.de})")
        previous = faixa
