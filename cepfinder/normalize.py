import re
from typing import Optional

from .errors import InvalidFormat

BRAZILIAN_STATES = frozenset([
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG",
    "PA", "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
])

_NON_DIGITS = re.compile(r"\D")


def strip_cep(cep: str) -> str:
    return _NON_DIGITS.sub("", cep or "")


def normalize_cep(cep: str) -> str:
    """Return the 8-digit form of a CEP or raise InvalidFormat."""
    clean = strip_cep(cep)
    if len(clean) != 8:
        raise InvalidFormat("CEP deve conter exatamente 8 dígitos")
    return clean


def is_valid_cep(cep: str) -> bool:
    return len(strip_cep(cep)) == 8


def format_cep(cep: str) -> str:
    clean = strip_cep(cep)
    return f"{clean[:5]}-{clean[5:]}" if len(clean) == 8 else clean


def normalize_state(state: str) -> str:
    return (state or "").strip().upper()


def is_valid_state(state: str) -> bool:
    return normalize_state(state) in BRAZILIAN_STATES


def normalize_text(s: Optional[str]) -> str:
    return " ".join((s or "").split())


def optional_text(s: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty values become None."""
    if s is None:
        return None
    text = normalize_text(str(s))
    return text or None
