import re
from typing import Any, Dict, Iterable, List, Union

from .models import AddressOnlyItem, AddressQuery, BatchItem, PostalCodeItem
from .normalize import is_valid_state, normalize_state, normalize_text, strip_cep

REQUIRED_QUERY_FIELDS = ["city", "state"]
OPTIONAL_QUERY_FIELDS = ["street", "neighborhood"]

ADDRESS_ITEM_PREFIX = "ENDERECO_"

_INPUT_SEPARATORS = re.compile(r"[\n,\s]+")


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_address_query(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    City and a known two-letter state are required; street and
    neighborhood are optional strings.
    """
    errors: List[str] = []

    if not _is_non_empty_str(data.get("city")):
        errors.append("A cidade é obrigatória")

    state = data.get("state")
    if not _is_non_empty_str(state):
        errors.append("O estado é obrigatório")
    elif not is_valid_state(state):
        errors.append(f"Estado inválido: {state}")

    for f in OPTIONAL_QUERY_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Campo '{f}' deve ser texto")

    return errors


def build_address_query(data: Dict[str, Any]) -> AddressQuery:
    """Build a normalized AddressQuery from an already validated dict."""
    return AddressQuery(
        city=normalize_text(data.get("city")),
        state=normalize_state(data.get("state")),
        street=normalize_text(data.get("street")),
        neighborhood=normalize_text(data.get("neighborhood")),
    )


def to_batch_item(value: Union[str, BatchItem], origin: str = "") -> BatchItem:
    """Turn one raw batch entry into a typed item.

    Entries prefixed with ENDERECO_ stand for rows that carried an address
    instead of a postal code; they keep the raw text as their label.
    """
    if isinstance(value, (PostalCodeItem, AddressOnlyItem)):
        return value
    text = value.strip()
    if text.upper().startswith(ADDRESS_ITEM_PREFIX):
        return AddressOnlyItem(label=text, origin=origin)
    return PostalCodeItem(postal_code=text, origin=origin)


def parse_batch_items(raw: Iterable[str], origin: str = "") -> List[BatchItem]:
    """Typed items from input lines; blank lines and # comments are skipped."""
    return [
        to_batch_item(line, origin)
        for line in raw
        if line.strip() and not line.strip().startswith("#")
    ]


def validate_cep_input(text: str) -> Dict[str, Any]:
    """Split free text into valid (normalized) and invalid CEP entries."""
    entries = [e.strip() for e in _INPUT_SEPARATORS.split(text or "") if e.strip()]
    valid: List[str] = []
    invalid: List[str] = []
    for entry in entries:
        clean = strip_cep(entry)
        if len(clean) == 8:
            valid.append(clean)
        else:
            invalid.append(entry)
    return {"valid": valid, "invalid": invalid, "total": len(entries)}
