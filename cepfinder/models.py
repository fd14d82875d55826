"""
Data model shared by the adapters, resolvers and batch engine.

All records are plain dataclasses. Results coming from providers are frozen
so a cached mapping can be handed out to several callers safely.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

STATUS_FOUND = "Encontrado"
STATUS_NOT_FOUND = "Não encontrado"
STATUS_ERROR = "Erro"
STATUS_SERVICE_ERROR = "Erro ao consultar o serviço"


@dataclass(frozen=True)
class CanonicalAddress:
    """Address record normalized from one provider's response."""

    postal_code: str  # 8 digits, never formatted
    street: str
    neighborhood: str
    city: str
    state_code: str
    source_name: str
    complement: Optional[str] = None
    address_type: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    area_code: Optional[str] = None
    ibge_code: Optional[str] = None

    def one_line(self) -> str:
        return f"{self.street}, {self.neighborhood}, {self.city} - {self.state_code}"


@dataclass(frozen=True)
class Success:
    address: CanonicalAddress
    elapsed_ms: int = 0

    ok = True

    @property
    def source_name(self) -> str:
        return self.address.source_name


@dataclass(frozen=True)
class Failure:
    source_name: str
    reason: str
    elapsed_ms: int = 0

    ok = False


SourceResult = Union[Success, Failure]
ResultMap = Dict[str, SourceResult]


@dataclass
class SourceHealth:
    """Last known reachability of one provider."""

    source_id: str
    name: str
    is_online: bool = True
    last_checked_at: datetime = field(default_factory=datetime.now)
    last_response_time_ms: int = 0


@dataclass(frozen=True)
class PostalCodeItem:
    postal_code: str
    origin: str = ""


@dataclass(frozen=True)
class AddressOnlyItem:
    """Batch row that carries an address instead of a postal code."""

    label: str
    origin: str = ""


BatchItem = Union[PostalCodeItem, AddressOnlyItem]


@dataclass
class BatchResult:
    postal_code: str
    status: str
    source_name: str
    elapsed_ms: int
    street: str = ""
    neighborhood: str = ""
    city: str = ""
    state_code: str = ""
    error: Optional[str] = None
    origin: str = ""

    @classmethod
    def found(cls, address: CanonicalAddress, elapsed_ms: int, origin: str = "") -> "BatchResult":
        return cls(
            postal_code=address.postal_code,
            status=STATUS_FOUND,
            source_name=address.source_name,
            elapsed_ms=elapsed_ms,
            street=address.street,
            neighborhood=address.neighborhood,
            city=address.city,
            state_code=address.state_code,
            origin=origin,
        )


@dataclass(frozen=True)
class BatchProgress:
    processed: int
    total: int
    found: int
    not_found: int
    errors: int
    elapsed_seconds: float
    remaining_seconds: float

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.processed / self.total * 100, 1)


@dataclass
class BatchStats:
    total: int
    found: int
    not_found: int
    errors: int
    mean_elapsed_ms: float
    total_elapsed_ms: int
    top_sources: List[Dict[str, Union[str, int]]]
    success_rate: float


@dataclass(frozen=True)
class AddressQuery:
    city: str
    state: str
    street: str = ""
    neighborhood: str = ""

    def one_line(self) -> str:
        return f"{self.street}, {self.neighborhood}, {self.city} - {self.state}"


@dataclass(frozen=True)
class AddressCandidate:
    address_line: str
    status: str
    postal_code: Optional[str] = None
    address: Optional[CanonicalAddress] = None
    error: Optional[str] = None
