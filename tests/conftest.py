"""
Pytest configuration and shared fixtures.
"""

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest
import requests

from cepfinder.models import CanonicalAddress, Failure, Success
from cepfinder.sources.common import SourceAdapter


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource(SourceAdapter):
    """In-memory source with call counters.

    found=None succeeds for every CEP; otherwise only for CEPs in ``found``.
    """

    def __init__(
        self,
        name: str,
        found: Optional[Iterable[str]] = None,
        online: bool = True,
        reason: str = "CEP não encontrado",
        delay: float = 0.0,
        clock: Optional[ManualClock] = None,
        fail_first: int = 0,
    ):
        super().__init__(timeout=0.1)
        self.name = name
        self.source_id = name.lower()
        self.found = None if found is None else set(found)
        self.online = online
        self.reason = reason
        self.delay = delay
        self.clock = clock
        self.fail_first = fail_first
        self.calls: List[str] = []
        self.probes = 0

    def address_for(self, cep: str) -> CanonicalAddress:
        return CanonicalAddress(
            postal_code=cep,
            street="Praça da Sé",
            neighborhood="Sé",
            city="São Paulo",
            state_code="SP",
            source_name=self.name,
        )

    async def resolve(self, cep: str):
        self.calls.append(cep)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.clock is not None:
            self.clock.advance(1.0)
        if len(self.calls) <= self.fail_first:
            return Failure(self.name, "Tempo limite excedido")
        if self.found is None or cep in self.found:
            return Success(self.address_for(cep))
        return Failure(self.name, self.reason)

    async def probe(self, cep: str) -> bool:
        self.probes += 1
        return self.online


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def fake_source() -> Callable[..., FakeSource]:
    """Factory for FakeSource instances."""
    return FakeSource


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def http_stub(monkeypatch):
    """Route requests.get to canned responses.

    Values may be FakeResponse objects or exceptions to raise; unrouted
    URLs answer 404. Every requested URL is recorded in ``stub.urls`` and
    the timeout passed along with it in ``stub.timeouts``.
    """

    class Stub:
        def __init__(self):
            self.routes: Dict[str, Any] = {}
            self.urls: List[str] = []
            self.timeouts: List[Any] = []

        def add(self, url: str, response: Any) -> None:
            self.routes[url] = response

        def respond(self, url: str, status_code: int, payload: Any) -> None:
            self.add(url, FakeResponse(status_code, payload))

        def get(self, url, timeout=None, headers=None, **kwargs):
            self.urls.append(url)
            self.timeouts.append(timeout)
            response = self.routes.get(url, FakeResponse(404, {}))
            if isinstance(response, Exception):
                raise response
            return response

    stub = Stub()
    monkeypatch.setattr(requests, "get", stub.get)
    return stub


@pytest.fixture
def brasilapi_payload() -> Dict[str, Any]:
    return {
        "cep": "01001000",
        "state": "SP",
        "city": "São Paulo",
        "neighborhood": "Sé",
        "street": "Praça da Sé",
        "service": "viacep",
    }


@pytest.fixture
def viacep_payload() -> Dict[str, Any]:
    return {
        "cep": "01001-000",
        "logradouro": "Praça da Sé",
        "complemento": "lado ímpar",
        "bairro": "Sé",
        "localidade": "São Paulo",
        "uf": "SP",
        "ibge": "3550308",
        "gia": "1004",
        "ddd": "11",
        "siafi": "7107",
    }


@pytest.fixture
def awesomeapi_payload() -> Dict[str, Any]:
    return {
        "cep": "01001000",
        "address_type": "Praça",
        "address_name": "da Sé",
        "address": "Praça da Sé",
        "state": "SP",
        "district": "Sé",
        "lat": "-23.5503",
        "lng": "-46.6339",
        "city": "São Paulo",
        "city_ibge": "3550308",
        "ddd": "11",
    }
