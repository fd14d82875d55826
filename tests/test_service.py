"""
Tests for the CepService facade.
"""

import asyncio

import pytest

from cepfinder.batch import BatchState
from cepfinder.errors import InvalidFormat, NotFoundAnywhere
from cepfinder.models import STATUS_FOUND, STATUS_NOT_FOUND
from cepfinder.resolver import MODE_ALL
from cepfinder.service import CepService
from cepfinder.sources.viacep import ViaCepSource


@pytest.fixture
def service(fake_source):
    return CepService(
        sources=[fake_source("A", found=()), fake_source("B", found={"01001000"})],
        throttle_s=0,
    )


def test_lookup_single_fallback(service):
    address = asyncio.run(service.lookup_single("01001-000"))

    assert address.source_name == "B"
    assert address.postal_code == "01001000"


def test_lookup_single_all(service):
    results = asyncio.run(service.lookup_single("01001000", MODE_ALL))

    assert set(results) == {"A", "B"}
    assert results["B"].ok
    assert "01001000" in service.cache


def test_lookup_single_errors(service):
    with pytest.raises(InvalidFormat):
        asyncio.run(service.lookup_single("0100"))
    with pytest.raises(NotFoundAnywhere):
        asyncio.run(service.lookup_single("99999999"))


def test_lookup_batch(service):
    rows = asyncio.run(service.lookup_batch(["99999999", "01001000"], concurrency_limit=1))

    assert [r.status for r in rows] == [STATUS_NOT_FOUND, STATUS_FOUND]


def test_start_batch_returns_controllable_job(service):
    progress = []
    job = service.start_batch(["01001000"] * 3, on_progress=progress.append)

    assert job.state == BatchState.PENDING
    rows = asyncio.run(job.run())

    assert len(rows) == 3
    assert progress[-1].processed == 3


def test_health_snapshot(fake_source):
    service = CepService(sources=[fake_source("A"), fake_source("B", online=False)])

    status = asyncio.run(service.refresh_health())

    assert [(r.name, r.is_online) for r in status] == [("A", True), ("B", False)]
    assert [r.is_online for r in service.get_source_health()] == [True, False]


def test_search_uses_registered_viacep(fake_source):
    viacep = ViaCepSource(timeout=1)
    service = CepService(sources=[fake_source("A"), viacep])

    assert service.address_search.source is viacep


def test_search_by_address(fake_source, http_stub, viacep_payload):
    http_stub.respond(
        "https://viacep.com.br/ws/SP/S%C3%A3o%20Paulo/Pra%C3%A7a%20da%20S%C3%A9/json/",
        200,
        [viacep_payload],
    )
    service = CepService(sources=[fake_source("A")])

    rows = asyncio.run(service.search_by_address({"street": "Praça da Sé", "city": "São Paulo", "state": "SP"}))
    many = asyncio.run(service.search_many([{"street": "Praça da Sé", "city": "São Paulo", "state": "SP"}]))

    assert [r.postal_code for r in rows] == ["01001000"]
    assert many == rows
