"""
Tests for reverse lookup by address.
"""

import asyncio

import pytest
import requests

from cepfinder.errors import InvalidQuery
from cepfinder.models import (
    STATUS_ERROR,
    STATUS_FOUND,
    STATUS_NOT_FOUND,
    STATUS_SERVICE_ERROR,
    AddressQuery,
)
from cepfinder.search import AddressSearchResolver, prepare_query
from cepfinder.sources.viacep import ViaCepSource

SE_URL = "https://viacep.com.br/ws/SP/S%C3%A3o%20Paulo/Pra%C3%A7a%20da%20S%C3%A9/json/"
SE_QUERY = {"street": "Praça da Sé", "city": "São Paulo", "state": "sp"}


@pytest.fixture
def resolver():
    return AddressSearchResolver(ViaCepSource())


class TestPrepareQuery:
    def test_normalizes_fields(self):
        query = prepare_query({"street": "  Praça  da Sé ", "city": "São Paulo", "state": " sp"})

        assert query == AddressQuery(city="São Paulo", state="SP", street="Praça da Sé")

    def test_accepts_address_query(self):
        query = prepare_query(AddressQuery(city="Recife", state="pe"))
        assert query.state == "PE"

    def test_missing_city_and_state(self):
        with pytest.raises(InvalidQuery) as exc_info:
            prepare_query({"street": "Rua Augusta"})

        message = str(exc_info.value)
        assert "A cidade é obrigatória" in message
        assert "O estado é obrigatório" in message


class TestSearch:
    def test_empty_city_makes_no_calls(self, resolver, http_stub):
        with pytest.raises(InvalidQuery, match="cidade"):
            asyncio.run(resolver.search({"city": "", "state": "SP", "street": "Praça da Sé"}))

        assert http_stub.urls == []

    def test_unknown_state(self, resolver, http_stub):
        with pytest.raises(InvalidQuery, match="Estado inválido: XX"):
            asyncio.run(resolver.search({"city": "São Paulo", "state": "XX"}))

        assert http_stub.urls == []

    def test_found_rows(self, resolver, http_stub, viacep_payload):
        second = dict(viacep_payload, cep="01001-001", complemento="lado par")
        http_stub.respond(SE_URL, 200, [viacep_payload, second])

        rows = asyncio.run(resolver.search(SE_QUERY))

        assert [r.postal_code for r in rows] == ["01001000", "01001001"]
        assert all(r.status == STATUS_FOUND for r in rows)
        assert rows[0].address_line == "Praça da Sé, Sé, São Paulo - SP"
        assert rows[0].address.source_name == "ViaCEP"
        assert http_stub.urls == [SE_URL]

    def test_empty_answer_echoes_query(self, resolver, http_stub):
        http_stub.respond(SE_URL, 200, [])

        rows = asyncio.run(resolver.search(SE_QUERY))

        assert len(rows) == 1
        assert rows[0].status == STATUS_NOT_FOUND
        assert rows[0].postal_code is None
        assert rows[0].address_line == "Praça da Sé, , São Paulo - SP"

    def test_erro_flag_is_not_found(self, resolver, http_stub):
        http_stub.respond(SE_URL, 200, {"erro": True})

        rows = asyncio.run(resolver.search(SE_QUERY))

        assert [r.status for r in rows] == [STATUS_NOT_FOUND]

    def test_http_error_is_not_found(self, resolver, http_stub):
        http_stub.respond(SE_URL, 400, {})

        rows = asyncio.run(resolver.search(SE_QUERY))

        assert [r.status for r in rows] == [STATUS_NOT_FOUND]
        assert rows[0].error is None

    def test_network_error_is_service_error(self, resolver, http_stub):
        http_stub.add(SE_URL, requests.exceptions.Timeout())

        rows = asyncio.run(resolver.search(SE_QUERY))

        assert len(rows) == 1
        assert rows[0].status == STATUS_SERVICE_ERROR
        assert rows[0].error == "Tempo limite excedido"
        assert rows[0].address_line == "Praça da Sé, , São Paulo - SP"


class TestSearchMany:
    def test_rows_follow_query_order(self, resolver, http_stub, viacep_payload):
        recife_url = "https://viacep.com.br/ws/PE/Recife/Rua%20da%20Aurora/json/"
        http_stub.respond(SE_URL, 200, [viacep_payload])
        http_stub.respond(recife_url, 200, [])

        rows = asyncio.run(resolver.search_many([
            SE_QUERY,
            {"city": "", "state": "SP"},
            {"street": "Rua da Aurora", "city": "Recife", "state": "PE"},
        ]))

        assert [r.status for r in rows] == [STATUS_FOUND, STATUS_ERROR, STATUS_NOT_FOUND]
        assert "A cidade é obrigatória" in rows[1].error
        assert rows[1].address_line == ", ,  - SP"
        assert rows[2].address_line == "Rua da Aurora, , Recife - PE"
