from typing import Any, Dict, List
from urllib.parse import quote

from ..errors import SourceUnavailable
from ..models import AddressQuery, CanonicalAddress
from .common import SourceAdapter, build_address, fetch_with_error_handling, logger, not_found

SEARCH_URL = "https://viacep.com.br/ws/{state}/{city}/{street}/json/"


class ViaCepSource(SourceAdapter):
    """ViaCEP lookup by CEP plus its reverse search by address.

    ViaCEP answers unknown CEPs with 200 and ``{"erro": true}``.
    """

    source_id = "viacep"
    name = "ViaCEP"
    url_template = "https://viacep.com.br/ws/{cep}/json/"

    def parse(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        if data.get("erro"):
            raise not_found(self.name)
        return self._to_address(data, cep)

    def _to_address(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        return build_address(
            self.name,
            cep,
            postal_code=data.get("cep"),
            street=data.get("logradouro"),
            neighborhood=data.get("bairro"),
            city=data.get("localidade"),
            state=data.get("uf"),
            complement=data.get("complemento"),
            area_code=data.get("ddd"),
            ibge_code=data.get("ibge"),
        )

    def search_url(self, query: AddressQuery) -> str:
        return SEARCH_URL.format(
            state=quote(query.state, safe=""),
            city=quote(query.city, safe=""),
            street=quote(query.street, safe=""),
        )

    def search(self, query: AddressQuery) -> List[CanonicalAddress]:
        """Blocking reverse lookup. Raises SourceError subclasses.

        An empty list means the provider answered but matched nothing.
        """
        url = self.search_url(query)
        resp = fetch_with_error_handling(url, self.name, self.timeout)
        try:
            data = resp.json()
        except ValueError as e:
            raise SourceUnavailable(self.name, "Resposta inválida (JSON)") from e
        if isinstance(data, dict) and data.get("erro"):
            return []
        if not isinstance(data, list):
            raise SourceUnavailable(self.name, "Resposta inválida")

        candidates = (self._to_address(item, "") for item in data if isinstance(item, dict))
        results = [a for a in candidates if len(a.postal_code) == 8]
        logger.debug("ViaCEP address search", url=url, count=len(results))
        return results
