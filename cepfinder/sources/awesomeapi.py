from typing import Any, Dict

from ..models import CanonicalAddress
from .common import SourceAdapter, build_address, not_found


class AwesomeApiSource(SourceAdapter):
    source_id = "awesomeapi"
    name = "AwesomeAPI"
    url_template = "https://cep.awesomeapi.com.br/json/{cep}"

    def parse(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        # Invalid or unknown CEPs may still answer 200 with an embedded status
        if data.get("status") in (400, 404):
            raise not_found(self.name)
        return build_address(
            self.name,
            cep,
            postal_code=data.get("cep"),
            street=data.get("address"),
            neighborhood=data.get("district"),
            city=data.get("city"),
            state=data.get("state"),
            address_type=data.get("address_type"),
            latitude=data.get("lat"),
            longitude=data.get("lng"),
            area_code=data.get("ddd"),
            ibge_code=data.get("city_ibge"),
        )
