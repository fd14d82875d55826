from typing import Any, Dict

from ..models import CanonicalAddress
from .common import SourceAdapter, build_address, not_found


class ApiCepSource(SourceAdapter):
    source_id = "apicep"
    name = "APICEP"
    url_template = "https://ws.apicep.com/cep/{cep}.json"

    def parse(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        if data.get("status") == 400 or data.get("ok") is False:
            raise not_found(self.name)
        return build_address(
            self.name,
            cep,
            postal_code=data.get("code"),
            street=data.get("address"),
            neighborhood=data.get("district"),
            city=data.get("city"),
            state=data.get("state"),
        )
