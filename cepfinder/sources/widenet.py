from typing import Any, Dict

from ..models import CanonicalAddress
from .common import SourceAdapter, build_address, not_found


class WideNetSource(SourceAdapter):
    source_id = "widenet"
    name = "WideNet"
    url_template = "https://cep.widenet.host/busca-cep/api/cep.json?code={cep}"

    def parse(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        if data.get("status") == "error" or not data.get("address"):
            raise not_found(self.name)
        return build_address(
            self.name,
            cep,
            postal_code=data.get("code"),
            street=data.get("address"),
            neighborhood=data.get("district") or data.get("neighborhood"),
            city=data.get("city"),
            state=data.get("state"),
        )
