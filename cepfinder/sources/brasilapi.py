from typing import Any, Dict

from ..models import CanonicalAddress
from .common import SourceAdapter, build_address


class BrasilApiSource(SourceAdapter):
    """BrasilAPI CEP v1.

    Unknown CEPs come back as HTTP 404, handled by the shared fetch.
    """

    source_id = "brasilapi"
    name = "BrasilAPI"
    url_template = "https://brasilapi.com.br/api/cep/v1/{cep}"

    def parse(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        return build_address(
            self.name,
            cep,
            postal_code=data.get("cep"),
            street=data.get("street"),
            neighborhood=data.get("neighborhood"),
            city=data.get("city"),
            state=data.get("state"),
        )
