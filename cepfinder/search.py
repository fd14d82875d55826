"""
Reverse lookup: structured address -> candidate CEPs.

Every valid query yields at least one row. Provider failures and empty
answers become a single row echoing the query instead of an exception.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Union

from .errors import InvalidQuery, NotFoundAtSource, SourceError
from .logger import get_logger
from .models import (
    STATUS_ERROR,
    STATUS_FOUND,
    STATUS_NOT_FOUND,
    STATUS_SERVICE_ERROR,
    AddressCandidate,
    AddressQuery,
)
from .schema import build_address_query, validate_address_query
from .sources.viacep import ViaCepSource

logger = get_logger()

QueryInput = Union[AddressQuery, Dict[str, Any]]


def _as_dict(query: QueryInput) -> Dict[str, Any]:
    if isinstance(query, AddressQuery):
        return {
            "street": query.street,
            "neighborhood": query.neighborhood,
            "city": query.city,
            "state": query.state,
        }
    return dict(query)


def prepare_query(query: QueryInput) -> AddressQuery:
    """Validate and normalize a query. Raises InvalidQuery."""
    data = _as_dict(query)
    errors = validate_address_query(data)
    if errors:
        raise InvalidQuery("; ".join(errors))
    return build_address_query(data)


class AddressSearchResolver:
    def __init__(self, source: Optional[ViaCepSource] = None):
        self.source = source or ViaCepSource()

    async def search(self, query: QueryInput) -> List[AddressCandidate]:
        """Candidate CEPs for one address.

        Raises:
            InvalidQuery: city missing or state not a Brazilian UF
        """
        prepared = prepare_query(query)
        echo = prepared.one_line()

        try:
            addresses = await asyncio.to_thread(self.source.search, prepared)
        except NotFoundAtSource:
            addresses = []
        except SourceError as e:
            logger.warning("Address search failed", query=echo, reason=e.reason)
            if e.status is not None:
                return [AddressCandidate(address_line=echo, status=STATUS_NOT_FOUND)]
            return [AddressCandidate(address_line=echo, status=STATUS_SERVICE_ERROR, error=e.reason)]

        if not addresses:
            logger.info("No CEP found for address", query=echo)
            return [AddressCandidate(address_line=echo, status=STATUS_NOT_FOUND)]

        return [
            AddressCandidate(
                address_line=address.one_line(),
                status=STATUS_FOUND,
                postal_code=address.postal_code,
                address=address,
            )
            for address in addresses
        ]

    async def search_many(self, queries: Sequence[QueryInput]) -> List[AddressCandidate]:
        """Search several addresses concurrently, rows kept in query order.

        An invalid query contributes one error row instead of aborting the rest.
        """
        async def one(query: QueryInput) -> List[AddressCandidate]:
            try:
                return await self.search(query)
            except InvalidQuery as e:
                data = _as_dict(query)
                line = f"{data.get('street') or ''}, {data.get('neighborhood') or ''}, {data.get('city') or ''} - {data.get('state') or ''}"
                return [AddressCandidate(address_line=line, status=STATUS_ERROR, error=str(e))]

        groups = await asyncio.gather(*(one(q) for q in queries))
        return [row for group in groups for row in group]
