"""Shared plumbing for all address sources."""

import asyncio
import time
from typing import Any, Dict, Optional

import requests

from ..config import settings
from ..errors import NotFoundAtSource, SourceError, SourceUnavailable
from ..logger import get_logger
from ..models import CanonicalAddress, Failure, SourceResult, Success
from ..normalize import normalize_state, normalize_text, optional_text, strip_cep
from ..retry import RetryError, describe_http_status, network_retry

logger = get_logger()

DEFAULT_TIMEOUT_S = settings.http_timeout_s


@network_retry()
def _fetch_with_retry(url: str, timeout: float):
    """Fetch URL, retrying transient network errors as configured."""
    return requests.get(url, timeout=timeout, headers={"Accept": "application/json"})


def fetch_with_error_handling(url: str, source: str, timeout: float = DEFAULT_TIMEOUT_S) -> requests.Response:
    """Fetch URL with standardized error handling and logging.

    Args:
        url: The URL to fetch
        source: The source name for logging (e.g., 'BrasilAPI', 'ViaCEP')
        timeout: Per-call timeout in seconds

    Returns:
        Response object on success

    Raises:
        NotFoundAtSource: On HTTP 404
        SourceUnavailable: On any other HTTP error, timeout or request failure
    """
    logger.record_api_call()
    try:
        resp = _fetch_with_retry(url, timeout)
        resp.raise_for_status()
        return resp
    except RetryError as e:
        cause = e.__cause__
        if isinstance(cause, requests.exceptions.Timeout):
            logger.warning(f"{source} request timed out", url=url)
            raise SourceUnavailable(source, "Tempo limite excedido") from e
        logger.warning(f"{source} connection error", url=url, error=str(cause))
        raise SourceUnavailable(source, f"Erro de conexão: {cause}") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else 0
        reason = describe_http_status(status)
        if status == 404:
            logger.debug(f"{source} has no record", url=url, status=404)
            raise NotFoundAtSource(source, reason, status=status) from e
        logger.warning(f"{source} request failed", url=url, status=status)
        raise SourceUnavailable(source, reason, status=status) from e
    except requests.exceptions.RequestException as e:
        logger.error(f"{source} request error", url=url, error=str(e))
        raise SourceUnavailable(source, f"Erro na requisição: {e}") from e


def build_address(
    source: str,
    requested_cep: str,
    *,
    postal_code: Optional[str],
    street: Optional[str],
    neighborhood: Optional[str],
    city: Optional[str],
    state: Optional[str],
    **optional: Optional[Any],
) -> CanonicalAddress:
    """Assemble a CanonicalAddress from provider fields.

    The provider's postal code is used when it normalizes to 8 digits,
    otherwise the requested one is kept. Raises TypeError when a main
    field is present but not text.
    """
    main = {"street": street, "neighborhood": neighborhood, "city": city, "state": state}
    for field, value in main.items():
        if value is not None and not isinstance(value, str):
            raise TypeError(f"campo '{field}' não é texto: {value!r}")
    cep = strip_cep(str(postal_code or ""))
    if len(cep) != 8:
        cep = requested_cep
    extras = {k: optional_text(v) for k, v in optional.items()}
    return CanonicalAddress(
        postal_code=cep,
        street=normalize_text(street),
        neighborhood=normalize_text(neighborhood),
        city=normalize_text(city),
        state_code=normalize_state(state),
        source_name=source,
        **extras,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class SourceAdapter:
    """One external CEP provider behind a uniform interface.

    Subclasses set ``source_id``, ``name`` and ``url_template`` and implement
    ``parse``. ``resolve`` never raises: every failure becomes a Failure.
    """

    source_id = ""
    name = ""
    url_template = ""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_S):
        self.timeout = timeout

    def url_for(self, cep: str) -> str:
        return self.url_template.format(cep=cep)

    def parse(self, data: Dict[str, Any], cep: str) -> CanonicalAddress:
        """Map a provider payload to a CanonicalAddress.

        Raises NotFoundAtSource when the payload carries a not-found flag.
        """
        raise NotImplementedError

    def fetch(self, cep: str) -> CanonicalAddress:
        """Blocking request + parse. Raises SourceError subclasses."""
        resp = fetch_with_error_handling(self.url_for(cep), self.name, self.timeout)
        try:
            data = resp.json()
        except ValueError as e:
            raise SourceUnavailable(self.name, "Resposta inválida (JSON)") from e
        if not isinstance(data, dict):
            raise SourceUnavailable(self.name, "Resposta inválida")
        return self.parse(data, cep)

    async def resolve(self, cep: str) -> SourceResult:
        start = time.monotonic()
        logger.record_lookup_attempt(self.name)
        try:
            # requests' timeout bounds each socket wait; this bounds the whole call
            address = await asyncio.wait_for(asyncio.to_thread(self.fetch, cep), self.timeout)
        except asyncio.TimeoutError:
            logger.record_lookup_failure(self.name, "DeadlineExceeded")
            logger.warning(f"{self.name} lookup exceeded deadline", cep=cep, timeout_s=self.timeout)
            return Failure(self.name, "Tempo limite excedido", _elapsed_ms(start))
        except SourceError as e:
            logger.record_lookup_failure(self.name, type(e).__name__)
            logger.debug(f"{self.name} lookup failed", cep=cep, reason=e.reason)
            return Failure(self.name, e.reason, _elapsed_ms(start))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.record_lookup_failure(self.name, "MalformedPayload")
            logger.warning(f"{self.name} returned an unexpected payload", cep=cep, error=str(e))
            return Failure(self.name, f"Resposta inválida: {e}", _elapsed_ms(start))

        elapsed = _elapsed_ms(start)
        logger.record_lookup_success(self.name, elapsed)
        return Success(address, elapsed)

    def check(self, cep: str) -> bool:
        """Blocking reachability check; True on a 2xx answer."""
        logger.record_api_call()
        try:
            resp = requests.get(self.url_for(cep), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.debug(f"{self.name} probe failed", error=str(e))
            return False
        return resp.ok

    async def probe(self, cep: str) -> bool:
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.check, cep), self.timeout)
        except asyncio.TimeoutError:
            logger.debug(f"{self.name} probe exceeded deadline", timeout_s=self.timeout)
            return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def not_found(source: str) -> NotFoundAtSource:
    return NotFoundAtSource(source, "CEP não encontrado")
