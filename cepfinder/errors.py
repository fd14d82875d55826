"""Exception hierarchy for cepfinder."""

from typing import List, Optional, Tuple


class CepError(Exception):
    """Base exception for all cepfinder errors."""


class InvalidFormat(CepError, ValueError):
    """Raised when a postal code does not normalize to exactly 8 digits."""


class InvalidQuery(CepError, ValueError):
    """Raised when an address search is missing city or a valid state."""


class SourceError(CepError):
    """Raised inside an adapter when one provider call fails."""

    def __init__(self, source_name: str, reason: str, status: Optional[int] = None):
        super().__init__(f"{source_name}: {reason}")
        self.source_name = source_name
        self.reason = reason
        self.status = status


class SourceUnavailable(SourceError):
    """Network error, timeout or non-2xx status from one provider."""


class NotFoundAtSource(SourceError):
    """Provider answered but has no record for the postal code."""


class NotFoundAnywhere(CepError):
    """Ordered fallback exhausted every source without a success."""

    def __init__(self, postal_code: str, failures: List[Tuple[str, str]]):
        self.postal_code = postal_code
        self.failures = list(failures)
        details = "; ".join(f"{name}: {reason}" for name, reason in self.failures)
        message = "CEP não encontrado em nenhuma fonte disponível"
        if details:
            message = f"{message} ({details})"
        super().__init__(message)


class Cancelled(CepError):
    """Raised when a batch is stopped by its caller."""
