"""Address sources, in default priority order."""

from typing import List

from .apicep import ApiCepSource
from .awesomeapi import AwesomeApiSource
from .brasilapi import BrasilApiSource
from .common import SourceAdapter
from .viacep import ViaCepSource
from .widenet import WideNetSource

SOURCE_CLASSES = [
    BrasilApiSource,
    AwesomeApiSource,
    ViaCepSource,
    ApiCepSource,
    WideNetSource,
]


def default_sources(**kwargs) -> List[SourceAdapter]:
    """Instantiate every known source in priority order."""
    return [cls(**kwargs) for cls in SOURCE_CLASSES]


__all__ = [
    "SourceAdapter",
    "BrasilApiSource",
    "AwesomeApiSource",
    "ViaCepSource",
    "ApiCepSource",
    "WideNetSource",
    "SOURCE_CLASSES",
    "default_sources",
]
