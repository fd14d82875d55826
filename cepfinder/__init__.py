"""Multi-source Brazilian postal code (CEP) resolution."""

__version__ = "0.1.0"
