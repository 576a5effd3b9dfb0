"""token_ledger.version: single source of the package version."""

__version__ = "0.1.0"

__all__ = ["__version__"]
