"""
Token ledger package.

An upgradeable, role-gated fungible token ledger with its deployment module.

Lightweight public surface:
- __version__: semantic version (from token_ledger.version)
- get_version(): safe accessor for the version string

Selected submodules are lazily exposed on first access to avoid import cycles:
- config, errors, metrics, token, roles, proxy, deploy
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .version import __version__

__all__ = ["__version__", "get_version"]


def get_version() -> str:
    """Return the token_ledger package version string."""
    return __version__


# --- Lazy exports for common submodules ------------------------------------
_lazy_exports = {
    "config": "token_ledger.config",
    "errors": "token_ledger.errors",
    "metrics": "token_ledger.metrics",
    "token": "token_ledger.token",
    "roles": "token_ledger.roles",
    "proxy": "token_ledger.proxy",
    "deploy": "token_ledger.deploy",
}


def __getattr__(name: str) -> Any:  # PEP 562
    mod_path = _lazy_exports.get(name)
    if mod_path is None:
        raise AttributeError(f"module 'token_ledger' has no attribute {name!r}")
    import importlib

    mod = importlib.import_module(mod_path)
    globals()[name] = mod  # cache after first import
    return mod


if TYPE_CHECKING:  # for IDEs/type-checkers without incurring import-time cost
    from . import config as config  # noqa: F401
    from . import deploy as deploy  # noqa: F401
    from . import errors as errors  # noqa: F401
    from . import metrics as metrics  # noqa: F401
    from . import proxy as proxy  # noqa: F401
    from . import roles as roles  # noqa: F401
    from . import token as token  # noqa: F401
