"""
Backend lookup.

Engines are imported lazily so the core package works without any bindings
installed.
"""

from typing import Callable, Dict, List

from ..core.capability import EncryptionBackend
from ..utils.exceptions import BackendNotAvailableError

BackendFactory = Callable[[], EncryptionBackend]

_FACTORIES: Dict[str, BackendFactory] = {}


def _openfhe_factory() -> EncryptionBackend:
    try:
        from .openfhe_backend import OpenFHEBackend
    except ImportError as e:
        raise BackendNotAvailableError(
            f"the 'openfhe' backend needs the openfhe bindings (pip install 'sheoracle[openfhe]'): {e}"
        ) from e
    return OpenFHEBackend()


def register_backend(name: str, factory: BackendFactory) -> None:
    _FACTORIES[name.lower()] = factory


def available_backends() -> List[str]:
    return sorted(_FACTORIES)


def get_backend(name: str) -> EncryptionBackend:
    factory = _FACTORIES.get(name.lower())
    if factory is None:
        raise BackendNotAvailableError(
            f"unknown backend '{name}' (registered: {', '.join(available_backends())})"
        )
    return factory()


register_backend("openfhe", _openfhe_factory)
