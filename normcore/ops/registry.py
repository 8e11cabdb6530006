# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Backend registry for the layer normalization operator.

Maps each ``BackendId`` to its implementing class. The set of ids is closed
(the enum), so the registry is populated exactly once at import time via
``_register_builtins()`` and stays fixed afterwards. Whether a registered
backend may actually run is decided separately by the feature flags in
``normcore.ops.features``.
"""

import logging

from normcore.ops.interfaces import BackendBase, BackendId

logger = logging.getLogger(__name__)

_BACKEND_REGISTRY: dict[BackendId, type[BackendBase]] = {}


def register_backend(backend_id: BackendId, cls: type[BackendBase]) -> None:
    """
    Register a backend class under its id.

    Raises:
        ValueError: If ``backend_id`` is already registered.
    """
    backend_id = BackendId(backend_id)
    if backend_id in _BACKEND_REGISTRY:
        raise ValueError(
            f"Backend '{backend_id.value}' is already registered to "
            f"{_BACKEND_REGISTRY[backend_id].__name__}"
        )
    _BACKEND_REGISTRY[backend_id] = cls
    logger.debug("registered_backend", extra={"backend": backend_id.value, "cls": cls.__name__})


def get_backend(backend_id: BackendId | str) -> type[BackendBase]:
    """
    Retrieve a registered backend class by id.

    Raises:
        KeyError: If ``backend_id`` is not registered.
    """
    try:
        key = BackendId(backend_id)
    except ValueError:
        key = None
    if key is None or key not in _BACKEND_REGISTRY:
        available = list_backends()
        raise KeyError(f"Unknown backend '{backend_id}'. Available: {available}")
    return _BACKEND_REGISTRY[key]


def list_backends() -> list[str]:
    """Return sorted list of all registered backend ids."""
    return sorted(b.value for b in _BACKEND_REGISTRY)


_BUILTINS_REGISTERED: bool = False


def _register_builtins() -> None:
    """
    Register all built-in backends.

    Importing the backends subpackage triggers the ``register_backend`` calls.
    This function is idempotent.
    """
    global _BUILTINS_REGISTERED
    if _BUILTINS_REGISTERED:
        return

    import normcore.ops.backends  # noqa: F401

    _BUILTINS_REGISTERED = True
    logger.debug("builtins_registered", extra={"backends": list_backends()})


_register_builtins()
