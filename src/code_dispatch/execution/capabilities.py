from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BackendCapabilities:
    """Capability flags advertised by a backend.

    Example:
        ```python
        caps = BackendCapabilities(True, True, True, False)
        ```
    """

    supports_timeout: bool
    supports_cancellation: bool
    supports_output_cap: bool
    process_isolation: bool


def capabilities_for_backend(backend: str) -> BackendCapabilities:
    """Return capability flags for a backend name.

    The embedded runtime shares the host process, and only remote calls can be
    cancelled by the caller.

    Example:
        ```python
        caps = capabilities_for_backend("remote")
        ```
    """
    name = backend.lower()
    if name in {"remote", "remoteengine"}:
        return BackendCapabilities(True, True, True, True)
    if name in {"local", "localengine"}:
        return BackendCapabilities(True, False, True, True)
    if name in {"embedded", "embeddedengine"}:
        return BackendCapabilities(True, False, True, False)
    return BackendCapabilities(False, False, False, False)
