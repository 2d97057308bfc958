"""Resolve transport keys through installed entry points."""

import logging
from importlib.metadata import entry_points
from typing import Any

from api_script_runner.transports.manifest import TransportManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "api_script_runner.transports"


class TransportNotFoundError(Exception):
    """No usable transport is registered under the requested key."""


def load_transport_manifest(key: str) -> TransportManifest[Any]:
    """Return the manifest a package registered for ``key``.

    Any installed distribution can contribute a transport by adding an
    entry point to the ``api_script_runner.transports`` group that names a
    ``TransportManifest`` instance.

    Raises:
        TransportNotFoundError: If the key is unknown or its entry point
            does not name a ``TransportManifest``

    """
    registered = entry_points(group=ENTRY_POINT_GROUP)
    matches = registered.select(name=key)
    if not matches:
        installed = ", ".join(sorted(registered.names)) or "none"
        raise TransportNotFoundError(
            f"Unknown transport '{key}' (installed: {installed})"
        )

    entry = next(iter(matches))
    manifest = entry.load()
    if not isinstance(manifest, TransportManifest):
        raise TransportNotFoundError(
            f"Entry point '{key}' ({entry.value}) is not a TransportManifest"
        )
    log.debug("Transport '%s' resolved to %s", key, entry.value)
    return manifest
