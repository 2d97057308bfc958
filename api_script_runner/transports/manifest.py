"""Registration record for a pluggable transport."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from api_script_runner.transports.base import Transport


@dataclass(frozen=True, kw_only=True)
class TransportManifest[ConfigT: BaseModel]:
    """What a transport package exposes to the CLI.

    ``config_cls`` validates the ``--transport-config`` JSON. The factory
    turns that config into an async context manager owning the transport's
    connections for the duration of a run.
    """

    config_cls: type[ConfigT]
    transport_factory: Callable[[ConfigT], AbstractAsyncContextManager[Transport]]
