"""Runner lifecycle listeners."""

from api_script_runner.listeners.base import ListenerBase, RunnerListener
from api_script_runner.listeners.logger import LoggingListener
from api_script_runner.listeners.multi import MultiListener, add_listener

__all__ = [
    "ListenerBase",
    "LoggingListener",
    "MultiListener",
    "RunnerListener",
    "add_listener",
]
