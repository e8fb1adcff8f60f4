"""Freemind: keep a local task/event list in sync with a registry server."""

from freemind.api import RegistryApi
from freemind.config import AppConfig, AuthMethod
from freemind.core.working_set import WorkingSet
from freemind.models.record import Record
from freemind.protocols import ApiProtocol
from freemind.sync import Synchronizer

__all__ = [
    "ApiProtocol",
    "AppConfig",
    "AuthMethod",
    "Record",
    "RegistryApi",
    "Synchronizer",
    "WorkingSet",
]
