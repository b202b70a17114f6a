"""Persistence for configured endpoints and their model catalogs."""

from .database import DatabaseManager
from .models import Base, EndpointModelRecord, EndpointRecord
from .store import EndpointStore, NewModel

__all__ = [
    "Base",
    "DatabaseManager",
    "EndpointModelRecord",
    "EndpointRecord",
    "EndpointStore",
    "NewModel",
]
