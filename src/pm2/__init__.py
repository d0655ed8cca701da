"""Pacote pm2: modelos, coleta via ``pm2 jlist`` e snapshot partilhado.

Re-exports para imports curtos a partir de ``src.pm2``.
"""

from .models import ProcessRecord, Snapshot
from .state import SnapshotStore
from .collector import CollectionError, CollectorError, ParseError, PM2Collector

__all__ = [
    "ProcessRecord",
    "Snapshot",
    "SnapshotStore",
    "PM2Collector",
    "CollectorError",
    "CollectionError",
    "ParseError",
]
