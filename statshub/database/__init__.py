"""
Database Module
"""
from .connection import (
    check_warehouse_health,
    create_session_factory,
    create_warehouse_engine,
    ensure_schema,
)
from .models import Base, StatKind, StatSnapshotRow
from .warehouse import SQLWarehouseWriter, WarehouseWriter

__all__ = [
    "check_warehouse_health",
    "create_session_factory",
    "create_warehouse_engine",
    "ensure_schema",
    "Base",
    "StatKind",
    "StatSnapshotRow",
    "SQLWarehouseWriter",
    "WarehouseWriter",
]
