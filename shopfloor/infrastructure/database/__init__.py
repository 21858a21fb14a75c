from .engine import build_engine, init_db, session_factory
from .unit_of_work import SqlModelUnitOfWork, UnitOfWorkManager

__all__ = [
    "SqlModelUnitOfWork",
    "UnitOfWorkManager",
    "build_engine",
    "init_db",
    "session_factory",
]
