from .db_manage import DbManageService, build_engine
from .store import SqlStateStore, StateStore, StoreError, UserServiceRow

__all__ = [
    "DbManageService",
    "SqlStateStore",
    "StateStore",
    "StoreError",
    "UserServiceRow",
    "build_engine",
]
