"""SQLite persistence for roles, users and role memberships."""

from rolebot.adapters.storage.database import create_sqlite_engine, init_schema
from rolebot.adapters.storage.models import Base, Role, RoleUser, User

__all__ = [
    "Base",
    "Role",
    "RoleUser",
    "User",
    "create_sqlite_engine",
    "init_schema",
]
