"""Persistent directory of roles, users and role memberships.

The directory is the only writer of the roles/users/role_users tables. It
normalizes every name and handle before touching storage, runs each
multi-step mutation as a single transaction, and translates storage faults
into domain errors exactly once, here.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Iterator

from sqlalchemy import Engine, delete, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rolebot.adapters.storage import Role, RoleUser, User, create_sqlite_engine, init_schema
from rolebot.core.errors import (
    AlreadyExistsAppError,
    InvalidInputAppError,
    NotFoundAppError,
    StorageAppError,
)
from rolebot.utils.text_normalizer import normalize_handle, normalize_role_name

logger = logging.getLogger(__name__)


def _require(value: str, field: str) -> str:
    if not value:
        raise InvalidInputAppError(
            code="invalid_input",
            message=f"invalid {field} '': cannot be empty",
            details={"field": field, "reason": "cannot be empty"},
        )
    return value


def _role_not_found(role: str) -> NotFoundAppError:
    return NotFoundAppError(
        code="role_not_found",
        message=f"role '{role}' not found",
        details={"entity": "role", "role": role},
    )


class Directory:
    """Transactional role membership store.

    Example:
        >>> directory = Directory.open(":memory:")
        >>> directory.create_role("Ops")
        >>> directory.add_user_to_role("ops", "@Alice")
        True
        >>> directory.get_users_in_role("OPS")
        ['alice']
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._read_session = sessionmaker(bind=engine, expire_on_commit=False)
        # Writers take the database lock at BEGIN so that read-check-write
        # sequences cannot interleave with another writer.
        self._write_session = sessionmaker(
            bind=engine.execution_options(sqlite_begin="IMMEDIATE"),
            expire_on_commit=False,
        )
        # One shared connection (in-memory databases) takes one unit of work at a time
        self._lock = threading.Lock() if isinstance(engine.pool, StaticPool) else nullcontext()

    @classmethod
    def open(cls, path: str, *, timeout_seconds: float = 5.0) -> "Directory":
        """Open (and if needed create) the database at ``path``.

        Raises:
            StorageAppError: If the database cannot be opened or initialized.
        """
        try:
            engine = create_sqlite_engine(path, timeout_seconds=timeout_seconds)
            init_schema(engine)
        except SQLAlchemyError as exc:
            raise StorageAppError(
                code="storage_init_failed",
                message="failed to initialize database",
                details={"operation": "open"},
            ) from exc
        return cls(engine)

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _storage_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error(
                "directory.storage_failure",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StorageAppError(
                code="storage_failure",
                message=f"failed to {operation.replace('_', ' ')}",
                details={"operation": operation},
            ) from exc

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        with self._storage_errors(operation), self._lock:
            with self._write_session.begin() as session:
                yield session

    @contextmanager
    def _reader(self, operation: str) -> Iterator[Session]:
        with self._storage_errors(operation), self._lock:
            with self._read_session() as session:
                yield session

    def create_role(self, name: str) -> None:
        """Create a role.

        Raises:
            InvalidInputAppError: Name is empty after normalization.
            AlreadyExistsAppError: A role with the normalized name exists.
        """
        role = _require(normalize_role_name(name), "role name")

        with self._transaction("create_role") as session:
            session.add(Role(name=role))
            try:
                session.flush()
            except IntegrityError as exc:
                raise AlreadyExistsAppError(
                    code="role_already_exists",
                    message=f"role '{role}' already exists",
                    details={"role": role},
                ) from exc

        logger.info("directory.role_created", extra={"role": role})

    def remove_role(self, name: str) -> None:
        """Delete a role together with all of its membership edges."""
        role = _require(normalize_role_name(name), "role name")

        with self._transaction("remove_role") as session:
            role_id = session.scalar(select(Role.id).where(Role.name == role))
            if role_id is None:
                raise _role_not_found(role)

            edges = session.execute(delete(RoleUser).where(RoleUser.role_id == role_id))
            session.execute(delete(Role).where(Role.id == role_id))

        logger.info(
            "directory.role_removed",
            extra={"role": role, "members_removed": edges.rowcount},
        )

    def add_user_to_role(self, role: str, user: str) -> bool:
        """Add ``user`` to ``role``, creating the user on first reference.

        Runs as one transaction: confirm the role, upsert the user, insert
        the edge. Adding an existing member is a no-op.

        Returns:
            bool: True if a new membership was created, False if it existed.

        Raises:
            InvalidInputAppError: Role or user is empty after normalization.
            NotFoundAppError: The role does not exist.
        """
        role_name = _require(normalize_role_name(role), "role name")
        handle = _require(normalize_handle(user), "username")

        with self._transaction("add_user_to_role") as session:
            role_id = session.scalar(select(Role.id).where(Role.name == role_name))
            if role_id is None:
                raise _role_not_found(role_name)

            session.execute(
                sqlite_insert(User)
                .values(name=handle)
                .on_conflict_do_nothing(index_elements=[User.name])
            )
            user_id = session.scalar(select(User.id).where(User.name == handle))

            result = session.execute(
                sqlite_insert(RoleUser)
                .values(role_id=role_id, user_id=user_id)
                .on_conflict_do_nothing()
            )
            created = result.rowcount > 0

        logger.info(
            "directory.member_added",
            extra={"role": role_name, "user": handle, "created": created},
        )
        return created

    def remove_user_from_role(self, role: str, user: str) -> None:
        """Remove a membership edge.

        Raises:
            NotFoundAppError: The user is not a member of the role.
                ``details["entity"]`` names what was missing: "role", "user"
                or "membership".
        """
        role_name = _require(normalize_role_name(role), "role name")
        handle = _require(normalize_handle(user), "username")

        with self._transaction("remove_user_from_role") as session:
            role_id = session.scalar(select(Role.id).where(Role.name == role_name))
            user_id = session.scalar(select(User.id).where(User.name == handle))

            deleted = 0
            if role_id is not None and user_id is not None:
                result = session.execute(
                    delete(RoleUser).where(
                        RoleUser.role_id == role_id,
                        RoleUser.user_id == user_id,
                    )
                )
                deleted = result.rowcount

            if deleted == 0:
                if role_id is None:
                    entity = "role"
                elif user_id is None:
                    entity = "user"
                else:
                    entity = "membership"
                raise NotFoundAppError(
                    code="membership_not_found",
                    message=f"user '{handle}' not found in role '{role_name}'",
                    details={"entity": entity, "role": role_name, "user": handle},
                )

        logger.info("directory.member_removed", extra={"role": role_name, "user": handle})

    def get_users_in_role(self, role: str) -> list[str]:
        """Member handles of ``role`` in lexicographic order.

        An unknown role and an empty role both yield an empty list.
        """
        role_name = _require(normalize_role_name(role), "role name")

        stmt = (
            select(User.name)
            .join(RoleUser, RoleUser.user_id == User.id)
            .join(Role, Role.id == RoleUser.role_id)
            .where(Role.name == role_name)
            .order_by(User.name)
        )
        with self._reader("get_users_in_role") as session:
            return list(session.scalars(stmt))

    def get_all_roles(self) -> list[str]:
        with self._reader("get_all_roles") as session:
            return list(session.scalars(select(Role.name).order_by(Role.name)))

    def ping(self) -> None:
        """Liveness probe: run a trivial query.

        Raises:
            StorageAppError: If the database cannot be reached.
        """
        with self._storage_errors("ping"), self._lock:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
