"""Tests for the persistent role directory."""

import threading

import pytest
from sqlalchemy import text

from rolebot.adapters.storage import create_sqlite_engine
from rolebot.core.errors import (
    AlreadyExistsAppError,
    InvalidInputAppError,
    NotFoundAppError,
    StorageAppError,
)
from rolebot.services.directory import Directory


def _count(db_path: str, sql: str) -> int:
    engine = create_sqlite_engine(db_path)
    try:
        with engine.connect() as conn:
            return conn.execute(text(sql)).scalar_one()
    finally:
        engine.dispose()


class TestCreateRole:
    def test_create_and_list(self, directory: Directory) -> None:
        directory.create_role("ops")
        assert directory.get_all_roles() == ["ops"]

    @pytest.mark.parametrize("second", ["ops", "OPS", "  Ops  ", "oPs\n"])
    def test_names_normalizing_to_same_value_collide(self, directory: Directory, second: str) -> None:
        directory.create_role("Ops")

        with pytest.raises(AlreadyExistsAppError) as exc_info:
            directory.create_role(second)

        assert exc_info.value.message == "role 'ops' already exists"
        assert "UNIQUE" not in exc_info.value.message

    @pytest.mark.parametrize("name", ["", "   ", "\n\t"])
    def test_empty_name_is_rejected(self, directory: Directory, name: str) -> None:
        with pytest.raises(InvalidInputAppError):
            directory.create_role(name)

        assert directory.get_all_roles() == []

    def test_long_names_are_capped(self, directory: Directory) -> None:
        directory.create_role("x" * 150)
        assert directory.get_all_roles() == ["x" * 100]


class TestRemoveRole:
    def test_remove_missing_role(self, directory: Directory) -> None:
        with pytest.raises(NotFoundAppError) as exc_info:
            directory.remove_role("ghost")

        assert exc_info.value.details["entity"] == "role"

    def test_remove_cascades_memberships(self, directory: Directory, db_path: str) -> None:
        directory.create_role("ops")
        directory.create_role("dev")
        for user in ("alice", "bob", "carol"):
            directory.add_user_to_role("ops", user)
        directory.add_user_to_role("dev", "alice")

        directory.remove_role("OPS")

        assert directory.get_all_roles() == ["dev"]
        assert directory.get_users_in_role("ops") == []
        assert directory.get_users_in_role("dev") == ["alice"]
        assert _count(db_path, "SELECT COUNT(*) FROM role_users") == 1
        # Users themselves are never deleted
        assert _count(db_path, "SELECT COUNT(*) FROM users") == 3


class TestAddUserToRole:
    def test_add_is_idempotent(self, directory: Directory, db_path: str) -> None:
        directory.create_role("ops")

        assert directory.add_user_to_role("ops", "alice") is True
        assert directory.add_user_to_role("ops", "@Alice") is False

        assert directory.get_users_in_role("ops") == ["alice"]
        assert _count(db_path, "SELECT COUNT(*) FROM role_users") == 1

    def test_missing_role_fails_without_creating_user(self, directory: Directory, db_path: str) -> None:
        with pytest.raises(NotFoundAppError):
            directory.add_user_to_role("ghost", "alice")

        assert _count(db_path, "SELECT COUNT(*) FROM users") == 0

    @pytest.mark.parametrize("role, user", [("", "alice"), ("ops", ""), ("ops", "@"), ("  ", "bob")])
    def test_empty_values_are_rejected(self, directory: Directory, role: str, user: str) -> None:
        directory.create_role("ops")

        with pytest.raises(InvalidInputAppError):
            directory.add_user_to_role(role, user)

    def test_user_shared_between_roles(self, directory: Directory, db_path: str) -> None:
        directory.create_role("ops")
        directory.create_role("dev")
        directory.add_user_to_role("ops", "alice")
        directory.add_user_to_role("dev", "alice")

        assert _count(db_path, "SELECT COUNT(*) FROM users") == 1
        assert directory.get_users_in_role("dev") == ["alice"]


class TestRemoveUserFromRole:
    def test_remove_member(self, directory: Directory) -> None:
        directory.create_role("ops")
        directory.add_user_to_role("ops", "alice")
        directory.add_user_to_role("ops", "bob")

        directory.remove_user_from_role("ops", "@ALICE")

        assert directory.get_users_in_role("ops") == ["bob"]

    @pytest.mark.parametrize(
        "role, user, entity",
        [("ops", "nobody", "user"), ("ghost", "alice", "role"), ("dev", "alice", "membership")],
    )
    def test_missing_edge(self, directory: Directory, role: str, user: str, entity: str) -> None:
        directory.create_role("ops")
        directory.create_role("dev")
        directory.add_user_to_role("ops", "alice")

        with pytest.raises(NotFoundAppError) as exc_info:
            directory.remove_user_from_role(role, user)

        assert exc_info.value.details["entity"] == entity
        assert "not found in role" in exc_info.value.message


class TestReads:
    def test_roles_sorted(self, directory: Directory) -> None:
        for name in ("zeta", "alpha", "Mid"):
            directory.create_role(name)

        assert directory.get_all_roles() == ["alpha", "mid", "zeta"]

    def test_members_sorted(self, directory: Directory) -> None:
        directory.create_role("ops")
        for user in ("zed", "Carol", "@bob", "alice"):
            directory.add_user_to_role("ops", user)

        assert directory.get_users_in_role("ops") == ["alice", "bob", "carol", "zed"]

    def test_absent_and_empty_roles_read_the_same(self, directory: Directory) -> None:
        directory.create_role("empty")

        assert directory.get_users_in_role("empty") == []
        assert directory.get_users_in_role("absent") == []

    def test_empty_role_name_is_rejected(self, directory: Directory) -> None:
        with pytest.raises(InvalidInputAppError):
            directory.get_users_in_role("  ")

    def test_no_roles(self, directory: Directory) -> None:
        assert directory.get_all_roles() == []


def test_ops_membership_scenario(directory: Directory) -> None:
    directory.create_role("ops")
    directory.add_user_to_role("ops", "alice")
    directory.add_user_to_role("ops", "bob")
    assert directory.get_users_in_role("ops") == ["alice", "bob"]

    directory.remove_user_from_role("ops", "alice")
    assert directory.get_users_in_role("ops") == ["bob"]

    directory.remove_role("ops")
    with pytest.raises(NotFoundAppError):
        directory.add_user_to_role("ops", "carol")


def test_concurrent_remove_and_add_leave_no_dangling_edges(db_path: str) -> None:
    directory = Directory.open(db_path, timeout_seconds=10.0)
    try:
        directory.create_role("ops")
        for i in range(5):
            directory.add_user_to_role("ops", f"member{i}")

        barrier = threading.Barrier(9)
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def add(user: str) -> None:
            barrier.wait()
            try:
                directory.add_user_to_role("ops", user)
                outcome = "added"
            except NotFoundAppError:
                outcome = "not_found"
            with outcomes_lock:
                outcomes.append(outcome)

        def remove() -> None:
            barrier.wait()
            directory.remove_role("ops")

        threads = [threading.Thread(target=add, args=(f"late{i}",)) for i in range(8)]
        threads.append(threading.Thread(target=remove))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(outcomes) == 8
        assert set(outcomes) <= {"added", "not_found"}
        assert directory.get_all_roles() == []
        assert directory.get_users_in_role("ops") == []
        assert _count(db_path, "SELECT COUNT(*) FROM role_users") == 0
        assert _count(
            db_path,
            "SELECT COUNT(*) FROM role_users WHERE role_id NOT IN (SELECT id FROM roles)",
        ) == 0
    finally:
        directory.close()


class TestStorageFailures:
    def test_open_failure_is_wrapped(self, tmp_path) -> None:
        with pytest.raises(StorageAppError) as exc_info:
            Directory.open(str(tmp_path / "missing" / "roles.db"))

        assert exc_info.value.__cause__ is not None

    def test_request_time_failure_is_wrapped(self, db_path: str) -> None:
        # Schema never created: every query fails inside the driver
        directory = Directory(create_sqlite_engine(db_path))
        try:
            with pytest.raises(StorageAppError) as exc_info:
                directory.get_all_roles()

            assert exc_info.value.message == "failed to get all roles"
            assert "no such table" not in exc_info.value.message
            assert "no such table" in str(exc_info.value.__cause__)

            with pytest.raises(StorageAppError):
                directory.create_role("ops")
        finally:
            directory.close()

    def test_ping(self, directory: Directory) -> None:
        directory.ping()


def test_in_memory_directory() -> None:
    directory = Directory.open(":memory:")
    try:
        directory.create_role("ops")
        directory.add_user_to_role("ops", "alice")
        assert directory.get_users_in_role("ops") == ["alice"]
    finally:
        directory.close()


def test_in_memory_directory_serializes_threads() -> None:
    directory = Directory.open(":memory:")
    try:
        directory.create_role("ops")
        barrier = threading.Barrier(8)
        errors: list[Exception] = []

        def work(i: int) -> None:
            barrier.wait()
            try:
                for j in range(5):
                    directory.add_user_to_role("ops", f"user{i}_{j}")
                    directory.ping()
                    directory.get_users_in_role("ops")
            except StorageAppError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=work, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(directory.get_users_in_role("ops")) == 40
    finally:
        directory.close()
