"""Unit tests for auth/store.py -- UserStore.

Covers:
- create_user() assigns id / created_at and normalizes email
- UNIQUE(email) -> DuplicateEmail, case-insensitively, original row untouched
- find_by_email() / find_by_id() raise UserNotFound when absent
- concurrent inserts with one email: exactly one winner
- revoke_token() idempotence, is_revoked(), purge_revoked()
"""

import threading

import pytest

from auth.exceptions import DuplicateEmail, UserNotFound
from auth.store import UserStore


class TestCreateAndFind:
    def test_create_assigns_identity(self, store):
        user = store.create_user("a@x.com", "A", "$2b$04$hash")
        assert user.id
        assert user.created_at
        assert user.email == "a@x.com"

    def test_email_stored_lowercase(self, store):
        user = store.create_user("  Mixed@Case.COM ", "M", "$2b$04$hash")
        assert user.email == "mixed@case.com"
        assert store.find_by_email("MIXED@case.com").id == user.id

    def test_find_by_id_round_trip(self, store):
        user = store.create_user("a@x.com", "A", "$2b$04$hash")
        found = store.find_by_id(user.id)
        assert found.email == "a@x.com"
        assert found.name == "A"
        assert found.password_hash == "$2b$04$hash"
        assert found.created_at == user.created_at

    def test_find_by_email_missing(self, store):
        with pytest.raises(UserNotFound):
            store.find_by_email("nobody@x.com")

    def test_find_by_id_missing(self, store):
        with pytest.raises(UserNotFound):
            store.find_by_id("00000000-0000-0000-0000-000000000000")

    def test_list_users(self, store):
        store.create_user("a@x.com", "A", "$2b$04$hash")
        store.create_user("b@x.com", "B", "$2b$04$hash")
        assert {u.email for u in store.list_users()} == {"a@x.com", "b@x.com"}

    def test_repr_hides_password_hash(self, store):
        user = store.create_user("a@x.com", "A", "$2b$04$secret-verifier")
        assert "secret-verifier" not in repr(user)


class TestUniqueness:
    def test_duplicate_email_rejected(self, store):
        store.create_user("a@x.com", "A", "$2b$04$first")
        with pytest.raises(DuplicateEmail):
            store.create_user("a@x.com", "Impostor", "$2b$04$second")

    def test_duplicate_is_case_insensitive(self, store):
        store.create_user("a@x.com", "A", "$2b$04$first")
        with pytest.raises(DuplicateEmail):
            store.create_user("A@X.COM", "Impostor", "$2b$04$second")

    def test_original_unchanged_after_duplicate(self, store):
        original = store.create_user("a@x.com", "A", "$2b$04$first")
        with pytest.raises(DuplicateEmail):
            store.create_user("a@x.com", "Impostor", "$2b$04$second")
        found = store.find_by_email("a@x.com")
        assert found.id == original.id
        assert found.name == "A"
        assert found.password_hash == "$2b$04$first"
        assert len(store.list_users()) == 1

    def test_concurrent_inserts_single_winner(self, tmp_path):
        """Racing inserts are settled by the UNIQUE constraint, not a pre-check.

        Uses a file database so each thread gets its own real connection.
        """
        store = UserStore(f"sqlite:///{tmp_path / 'race.db'}")
        workers = 8
        barrier = threading.Barrier(workers)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(i: int) -> None:
            barrier.wait()
            try:
                store.create_user("race@x.com", f"R{i}", "$2b$04$hash")
                result = "ok"
            except DuplicateEmail:
                result = "duplicate"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        store.close()

        assert outcomes.count("ok") == 1
        assert outcomes.count("duplicate") == workers - 1


class TestRevocation:
    def test_revoke_and_check(self, store):
        assert store.is_revoked("jti-1") is False
        store.revoke_token("jti-1", "user-1", expires_at=2_000)
        assert store.is_revoked("jti-1") is True

    def test_revoke_twice_is_noop(self, store):
        store.revoke_token("jti-1", "user-1", expires_at=2_000)
        store.revoke_token("jti-1", "user-1", expires_at=2_000)
        assert store.is_revoked("jti-1") is True

    def test_purge_removes_only_expired(self, store):
        store.revoke_token("old", "user-1", expires_at=1_000)
        store.revoke_token("edge", "user-1", expires_at=1_500)
        store.revoke_token("live", "user-1", expires_at=3_000)
        assert store.purge_revoked(now=1_500) == 2
        assert store.is_revoked("old") is False
        assert store.is_revoked("edge") is False
        assert store.is_revoked("live") is True

    def test_ping(self, store):
        assert store.ping() is True
