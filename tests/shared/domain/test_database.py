import pytest
from identity.profile import Profile, ProfileDirectory, ProfileRole
from shared.database import session_scope
from shared.errors import PersistenceFailure


class TestSessionScope:
    def test_commits_on_success(self):
        with session_scope() as session:
            session.add(Profile(id="p-1", email="a@example.com", role=ProfileRole.CUSTOMER.value))

        with session_scope() as session:
            assert session.get(Profile, "p-1") is not None

    def test_rolls_back_on_error(self):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(Profile(id="p-2", email="b@example.com", role=ProfileRole.CUSTOMER.value))
                session.flush()
                raise RuntimeError("abort")

        with session_scope() as session:
            assert session.get(Profile, "p-2") is None

    def test_database_errors_become_persistence_failures(self):
        with session_scope() as session:
            session.add(Profile(id="p-3", email="c@example.com", role=ProfileRole.CUSTOMER.value))

        with pytest.raises(PersistenceFailure) as exc:
            with session_scope() as session:
                session.add(Profile(id="p-3", email="dup@example.com", role=ProfileRole.CUSTOMER.value))
        assert exc.value.retryable
        assert exc.value.__cause__ is not None


class TestProfileDirectory:
    def test_lookup(self, profiles):
        directory = ProfileDirectory()
        tailor = directory.get("tailor-001")

        assert tailor.display_name == "Kemi Bello"
        assert directory.role_of("admin-001") == ProfileRole.ADMIN

    def test_unknown_profile(self, profiles):
        directory = ProfileDirectory()
        assert directory.get("nobody") is None
        assert directory.get(None) is None
        assert directory.role_of("nobody") is None
