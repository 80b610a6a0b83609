"""
Integration tests for accounts and sessions.
"""
import pytest

from werkzeug.security import check_password_hash

from orders.auth import AuthService
from orders.errors import AuthError, ConflictError, ValidationError


@pytest.fixture
def auth(test_backend):
    return AuthService(test_backend, session_ttl_hours=1)


@pytest.mark.integration
class TestPasswordStorage:
    """Tests for how passwords are kept in amg_users."""

    def test_stored_as_hash(self, auth, test_backend):
        """Test the stored value is a salted hash of the password, never the password."""
        auth.sign_up("gerant@amg-bijoux.fr", "s3cret-pass")
        auth.sign_up("compta@amg-bijoux.fr", "s3cret-pass")
        stored = [r["password_hash"] for r in test_backend.select("amg_users", order=[("id", True)]).rows]
        assert "s3cret-pass" not in stored
        assert stored[0] != stored[1]
        assert all(check_password_hash(h, "s3cret-pass") for h in stored)
        assert not check_password_hash(stored[0], "other-pass")

    def test_garbage_hash_never_signs_in(self, auth, test_backend):
        """Test a corrupted hash column refuses every password."""
        session = auth.sign_up("gerant@amg-bijoux.fr", "s3cret-pass")
        test_backend.update("amg_users", {"password_hash": "not-a-hash"}, [("id", "eq", session.user.id)])
        with pytest.raises(AuthError):
            auth.sign_in("gerant@amg-bijoux.fr", "s3cret-pass")


@pytest.mark.integration
class TestAuthService:
    """Integration tests for AuthService."""

    def test_sign_up_and_get_user(self, auth):
        """Test a new account is signed in straight away."""
        session = auth.sign_up("Gerant@AMG-Bijoux.fr", "motdepasse")
        assert session.user.email == "gerant@amg-bijoux.fr"
        assert auth.get_user(session.token).id == session.user.id

    def test_duplicate_email(self, auth):
        """Test one account per email."""
        auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        with pytest.raises(ConflictError):
            auth.sign_up("gerant@amg-bijoux.fr", "autremotdepasse")

    def test_weak_credentials(self, auth):
        """Test email and password rules."""
        with pytest.raises(ValidationError) as exc_info:
            auth.sign_up("gerant", "court")
        assert {i.field for i in exc_info.value.issues} == {"email", "password"}

    def test_sign_in(self, auth):
        """Test signing in with the right and wrong password."""
        auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        assert auth.sign_in("gerant@amg-bijoux.fr", "motdepasse").token
        with pytest.raises(AuthError):
            auth.sign_in("gerant@amg-bijoux.fr", "mauvais-mdp")
        with pytest.raises(AuthError):
            auth.sign_in("inconnu@amg-bijoux.fr", "motdepasse")

    def test_sign_out(self, auth):
        """Test a signed-out token no longer works."""
        session = auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        auth.sign_out(session.token)
        with pytest.raises(AuthError):
            auth.get_user(session.token)

    def test_missing_or_unknown_token(self, auth):
        """Test no token and a made-up token."""
        with pytest.raises(AuthError):
            auth.get_user(None)
        with pytest.raises(AuthError):
            auth.get_user("made-up")

    def test_expired_session(self, test_backend):
        """Test sessions stop working after their TTL."""
        auth = AuthService(test_backend, session_ttl_hours=-1)
        session = auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        with pytest.raises(AuthError):
            auth.get_user(session.token)

    def test_update_password(self, auth):
        """Test a changed password replaces the old one."""
        session = auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        auth.update_user(session.token, password="nouveau-mdp")
        auth.sign_in("gerant@amg-bijoux.fr", "nouveau-mdp")
        with pytest.raises(AuthError):
            auth.sign_in("gerant@amg-bijoux.fr", "motdepasse")

    def test_update_email(self, auth):
        """Test changing the account email."""
        session = auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        user = auth.update_user(session.token, email="direction@amg-bijoux.fr")
        assert user.email == "direction@amg-bijoux.fr"

    def test_update_rejects_short_password(self, auth):
        """Test update applies the same password rule."""
        session = auth.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        with pytest.raises(ValidationError):
            auth.update_user(session.token, password="abc")

    def test_expired_sessions_purged_on_sign_in(self, test_backend):
        """Test opening a session removes sessions that have already expired."""
        stale = AuthService(test_backend, session_ttl_hours=-1)
        stale.sign_up("gerant@amg-bijoux.fr", "motdepasse")
        stale.sign_in("gerant@amg-bijoux.fr", "motdepasse")
        assert test_backend.table_counts()["amg_sessions"] == 1

        session = AuthService(test_backend, session_ttl_hours=1).sign_in("gerant@amg-bijoux.fr", "motdepasse")
        rows = test_backend.select("amg_sessions").rows
        assert [r["token"] for r in rows] == [session.token]
