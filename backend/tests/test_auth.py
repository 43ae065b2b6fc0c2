# Overview: Pytest coverage for signup, login sessions and user management.

from datetime import timedelta

import pytest

from dukapos.errors import AccessDenied, StorageError, ValidationError
from dukapos.extensions import db
from dukapos.models import Business, SessionToken, User
from dukapos.services import auth_service, session_service
from dukapos.services.auth_service import PasswordValidationError
from dukapos.time_utils import utcnow

from conftest import PASSWORD


class TestPasswordStrength:
    @pytest.mark.parametrize(
        "password",
        ["Short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_strong_password_accepted(self):
        auth_service.validate_password_strength(PASSWORD)

    def test_hash_roundtrip(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)

    def test_malformed_hash_is_failed_login(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestSignup:
    def test_creates_business_and_admin(self, db_session):
        user = auth_service.signup(
            business_name="Mama Duka",
            email="Owner@Example.com",
            password=PASSWORD,
            first_name="Amina",
            timezone="Africa/Nairobi",
        )

        assert user.role == "admin"
        assert user.email == "owner@example.com"
        business = db.session.get(Business, user.business_id)
        assert business.name == "Mama Duka"
        assert business.timezone == "Africa/Nairobi"

    def test_duplicate_email_rejected_case_insensitively(self, db_session):
        auth_service.signup(business_name="One", email="owner@example.com", password=PASSWORD)
        with pytest.raises(ValidationError):
            auth_service.signup(business_name="Two", email="OWNER@example.com", password=PASSWORD)
        assert db_session.query(Business).count() == 1

    def test_unknown_timezone_rejected(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.signup(business_name="One", email="a@example.com", password=PASSWORD, timezone="Mars/Olympus")
        assert db_session.query(Business).count() == 0

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", None])
    def test_invalid_email_rejected(self, db_session, email):
        with pytest.raises(ValidationError):
            auth_service.signup(business_name="One", email=email, password=PASSWORD)

    def test_business_name_required(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.signup(business_name="  ", email="a@example.com", password=PASSWORD)

    def test_verification_gives_up_after_bounded_attempts(self, db_session, app, monkeypatch):
        monkeypatch.setitem(app.config, "SIGNUP_VERIFY_ATTEMPTS", 3)
        with pytest.raises(StorageError):
            auth_service.verify_user_created(999999)


class TestAuthenticate:
    def test_valid_credentials(self, db_session, admin_a):
        user = auth_service.authenticate("ADMIN_A@duka.test", PASSWORD)
        assert user is not None and user.id == admin_a.id
        assert user.last_login_at is not None

    def test_wrong_password(self, db_session, admin_a):
        assert auth_service.authenticate(admin_a.email, "Wrong123!") is None

    def test_inactive_user(self, db_session, admin_a):
        admin_a.is_active = False
        db_session.commit()
        assert auth_service.authenticate(admin_a.email, PASSWORD) is None

    def test_inactive_business(self, db_session, admin_a, business_a):
        business_a.is_active = False
        db_session.commit()
        assert auth_service.authenticate(admin_a.email, PASSWORD) is None


class TestSessions:
    def test_session_carries_tenant_context(self, db_session, clerk_a):
        _, token = session_service.create_session(clerk_a)
        context = session_service.validate_session(token)

        assert context.tenant.business_id == clerk_a.business_id
        assert context.tenant.role == "user"
        assert context.tenant.user_id == clerk_a.id
        assert not context.tenant.is_admin

    def test_only_hash_is_stored(self, db_session, admin_a):
        session, token = session_service.create_session(admin_a)
        assert session.token_hash == session_service.hash_token(token)
        assert db_session.query(SessionToken).filter_by(token_hash=token).count() == 0

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("deadbeef") is None

    def test_revoked_token(self, db_session, admin_a):
        _, token = session_service.create_session(admin_a)
        assert session_service.revoke_session(token)
        assert session_service.validate_session(token) is None
        assert not session_service.revoke_session(token)

    def test_expired_token(self, db_session, admin_a):
        session, token = session_service.create_session(admin_a)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_token_revoked(self, db_session, admin_a):
        session, token = session_service.create_session(admin_a)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_deactivated_user_session_revoked(self, db_session, admin_a):
        _, token = session_service.create_session(admin_a)
        admin_a.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_inactive_user_cannot_get_session(self, db_session, admin_a):
        admin_a.is_active = False
        db_session.commit()
        with pytest.raises(ValueError):
            session_service.create_session(admin_a)

    def test_cleanup_removes_old_revoked(self, db_session, admin_a):
        session, token = session_service.create_session(admin_a)
        session_service.revoke_session(token)
        session = db.session.get(SessionToken, session.id)
        session.created_at = utcnow() - timedelta(days=40)
        db_session.commit()

        assert session_service.cleanup_expired_sessions(older_than_days=30) == 1
        assert db_session.query(SessionToken).count() == 0


class TestUserManagement:
    def test_admin_creates_user(self, db_session, ctx_a):
        user = auth_service.create_user(ctx_a, email="new@duka.test", password=PASSWORD, role="user")
        assert user.business_id == ctx_a.business_id
        assert user.role == "user"

    def test_clerk_cannot_create_user(self, db_session, clerk_ctx_a):
        with pytest.raises(AccessDenied):
            auth_service.create_user(clerk_ctx_a, email="new@duka.test", password=PASSWORD)

    def test_invalid_role_rejected(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            auth_service.create_user(ctx_a, email="new@duka.test", password=PASSWORD, role="owner")

    def test_list_users_scoped(self, db_session, ctx_a, clerk_a, admin_b):
        emails = {u.email for u in auth_service.list_users(ctx_a)}
        assert emails == {"admin_a@duka.test", "clerk_a@duka.test"}

    def test_role_change_revokes_sessions(self, db_session, ctx_a, clerk_a):
        _, token = session_service.create_session(clerk_a)
        auth_service.update_user(ctx_a, clerk_a.id, {"role": "admin"})

        assert session_service.validate_session(token) is None
        assert db.session.get(User, clerk_a.id).role == "admin"

    def test_admin_cannot_demote_self(self, db_session, ctx_a):
        with pytest.raises(AccessDenied):
            auth_service.update_user(ctx_a, ctx_a.user_id, {"role": "user"})

    def test_admin_cannot_delete_self(self, db_session, ctx_a):
        with pytest.raises(AccessDenied):
            auth_service.delete_user(ctx_a, ctx_a.user_id)

    def test_delete_user_removes_sessions(self, db_session, ctx_a, clerk_a):
        session_service.create_session(clerk_a)
        clerk_id = clerk_a.id
        auth_service.delete_user(ctx_a, clerk_id)
        assert db.session.get(User, clerk_id) is None
        assert db_session.query(SessionToken).filter_by(user_id=clerk_id).count() == 0
