import pytest

from app.db.models import User, UserRole
from app.middlewares.auth_middleware import require_admin, require_employee
from app.services.auth_service import AuthService, AuthState
from app.utils.auth import AuthUtils
from app.utils.errors import AuthenticationError, AuthorizationError, ConflictError

from tests.conftest import BOOTSTRAP_KEY, TEST_PASSWORD


class TestBootstrapAdmin:
    """Test first administrator creation."""

    @pytest.mark.asyncio
    async def test_bootstrap_creates_admin_and_session(self, db_session, test_settings):
        service = AuthService(db_session, test_settings)

        user, token = await service.bootstrap_admin(
            "Admin@Example.com", "admin-password", BOOTSTRAP_KEY
        )

        assert user.email == "admin@example.com"
        assert user.role == "admin"
        state = AuthService.resolve_session(token, test_settings)
        assert state.is_authenticated
        assert state.is_admin
        assert state.email == "admin@example.com"

        stored = db_session.query(User).one()
        assert stored.password_hash != "admin-password"
        assert AuthUtils.verify_password("admin-password", stored.password_hash)

    @pytest.mark.asyncio
    async def test_bootstrap_rejects_wrong_key(self, db_session, test_settings):
        service = AuthService(db_session, test_settings)

        with pytest.raises(AuthorizationError) as exc_info:
            await service.bootstrap_admin("admin@example.com", "admin-password", "nope")

        assert exc_info.value.error_code == "BOOTSTRAP_FORBIDDEN"
        assert db_session.query(User).count() == 0

    @pytest.mark.asyncio
    async def test_bootstrap_rejects_when_key_not_configured(
        self, db_session, test_settings
    ):
        config = test_settings.model_copy(update={"ADMIN_BOOTSTRAP_KEY": ""})
        service = AuthService(db_session, config)

        with pytest.raises(AuthorizationError):
            await service.bootstrap_admin("admin@example.com", "admin-password", "")

    @pytest.mark.asyncio
    async def test_second_bootstrap_conflicts(self, db_session, test_settings):
        service = AuthService(db_session, test_settings)
        await service.bootstrap_admin("first@example.com", "admin-password", BOOTSTRAP_KEY)

        with pytest.raises(ConflictError) as exc_info:
            await service.bootstrap_admin(
                "second@example.com", "admin-password", BOOTSTRAP_KEY
            )

        assert exc_info.value.error_code == "ADMIN_EXISTS"


class TestLogin:
    """Test credential checks."""

    @pytest.mark.asyncio
    async def test_login_with_mixed_case_email(
        self, db_session, test_settings, registered_employee
    ):
        service = AuthService(db_session, test_settings)

        user, token = await service.login("Registered@Example.COM", TEST_PASSWORD)

        assert user.role == "employee"
        assert user.employee_id == str(registered_employee.id)
        assert AuthService.resolve_session(token, test_settings).role == "employee"

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_user_look_the_same(
        self, db_session, test_settings, registered_employee
    ):
        service = AuthService(db_session, test_settings)

        with pytest.raises(AuthenticationError) as wrong_password:
            await service.login(registered_employee.email, "wrong-password")
        with pytest.raises(AuthenticationError) as unknown_user:
            await service.login("nobody@example.com", TEST_PASSWORD)

        assert wrong_password.value.message == unknown_user.value.message
        assert wrong_password.value.error_code == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_archived_employee_cannot_login(
        self, db_session, test_settings, registered_employee
    ):
        registered_employee.deleted_at = registered_employee.created_at
        db_session.commit()
        service = AuthService(db_session, test_settings)

        with pytest.raises(AuthorizationError) as exc_info:
            await service.login(registered_employee.email, TEST_PASSWORD)

        assert exc_info.value.error_code == "EMPLOYEE_INACTIVE"


class TestSessionResolution:
    """Test mapping tokens to auth state."""

    def test_missing_and_garbage_tokens_are_anonymous(self, test_settings):
        assert not AuthService.resolve_session(None, test_settings).is_authenticated
        assert not AuthService.resolve_session("garbage", test_settings).is_authenticated

    def test_token_signed_with_other_secret_is_anonymous(self, test_settings):
        other = test_settings.model_copy(
            update={"JWT_SECRET_KEY": "another-secret-key-for-signing-tokens"}
        )
        token = AuthUtils.generate_session_token(
            "1", "admin@example.com", UserRole.ADMIN.value, config=other
        )

        assert not AuthService.resolve_session(token, test_settings).is_authenticated


class TestProfile:
    """Test the own-account view."""

    @pytest.mark.asyncio
    async def test_employee_profile_hides_ciphertext(
        self, db_session, test_settings, registered_employee
    ):
        registered_employee.iin_encrypted = "nonce:ciphertext"
        registered_employee.iin_last4 = "1234"
        db_session.commit()
        service = AuthService(db_session, test_settings)
        _, token = await service.login(registered_employee.email, TEST_PASSWORD)

        profile = await service.get_profile(
            AuthService.resolve_session(token, test_settings)
        )
        dumped = profile.model_dump(by_alias=True)

        assert dumped["employee"]["iinLast4"] == "1234"
        assert "iinEncrypted" not in dumped["employee"]
        assert dumped["employee"]["establishmentName"] == "Hookah Lounge Almaty"
        assert dumped["certificates"] == []


class TestRoleDependencies:
    """Test the role checks used by route dependencies."""

    def test_employee_only_dependency(self):
        employee = AuthState(user_id="1", email="e@example.com", role="employee")
        admin = AuthState(user_id="2", email="a@example.com", role="admin")

        assert require_employee(employee) is employee
        assert require_admin(admin) is admin
        with pytest.raises(AuthorizationError) as exc_info:
            require_employee(admin)

        assert exc_info.value.error_code == "INSUFFICIENT_PERMISSIONS"
