"""Auth service tests — the use cases against the in-memory store.

Tests cover:
1. Login success / enumeration-safe failures / bad app / unsigned app
2. Register: duplicate email or Telegram handle, over-long password,
   background confirmation delivery
3. IsAdmin
4. VerifyConfirmation / ResendConfirmation
5. Infrastructure errors keep their kind and gain the operation name
6. The end-to-end scenario from registration to confirmation
"""

import pytest

from warden.auth.jwt import verify_token
from warden.domain.models import ExternalConfirmation, ResendOutcome, VerificationResult
from warden.errors import (
    DeliveryError,
    InvalidAppIdError,
    InvalidCredentialsError,
    IssuanceError,
    StoreUnavailableError,
    UserExistsError,
    UserNotFoundError,
)

PROFILE = ("2000-01-01", "A B", "555", "handle1")


async def _register(svc, email="a@b.com", password="pw"):
    uid = await svc.register_new_user(email, password, *PROFILE)
    await svc.drain()
    return uid


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_then_login(auth_service, store):
    uid = await _register(auth_service)
    token = await auth_service.login("a@b.com", "pw", 1)

    payload = verify_token(token, store.apps[1])
    assert payload["uid"] == uid
    assert payload["app_id"] == 1


@pytest.mark.asyncio
async def test_unknown_email_and_wrong_password_look_the_same(auth_service):
    await _register(auth_service)

    with pytest.raises(InvalidCredentialsError) as unknown:
        await auth_service.login("nobody@b.com", "pw", 1)
    with pytest.raises(InvalidCredentialsError) as wrong:
        await auth_service.login("a@b.com", "not-pw", 1)

    assert str(unknown.value) == str(wrong.value)
    assert unknown.value.__cause__ is None
    assert wrong.value.__cause__ is None


@pytest.mark.asyncio
async def test_login_unknown_app(auth_service):
    await _register(auth_service)
    with pytest.raises(InvalidAppIdError):
        await auth_service.login("a@b.com", "pw", 99)


@pytest.mark.asyncio
async def test_credentials_checked_before_app(auth_service):
    """A bad password on a bad app id is still just invalid credentials."""
    await _register(auth_service)
    with pytest.raises(InvalidCredentialsError):
        await auth_service.login("a@b.com", "not-pw", 99)


@pytest.mark.asyncio
async def test_login_app_without_secret(auth_service, store):
    store.add_app(2, "unsigned", secret="")
    await _register(auth_service)

    with pytest.raises(IssuanceError, match="auth.login"):
        await auth_service.login("a@b.com", "pw", 2)


@pytest.mark.asyncio
async def test_login_store_down(auth_service, store):
    async def down(email):
        raise StoreUnavailableError("storage.user: OperationalError")

    store.user = down
    with pytest.raises(StoreUnavailableError) as exc:
        await auth_service.login("a@b.com", "pw", 1)
    assert str(exc.value) == "auth.login: storage.user: OperationalError"


# ═══════════════════════════════════════════════════════════
# Register
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_stores_hash_not_password(auth_service, store):
    uid = await _register(auth_service, password="s3cret")
    user = store.users[uid]
    assert user.pass_hash != b"s3cret"
    assert user.telegram_name == "handle1"
    assert not user.is_admin


@pytest.mark.asyncio
async def test_duplicate_email(auth_service, store):
    first = await _register(auth_service)

    with pytest.raises(UserExistsError):
        await auth_service.register_new_user("a@b.com", "other", *PROFILE)

    assert list(store.users) == [first]
    assert await auth_service.login("a@b.com", "pw", 1)


@pytest.mark.asyncio
async def test_telegram_handle_cannot_be_claimed_twice(auth_service, store):
    owner = await auth_service.register_new_user(
        "bob@x.com", "pw", "2000-01-01", "Bob", "555", "bob"
    )
    await auth_service.drain()

    with pytest.raises(UserExistsError):
        await auth_service.register_new_user(
            "evil@x.com", "pw", "2000-01-01", "Eve", "666", "bob"
        )

    outcome = await auth_service.confirmations.confirm_by_external_identity("bob")
    assert outcome == ExternalConfirmation.NOW_CONFIRMED
    assert store.codes[owner].confirmed
    assert list(store.users) == [owner]


@pytest.mark.asyncio
async def test_register_refuses_over_long_password(auth_service, store):
    with pytest.raises(ValueError):
        await auth_service.register_new_user("a@b.com", "p" * 73, *PROFILE)
    assert store.users == {}


@pytest.mark.asyncio
async def test_register_sends_confirmation(auth_service, email_sender, delivery_reports):
    uid = await _register(auth_service)

    assert email_sender.sent[0][0] == "a@b.com"
    assert delivery_reports[0].user_id == uid
    assert delivery_reports[0].delivered


@pytest.mark.asyncio
async def test_delivery_failure_does_not_undo_registration(
    auth_service, store, email_sender, delivery_reports
):
    email_sender.fail = True
    uid = await auth_service.register_new_user("a@b.com", "pw", *PROFILE)
    reports = await auth_service.drain()

    assert uid in store.users
    assert not reports[0].delivered
    assert "connection refused" in reports[0].error
    assert delivery_reports == reports
    # The code was stored before sending, so the account can still log in
    assert await auth_service.login("a@b.com", "pw", 1)


@pytest.mark.asyncio
async def test_drain_with_nothing_pending(auth_service):
    assert await auth_service.drain() == []


# ═══════════════════════════════════════════════════════════
# IsAdmin
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_is_admin_default_false(auth_service):
    uid = await _register(auth_service)
    assert await auth_service.is_admin(uid) is False


@pytest.mark.asyncio
async def test_is_admin_reads_flag(auth_service, store):
    uid = await _register(auth_service)
    store.users[uid].is_admin = True
    assert await auth_service.is_admin(uid) is True


@pytest.mark.asyncio
async def test_is_admin_unknown_user(auth_service):
    with pytest.raises(UserNotFoundError):
        await auth_service.is_admin(404)


# ═══════════════════════════════════════════════════════════
# Confirmation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_confirmation_unknown_email(auth_service):
    with pytest.raises(UserNotFoundError):
        await auth_service.verify_confirmation("nobody@b.com", "12345")


@pytest.mark.asyncio
async def test_resend_after_failed_delivery(auth_service, email_sender):
    email_sender.fail = True
    await _register(auth_service)
    email_sender.fail = False

    assert await auth_service.resend_confirmation("a@b.com") == ResendOutcome.SENT
    code = email_sender.last_code()
    assert await auth_service.verify_confirmation("a@b.com", code) == VerificationResult.CONFIRMED


@pytest.mark.asyncio
async def test_resend_delivery_error_is_wrapped(auth_service, email_sender):
    await _register(auth_service)
    email_sender.fail = True

    with pytest.raises(DeliveryError, match="auth.resend_confirmation"):
        await auth_service.resend_confirmation("a@b.com")


@pytest.mark.asyncio
async def test_resend_unknown_email(auth_service):
    with pytest.raises(UserNotFoundError):
        await auth_service.resend_confirmation("nobody@b.com")


# ═══════════════════════════════════════════════════════════
# End to end
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_full_flow(auth_service, store, email_sender):
    uid = await auth_service.register_new_user(
        "a@b.com", "pw", "2000-01-01", "A B", "555", "handle1"
    )
    await auth_service.drain()
    assert uid == 1

    token = await auth_service.login("a@b.com", "pw", 1)
    assert verify_token(token, store.apps[1])["uid"] == 1

    assert await auth_service.is_admin(1) is False

    wrong = await auth_service.verify_confirmation("a@b.com", "00000")
    assert wrong == VerificationResult.MISMATCH

    code = email_sender.last_code()
    right = await auth_service.verify_confirmation("a@b.com", code)
    assert right == VerificationResult.CONFIRMED
