"""Auth service — the use cases behind the API.

Service layer separates business logic from HTTP routing. Routes call
the service, the service calls the store interfaces, the password and
token helpers, and the confirmation engine. All state lives in the
store; the service itself holds only the set of confirmation deliveries
still in flight.

Use cases:
- login → session token for one app
- register_new_user → user id, confirmation code sent in the background
- is_admin
- verify_confirmation / resend_confirmation

Infrastructure failures keep their kind and get the operation name
prefixed, e.g. StoreUnavailableError("auth.login: storage.user: ...").
Nothing is retried here.
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, Optional

import structlog

from warden.auth.jwt import issue_token
from warden.auth.password import hash_password, verify_password
from warden.domain.models import DeliveryReport, ResendOutcome, VerificationResult
from warden.errors import (
    AppNotFoundError,
    DeliveryError,
    InvalidAppIdError,
    InvalidCredentialsError,
    IssuanceError,
    StoreUnavailableError,
    UserNotFoundError,
    WardenError,
)
from warden.services.confirmation import ConfirmationEngine
from warden.storage.base import AppProvider, UserProvider, UserSaver

logger = structlog.get_logger()

DeliveryListener = Callable[[DeliveryReport], Awaitable[None]]

_INFRA_ERRORS = (StoreUnavailableError, IssuanceError, DeliveryError)


def _wrap(op: str, e: WardenError) -> WardenError:
    """Same error kind, operation name prefixed."""
    return type(e)(f"{op}: {e}")


class AuthService:
    """Login, registration, admin checks and account confirmation."""

    def __init__(
        self,
        user_saver: UserSaver,
        user_provider: UserProvider,
        app_provider: AppProvider,
        confirmations: ConfirmationEngine,
        token_ttl: timedelta,
        delivery_listener: Optional[DeliveryListener] = None,
        log=None,
    ):
        self.user_saver = user_saver
        self.user_provider = user_provider
        self.app_provider = app_provider
        self.confirmations = confirmations
        self.token_ttl = token_ttl
        self.delivery_listener = delivery_listener
        self.log = log or logger
        self._deliveries: set[asyncio.Task] = set()

    # ─── Login ──────────────────────────────────────────

    async def login(self, email: str, password: str, app_id: int) -> str:
        """Check credentials and return a token scoped to `app_id`.

        Unknown email and wrong password raise the same
        InvalidCredentialsError. The email is never logged.
        """
        op = "auth.login"
        log = self.log.bind(op=op, app_id=app_id)
        log.info("auth.login_attempt")

        try:
            user = await self.user_provider.user(email)
        except UserNotFoundError:
            log.warning("auth.invalid_credentials")
            raise InvalidCredentialsError("invalid credentials") from None
        except _INFRA_ERRORS as e:
            log.error("auth.user_lookup_failed", error=str(e))
            raise _wrap(op, e) from e

        # bcrypt is CPU-bound; keep it off the event loop.
        if not await asyncio.to_thread(verify_password, password, user.pass_hash):
            log.warning("auth.invalid_credentials")
            raise InvalidCredentialsError("invalid credentials") from None

        try:
            app = await self.app_provider.app(app_id)
        except AppNotFoundError:
            log.warning("auth.invalid_app_id")
            raise InvalidAppIdError(f"app {app_id} does not exist") from None
        except _INFRA_ERRORS as e:
            log.error("auth.app_lookup_failed", error=str(e))
            raise _wrap(op, e) from e

        try:
            token = issue_token(user, app, self.token_ttl)
        except IssuanceError as e:
            log.error("auth.token_issuance_failed", error=str(e))
            raise _wrap(op, e) from e

        log.info("auth.login_succeeded", user_id=user.id)
        return token

    # ─── Register ───────────────────────────────────────

    async def register_new_user(
        self,
        email: str,
        password: str,
        date_of_birth: str,
        full_name: str,
        phone_number: str,
        telegram_name: str,
    ) -> int:
        """Create the user and kick off confirmation delivery.

        Returns as soon as the user row exists. The confirmation code is
        generated, stored and emailed in a background task whose failure
        does not undo the registration; see drain() and the delivery
        listener for its outcome.
        """
        op = "auth.register_new_user"
        log = self.log.bind(op=op)
        log.info("auth.registering_user")

        pass_hash = await asyncio.to_thread(hash_password, password)

        try:
            user_id = await self.user_saver.save_user(
                email,
                pass_hash,
                date_of_birth,
                full_name,
                phone_number,
                telegram_name,
            )
        except _INFRA_ERRORS as e:
            log.error("auth.save_user_failed", error=str(e))
            raise _wrap(op, e) from e

        log.info("auth.user_registered", user_id=user_id)

        task = asyncio.create_task(self._deliver_confirmation(user_id, email))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
        return user_id

    async def _deliver_confirmation(self, user_id: int, email: str) -> DeliveryReport:
        log = self.log.bind(op="auth.deliver_confirmation", user_id=user_id)
        try:
            await self.confirmations.issue(user_id, email)
            report = DeliveryReport(user_id=user_id, delivered=True)
        except WardenError as e:
            log.error("auth.confirmation_delivery_failed", error=str(e))
            report = DeliveryReport(user_id=user_id, delivered=False, error=str(e))

        if self.delivery_listener is not None:
            try:
                await self.delivery_listener(report)
            except Exception as e:
                log.warning("auth.delivery_listener_failed", error=str(e))
        return report

    async def drain(self) -> list[DeliveryReport]:
        """Wait for every in-flight confirmation delivery to finish."""
        if not self._deliveries:
            return []
        return list(await asyncio.gather(*self._deliveries))

    # ─── Admin ──────────────────────────────────────────

    async def is_admin(self, user_id: int) -> bool:
        """Raises UserNotFoundError for an unknown id (not False)."""
        op = "auth.is_admin"
        try:
            return await self.user_provider.is_admin(user_id)
        except _INFRA_ERRORS as e:
            self.log.error("auth.is_admin_failed", op=op, error=str(e))
            raise _wrap(op, e) from e

    # ─── Confirmation ───────────────────────────────────

    async def verify_confirmation(self, email: str, code: str) -> VerificationResult:
        op = "auth.verify_confirmation"
        log = self.log.bind(op=op)
        try:
            user = await self.user_provider.user(email)
            result = await self.confirmations.verify(user.id, code)
        except _INFRA_ERRORS as e:
            log.error("auth.verify_failed", error=str(e))
            raise _wrap(op, e) from e

        log.info("auth.confirmation_checked", user_id=user.id, result=result.value)
        return result

    async def resend_confirmation(self, email: str) -> ResendOutcome:
        """Send a fresh code, e.g. after the registration email was lost."""
        op = "auth.resend_confirmation"
        log = self.log.bind(op=op)
        try:
            user = await self.user_provider.user(email)
            outcome = await self.confirmations.resend(user.id, email)
        except _INFRA_ERRORS as e:
            log.error("auth.resend_failed", error=str(e))
            raise _wrap(op, e) from e

        log.info("auth.confirmation_resent", user_id=user.id, outcome=outcome.value)
        return outcome
