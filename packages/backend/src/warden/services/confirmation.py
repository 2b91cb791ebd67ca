"""Confirmation code engine — prove the user owns their email or Telegram.

Lifecycle of one user's code:

  issue → (unconfirmed) → verify(correct code) → confirmed
                        → confirm_by_external_identity → confirmed

The confirmed flag flips exactly once. The flip itself is a check-and-set
in the store (mark_confirmed / confirm_user), so two racing attempts can
never both report CONFIRMED — the loser reads the record back and sees
ALREADY_CONFIRMED.

Codes are persisted before they are sent: if the email fails, the code
is already stored and resend() can try again.
"""

import random
from abc import ABC, abstractmethod

import structlog

from warden.delivery.email import EmailSender
from warden.domain.models import (
    ExternalConfirmation,
    ResendOutcome,
    VerificationResult,
)
from warden.errors import (
    CodeExistsError,
    CodeNotFoundError,
    DeliveryError,
    StoreUnavailableError,
    UserNotFoundError,
)
from warden.storage.base import ConfirmationStore, UserProvider

logger = structlog.get_logger()

CODE_MIN = 10000
CODE_MAX = 99999

EMAIL_SUBJECT = "Confirmation email"
EMAIL_BODY = "Hello, your confirmation code is {code}"


class CodeGenerator(ABC):
    @abstractmethod
    def generate(self) -> str:
        """Return a five-digit numeric code."""


class RandomCodeGenerator(CodeGenerator):
    """Uniform codes in [10000, 99999].

    One generator lives for the whole process; it is not reseeded per
    call. Defaults to the OS entropy source.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.SystemRandom()

    def generate(self) -> str:
        return str(self._rng.randint(CODE_MIN, CODE_MAX))


class ConfirmationEngine:
    """Generates, delivers and checks confirmation codes."""

    def __init__(
        self,
        codes: ConfirmationStore,
        users: UserProvider,
        email_sender: EmailSender,
        generator: CodeGenerator | None = None,
    ):
        self.codes = codes
        self.users = users
        self.email_sender = email_sender
        self.generator = generator or RandomCodeGenerator()

    # ─── Delivery ───────────────────────────────────────

    async def send_by_email(self, code: str, email: str) -> None:
        """Hand the code to the email sender. Raises DeliveryError."""
        try:
            await self.email_sender.send(
                email, EMAIL_SUBJECT, EMAIL_BODY.format(code=code)
            )
        except DeliveryError:
            raise
        except Exception as e:
            # Any other sender failure is still a delivery failure.
            raise DeliveryError(f"email: {type(e).__name__}") from e

    async def issue(self, user_id: int, email: str) -> str | None:
        """Generate, store and email a new code. Returns the code.

        If a resend already stored a code for this user, that record is
        taken over instead. Returns None when it turned out to be confirmed
        already, in which case nothing is sent.
        """
        code = self.generator.generate()
        try:
            await self.codes.save_code(user_id, code)
        except CodeExistsError:
            if not await self.codes.replace_code(user_id, code):
                logger.info("confirmation.already_confirmed", user_id=user_id)
                return None
        await self.send_by_email(code, email)
        logger.info("confirmation.code_sent", user_id=user_id)
        return code

    async def resend(self, user_id: int, email: str) -> ResendOutcome:
        """Replace an outstanding code with a fresh one and email it."""
        code = self.generator.generate()
        try:
            replaced = await self.codes.replace_code(user_id, code)
        except CodeExistsError:
            # The registration delivery inserted the record first; overwrite it.
            replaced = await self.codes.replace_code(user_id, code)
        if not replaced:
            return ResendOutcome.ALREADY_CONFIRMED
        await self.send_by_email(code, email)
        logger.info("confirmation.code_resent", user_id=user_id)
        return ResendOutcome.SENT

    # ─── Verification ───────────────────────────────────

    async def verify(self, user_id: int, code: str) -> VerificationResult:
        """Check a code typed back by the user."""
        if await self.codes.mark_confirmed(user_id, code):
            return VerificationResult.CONFIRMED

        try:
            record = await self.codes.confirmation(user_id)
        except CodeNotFoundError:
            return VerificationResult.NOT_FOUND
        if record.confirmed:
            return VerificationResult.ALREADY_CONFIRMED
        return VerificationResult.MISMATCH

    async def confirm_by_external_identity(
        self, telegram_name: str
    ) -> ExternalConfirmation:
        """Confirm the account linked to a Telegram handle.

        The chat platform already vouches for the handle, so no code is
        asked for. Never raises: store failures come back as ERROR.
        """
        log = logger.bind(op="confirmation.confirm_by_external_identity")
        try:
            user = await self.users.user_by_telegram(telegram_name)
            if await self.codes.confirm_user(user.id):
                log.info("confirmation.confirmed_externally", user_id=user.id)
                return ExternalConfirmation.NOW_CONFIRMED
            record = await self.codes.confirmation(user.id)
        except (UserNotFoundError, CodeNotFoundError):
            return ExternalConfirmation.NOT_REGISTERED
        except StoreUnavailableError as e:
            log.error("confirmation.store_unavailable", error=str(e))
            return ExternalConfirmation.ERROR

        if record.confirmed:
            return ExternalConfirmation.ALREADY_CONFIRMED
        # The record exists, is unconfirmed, yet the flip did not apply.
        log.error("confirmation.flip_failed", user_id=user.id)
        return ExternalConfirmation.ERROR
