"""Domain records and outcome enums.

These are what the store interfaces hand back; ORM rows never leave the
storage package.
"""

import enum
from dataclasses import dataclass, field


@dataclass
class User:
    id: int
    email: str
    pass_hash: bytes = field(repr=False)
    date_of_birth: str = ""
    full_name: str = ""
    phone_number: str = ""
    telegram_name: str = ""
    is_admin: bool = False


@dataclass
class App:
    id: int
    name: str
    secret: str = field(repr=False)


@dataclass
class ConfirmationCode:
    user_id: int
    code: str = field(repr=False)
    confirmed: bool = False


class VerificationResult(str, enum.Enum):
    """Outcome of checking a submitted confirmation code."""

    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    MISMATCH = "mismatch"
    NOT_FOUND = "not_found"


class ExternalConfirmation(str, enum.Enum):
    """Outcome of confirming an account by its Telegram handle."""

    NOT_REGISTERED = "not_registered"
    ALREADY_CONFIRMED = "already_confirmed"
    NOW_CONFIRMED = "now_confirmed"
    ERROR = "error"


class ResendOutcome(str, enum.Enum):
    SENT = "sent"
    ALREADY_CONFIRMED = "already_confirmed"


@dataclass
class DeliveryReport:
    """What happened to a confirmation code sent after registration."""

    user_id: int
    delivered: bool
    error: str | None = None
