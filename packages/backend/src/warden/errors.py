"""Error kinds raised by the core.

The transport layer maps each class to a status code; nothing here
carries password hashes, secrets or confirmation codes in its message.
"""


class WardenError(Exception):
    """Base class for all classified failures."""


class InvalidCredentialsError(WardenError):
    """Unknown email or wrong password. Deliberately one error for both."""


class InvalidAppIdError(WardenError):
    """The requested application does not exist."""


class NotFoundError(WardenError):
    """A referenced record does not exist."""


class UserNotFoundError(NotFoundError):
    pass


class AppNotFoundError(NotFoundError):
    pass


class CodeNotFoundError(NotFoundError):
    pass


class UserExistsError(WardenError):
    """Email is already registered."""


class CodeExistsError(WardenError):
    """The user already has a confirmation record."""


class StoreUnavailableError(WardenError):
    """The database could not be reached or the statement failed."""


class IssuanceError(WardenError):
    """A session token could not be signed."""


class DeliveryError(WardenError):
    """The out-of-band channel (SMTP, Telegram) could not deliver."""
