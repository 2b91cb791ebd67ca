"""Store interfaces — one narrow abstract class per capability.

The services depend on these, never on SQLAlchemy. SqlStorage implements
all of them against the database; tests swap in an in-memory fake that
implements the same methods.

Every method may raise StoreUnavailableError when the backing store
cannot be reached.
"""

from abc import ABC, abstractmethod

from warden.domain.models import App, ConfirmationCode, User


class UserSaver(ABC):
    @abstractmethod
    async def save_user(
        self,
        email: str,
        pass_hash: bytes,
        date_of_birth: str,
        full_name: str,
        phone_number: str,
        telegram_name: str,
    ) -> int:
        """Persist a new user and return its id.

        Raises UserExistsError when the email or the Telegram handle is
        already registered.
        """


class UserProvider(ABC):
    @abstractmethod
    async def user(self, email: str) -> User:
        """Raises UserNotFoundError."""

    @abstractmethod
    async def user_by_telegram(self, telegram_name: str) -> User:
        """Raises UserNotFoundError."""

    @abstractmethod
    async def is_admin(self, user_id: int) -> bool:
        """Raises UserNotFoundError."""


class AppProvider(ABC):
    @abstractmethod
    async def app(self, app_id: int) -> App:
        """Raises AppNotFoundError."""


class ConfirmationStore(ABC):
    @abstractmethod
    async def save_code(self, user_id: int, code: str) -> int:
        """Store the user's first code. Raises CodeExistsError if one exists."""

    @abstractmethod
    async def confirmation(self, user_id: int) -> ConfirmationCode:
        """Raises CodeNotFoundError."""

    @abstractmethod
    async def mark_confirmed(self, user_id: int, code: str) -> bool:
        """Atomically flip confirmed to true.

        True only if a record exists, is still unconfirmed, and its code
        equals `code` exactly. Of two concurrent callers, at most one
        gets True.
        """

    @abstractmethod
    async def confirm_user(self, user_id: int) -> bool:
        """Same check-and-set as mark_confirmed, without a code."""

    @abstractmethod
    async def replace_code(self, user_id: int, code: str) -> bool:
        """Swap in a new code for an unconfirmed record.

        Creates the record when there is none. False when the record is
        already confirmed.
        """
