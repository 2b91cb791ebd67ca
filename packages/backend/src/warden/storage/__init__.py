"""Credential store gateway.

    store = SqlStorage(session_factory)
    user = await store.user("a@b.com")

SqlStorage satisfies every interface below, so one instance is passed
for each of the AuthService collaborators.
"""

from warden.storage.base import (
    AppProvider,
    ConfirmationStore,
    UserProvider,
    UserSaver,
)
from warden.storage.sql import SqlStorage

__all__ = [
    "AppProvider",
    "ConfirmationStore",
    "SqlStorage",
    "UserProvider",
    "UserSaver",
]
