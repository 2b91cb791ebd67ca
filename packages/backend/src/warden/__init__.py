"""Warden — single sign-on identity provider.

Authenticates users by password, issues app-scoped session tokens,
registers accounts, answers admin checks, and confirms account
ownership through an emailed code or a Telegram button press.
"""

__version__ = "0.1.0"
