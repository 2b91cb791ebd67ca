"""Credential primitives.

Two pieces, both pure functions with no store access:
1. password → bcrypt hash / constant-time check
2. (user, app) → HS256 JWT signed with the app's own secret

Tokens are scoped per app: a token minted for one app does not verify
against another app's secret.
"""
