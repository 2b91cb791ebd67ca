"""Event type constants.

Published on Redis when a confirmation code leaves (or fails to leave)
after registration.
"""

CONFIRMATION_SENT = "confirmation.sent"
CONFIRMATION_DELIVERY_FAILED = "confirmation.delivery_failed"

CONFIRMATION_CHANNEL = "warden:events:confirmation"
