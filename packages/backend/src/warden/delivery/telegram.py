"""Telegram bot — confirm accounts with one button press.

The bot long-polls the Bot API (getUpdates) over httpx:

  any message      → reply with a "Verify me" inline button
  button pressed   → confirm the account whose telegram_name is the
                     presser's username, reply with the outcome

The presser's Telegram identity is the proof of ownership; no code is
typed back. Runs as a background task in the FastAPI lifespan, or
standalone via `warden telegram-bot`.
"""

import asyncio
from typing import Any, Optional

import httpx
import structlog

from warden.domain.models import ExternalConfirmation
from warden.services.confirmation import ConfirmationEngine

logger = structlog.get_logger()

VERIFY_CALLBACK_DATA = "verify_me"
PROMPT_TEXT = "Press the button to get your verification code"
BUTTON_TEXT = "Verify me"

RESPONSES = {
    ExternalConfirmation.ALREADY_CONFIRMED: "You already verified",
    ExternalConfirmation.NOT_REGISTERED: "You aren't registered yet",
    ExternalConfirmation.NOW_CONFIRMED: "You are now verified",
    ExternalConfirmation.ERROR: "An unexpected error occurred",
}


class TelegramError(Exception):
    """The Bot API answered with ok=false."""


class TelegramBot:
    """Long-poll loop answering confirmation button presses.

    Usage:
        bot = TelegramBot(token, engine)
        asyncio.create_task(bot.run_loop())
        ...
        bot.stop()
        await bot.aclose()
    """

    def __init__(
        self,
        token: str,
        engine: ConfirmationEngine,
        *,
        api_url: str = "https://api.telegram.org",
        poll_timeout: int = 60,
        retry_delay: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.engine = engine
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self._base_url = f"{api_url.rstrip('/')}/bot{token}"
        # The HTTP timeout has to outlast the server-side long poll.
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(poll_timeout + 10.0)
        )
        self._offset = 0
        self._running = False

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        resp = await self._client.post(f"{self._base_url}/{method}", json=payload)
        resp.raise_for_status()
        body = resp.json()
        if not body.get("ok"):
            raise TelegramError(f"{method}: {body.get('description', 'unknown error')}")
        return body.get("result")

    # ─── Loop ───────────────────────────────────────────

    async def run_loop(self) -> None:
        """Main loop — fetch updates and answer them until stopped."""
        self._running = True
        logger.info("telegram_bot.started", poll_timeout=self.poll_timeout)

        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, TelegramError) as e:
                logger.warning("telegram_bot.poll_failed", error=str(e))
                await asyncio.sleep(self.retry_delay)
            except Exception:
                logger.exception("telegram_bot.error")
                await asyncio.sleep(self.retry_delay)

    async def poll_once(self) -> int:
        """Fetch one batch of updates and handle each. Returns the count."""
        updates = await self._call(
            "getUpdates",
            {"offset": self._offset, "timeout": self.poll_timeout},
        )
        for update in updates or []:
            self._offset = max(self._offset, update["update_id"] + 1)
            await self.handle_update(update)
        return len(updates or [])

    def stop(self) -> None:
        """Signal the loop to stop after the current poll."""
        self._running = False
        logger.info("telegram_bot.stopping")

    async def aclose(self) -> None:
        await self._client.aclose()

    # ─── Handlers ───────────────────────────────────────

    async def handle_update(self, update: dict[str, Any]) -> None:
        if "callback_query" in update:
            await self._handle_callback(update["callback_query"])
        elif "message" in update:
            await self._send_prompt(update["message"]["chat"]["id"])

    async def _handle_callback(self, query: dict[str, Any]) -> None:
        username = query.get("from", {}).get("username")
        if username:
            outcome = await self.engine.confirm_by_external_identity(username)
        else:
            # No public username, so nothing to match a registration against.
            outcome = ExternalConfirmation.NOT_REGISTERED

        logger.info("telegram_bot.callback_handled", outcome=outcome.value)

        await self._call("answerCallbackQuery", {"callback_query_id": query["id"]})
        message = query.get("message")
        if message:
            await self._call(
                "sendMessage",
                {"chat_id": message["chat"]["id"], "text": RESPONSES[outcome]},
            )

    async def _send_prompt(self, chat_id: int) -> None:
        await self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": PROMPT_TEXT,
                "reply_markup": {
                    "inline_keyboard": [
                        [{"text": BUTTON_TEXT, "callback_data": VERIFY_CALLBACK_DATA}]
                    ]
                },
            },
        )
