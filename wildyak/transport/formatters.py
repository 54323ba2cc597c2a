# wildyak/transport/formatters.py
"""
Formatters to convert channel-specific payloads into IncomingMessage.
These are pure converters - they don't contain dialog logic.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Any, Sequence

from wildyak.core.engine.domain import IncomingMessage
from wildyak.core.engine.ports import MessageFormatter
from wildyak.infra.logging_config import get_logger, mask_id
from wildyak.transport.schemas import WebMessageIn

logger = get_logger(__name__)


def merge_messages(channel: str, messages: Sequence[IncomingMessage], raws: Sequence[Any]) -> IncomingMessage:
    """
    Merge parsed messages into one.

    Texts are joined with a space in arrival order; identity fields
    (message id, sender, timestamp, payload) come from the last message.
    """
    if not messages:
        return IncomingMessage(channel=channel, raw=list(raws))

    texts = [m.text for m in messages if m.text]
    last = messages[-1]
    return replace(
        last,
        text=" ".join(texts) if texts else None,
        raw=list(raws),
    )


class WebFormatter:
    """
    Formatter for the web widget / test channel.

    Accepts a bare string or a dict:
    {"text": "...", "message_id": "...", "sender_id": "...", "payload": "...", "timestamp": 123}
    """

    channel = "web"

    def parse_incoming_message(self, raw: Any) -> IncomingMessage:
        if isinstance(raw, IncomingMessage):
            return raw
        if raw is None or isinstance(raw, str):
            return IncomingMessage(channel=self.channel, text=raw, raw=raw)

        body = WebMessageIn.model_validate(raw)
        return IncomingMessage(
            channel=self.channel,
            text=body.text,
            message_id=body.message_id,
            sender_id=body.sender_id,
            sender_name=body.sender_name,
            payload=body.payload,
            timestamp=body.timestamp,
            raw=raw,
        )

    def merge_incoming_messages(self, raws: Sequence[Any]) -> IncomingMessage:
        return merge_messages(self.channel, [self.parse_incoming_message(r) for r in raws], raws)


class FacebookFormatter:
    """
    Formatter for Facebook Messenger webhook ``messaging`` events.

    Messenger sends one event per entry.messaging[] item:
    {
      "sender": {"id": "<PSID>"},
      "recipient": {"id": "<PAGE_ID>"},
      "timestamp": 1458692752478,
      "message": {"mid": "m_xxx", "text": "hello", "quick_reply": {"payload": "YES"}}
    }
    or, for button taps:
    {
      "sender": {"id": "<PSID>"}, ...,
      "postback": {"title": "Start", "payload": "GET_STARTED"}
    }
    """

    channel = "facebook"

    def parse_incoming_message(self, raw: dict) -> IncomingMessage:
        sender_id = (raw.get("sender") or {}).get("id")
        timestamp = raw.get("timestamp")

        if "postback" in raw:
            postback = raw["postback"] or {}
            logger.debug(f"Facebook postback: from={mask_id(sender_id)}, payload={postback.get('payload')}")
            return IncomingMessage(
                channel=self.channel,
                text=postback.get("title"),
                message_id=postback.get("mid"),
                sender_id=sender_id,
                payload=postback.get("payload"),
                timestamp=timestamp,
                raw=raw,
            )

        message = raw.get("message") or {}
        quick_reply = message.get("quick_reply") or {}

        if not message:
            logger.debug(f"Facebook event: no message or postback (keys={list(raw.keys())})")

        return IncomingMessage(
            channel=self.channel,
            text=message.get("text"),
            message_id=message.get("mid"),
            sender_id=sender_id,
            payload=quick_reply.get("payload"),
            timestamp=timestamp,
            raw=raw,
        )

    def merge_incoming_messages(self, raws: Sequence[dict]) -> IncomingMessage:
        return merge_messages(self.channel, [self.parse_incoming_message(r) for r in raws], raws)


class TelegramFormatter:
    """
    Formatter for Telegram Bot API updates.

    Telegram sends JSON Updates with structure:
    {
      "update_id": 123456,
      "message": {
        "message_id": 42,
        "from": {"id": 123, "first_name": "User", "username": "user"},
        "chat": {"id": 123, "type": "private"},
        "date": 1234567890,
        "text": "Hello"
      }
    }
    Inline keyboard taps arrive as "callback_query" with a "data" payload.
    """

    channel = "telegram"

    def parse_incoming_message(self, update: dict) -> IncomingMessage:
        callback = update.get("callback_query")
        if callback:
            message = callback.get("message") or {}
            chat_id = str((message.get("chat") or {}).get("id", ""))
            return IncomingMessage(
                channel=self.channel,
                text=None,
                message_id=f"tg_cb_{callback.get('id', '')}",
                sender_id=chat_id or str((callback.get("from") or {}).get("id", "")),
                sender_name=self._extract_sender_name(callback),
                payload=callback.get("data"),
                raw=update,
            )

        # Only handle regular messages (not edited, channel posts, etc.)
        message = update.get("message")
        if not message:
            logger.debug(f"Telegram update: no 'message' field (keys={list(update.keys())})")
            return IncomingMessage(channel=self.channel, raw=update)

        chat_id = str((message.get("chat") or {}).get("id", ""))
        message_id = str(message.get("message_id", ""))

        text = message.get("text")

        # Strip bot mention suffix: "/start@MyBot arg" -> "/start arg"
        if text and text.startswith("/"):
            parts = text.split()
            parts[0] = parts[0].split("@")[0]
            text = " ".join(parts)

        # Captions carry the text of photo/video messages
        if not text and message.get("caption"):
            text = message["caption"]

        logger.debug(
            f"Telegram message: from={mask_id(chat_id)}, msg_id={message_id}, has_text={bool(text)}"
        )

        return IncomingMessage(
            channel=self.channel,
            text=text,
            message_id=f"tg_{chat_id}_{message_id}",  # Ensure uniqueness across chats
            sender_id=chat_id,
            sender_name=self._extract_sender_name(message),
            timestamp=message.get("date"),
            raw=update,
        )

    def merge_incoming_messages(self, updates: Sequence[dict]) -> IncomingMessage:
        return merge_messages(self.channel, [self.parse_incoming_message(u) for u in updates], updates)

    @staticmethod
    def _extract_sender_name(message: dict) -> str | None:
        """
        Build a human-readable sender identifier from message.from.
        Prefer "Full Name (@username)", then "@username", then the full name.
        """
        sender = message.get("from") or {}
        if not sender:
            return None

        full_name = f"{sender.get('first_name', '')} {sender.get('last_name', '')}".strip()
        username = sender.get("username")

        if username and full_name:
            return f"{full_name} (@{username})"
        if username:
            return f"@{username}"
        return full_name or None


def default_formatters() -> dict[str, MessageFormatter]:
    """Channel type -> formatter for the built-in channels"""
    return {
        "web": WebFormatter(),
        "facebook": FacebookFormatter(),
        "telegram": TelegramFormatter(),
    }
