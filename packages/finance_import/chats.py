# ruff: noqa: I001
"""Chat bookkeeping around AI failures.

Only the parts that surround error classification live here: starting a
chat, recording/clearing the classified error on it, reading it back for
display, and the usage summary shown on the AI settings screen.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.chat import Chat
from .chat_errors import UNKNOWN_ERROR, classify_error
from .logging_setup import get_logger

_logger = get_logger("finance_import.chats")

TITLE_MAX_CHARS = 80
RECENT_WINDOW = timedelta(days=7)


def generate_title(prompt: str) -> str:
    return prompt[:TITLE_MAX_CHARS]


def start_chat(
    session: Session, *, user_id: int, prompt: str, created_at: datetime | None = None
) -> Chat:
    chat = Chat(user_id=user_id, title=generate_title(prompt))
    if created_at is not None:
        chat.created_at = created_at
    session.add(chat)
    session.flush()
    return chat


def record_error(session: Session, chat: Chat, exc: BaseException) -> dict[str, Any]:
    """Classify ``exc`` and store the payload on ``chat`` as JSON."""

    payload = classify_error(exc).to_payload()
    chat.error = json.dumps(payload)
    session.flush()
    _logger.warning(
        "chat_error chat_id=%s type=%s error=%s", chat.id, payload["type"], exc.__class__.__name__
    )
    return payload


def clear_error(session: Session, chat: Chat) -> None:
    chat.error = None
    session.flush()


def error_details(chat: Chat) -> dict[str, Any] | None:
    """Stored error payload, or ``None`` when the chat has no error.

    Anything that does not decode to a JSON object yields the generic
    ``unknown_error`` payload.
    """

    if not chat.error:
        return None
    try:
        parsed = json.loads(chat.error)
    except json.JSONDecodeError:
        _logger.debug("chat_error_unparseable chat_id=%s", chat.id)
        return UNKNOWN_ERROR.to_payload()
    if not isinstance(parsed, dict):
        return UNKNOWN_ERROR.to_payload()
    return parsed


def ai_stats(session: Session, *, user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Usage summary for one user.

    ``error_rate`` is the percentage (one decimal) of chats created in the
    last seven days that currently carry an error.
    """

    now = now or datetime.now(UTC)
    cutoff = now - RECENT_WINDOW
    mine = Chat.user_id == user_id

    total = session.scalar(select(func.count()).select_from(Chat).where(mine)) or 0
    recent = (
        session.scalar(select(func.count()).select_from(Chat).where(mine, Chat.created_at > cutoff))
        or 0
    )
    errored = (
        session.scalar(
            select(func.count())
            .select_from(Chat)
            .where(mine, Chat.created_at > cutoff, Chat.error.is_not(None))
        )
        or 0
    )
    last_used = session.scalar(select(func.max(Chat.created_at)).where(mine))

    return {
        "total_chats": total,
        "recent_chats": recent,
        "error_rate": round(errored / recent * 100, 1) if recent else 0,
        "last_used": last_used,
    }


__all__ = [
    "TITLE_MAX_CHARS",
    "ai_stats",
    "clear_error",
    "error_details",
    "generate_title",
    "record_error",
    "start_chat",
]
