"""
Chat session grouping.

Chat messages are stored flat, one document per message, tagged with a
``session_id``. Sessions are never stored; they are derived on read by grouping
a user's messages.
"""
from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

SESSION_LIMIT = 50
TITLE_LENGTH = 50
NEW_CHAT_TITLE = "New Chat"
NO_PREVIEW = "AI Response"

_BASE36 = string.digits + string.ascii_lowercase


def new_session_id(now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    """``session_<epoch-ms>_<9 base-36 chars>``. Collisions are unlikely, not impossible."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    rng = rng or random
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"session_{now_ms}_{suffix}"


def session_title(preview: Optional[str]) -> str:
    if not preview:
        return NEW_CHAT_TITLE
    if len(preview) > TITLE_LENGTH:
        return preview[:TITLE_LENGTH] + "..."
    return preview


@dataclass(frozen=True)
class ChatSession:
    session_id: str
    first_message: datetime
    last_message: datetime
    message_count: int
    preview: Optional[str]

    @property
    def title(self) -> str:
        return session_title(self.preview)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "first_message": self.first_message,
            "last_message": self.last_message,
            "message_count": self.message_count,
            "preview": self.preview or NO_PREVIEW,
            "title": self.title,
        }


def group_sessions(
    messages: Iterable[Mapping[str, Any]],
    session_id: Optional[str] = None,
    limit: int = SESSION_LIMIT,
) -> List[ChatSession]:
    """Group message rows into sessions, most recently active first.

    Per session: first/last ``created_at``, message count, and the content of the
    first user message in input order as preview. At most ``limit`` sessions are returned.
    """
    groups: Dict[str, Dict[str, Any]] = {}
    for msg in messages:
        sid = msg.get("session_id")
        if session_id is not None and sid != session_id:
            continue
        created = msg.get("created_at")
        group = groups.get(sid)
        if group is None:
            groups[sid] = {
                "first": created,
                "last": created,
                "count": 1,
                "preview": msg.get("content") if msg.get("role") == "user" else None,
            }
            continue
        group["first"] = min(group["first"], created)
        group["last"] = max(group["last"], created)
        group["count"] += 1
        if group["preview"] is None and msg.get("role") == "user":
            group["preview"] = msg.get("content")

    sessions = [
        ChatSession(
            session_id=sid,
            first_message=g["first"],
            last_message=g["last"],
            message_count=g["count"],
            preview=g["preview"],
        )
        for sid, g in groups.items()
    ]
    # stable sort: ties keep first-seen order
    sessions.sort(key=lambda s: s.last_message, reverse=True)
    return sessions[:limit]
