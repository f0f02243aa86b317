# app/services/events.py
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Awaitable, Callable, Dict, List, Optional

from app.config import NOTIFY_EXCERPT_CHARS
from app.models.notification_model import Notification
from app.services.dispatch import BackgroundDispatcher, dispatcher as default_dispatcher

logger = logging.getLogger(__name__)

FLOW_REPLIED = "flow.replied"
POST_REPLY = "post.reply"


def excerpt(text: Optional[str], limit: int = NOTIFY_EXCERPT_CHARS) -> str:
    return (text or "")[:limit]


@dataclass(frozen=True)
class ReplyEvent:
    replier_id: int
    replier_name: Optional[str]
    parent_owner_id: int
    parent_id: int
    parent_slug: str
    parent_excerpt: str
    reply_id: int
    reply_slug: str

    def to_dict(self) -> dict:
        return asdict(self)


Handler = Callable[[str, ReplyEvent], Awaitable[None]]


class NotificationEventBridge:
    """
    Best-effort side channel. By the time ``emit`` runs the reply is already
    committed, so nothing here may raise into the write path: every handler
    runs detached and its errors end up in the log.
    """

    def __init__(self, dispatcher: Optional[BackgroundDispatcher] = None):
        self.dispatcher = dispatcher or default_dispatcher
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, kind: str, handler: Handler) -> None:
        self._handlers.setdefault(kind, []).append(handler)

    def emit(self, kind: str, event: ReplyEvent) -> int:
        """Schedule every handler for ``kind``; returns how many were scheduled."""
        scheduled = 0
        try:
            for handler in self._handlers.get(kind, []):
                self.dispatcher.spawn(
                    lambda h=handler: h(kind, event),
                    label=f"event:{kind}:{event.reply_id}",
                )
                scheduled += 1
        except Exception:
            logger.exception("[events] failed to schedule %s for reply %s", kind, event.reply_id)
        return scheduled

    def emit_reply(
        self,
        kind: str,
        *,
        replier_id: int,
        parent_owner_id: Optional[int],
        build: Callable[[], ReplyEvent],
    ) -> bool:
        """Emit unless the replier is answering themselves or the parent has no owner."""
        if parent_owner_id is None or parent_owner_id == replier_id:
            return False
        try:
            event = build()
        except Exception:
            logger.exception("[events] could not build %s payload", kind)
            return False
        return self.emit(kind, event) > 0


def store_notification(session_factory) -> Handler:
    """Default consumer: one Notification row per event, in its own session."""
    async def _handler(kind: str, event: ReplyEvent) -> None:
        async with session_factory() as db:
            db.add(Notification(
                kind=kind,
                recipient_id=event.parent_owner_id,
                actor_id=event.replier_id,
                actor_name=event.replier_name,
                excerpt=event.parent_excerpt,
                target_id=event.reply_id,
                target_slug=event.reply_slug,
            ))
            await db.commit()

    return _handler
