# app/deps/services.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.database import AsyncSessionLocal
from app.services.dispatch import BackgroundDispatcher, dispatcher
from app.services.events import NotificationEventBridge, store_notification, FLOW_REPLIED, POST_REPLY
from app.services.flow_service import FlowService
from app.services.post_service import PostService
from app.services.view_cache import ViewDeduplicationCache, build_view_cache


@dataclass
class Services:
    dispatcher: BackgroundDispatcher
    events: NotificationEventBridge
    flows: FlowService
    posts: PostService


def build_services(
    session_factory=AsyncSessionLocal,
    *,
    view_cache: ViewDeduplicationCache | None = None,
    background: BackgroundDispatcher | None = None,
    notify: bool = True,
) -> Services:
    background = background or dispatcher
    events = NotificationEventBridge(background)
    if notify:
        sink = store_notification(session_factory)
        events.subscribe(FLOW_REPLIED, sink)
        events.subscribe(POST_REPLY, sink)

    return Services(
        dispatcher=background,
        events=events,
        flows=FlowService(session_factory, events),
        posts=PostService(
            session_factory,
            events,
            view_cache or build_view_cache("post"),
            background,
        ),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_flow_service(request: Request) -> FlowService:
    return get_services(request).flows


def get_post_service(request: Request) -> PostService:
    return get_services(request).posts
