"""
Widget Router - HTTP surface of the chat widget engine.

One controller per browser widget, addressed by an opaque handle. The visitor
id lives in a cookie, which is the browser-local storage for this surface.
"""
import logging
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import (
    AttachmentTooLargeError,
    SessionNotReadyError,
    WidgetNotFoundError,
)
from widget_engine.models.message import FileMeta, QuickAction
from widget_engine.models.session import PageContext, QuickActionOutcome, WidgetSnapshot
from widget_engine.services.controller import WidgetController
from widget_engine.services.durable_store import DurableStore
from widget_engine.services.inference_client import InferenceClient
from widget_engine.services.registry import WidgetRegistry
from widget_engine.services.visitor_identity import (
    CookieKeyValueStorage,
    VisitorIdentityManager,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/widget", tags=["widget"])

# Quick actions with no conversational side effect may run while a reply is pending
NON_CONVERSATIONAL_ACTIONS = ("call", "email", "retry")


class CreateWidgetRequest(BaseModel):
    """Page context supplied by the embedding page."""
    page_url: str = ""
    path: str = "/"
    referrer_url: Optional[str] = None


class SendMessageRequest(BaseModel):
    text: str = ""
    file: Optional[FileMeta] = Field(None, description="Attachment metadata only")


class WidgetResponse(BaseModel):
    handle: str
    snapshot: WidgetSnapshot


class QuickActionResponse(BaseModel):
    handle: str
    outcome: QuickActionOutcome
    snapshot: WidgetSnapshot


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_registry(request: Request) -> WidgetRegistry:
    return request.app.state.registry


def get_store(request: Request) -> Optional[DurableStore]:
    return getattr(request.app.state, "store", None)


def get_inference(request: Request) -> InferenceClient:
    return request.app.state.inference


def _lookup(registry: WidgetRegistry, handle: str) -> WidgetController:
    try:
        return registry.get(handle)
    except WidgetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("/sessions", response_model=WidgetResponse, status_code=status.HTTP_201_CREATED)
async def create_widget(
    body: CreateWidgetRequest,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_app_settings),
    registry: WidgetRegistry = Depends(get_registry),
    store: Optional[DurableStore] = Depends(get_store),
    inference: InferenceClient = Depends(get_inference),
):
    """
    Mount a widget: resolve the visitor id and initialize a chat session.

    Always returns a usable session - initialization degrades instead of failing.
    """
    storage = CookieKeyValueStorage(request.cookies)
    identity = VisitorIdentityManager(storage, settings.visitor_storage_key)
    page = PageContext(
        page_url=body.page_url,
        path=body.path,
        referrer_url=body.referrer_url,
        user_agent=request.headers.get("user-agent"),
    )
    controller = WidgetController(
        inference,
        store,
        identity=identity,
        settings=settings,
        page=page,
    )
    snapshot = await controller.initialize()

    for key, value in storage.pending.items():
        response.set_cookie(
            key,
            value,
            max_age=settings.visitor_cookie_max_age_days * 24 * 3600,
            httponly=True,
            samesite="lax",
        )

    handle, evicted = registry.add(controller)
    for old in evicted:
        background_tasks.add_task(old.aclose)

    logger.info(f"Widget {handle} mounted - Conversation: {snapshot.session.conversation_id}")
    return WidgetResponse(handle=handle, snapshot=snapshot)


@router.get("/sessions/{handle}", response_model=WidgetResponse)
async def get_widget(handle: str, registry: WidgetRegistry = Depends(get_registry)):
    controller = _lookup(registry, handle)
    return WidgetResponse(handle=handle, snapshot=controller.snapshot())


@router.post("/sessions/{handle}/messages", response_model=WidgetResponse)
async def send_message(
    handle: str,
    body: SendMessageRequest,
    registry: WidgetRegistry = Depends(get_registry),
):
    """Send a visitor message. Rejects a second send while a reply is pending."""
    controller = _lookup(registry, handle)
    if controller.snapshot().is_typing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A message is already being answered",
        )

    try:
        await controller.send_message(body.text, body.file)
    except AttachmentTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=e.message)
    except SessionNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return WidgetResponse(handle=handle, snapshot=controller.snapshot())


@router.post("/sessions/{handle}/quick-actions", response_model=QuickActionResponse)
async def select_quick_action(
    handle: str,
    action: QuickAction,
    registry: WidgetRegistry = Depends(get_registry),
):
    controller = _lookup(registry, handle)
    if action.value not in NON_CONVERSATIONAL_ACTIONS and controller.snapshot().is_typing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A message is already being answered",
        )

    try:
        outcome = await controller.select_quick_action(action)
    except SessionNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return QuickActionResponse(handle=handle, outcome=outcome, snapshot=controller.snapshot())


@router.post("/sessions/{handle}/reset", response_model=WidgetResponse)
async def reset_widget(handle: str, registry: WidgetRegistry = Depends(get_registry)):
    controller = _lookup(registry, handle)
    snapshot = await controller.reset()
    return WidgetResponse(handle=handle, snapshot=snapshot)


@router.delete("/sessions/{handle}", status_code=status.HTTP_204_NO_CONTENT)
async def close_widget(handle: str, registry: WidgetRegistry = Depends(get_registry)):
    try:
        controller = registry.remove(handle)
    except WidgetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    await controller.aclose()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
