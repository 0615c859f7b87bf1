"""
Suscripciones en vivo por WebSocket.

El token viaja como parámetro de consulta (?token=...). Los cambios llegan desde
el ChangeFeed de la aplicación, que publica solo después de cada commit.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from kegtrack.core.audit import log_app_event
from kegtrack.core.database import SessionLocal
from kegtrack.core.deps import user_from_token
from kegtrack.core.errors import KegTrackError, ValidationError
from kegtrack.models.base import utcnow
from kegtrack.services.change_feed import Change
from kegtrack.services.history_service import READ_DEGRADED_ERRORS, EventFilters, event_history_page
from kegtrack.services.query_service import GenerationGuard, empty_page_response


router = APIRouter()
logger = logging.getLogger(__name__)

LIVE_COLLECTIONS = {"assets", "customers", "events"}


def _authenticate(token: Optional[str]) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    with SessionLocal() as db:
        user = user_from_token(db, token)
        if not user:
            return None
        return {"id": user.id, "email": user.email, "role": user.role}


def _history_page(filters: EventFilters, cursor: Optional[str], request_id: Optional[str]) -> Dict[str, Any]:
    with SessionLocal() as db:
        return event_history_page(db, filters, utcnow(), cursor, request_id)


def _change_message(change: Change) -> Dict[str, Any]:
    return {
        "type": "change",
        "collection": change.collection,
        "op": change.op,
        "id": change.id,
        "data": change.data,
    }


async def _pump_client(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Reenvía los mensajes del cliente a la cola; al desconectarse deja ("closed", None)."""
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "code": "invalid_message", "message": "JSON inválido"})
                continue
            queue.put_nowait(("client", message))
    except WebSocketDisconnect:
        queue.put_nowait(("closed", None))


async def _accept_user(websocket: WebSocket, token: Optional[str]) -> Optional[Dict[str, Any]]:
    await websocket.accept()
    user = await run_in_threadpool(_authenticate, token)
    if not user:
        await websocket.close(code=4003, reason="Auth required")
        return None
    return user


@router.websocket("/history")
async def live_history(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Historial filtrado en vivo.

    El cliente envía {"type": "filters", "filters": {...}, "cursor": ..., "request_id": ...};
    el servidor responde con {"type": "page", "generation": n, ...} y vuelve a enviar
    la página vigente cada vez que cambia la colección de eventos. Los resultados de
    filtros anteriores se descartan.
    """
    user = await _accept_user(websocket, token)
    if not user:
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    guard = GenerationGuard()
    send_lock = asyncio.Lock()
    running = set()
    state: Dict[str, Any] = {"filters": EventFilters(), "cursor": None, "request_id": None}

    async def run_query(generation: int, filters: EventFilters, cursor, request_id) -> None:
        try:
            page = await run_in_threadpool(_history_page, filters, cursor, request_id)
        except READ_DEGRADED_ERRORS as exc:
            await run_in_threadpool(log_app_event, "ERROR", exc.message, "/live/history", None, user["email"])
            page = empty_page_response(exc, request_id)
        except KegTrackError as exc:
            page = empty_page_response(exc, request_id)
        if not guard.is_current(generation):
            return
        async with send_lock:
            await websocket.send_json({"type": "page", "generation": generation, **page})

    def start_query() -> None:
        task = asyncio.create_task(
            run_query(guard.advance(), state["filters"], state["cursor"], state["request_id"])
        )
        running.add(task)
        task.add_done_callback(running.discard)

    def on_change(change: Change) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("change", change))

    feed = websocket.app.state.change_feed
    with feed.subscribe("events", on_change):
        receiver = asyncio.create_task(_pump_client(websocket, queue))
        start_query()
        try:
            while True:
                kind, payload = await queue.get()
                if kind == "closed":
                    break
                if kind == "client":
                    if not isinstance(payload, dict):
                        continue
                    if payload.get("type") == "ping":
                        async with send_lock:
                            await websocket.send_json({"type": "pong"})
                        continue
                    if payload.get("type") != "filters":
                        continue
                    try:
                        filters = EventFilters.from_dict(payload.get("filters"))
                    except ValidationError as exc:
                        async with send_lock:
                            await websocket.send_json({
                                "type": "error",
                                "code": exc.code,
                                "message": exc.message,
                                "request_id": payload.get("request_id"),
                            })
                        continue
                    state["filters"] = filters
                    state["cursor"] = payload.get("cursor")
                    state["request_id"] = payload.get("request_id")
                start_query()
        finally:
            receiver.cancel()
            for task in list(running):
                task.cancel()


@router.websocket("/{collection}")
async def live_collection(websocket: WebSocket, collection: str, token: Optional[str] = Query(None)):
    """Empuja {"type": "change", "op": "added|modified|removed", ...} por cada cambio confirmado."""
    user = await _accept_user(websocket, token)
    if not user:
        return
    if collection not in LIVE_COLLECTIONS:
        await websocket.close(code=4004, reason=f"Unknown collection {collection}")
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_change(change: Change) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("change", change))

    feed = websocket.app.state.change_feed
    with feed.subscribe(collection, on_change):
        await websocket.send_json({"type": "ready", "collection": collection})
        receiver = asyncio.create_task(_pump_client(websocket, queue))
        try:
            while True:
                kind, payload = await queue.get()
                if kind == "closed":
                    break
                if kind == "client":
                    if isinstance(payload, dict) and payload.get("type") == "ping":
                        await websocket.send_json({"type": "pong"})
                    continue
                await websocket.send_json(_change_message(payload))
        finally:
            receiver.cancel()
    logger.info("Live subscription to %s closed for %s", collection, user["email"])
