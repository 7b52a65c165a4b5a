"""
ASGI application: Socket.IO chat server mounted over a FastAPI app.

HTTP routes:
  GET  /                  service banner
  GET  /health            liveness + online count
  GET  /api/debug/users   presence table snapshot (debug only)
  POST /api/upload        multipart "file" → {success, file}
  GET  /uploads/...       uploaded files
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import socketio
from fastapi import FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from nickchat import __version__
from nickchat.config import Settings, get_settings
from nickchat.coordinator import SessionCoordinator
from nickchat.errors import UploadRejected
from nickchat.router import DeliveryRouter
from nickchat.stores.base import IdentityStore, MessageStore
from nickchat.stores.memory import MemoryIdentityStore, MemoryMessageStore
from nickchat.transport.socketio import ChatServer, SocketIOGateway
from nickchat.uploads import UploadService

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    identity_store: Optional[IdentityStore] = None,
    message_store: Optional[MessageStore] = None,
) -> socketio.ASGIApp:
    settings = settings or get_settings()
    mongo_client = None
    if identity_store is None or message_store is None:
        if settings.mongodb_url:
            from nickchat.stores.mongo import MongoIdentityStore, MongoMessageStore, connect_mongo
            mongo_client, db = connect_mongo(settings)
            identity_store = identity_store or MongoIdentityStore(db)
            message_store = message_store or MongoMessageStore(db)
        else:
            logger.warning("No MongoDB URL configured; using in-memory stores")
            identity_store = identity_store or MemoryIdentityStore()
            message_store = message_store or MemoryMessageStore()

    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.cors_origins,
        ping_interval=settings.ping_interval,
        ping_timeout=settings.ping_timeout,
    )
    gateway = SocketIOGateway(sio)
    coordinator = SessionCoordinator(identity_store, gateway, store_timeout=settings.store_timeout)
    router = DeliveryRouter(
        coordinator,
        message_store,
        gateway,
        store_timeout=settings.store_timeout,
        history_default_limit=settings.history_default_limit,
        history_max_limit=settings.history_max_limit,
    )
    ChatServer(coordinator, router).attach(sio)
    uploads = UploadService(settings)
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        for store in (identity_store, message_store):
            ensure_indexes = getattr(store, "ensure_indexes", None)
            if ensure_indexes is not None:
                await ensure_indexes()
        # before the first connection is accepted
        await coordinator.reconcile()
        logger.info(f"nickchat {__version__} ready on port {settings.port}")
        yield
        logger.info("Shutting down nickchat")
        if mongo_client is not None:
            mongo_client.close()

    api = FastAPI(title="nickchat", version=__version__, lifespan=lifespan)
    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    api.state.settings = settings
    api.state.coordinator = coordinator
    api.state.router = router
    api.state.uploads = uploads
    api.state.sio = sio

    @api.get("/")
    async def root() -> dict[str, Any]:
        return {"message": "nickchat server", "version": __version__, "socketio": "active"}

    @api.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
            "online": len(coordinator.presence),
        }

    if settings.debug:
        @api.get("/api/debug/users")
        async def debug_users() -> dict[str, Any]:
            users = coordinator.presence.snapshot()
            return {"connected_users": users, "count": len(users)}

    @api.post("/api/upload")
    async def upload(file: Optional[UploadFile] = File(None)) -> JSONResponse:
        if file is None:
            return JSONResponse({"success": False, "error": "No file provided"}, status_code=400)
        data = await file.read(uploads.max_bytes + 1)
        try:
            stored = await uploads.store(
                file.filename or "upload", file.content_type or "application/octet-stream", data,
            )
        except UploadRejected as e:
            return JSONResponse({"success": False, "error": e.message}, status_code=400)
        return JSONResponse({"success": True, "file": stored.model_dump(mode="json")})

    api.mount("/uploads", StaticFiles(directory=str(uploads.root)), name="uploads")

    return socketio.ASGIApp(sio, other_asgi_app=api)
