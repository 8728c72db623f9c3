import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, load_settings
from database import create_store, to_str_id
from errors import Result, StorageError
from messages import MessageStore, SystemNotices
from presence import PresenceRegistry
from reaper import Reaper
from schemas import JoinRequest, SendRequest

LOGGER = logging.getLogger(__name__)


def raise_for(result: Result) -> None:
    if not result.ok:
        raise HTTPException(status_code=result.failure.status_code, detail=result.detail)


def create_app(store=None, settings: Optional[Settings] = None, clock=time.time, start_reaper: bool = True) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if store is None:
        store = create_store(settings.database_url, settings.database_name)

    notices = SystemNotices(store, clock=clock)
    registry = PresenceRegistry(store, notices, clock=clock)
    messages = MessageStore(store, registry, notices, clock=clock)
    reaper = Reaper(
        registry,
        messages,
        threshold=settings.liveness_threshold,
        interval=settings.sweep_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.ensure_indexes()
        if start_reaper:
            reaper.start()
            LOGGER.info("reaper running every %ss", settings.sweep_interval)
        try:
            yield
        finally:
            reaper.stop()
            if reaper.running:
                LOGGER.warning("reaper still scanning, leaving the store open")
            else:
                store.close()

    app = FastAPI(lifespan=lifespan)
    app.state.store = store
    app.state.registry = registry
    app.state.messages = messages
    app.state.reaper = reaper

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError):
        LOGGER.error("storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/")
    def read_root():
        return {"message": "Chat room API ready"}

    @app.get("/test")
    def test_database():
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_name": settings.database_name,
            "connection_status": "Not Connected",
            "collections": [],
            "reaper": "running" if reaper.running else "stopped",
        }
        try:
            response["collections"] = store.collection_names()
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        except StorageError as e:
            response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
        return response

    # Participants
    @app.post("/participants", status_code=201)
    def join(payload: JoinRequest):
        raise_for(registry.join(payload.name))
        return Response(status_code=201)

    @app.get("/participants")
    def list_participants():
        return [to_str_id(p) for p in registry.list_active()]

    # Messages
    @app.post("/messages", status_code=201)
    def send_message(payload: SendRequest, user: Optional[str] = Header(None)):
        raise_for(messages.send(user, payload.to, payload.text, payload.type))
        return Response(status_code=201)

    @app.get("/messages")
    def list_messages(limit: Optional[str] = None, user: Optional[str] = Header(None)):
        result = messages.visible_to(user, limit)
        raise_for(result)
        return [to_str_id(m) for m in result.value]

    # Presence
    @app.post("/status")
    def status(user: Optional[str] = Header(None)):
        raise_for(registry.heartbeat(user))
        return Response(status_code=200)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = load_settings().port
    uvicorn.run(app, host="0.0.0.0", port=port)
