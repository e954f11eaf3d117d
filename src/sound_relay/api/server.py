"""Ingestion endpoint that receives segment artifacts."""

from __future__ import annotations

import hashlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import PlainTextResponse

from .store import WavStore

logger = logging.getLogger("ApiServer")

ACK = "OK"
CLEARED = "Wavefiles table successfully wiped."


def create_app(store: Optional[WavStore] = None, db_path: str = "sound_relay.db") -> FastAPI:
    store = store if store is not None else WavStore(db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Ingestion server starting up")
        yield
        # Shutdown
        logger.info("Ingestion server shutting down")
        store.close()

    app = FastAPI(
        title="Sound Relay Ingestion API",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.store = store

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/api.php", response_class=PlainTextResponse)
    def api_get(action: Optional[str] = None):
        if action == "clear_all_files":
            store.clear()
            return CLEARED
        if action == "get_files_list":
            return PlainTextResponse("Not Implemented.", status_code=501)
        return PlainTextResponse("Unknown command.", status_code=400)

    @app.post("/api.php", response_class=PlainTextResponse)
    def api_post(
        action: Optional[str] = None,
        wavFile: UploadFile = File(...),
        digest: Optional[str] = Form(None),
        name: Optional[str] = Form(None),
    ):
        if action != "add_file":
            return PlainTextResponse("Unknown command.", status_code=400)

        content = wavFile.file.read()
        if digest is not None:
            actual = hashlib.sha256(content).hexdigest()
            if actual != digest.lower():
                logger.warning(f"Digest mismatch for {wavFile.filename}: got {digest}, computed {actual}")
                return PlainTextResponse("Digest mismatch", status_code=400)

        record_name = name or wavFile.filename or "unnamed.wav"
        store.add(record_name, content, digest=digest)
        return ACK

    return app
