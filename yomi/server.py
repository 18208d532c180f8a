from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import ServiceConfig
from .errors import InvalidInputError, NotReadyError, UpstreamSynthesisError
from .service import ReadAlongService, annotate_payload

logger = logging.getLogger(__name__)


class ParseRequest(BaseModel):
    text: Any = None


class SynthesizeRequest(BaseModel):
    tokens: Any = None
    audioDuration: Any = None


def _no_store(data: dict) -> JSONResponse:
    return JSONResponse(data, headers={"Cache-Control": "no-store"})


def create_app(service: ReadAlongService, load_on_startup: bool = True) -> FastAPI:
    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        task: Optional[asyncio.Task] = None
        if load_on_startup and not service.ready():
            task = asyncio.create_task(service.load())
        try:
            yield
        finally:
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(lifespan=lifespan)
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(service.config.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/status")
    def get_status() -> JSONResponse:
        return _no_store(service.status())

    @app.post("/api/parse")
    def parse(payload: ParseRequest) -> JSONResponse:
        try:
            tokens = service.annotate(payload.text)
        except NotReadyError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _no_store(annotate_payload(tokens))

    @app.post("/api/synthesize")
    async def synthesize(payload: SynthesizeRequest) -> JSONResponse:
        try:
            outcome = await service.synthesize(payload.tokens, payload.audioDuration)
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UpstreamSynthesisError as exc:
            logger.exception("Error synthesizing speech: %s", exc)
            raise HTTPException(
                status_code=500, detail="Failed to synthesize speech."
            ) from exc
        return _no_store(outcome.to_payload())

    return app


def run(config: ServiceConfig) -> None:
    import uvicorn

    app = create_app(ReadAlongService(config))
    logger.info("Backend server listening at http://%s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port)
