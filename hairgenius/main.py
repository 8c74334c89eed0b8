"""FastAPI entry point exposing the HairGenius relay API."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from .errors import RelayError
from .schemas import ErrorResponse, GenerateRequest, GenerateResponse, HealthResponse
from .service import RelayService, get_relay_service

logger = logging.getLogger(__name__)

app = FastAPI(title="HairGenius Relay", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.get("/", response_class=PlainTextResponse, summary="Liveness banner")
async def root() -> str:
    return "HairGenius API is running"


@app.get("/health", response_model=HealthResponse, summary="Health Check Endpoint")
async def healthcheck(service: RelayService = Depends(get_relay_service)):
    return HealthResponse(
        status="ok",
        model=service.model_id,
        apiKeyConfigured=service.api_key_configured,
    )


@app.post(
    "/api/generate",
    response_model=GenerateResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Apply a hairstyle to a photo",
)
async def generate(
    payload: GenerateRequest,
    service: RelayService = Depends(get_relay_service),
):
    return await run_in_threadpool(service.generate_hairstyle, payload)


__all__ = ["app"]


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    import uvicorn

    from .config import get_settings

    settings = get_settings()
    uvicorn.run("hairgenius.main:app", host=settings.host, port=settings.port, reload=True)
