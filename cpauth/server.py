"""FastAPI-powered Chaum-Pedersen verifier service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .engine import ProtocolEngine
from .messages import (
    AnswerRequest,
    AnswerResponse,
    ChallengeRequest,
    ChallengeResponse,
    MalformedIntegerError,
    ParametersResponse,
    RegisterRequest,
    RegisterResponse,
    decode_int,
)
from .store import StorageError

logger = logging.getLogger(__name__)


def create_app(engine: ProtocolEngine) -> FastAPI:
    """Expose ``engine`` over HTTP.

    Handlers are plain functions so FastAPI runs the blocking directory
    calls in its worker threads.
    """

    engine.group.validate()
    app = FastAPI(title="cpauth", description="Chaum-Pedersen zero-knowledge login")
    app.state.engine = engine

    @app.exception_handler(StorageError)
    async def storage_failure(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Directory failure while handling %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Identity directory unavailable"})

    @app.get("/parameters", response_model=ParametersResponse)
    def parameters() -> ParametersResponse:
        return ParametersResponse(**engine.group.to_dict())

    @app.post("/register", response_model=RegisterResponse)
    def register(request: RegisterRequest) -> RegisterResponse:
        try:
            engine.register(request.user, decode_int(request.y1), decode_int(request.y2))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return RegisterResponse()

    @app.post("/challenge", response_model=ChallengeResponse)
    def challenge(request: ChallengeRequest) -> ChallengeResponse:
        try:
            result = engine.issue_challenge(request.user, decode_int(request.r1), decode_int(request.r2))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return ChallengeResponse.from_result(result)

    @app.post("/answer", response_model=AnswerResponse)
    def answer(request: AnswerRequest) -> AnswerResponse:
        try:
            s = decode_int(request.s)
        except MalformedIntegerError as exc:
            engine.discard_attempt(request.auth_id)
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        result = engine.verify_response(request.auth_id, s)
        return AnswerResponse.from_result(result)

    return app


__all__ = ["create_app"]
