"""httpx transport speaking the verifier's JSON wire format."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .auth import Transport, TransportError
from .engine import ChallengeResult, VerifyResult
from .group import GroupParameters
from .messages import (
    AnswerRequest,
    AnswerResponse,
    ChallengeRequest,
    ChallengeResponse,
    MalformedIntegerError,
    ParametersResponse,
    RegisterRequest,
    encode_int,
)


class HttpTransport(Transport):
    """Send protocol messages to a running verifier.

    Any ``httpx.Client`` works, including FastAPI's ``TestClient``.
    """

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    @classmethod
    def connect(cls, base_url: str, *, timeout: float = 10.0) -> "HttpTransport":
        return cls(httpx.Client(base_url=base_url, timeout=timeout))

    def close(self) -> None:
        self.client.close()

    def _call(self, method: str, path: str, payload: Optional[BaseModel] = None) -> Dict[str, Any]:
        try:
            response = self.client.request(
                method,
                path,
                json=payload.model_dump() if payload is not None else None,
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{method} {path} returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    def parameters(self) -> GroupParameters:
        data = self._call("GET", "/parameters")
        try:
            return GroupParameters.from_dict(ParametersResponse(**data).model_dump())
        except (ValidationError, ValueError) as exc:
            raise TransportError(f"Invalid group parameters: {exc}") from exc

    def register(self, user: str, y1: int, y2: int) -> None:
        self._call("POST", "/register", RegisterRequest(user=user, y1=encode_int(y1), y2=encode_int(y2)))

    def request_challenge(self, user: str, r1: int, r2: int) -> ChallengeResult:
        data = self._call("POST", "/challenge", ChallengeRequest(user=user, r1=encode_int(r1), r2=encode_int(r2)))
        try:
            return ChallengeResponse(**data).to_result()
        except (ValidationError, MalformedIntegerError) as exc:
            raise TransportError(f"Invalid challenge: {exc}") from exc

    def answer(self, auth_id: str, s: int) -> VerifyResult:
        data = self._call("POST", "/answer", AnswerRequest(auth_id=auth_id, s=encode_int(s)))
        try:
            return AnswerResponse(**data).to_result()
        except ValidationError as exc:
            raise TransportError(f"Invalid answer: {exc}") from exc


__all__ = ["HttpTransport"]
