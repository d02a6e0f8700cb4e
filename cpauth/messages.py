"""Wire messages exchanged between prover and verifier.

Integers travel as bare base-16 text. The sentinel strings for "not
registered" and "wrong credentials" exist only here; everything above the
wire works with the engine's result types.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, field_validator

from .constants import USER_NOT_REGISTERED, WRONG_CREDENTIALS
from .engine import (
    Authenticated,
    ChallengeResult,
    IssuedChallenge,
    NotRegistered,
    Rejected,
    VerifyResult,
)

_HEX = re.compile(r"[0-9a-fA-F]+")


class MalformedIntegerError(ValueError):
    """Raised when a wire integer is not plain base-16 text."""


def encode_int(value: int) -> str:
    if value < 0:
        raise ValueError("Only non-negative integers are sent on the wire")
    return format(value, "x")


def decode_int(text: str) -> int:
    if not isinstance(text, str) or _HEX.fullmatch(text) is None:
        raise MalformedIntegerError(f"Expected base-16 digits, got {text!r}")
    return int(text, 16)


def _hex_field(value: str) -> str:
    decode_int(value)
    return value.lower()


class RegisterRequest(BaseModel):
    user: str
    y1: str
    y2: str

    @field_validator("y1", "y2")
    @classmethod
    def check_hex(cls, value: str) -> str:
        return _hex_field(value)


class RegisterResponse(BaseModel):
    pass


class ChallengeRequest(BaseModel):
    user: str
    r1: str
    r2: str

    @field_validator("r1", "r2")
    @classmethod
    def check_hex(cls, value: str) -> str:
        return _hex_field(value)


class ChallengeResponse(BaseModel):
    auth_id: str
    c: str

    @classmethod
    def from_result(cls, result: ChallengeResult) -> "ChallengeResponse":
        if isinstance(result, IssuedChallenge):
            return cls(auth_id=result.auth_id, c=encode_int(result.c))
        return cls(auth_id=USER_NOT_REGISTERED, c="0")

    def to_result(self) -> ChallengeResult:
        if self.auth_id == USER_NOT_REGISTERED:
            return NotRegistered()
        return IssuedChallenge(auth_id=self.auth_id, c=decode_int(self.c))


class AnswerRequest(BaseModel):
    # s is decoded by the handler so an undecodable answer still spends the challenge.
    auth_id: str
    s: str


class AnswerResponse(BaseModel):
    session_id: str

    @classmethod
    def from_result(cls, result: VerifyResult) -> "AnswerResponse":
        if isinstance(result, Authenticated):
            return cls(session_id=result.session_token)
        return cls(session_id=WRONG_CREDENTIALS)

    def to_result(self) -> VerifyResult:
        if self.session_id == WRONG_CREDENTIALS:
            return Rejected()
        return Authenticated(session_token=self.session_id)


class ParametersResponse(BaseModel):
    name: str
    p: str
    q: str
    g: str
    h: str


__all__ = [
    "AnswerRequest",
    "AnswerResponse",
    "ChallengeRequest",
    "ChallengeResponse",
    "MalformedIntegerError",
    "ParametersResponse",
    "RegisterRequest",
    "RegisterResponse",
    "decode_int",
    "encode_int",
]
