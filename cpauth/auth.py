"""High level registration and login helpers for the prover."""

from __future__ import annotations

import abc
import logging

from .crypto import ChaumPedersenProver
from .engine import (
    Authenticated,
    ChallengeResult,
    NotRegistered,
    ProtocolEngine,
    VerifyResult,
)
from .group import GroupParameters

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """The verifier could not be reached or answered with an error."""


class Transport(abc.ABC):
    """Carries the three protocol messages to a verifier."""

    @abc.abstractmethod
    def parameters(self) -> GroupParameters:
        ...

    @abc.abstractmethod
    def register(self, user: str, y1: int, y2: int) -> None:
        ...

    @abc.abstractmethod
    def request_challenge(self, user: str, r1: int, r2: int) -> ChallengeResult:
        ...

    @abc.abstractmethod
    def answer(self, auth_id: str, s: int) -> VerifyResult:
        ...


class LocalTransport(Transport):
    """Talk to an in-process engine."""

    def __init__(self, engine: ProtocolEngine) -> None:
        self.engine = engine

    def parameters(self) -> GroupParameters:
        return self.engine.group

    def register(self, user: str, y1: int, y2: int) -> None:
        self.engine.register(user, y1, y2)

    def request_challenge(self, user: str, r1: int, r2: int) -> ChallengeResult:
        return self.engine.issue_challenge(user, r1, r2)

    def answer(self, auth_id: str, s: int) -> VerifyResult:
        return self.engine.verify_response(auth_id, s)


def _check_group(transport: Transport, group: GroupParameters) -> None:
    remote = transport.parameters()
    if (remote.p, remote.q, remote.g, remote.h) != (group.p, group.q, group.g, group.h):
        raise TransportError(f"Verifier uses group '{remote.name}', expected '{group.name}'")


def register_user(transport: Transport, user: str, passphrase: str, group: GroupParameters) -> None:
    _check_group(transport, group)
    prover = ChaumPedersenProver.from_passphrase(passphrase, group)
    y1, y2 = prover.registration()
    transport.register(user, y1, y2)
    logger.info("Sent registration for %s", user)


def authenticate(
    transport: Transport,
    user: str,
    passphrase: str,
    group: GroupParameters,
) -> ChallengeResult | VerifyResult:
    """Run one login attempt.

    Returns ``NotRegistered`` when the verifier does not know ``user``,
    otherwise the verdict: ``Authenticated`` or ``Rejected``.
    """

    _check_group(transport, group)
    prover = ChaumPedersenProver.from_passphrase(passphrase, group)
    commitment = prover.commit()
    challenge = transport.request_challenge(user, commitment.r1, commitment.r2)
    if isinstance(challenge, NotRegistered):
        logger.info("Verifier does not know %s", user)
        return challenge

    s = prover.respond(commitment, challenge.c)
    verdict = transport.answer(challenge.auth_id, s)
    logger.info("Login for %s %s", user, "succeeded" if isinstance(verdict, Authenticated) else "failed")
    return verdict


__all__ = [
    "LocalTransport",
    "Transport",
    "TransportError",
    "authenticate",
    "register_user",
]
