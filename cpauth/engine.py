"""Verifier state machine: register, issue a challenge, verify the response.

Per identity the lifecycle is ``unregistered -> registered -> challenge
issued -> registered``. The only state that survives a verification is the
registration itself; the pending commitment and challenge are consumed by
the first verification, successful or not, so a challenge is never answered
twice for the same commitment.

Only one pending attempt per identity is kept. Two concurrent logins for
the same user race to install their commitment and the loser fails
verification.
"""

from __future__ import annotations

import enum
import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Union

from .arith import mod_pow, uniform_random_in_range
from .constants import LOCK_STRIPES, SESSION_TOKEN_BYTES
from .crypto import derive_identity
from .group import GroupParameters
from .store import IdentityDirectory

logger = logging.getLogger(__name__)


class RegisterResult(enum.Enum):
    CREATED = "created"
    ALREADY_REGISTERED = "already_registered"


@dataclass(frozen=True)
class IssuedChallenge:
    auth_id: str
    c: int


@dataclass(frozen=True)
class NotRegistered:
    pass


@dataclass(frozen=True)
class Authenticated:
    session_token: str


@dataclass(frozen=True)
class Rejected:
    pass


ChallengeResult = Union[IssuedChallenge, NotRegistered]
VerifyResult = Union[Authenticated, Rejected]


class _IdentityLocks:
    """Fixed pool of locks striped by identity key.

    The pool never grows, whatever identities callers invent. Two identities
    sharing a stripe are merely serialised.
    """

    def __init__(self, stripes: int = LOCK_STRIPES) -> None:
        self._locks = tuple(threading.Lock() for _ in range(stripes))

    def __len__(self) -> int:
        return len(self._locks)

    def __call__(self, identity: str) -> threading.Lock:
        return self._locks[hash(identity) % len(self._locks)]


class ProtocolEngine:
    """Server side of the Chaum-Pedersen protocol.

    Storage failures raised by the directory propagate unchanged; they are
    never reported as a rejected login.
    """

    def __init__(self, directory: IdentityDirectory, group: GroupParameters) -> None:
        self.directory = directory
        self.group = group
        self._locks = _IdentityLocks()

    def _check_element(self, label: str, value: int) -> None:
        if not 0 < value < self.group.p:
            raise ValueError(f"{label} must lie in [1, p)")

    def register(self, user: str, y1: int, y2: int) -> RegisterResult:
        self._check_element("y1", y1)
        self._check_element("y2", y2)
        identity = derive_identity(user)
        if not self.directory.put_registration(identity, y1, y2):
            logger.info("Identity %s is already registered", identity)
            return RegisterResult.ALREADY_REGISTERED
        logger.info("Registered identity %s", identity)
        return RegisterResult.CREATED

    def issue_challenge(self, user: str, r1: int, r2: int) -> ChallengeResult:
        self._check_element("r1", r1)
        self._check_element("r2", r2)
        identity = derive_identity(user)
        with self._locks(identity):
            if not self.directory.is_registered(identity):
                logger.info("Challenge requested for unregistered identity %s", identity)
                return NotRegistered()
            # c is uniform over {2, ..., q - 2}
            c = uniform_random_in_range(2, self.group.q - 1)
            self.directory.upsert_pending(identity, r1, r2, c)
        logger.info("Issued challenge to identity %s", identity)
        return IssuedChallenge(auth_id=identity, c=c)

    def discard_attempt(self, auth_id: str) -> None:
        """Consume the pending attempt for ``auth_id`` without verifying anything.

        Used when the response cannot even be decoded: the challenge is
        still spent.
        """

        with self._locks(auth_id):
            pending = self.directory.take_pending(auth_id)
        if pending is not None:
            logger.info("Discarded pending attempt for identity %s", auth_id)

    def verify_response(self, auth_id: str, s: int) -> VerifyResult:
        with self._locks(auth_id):
            registration = self.directory.get_registration(auth_id)
            pending = self.directory.take_pending(auth_id)

        group = self.group
        # g and h have order q, so reducing s leaves both checks unchanged.
        exponent = s % group.q
        # Every failure pays for the same exponentiations as a wrong secret.
        y1, y2 = (registration.y1, registration.y2) if registration is not None else (group.g, group.h)
        c = pending.c if pending is not None else group.q - 2
        check1 = (mod_pow(group.g, exponent, group.p) * mod_pow(y1, c, group.p)) % group.p
        check2 = (mod_pow(group.h, exponent, group.p) * mod_pow(y2, c, group.p)) % group.p

        if registration is None:
            logger.warning("Verification attempted for unknown auth id %r", auth_id)
            return Rejected()
        if pending is None:
            logger.info("No pending attempt for identity %s", auth_id)
            return Rejected()
        if s < 0:
            logger.info("Negative response from identity %s", auth_id)
            return Rejected()

        if check1 == pending.r1 and check2 == pending.r2:
            logger.info("Identity %s authenticated", auth_id)
            return Authenticated(session_token=secrets.token_urlsafe(SESSION_TOKEN_BYTES))

        logger.info("Identity %s failed verification", auth_id)
        return Rejected()


__all__ = [
    "Authenticated",
    "ChallengeResult",
    "IssuedChallenge",
    "NotRegistered",
    "ProtocolEngine",
    "RegisterResult",
    "Rejected",
    "VerifyResult",
]
