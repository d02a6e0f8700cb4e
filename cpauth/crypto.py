"""Prover-side computations for the Chaum-Pedersen identification protocol."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Tuple

from .arith import mod_pow, uniform_random_in_range
from .group import GroupParameters


@dataclass
class Commitment:
    """Per-attempt nonce ``k`` with ``r1 = g^k`` and ``r2 = h^k``."""

    nonce: int
    r1: int
    r2: int
    answered: bool = field(default=False, compare=False)


def secret_from_passphrase(passphrase: str) -> int:
    """Read the UTF-8 bytes of ``passphrase`` as a little-endian integer."""

    secret = int.from_bytes(passphrase.encode("utf-8"), "little")
    if secret <= 0:
        raise ValueError("Passphrase must not be empty")
    return secret


def derive_identity(username: str) -> str:
    """Derive the stable directory key for ``username``."""

    return hashlib.sha256(username.encode("utf-8")).hexdigest()


def compute_registration(secret: int, group: GroupParameters) -> Tuple[int, int]:
    if secret <= 0:
        raise ValueError("Secret must be a positive integer")
    return mod_pow(group.g, secret, group.p), mod_pow(group.h, secret, group.p)


def compute_commitment(group: GroupParameters) -> Commitment:
    nonce = uniform_random_in_range(2, group.q - 2)
    return Commitment(
        nonce=nonce,
        r1=mod_pow(group.g, nonce, group.p),
        r2=mod_pow(group.h, nonce, group.p),
    )


def compute_response(nonce: int, challenge: int, secret: int, group: GroupParameters) -> int:
    """Return ``s = k - c*x mod q`` as a representative in ``[0, q)``."""

    q = group.q
    return (((nonce - challenge * secret) % q) + q) % q


class ChaumPedersenProver:
    """Prover holding the passphrase-derived secret ``x``."""

    def __init__(self, secret: int, group: GroupParameters) -> None:
        if secret <= 0:
            raise ValueError("Secret must be a positive integer")
        self.secret = secret
        self.group = group

    @classmethod
    def from_passphrase(cls, passphrase: str, group: GroupParameters) -> "ChaumPedersenProver":
        return cls(secret_from_passphrase(passphrase), group)

    def registration(self) -> Tuple[int, int]:
        return compute_registration(self.secret, self.group)

    def commit(self) -> Commitment:
        return compute_commitment(self.group)

    def respond(self, commitment: Commitment, challenge: int) -> int:
        # A nonce answered twice with different challenges leaks the secret.
        if commitment.answered:
            raise ValueError("Commitment has already been answered")
        commitment.answered = True
        return compute_response(commitment.nonce, challenge, self.secret, self.group)


__all__ = [
    "ChaumPedersenProver",
    "Commitment",
    "compute_commitment",
    "compute_registration",
    "compute_response",
    "derive_identity",
    "secret_from_passphrase",
]
