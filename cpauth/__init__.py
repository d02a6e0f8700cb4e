"""Chaum-Pedersen zero-knowledge password authentication."""

from .arith import mod_pow, uniform_random_in_range
from .auth import LocalTransport, Transport, TransportError, authenticate, register_user
from .crypto import (
    ChaumPedersenProver,
    Commitment,
    compute_commitment,
    compute_registration,
    compute_response,
    derive_identity,
    secret_from_passphrase,
)
from .engine import (
    Authenticated,
    IssuedChallenge,
    NotRegistered,
    ProtocolEngine,
    RegisterResult,
    Rejected,
)
from .group import GROUPS, TOY_GROUP, GroupParameters, get_group
from .store import (
    CorruptRecordError,
    IdentityDirectory,
    JsonDirectory,
    MemoryDirectory,
    PendingAttempt,
    Registration,
    SqliteDirectory,
    StorageError,
    open_directory,
)

__all__ = [
    "mod_pow",
    "uniform_random_in_range",
    "LocalTransport",
    "Transport",
    "TransportError",
    "authenticate",
    "register_user",
    "ChaumPedersenProver",
    "Commitment",
    "compute_commitment",
    "compute_registration",
    "compute_response",
    "derive_identity",
    "secret_from_passphrase",
    "Authenticated",
    "IssuedChallenge",
    "NotRegistered",
    "ProtocolEngine",
    "RegisterResult",
    "Rejected",
    "GROUPS",
    "TOY_GROUP",
    "GroupParameters",
    "get_group",
    "CorruptRecordError",
    "IdentityDirectory",
    "JsonDirectory",
    "MemoryDirectory",
    "PendingAttempt",
    "Registration",
    "SqliteDirectory",
    "StorageError",
    "open_directory",
]
