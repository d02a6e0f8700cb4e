"""Modular arithmetic primitives used by both sides of the protocol."""

from __future__ import annotations

import secrets


def mod_pow(base: int, exponent: int, modulus: int) -> int:
    """Compute ``base ** exponent % modulus`` by square-and-multiply.

    The exponent is consumed from its least significant bit upwards. The
    result always lies in ``[0, modulus)``.
    """

    if modulus < 1:
        raise ValueError("Modulus must be at least 1")
    if exponent < 0:
        raise ValueError("Exponent must be non-negative")
    if modulus == 1:
        return 0

    result = 1
    base %= modulus
    while exponent > 0:
        if exponent & 1:
            result = (result * base) % modulus
        exponent >>= 1
        base = (base * base) % modulus

    return (result + modulus) % modulus


def uniform_random_in_range(low: int, high: int) -> int:
    """Return an integer drawn uniformly from ``[low, high)`` using a CSPRNG."""

    if high <= low:
        raise ValueError(f"Empty range [{low}, {high})")
    return low + secrets.randbelow(high - low)


__all__ = ["mod_pow", "uniform_random_in_range"]
