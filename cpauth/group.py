"""Public group parameters for the Chaum-Pedersen protocol."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict

from .arith import mod_pow
from .constants import H_SEED, MODP_1024_HEX, MODP_2048_HEX


@dataclass(frozen=True)
class GroupParameters:
    """Prime modulus ``p``, subgroup order ``q`` and two generators of order ``q``."""

    name: str
    p: int
    q: int
    g: int
    h: int

    @classmethod
    def from_safe_prime(cls, name: str, p: int, *, g: int = 2, seed: bytes = H_SEED) -> "GroupParameters":
        """Build the quadratic-residue subgroup of a safe prime ``p = 2q + 1``."""

        return cls(name=name, p=p, q=(p - 1) // 2, g=g, h=derive_generator(p, seed))

    def validate(self) -> None:
        if self.p <= 3:
            raise ValueError("Modulus is too small")
        if self.q < 5 or (self.p - 1) % self.q != 0:
            raise ValueError("Subgroup order must divide p - 1")
        for label, value in (("g", self.g), ("h", self.h)):
            if not 1 < value < self.p:
                raise ValueError(f"Generator {label} outside of (1, p)")
            if mod_pow(value, self.q, self.p) != 1:
                raise ValueError(f"Generator {label} does not have order q")
        if self.g == self.h:
            raise ValueError("Generators g and h must differ")

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "p": format(self.p, "x"),
            "q": format(self.q, "x"),
            "g": format(self.g, "x"),
            "h": format(self.h, "x"),
        }

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "GroupParameters":
        return GroupParameters(
            name=str(data["name"]),
            p=int(data["p"], 16),
            q=int(data["q"], 16),
            g=int(data["g"], 16),
            h=int(data["h"], 16),
        )


def derive_generator(p: int, seed: bytes) -> int:
    """Hash ``seed`` onto a quadratic residue modulo ``p`` other than 0 and 1.

    The result has no known discrete logarithm with respect to any other
    generator, which is what makes it usable as ``h``.
    """

    width = (p.bit_length() + 7) // 8 + 16
    counter = 0
    while True:
        stream = hashlib.shake_256(seed + counter.to_bytes(4, "big")).digest(width)
        candidate = mod_pow(int.from_bytes(stream, "big") % p, 2, p)
        if candidate > 1:
            return candidate
        counter += 1


GROUPS: Dict[str, GroupParameters] = {
    "modp-1024": GroupParameters.from_safe_prime("modp-1024", int(MODP_1024_HEX, 16)),
    "modp-2048": GroupParameters.from_safe_prime("modp-2048", int(MODP_2048_HEX, 16)),
}

# Tiny group for worked examples and tests. Offers no security.
TOY_GROUP = GroupParameters(name="toy-23", p=23, q=11, g=4, h=9)


def get_group(name: str) -> GroupParameters:
    try:
        return GROUPS[name]
    except KeyError:
        raise ValueError(f"Unknown group '{name}'") from None


__all__ = ["GROUPS", "TOY_GROUP", "GroupParameters", "derive_generator", "get_group"]
