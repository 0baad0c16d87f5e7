"""
Grumpkin curve arithmetic.

Grumpkin is y^2 = x^3 - 17 over the BN254 scalar field, so point coordinates
are themselves field elements and can be stored on the ledger as-is.
"""

from __future__ import annotations

from dataclasses import dataclass

import nacl.utils

from errors import InvalidPointError
from fieldcodec import FIELD_MODULUS

P = FIELD_MODULUS
# group order (the BN254 base field)
Q = 21888242871839275222246405745257275088696311157297823662689037894645226208583
B = P - 17

G_X = 1
G_Y = 17631683881184975370165255887551781615748388533673675138860


@dataclass(frozen=True)
class Point:
    x: int
    y: int
    is_infinite: bool = False

    @classmethod
    def infinity(cls) -> "Point":
        return cls(0, 0, is_infinite=True)

    @classmethod
    def generator(cls) -> "Point":
        return cls(G_X, G_Y)

    @classmethod
    def from_fields(cls, x: int, y: int) -> "Point":
        """Build a point from ledger fields, rejecting anything off the curve."""
        pt = cls(x, y)
        if not is_on_curve(pt):
            raise InvalidPointError("point is not on the Grumpkin curve")
        return pt

    def __repr__(self) -> str:
        if self.is_infinite:
            return "Point(inf)"
        return f"Point({hex(self.x)[:10]}..., {hex(self.y)[:10]}...)"


def is_on_curve(pt: Point) -> bool:
    if pt.is_infinite:
        return False
    if not (0 <= pt.x < P and 0 <= pt.y < P):
        return False
    return (pt.y * pt.y - pt.x * pt.x * pt.x - B) % P == 0


def point_neg(pt: Point) -> Point:
    if pt.is_infinite:
        return pt
    return Point(pt.x, (-pt.y) % P)


def point_add(p1: Point, p2: Point) -> Point:
    if p1.is_infinite:
        return p2
    if p2.is_infinite:
        return p1

    if p1.x == p2.x:
        if (p1.y + p2.y) % P == 0:
            return Point.infinity()
        # doubling (a = 0)
        lam = (3 * p1.x * p1.x) * pow(2 * p1.y, -1, P) % P
    else:
        lam = (p2.y - p1.y) * pow(p2.x - p1.x, -1, P) % P

    x3 = (lam * lam - p1.x - p2.x) % P
    y3 = (lam * (p1.x - x3) - p1.y) % P
    return Point(x3, y3)


def scalar_mul(k: int, pt: Point) -> Point:
    """Double-and-add; k is reduced modulo the group order."""
    k %= Q
    result = Point.infinity()
    addend = pt
    while k:
        if k & 1:
            result = point_add(result, addend)
        addend = point_add(addend, addend)
        k >>= 1
    return result


def random_scalar() -> int:
    """Uniform nonzero scalar from libsodium's CSPRNG (64 bytes, reduced)."""
    while True:
        k = int.from_bytes(nacl.utils.random(64), "big") % Q
        if k:
            return k


@dataclass(frozen=True)
class KeyPair:
    private_scalar: int
    public_point: Point

    @classmethod
    def from_scalar(cls, k: int) -> "KeyPair":
        k %= Q
        if k == 0:
            raise ValueError("private scalar must be nonzero")
        return cls(k, scalar_mul(k, Point.generator()))

    @classmethod
    def generate(cls) -> "KeyPair":
        return cls.from_scalar(random_scalar())

    def __repr__(self) -> str:
        # keep the scalar out of logs and tracebacks
        return f"KeyPair(public_point={self.public_point!r})"
