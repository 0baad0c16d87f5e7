import pytest

from errors import InvalidPointError
from grumpkin import KeyPair, Point, Q, is_on_curve, point_add, point_neg, random_scalar, scalar_mul

G = Point.generator()


def test_generator_on_curve():
    assert is_on_curve(G)
    assert not is_on_curve(Point(1, 2))
    assert not is_on_curve(Point.infinity())


def test_group_order():
    assert scalar_mul(Q, G).is_infinite
    assert scalar_mul(Q + 1, G) == G


def test_add_and_double_agree_with_scalar_mul():
    two_g = point_add(G, G)
    assert scalar_mul(2, G) == two_g
    assert scalar_mul(3, G) == point_add(two_g, G)
    assert is_on_curve(two_g)


def test_inverse_and_identity():
    assert point_add(G, point_neg(G)).is_infinite
    assert point_add(Point.infinity(), G) == G
    assert scalar_mul(0, G).is_infinite


def test_ecdh_is_symmetric(alice_keys, bob_keys):
    ab = scalar_mul(alice_keys.private_scalar, bob_keys.public_point)
    ba = scalar_mul(bob_keys.private_scalar, alice_keys.public_point)
    assert ab == ba


def test_from_fields_validates():
    assert Point.from_fields(G.x, G.y) == G
    with pytest.raises(InvalidPointError):
        Point.from_fields(1, 3)


def test_random_scalars_are_fresh():
    a, b = random_scalar(), random_scalar()
    assert 0 < a < Q and 0 < b < Q
    assert a != b


def test_keypair():
    kp = KeyPair.from_scalar(5)
    assert kp.public_point == scalar_mul(5, G)
    assert "private" not in repr(kp)
    with pytest.raises(ValueError):
        KeyPair.from_scalar(Q)
