import random

import pytest

from reed_solomon import GF, ReedSolomon, ReedSolomonError

gf = GF()


def encode(data, nsym):
    """Systematic encoder: data followed by the remainder mod the generator."""
    gen = [1]
    for i in range(nsym):
        gen = gf.poly_mul(gen, [1, gf.pow(2, i)])
    msg = list(data) + [0] * nsym
    for i in range(len(data)):
        coef = msg[i]
        if coef:
            for j in range(1, len(gen)):
                msg[i + j] ^= gf.mul(gen[j], coef)
    return list(data) + msg[len(data):]


def corrupt(msg, positions):
    out = list(msg)
    for p in positions:
        out[p] ^= 0x5A
    return out


@pytest.fixture
def codeword():
    rng = random.Random(7)
    data = [rng.randrange(256) for _ in range(16)]
    return data, encode(data, 10)


def test_field_tables():
    assert gf.exp[0] == 1 and gf.exp[8] == 0x1D
    for a in (1, 2, 0x53, 0xCA, 0xFF):
        assert gf.mul(a, gf.inv(a)) == 1
        assert gf.div(gf.mul(a, 0x37), 0x37) == a
    with pytest.raises(ZeroDivisionError):
        gf.div(5, 0)


def test_encoded_message_has_zero_syndromes(codeword):
    _, msg = codeword
    assert not any(ReedSolomon(10).syndromes(msg))


def test_clean_message(codeword):
    data, msg = codeword
    assert ReedSolomon(10).decode(msg) == data


@pytest.mark.parametrize("positions", [[0], [3, 17], [1, 5, 9, 20, 25]])
def test_corrects_errors(codeword, positions):
    data, msg = codeword
    assert ReedSolomon(10).decode(corrupt(msg, positions)) == data


def test_too_many_errors(codeword):
    _, msg = codeword
    with pytest.raises(ReedSolomonError):
        ReedSolomon(10).decode(corrupt(msg, [0, 2, 4, 6, 8, 10]))


def test_corrects_erasures(codeword):
    data, msg = codeword
    erased = list(range(2, 12))
    assert ReedSolomon(10).decode(corrupt(msg, erased), erasure_pos=erased) == data


def test_erasures_and_errors(codeword):
    data, msg = codeword
    erased = [0, 4, 8, 12]
    bad = corrupt(msg, erased + [15, 19, 23])
    assert ReedSolomon(10).decode(bad, erasure_pos=erased) == data


def test_too_many_erasures(codeword):
    _, msg = codeword
    with pytest.raises(ReedSolomonError):
        ReedSolomon(10).decode(msg, erasure_pos=list(range(11)))


def test_message_too_long():
    with pytest.raises(ReedSolomonError):
        ReedSolomon(4).decode([0] * 256)
