import pytest

from tcpkit.cypher import Cypher


@pytest.mark.parametrize("shift", [0, 1, 3, 100, 255, 256])
def test_round_trip_source_case(shift):
    cy = Cypher(shift)
    buff = b"12345678abc"
    encrypted = cy.encrypt(buff)
    assert cy.decrypt(encrypted) == buff


def test_encrypt_changes_data_with_nonzero_shift():
    cy = Cypher(3)
    buff = b"12345678abc"
    assert cy.encrypt(buff) != buff
    assert len(cy.encrypt(buff)) == len(buff)


def test_shift_one_moves_letters_forward():
    assert Cypher(1).encrypt(b"abc") == b"bcd"


def test_shift_wraps_at_byte_boundary():
    assert Cypher(1).encrypt(b"\xff") == b"\x00"


@pytest.mark.parametrize("shift", [0, 256])
def test_full_or_no_rotation_is_identity(shift):
    data = bytes(range(256))
    assert Cypher(shift).encrypt(data) == data


def test_encryption_is_a_permutation_of_all_bytes():
    cy = Cypher(42)
    everything = bytes(range(256))
    encrypted = cy.encrypt(everything)
    assert sorted(encrypted) == list(everything)
    assert cy.decrypt(encrypted) == everything


def test_accepts_bytearray_and_memoryview():
    cy = Cypher(7)
    data = bytearray(b"hello")
    assert cy.decrypt(cy.encrypt(memoryview(data))) == b"hello"


@pytest.mark.parametrize("shift", [-1, 257])
def test_invalid_shift_raises(shift):
    with pytest.raises(ValueError):
        Cypher(shift)