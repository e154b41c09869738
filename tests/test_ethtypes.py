import pytest

from poco_match.constants import NULL_ADDRESS
from poco_match.errors import InvalidAddress, InvalidOrderField
from poco_match.ethtypes import (
    is_bytes32,
    parse_price,
    random_salt,
    to_bytes32_hex,
    to_checksum_address,
    to_uint256,
)

ADDRESS = "0x" + "ab" * 20


class RegistryEntry:
    def __init__(self, address: str) -> None:
        self.address = address


def test_address_like_values_resolve_to_checksum():
    expected = to_checksum_address(ADDRESS)
    assert to_checksum_address(None) == NULL_ADDRESS
    assert to_checksum_address(ADDRESS.upper().replace("0X", "0x")) == expected
    assert to_checksum_address(bytes.fromhex("ab" * 20)) == expected
    assert to_checksum_address("0x" + "00" * 12 + "ab" * 20) == expected
    assert to_checksum_address(RegistryEntry(ADDRESS)) == expected


@pytest.mark.parametrize("value", ["0x1234", "0x" + "11" * 32, 42, b"\x01"])
def test_invalid_addresses_are_rejected(value):
    with pytest.raises(InvalidAddress):
        to_checksum_address(value)


def test_uint256_coercion():
    assert to_uint256("0x10") == 16
    assert to_uint256("42") == 42
    assert to_uint256(7) == 7
    for bad in (-1, 2**256, "abc", True, 1.5):
        with pytest.raises(InvalidOrderField):
            to_uint256(bad)


def test_parse_price_units():
    assert parse_price("5 RLC") == 5_000_000_000
    assert parse_price("100 nRLC") == 100
    assert parse_price("42") == 42
    assert parse_price(3) == 3
    with pytest.raises(InvalidOrderField):
        parse_price("1 ETH")
    with pytest.raises(InvalidOrderField):
        parse_price("-1")


def test_bytes32_helpers():
    salt = random_salt()
    assert is_bytes32(salt)
    assert salt != random_salt()
    assert to_bytes32_hex(b"\xff" * 32) == "0x" + "ff" * 32
    assert to_bytes32_hex("0x" + "AB" * 32) == "0x" + "ab" * 32
    assert not is_bytes32("0x1234")
    with pytest.raises(ValueError):
        to_bytes32_hex("0x1234")
