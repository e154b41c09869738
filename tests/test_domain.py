import dataclasses

import pytest

from conftest import HUB
from poco_match.domain import EIP712Domain
from poco_match.errors import InvalidAddress
from poco_match.ethtypes import to_checksum_address


def test_domain_normalises_values():
    domain = EIP712Domain("iExecODB", "5.0.0", "0x86", HUB)
    assert domain.chain_id == 134
    assert domain.verifying_contract == to_checksum_address(HUB)
    assert domain.as_typed_data() == {
        "name": "iExecODB",
        "version": "5.0.0",
        "chainId": 134,
        "verifyingContract": to_checksum_address(HUB),
    }


def test_domain_is_frozen(domain):
    with pytest.raises(dataclasses.FrozenInstanceError):
        domain.chain_id = 1  # type: ignore[misc]


def test_domain_from_mapping_accepts_both_spellings():
    a = EIP712Domain.from_mapping({"name": "n", "version": "v", "chainId": 1, "verifyingContract": HUB})
    b = EIP712Domain.from_mapping({"name": "n", "version": "v", "chain_id": 1, "verifying_contract": HUB})
    assert a == b


def test_domain_rejects_bad_contract():
    with pytest.raises(InvalidAddress):
        EIP712Domain("iExecODB", "5.0.0", 134, "0x1234")
