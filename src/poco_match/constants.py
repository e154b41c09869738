"""Protocol constants shared by the order, matching and identifier modules."""

from __future__ import annotations

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"
NULL_BYTES32 = "0x" + "00" * 32
# Placeholder returned when an order is "signed" without a signer.
NULL_SIGNATURE = "0x" + "00" * 65

UINT256_MAX = 2**256 - 1

# Default volume for app and dataset orders when none is provided.
ORDER_VOLUME_INFINITE = 1_000_000

# Percentage of the workerpool price the scheduler locks per task.
WORKERPOOL_STAKE_RATIO = 30

RLC_DECIMALS = 9

DEFAULT_DOMAIN_NAME = "iExecODB"
DEFAULT_DOMAIN_VERSION = "5.0.0"

__all__ = [
    "NULL_ADDRESS",
    "NULL_BYTES32",
    "NULL_SIGNATURE",
    "UINT256_MAX",
    "ORDER_VOLUME_INFINITE",
    "WORKERPOOL_STAKE_RATIO",
    "RLC_DECIMALS",
    "DEFAULT_DOMAIN_NAME",
    "DEFAULT_DOMAIN_VERSION",
]
