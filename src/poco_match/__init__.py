"""Off-chain mirror of PoCo order matching.

This package builds, hashes, signs and verifies the four order kinds
(:class:`~poco_match.orders.AppOrder`, :class:`~poco_match.orders.DatasetOrder`,
:class:`~poco_match.orders.WorkerpoolOrder`, :class:`~poco_match.orders.RequestOrder`),
pre-validates matches with :func:`~poco_match.matching.check_match` and derives
the deal and task identifiers produced by the hub.
"""

from .domain import EIP712Domain
from .errors import (
    ChainReadError,
    InvalidRequestParams,
    InvalidSalt,
    InvalidTag,
    MatchRejected,
    OutOfBoundsTaskIndex,
    PocoError,
    PocoValidationError,
    SignerMismatch,
)
from .identifiers import compute_deal_id, compute_task_id, task_id_at
from .matching import ConsumedVolumes, MatchOutcome, MatchResult, RejectionKind, check_match
from .orders import (
    AppOrder,
    DatasetOrder,
    RequestOrder,
    WorkerpoolOrder,
    empty_dataset_order,
    new_app_order,
    new_dataset_order,
    new_request_order,
    new_workerpool_order,
    order_from_mapping,
)
from .preparer import MatchPreparer, PreparedMatch, SignedOrder
from .request_params import RequestParams
from .signers import LocalAccountSigner, Signer
from .snapshots import Deal, Task, TaskStatus

__all__ = [
    "EIP712Domain",
    "ChainReadError",
    "InvalidRequestParams",
    "InvalidSalt",
    "InvalidTag",
    "MatchRejected",
    "OutOfBoundsTaskIndex",
    "PocoError",
    "PocoValidationError",
    "SignerMismatch",
    "compute_deal_id",
    "compute_task_id",
    "task_id_at",
    "ConsumedVolumes",
    "MatchOutcome",
    "MatchResult",
    "RejectionKind",
    "check_match",
    "AppOrder",
    "DatasetOrder",
    "RequestOrder",
    "WorkerpoolOrder",
    "empty_dataset_order",
    "new_app_order",
    "new_dataset_order",
    "new_request_order",
    "new_workerpool_order",
    "order_from_mapping",
    "MatchPreparer",
    "PreparedMatch",
    "SignedOrder",
    "RequestParams",
    "LocalAccountSigner",
    "Signer",
    "Deal",
    "Task",
    "TaskStatus",
]
