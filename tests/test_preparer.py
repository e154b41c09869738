import asyncio
import dataclasses

import pytest

from conftest import HUB, SALT
from poco_match.constants import NULL_ADDRESS, NULL_BYTES32, NULL_SIGNATURE
from poco_match.domain import EIP712Domain
from poco_match.errors import ChainReadError, MatchRejected, SignerMismatch
from poco_match.ethtypes import to_checksum_address
from poco_match.identifiers import compute_deal_id
from poco_match.matching import RejectionKind
from poco_match.orders import AppOrder, DatasetOrder, RequestOrder, WorkerpoolOrder
from poco_match import MatchPreparer, SignedOrder
from poco_match.signers import LocalAccountSigner
from poco_match.snapshots import Account

PARAMS = {"iexec_result_storage_provider": "ipfs", "iexec_result_storage_proxy": "https://result.example.com"}

APP = "0x" + "a1" * 20
DATASET = "0x" + "d1" * 20
WORKERPOOL = "0x" + "e1" * 20


class FakeReader:
    def __init__(self, owners, stakes=None, consumed=None, fail=False):
        self.owners = {to_checksum_address(k): to_checksum_address(v) for k, v in owners.items()}
        self.stakes = {to_checksum_address(k): v for k, v in (stakes or {}).items()}
        self.consumed = consumed or {}
        self.fail = fail

    async def domain(self):
        return EIP712Domain("iExecODB", "5.0.0", 134, HUB)

    async def view_consumed(self, order_hash):
        await asyncio.sleep(0)
        if self.fail:
            raise ChainReadError("viewConsumed failed: node unavailable")
        return self.consumed.get(order_hash, 0)

    async def view_account(self, address):
        await asyncio.sleep(0)
        address = to_checksum_address(address)
        return Account(address=address, stake=self.stakes.get(address, 10**18), locked=0)

    async def owner_of(self, resource):
        await asyncio.sleep(0)
        return self.owners[to_checksum_address(resource)]


@pytest.fixture
def accounts():
    return {role: LocalAccountSigner.create() for role in ("app", "dataset", "workerpool", "requester")}


def _orders(accounts, *, with_dataset=True):
    requester = accounts["requester"].address
    app = SignedOrder(AppOrder(app=APP, appprice=2), SALT, accounts["app"])
    workerpool = SignedOrder(
        WorkerpoolOrder(workerpool=WORKERPOOL, workerpoolprice=10, volume=3),
        "0x" + "33" * 32,
        accounts["workerpool"],
    )
    request = SignedOrder(
        RequestOrder(
            app=APP,
            appmaxprice=2,
            dataset=DATASET if with_dataset else NULL_ADDRESS,
            datasetmaxprice=1,
            workerpoolmaxprice=10,
            requester=requester,
            volume=2,
            params=PARAMS,
        ),
        "0x" + "44" * 32,
        accounts["requester"],
    )
    dataset = SignedOrder(DatasetOrder(dataset=DATASET, datasetprice=1), "0x" + "55" * 32, accounts["dataset"])
    return {"app": app, "workerpool": workerpool, "request": request, "dataset": dataset if with_dataset else None}


def _reader(accounts, **kwargs):
    owners = {
        APP: accounts["app"].address,
        DATASET: accounts["dataset"].address,
        WORKERPOOL: accounts["workerpool"].address,
    }
    return FakeReader(owners, **kwargs)


def test_prepare_builds_signed_arguments(accounts):
    orders = _orders(accounts)
    domain = EIP712Domain("iExecODB", "5.0.0", 134, HUB)
    request_hash = orders["request"].order.hash(domain, orders["request"].salt)
    reader = _reader(accounts, consumed={request_hash: 1})

    prepared = asyncio.run(MatchPreparer(reader).prepare(**orders))

    assert prepared.result.matched_volume == 1
    assert prepared.result.requester_lock == 13
    assert prepared.result.workerpool_lock == 3
    assert prepared.deal_id == compute_deal_id(request_hash, 1)
    assert prepared.order_hashes["request"] == request_hash
    app_args, dataset_args, workerpool_args, request_args = prepared.match_orders_arguments()
    assert app_args[-2] == SALT
    app_order = orders["app"].order
    assert app_order.verify(domain, SALT, signature=app_args[-1], signer_address=accounts["app"].address)
    assert dataset_args[0] == to_checksum_address(DATASET)
    assert request_args[-3] == orders["request"].order.params.canonical_serialize()


def test_prepare_without_dataset_uses_empty_order(accounts):
    orders = _orders(accounts, with_dataset=False)
    prepared = asyncio.run(MatchPreparer(_reader(accounts)).prepare(**orders))
    assert prepared.dataset_arguments[0] == NULL_ADDRESS
    assert prepared.dataset_arguments[-2:] == [NULL_BYTES32, NULL_SIGNATURE]
    assert "dataset" not in prepared.order_hashes
    assert prepared.result.requester_lock == 12 * 2


def test_prepare_rejects_foreign_signer(accounts):
    orders = _orders(accounts)
    orders["app"] = dataclasses.replace(orders["app"], signer=LocalAccountSigner.create())
    with pytest.raises(SignerMismatch) as excinfo:
        asyncio.run(MatchPreparer(_reader(accounts)).prepare(**orders))
    assert excinfo.value.role == "app"


def test_prepare_rejects_requester_mismatch(accounts):
    orders = _orders(accounts)
    orders["request"] = dataclasses.replace(orders["request"], signer=accounts["app"])
    with pytest.raises(SignerMismatch) as excinfo:
        asyncio.run(MatchPreparer(_reader(accounts)).prepare(**orders))
    assert excinfo.value.role == "requester"


def test_prepare_raises_on_rejection(accounts):
    orders = _orders(accounts)
    reader = _reader(accounts, stakes={accounts["requester"].address: 0})
    with pytest.raises(MatchRejected) as excinfo:
        asyncio.run(MatchPreparer(reader).prepare(**orders))
    assert excinfo.value.kind is RejectionKind.INSUFFICIENT_REQUESTER_STAKE


def test_prepare_uses_configured_stake_ratio(accounts):
    orders = _orders(accounts)
    reader = _reader(accounts, stakes={accounts["workerpool"].address: 9})
    with pytest.raises(MatchRejected):
        asyncio.run(MatchPreparer(reader, stake_ratio=50).prepare(**orders))
    prepared = asyncio.run(MatchPreparer(reader, stake_ratio=40).prepare(**orders))
    assert prepared.result.workerpool_lock == 8


def test_prepare_surfaces_chain_errors(accounts):
    with pytest.raises(ChainReadError):
        asyncio.run(MatchPreparer(_reader(accounts, fail=True)).prepare(**_orders(accounts)))


def test_stake_ratio_bounds():
    with pytest.raises(ValueError):
        MatchPreparer(FakeReader({}), stake_ratio=-1)
