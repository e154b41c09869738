import json

import pytest

from poco_match.constants import NULL_ADDRESS
from poco_match.domain import EIP712Domain
from poco_match.orders import AppOrder, DatasetOrder, RequestOrder, WorkerpoolOrder
from poco_match.signers import LocalAccountSigner
from poco_match.tags import TAG_TEE_HEX

HUB = "0x3eca1b216a7df1c7689aeb259ffb83adfb894e7f"
APP = "0x" + "a1" * 20
DATASET = "0x" + "d1" * 20
WORKERPOOL = "0x" + "e1" * 20
REQUESTER = "0x" + "b1" * 20
OWNER = "0x" + "0c" * 20

SALT = "0x" + "11" * 32
OTHER_SALT = "0x" + "22" * 32
DEAL_ID = "0x" + "de" * 32
TASK_ID = "0x" + "7a" * 32

PARAMS = {
    "iexec_result_storage_provider": "ipfs",
    "iexec_result_storage_proxy": "https://result.example.com/",
}
PARAMS_JSON = '{"iexec_result_storage_provider":"ipfs","iexec_result_storage_proxy":"https://result.example.com"}'


@pytest.fixture
def domain() -> EIP712Domain:
    return EIP712Domain("iExecODB", "5.0.0", 134, HUB)


@pytest.fixture
def signer() -> LocalAccountSigner:
    return LocalAccountSigner.create()


@pytest.fixture
def app_order() -> AppOrder:
    return AppOrder(app=APP, appprice=5, volume=100)


@pytest.fixture
def dataset_order() -> DatasetOrder:
    return DatasetOrder(dataset=DATASET, datasetprice=3, volume=50)


@pytest.fixture
def workerpool_order() -> WorkerpoolOrder:
    return WorkerpoolOrder(workerpool=WORKERPOOL, workerpoolprice=10, volume=10, category=2, trust=3)


@pytest.fixture
def request_order() -> RequestOrder:
    return RequestOrder(
        app=APP,
        appmaxprice=5,
        dataset=DATASET,
        datasetmaxprice=3,
        workerpoolmaxprice=10,
        requester=REQUESTER,
        volume=4,
        category=2,
        trust=1,
        params=PARAMS,
    )


def raw_deal(**overrides):
    """Deal struct as returned by ``viewDeal`` (mixed tuple / mapping members)."""

    deal = {
        "app": (APP, OWNER, 5),
        "dataset": (DATASET, OWNER, 3),
        "workerpool": {"pointer": WORKERPOOL, "owner": OWNER, "price": 10},
        "trust": 1,
        "category": 2,
        "tag": bytes.fromhex(TAG_TEE_HEX[2:]),
        "requester": REQUESTER,
        "beneficiary": REQUESTER,
        "callback": NULL_ADDRESS,
        "params": PARAMS_JSON,
        "startTime": 1_700_000_000,
        "botFirst": 2,
        "botSize": 3,
        "workerStake": 7,
        "schedulerRewardRatio": 1,
    }
    deal.update(overrides)
    return deal


def raw_task(**overrides):
    task = {
        "status": 3,
        "dealid": bytes.fromhex(DEAL_ID[2:]),
        "idx": 2,
        "timeref": 300,
        "contributionDeadline": 10,
        "revealDeadline": 20,
        "finalDeadline": 30,
        "consensusValue": b"\x00" * 32,
        "revealCounter": 1,
        "winnerCounter": 1,
        "contributors": [WORKERPOOL],
        "resultDigest": b"\x00" * 32,
        "results": json.dumps({"storage": "ipfs", "location": "/ipfs/QmResult"}).encode(),
        "resultsTimestamp": 40,
        "resultsCallback": b"",
    }
    task.update(overrides)
    return task
