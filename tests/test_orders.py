import dataclasses

import pytest

from conftest import APP, OTHER_SALT, PARAMS, REQUESTER, SALT
from poco_match.constants import NULL_ADDRESS, ORDER_VOLUME_INFINITE
from poco_match.errors import InvalidOrderField, InvalidSalt, InvalidTag
from poco_match.orders import (
    AppOrder,
    DatasetOrder,
    RequestOrder,
    WorkerpoolOrder,
    empty_dataset_order,
    new_app_order,
    new_request_order,
    new_workerpool_order,
    order_from_mapping,
)
from poco_match.tags import TAG_TEE, TAG_TEE_GPU


def test_defaults_follow_protocol_rules():
    app = new_app_order(app=APP)
    assert app.volume == ORDER_VOLUME_INFINITE
    assert app.tag == 0
    assert app.datasetrestrict == NULL_ADDRESS
    assert DatasetOrder().volume == ORDER_VOLUME_INFINITE
    assert new_workerpool_order().volume == 1
    assert new_request_order(params=PARAMS).volume == 1


@pytest.mark.parametrize(
    ("order_cls", "table"),
    [
        (
            AppOrder,
            [
                ("app", "address"),
                ("appprice", "uint256"),
                ("volume", "uint256"),
                ("tag", "bytes32"),
                ("datasetrestrict", "address"),
                ("workerpoolrestrict", "address"),
                ("requesterrestrict", "address"),
            ],
        ),
        (
            DatasetOrder,
            [
                ("dataset", "address"),
                ("datasetprice", "uint256"),
                ("volume", "uint256"),
                ("tag", "bytes32"),
                ("apprestrict", "address"),
                ("workerpoolrestrict", "address"),
                ("requesterrestrict", "address"),
            ],
        ),
        (
            WorkerpoolOrder,
            [
                ("workerpool", "address"),
                ("workerpoolprice", "uint256"),
                ("volume", "uint256"),
                ("tag", "bytes32"),
                ("category", "uint256"),
                ("trust", "uint256"),
                ("apprestrict", "address"),
                ("datasetrestrict", "address"),
                ("requesterrestrict", "address"),
            ],
        ),
        (
            RequestOrder,
            [
                ("app", "address"),
                ("appmaxprice", "uint256"),
                ("dataset", "address"),
                ("datasetmaxprice", "uint256"),
                ("workerpool", "address"),
                ("workerpoolmaxprice", "uint256"),
                ("requester", "address"),
                ("volume", "uint256"),
                ("tag", "bytes32"),
                ("category", "uint256"),
                ("trust", "uint256"),
                ("beneficiary", "address"),
                ("callback", "address"),
                ("params", "string"),
            ],
        ),
    ],
)
def test_field_tables_are_fixed(order_cls, table):
    assert list(order_cls.ABI_TYPES) == table
    salted = order_cls.salted_abi_ordered_types()[order_cls.PRIMARY_TYPE]
    assert salted == [{"name": name, "type": abi_type} for name, abi_type in table] + [
        {"name": "salt", "type": "bytes32"}
    ]


def test_orders_are_frozen(app_order):
    with pytest.raises(dataclasses.FrozenInstanceError):
        app_order.appprice = 1  # type: ignore[misc]


def test_canonical_fields_project_tag_and_params(request_order):
    order = dataclasses.replace(request_order, tag=["tee"])
    canonical = order.canonical_fields()
    assert canonical["tag"] == "0x" + "0" * 63 + "1"
    assert canonical["params"] == order.params.canonical_serialize()
    assert order.abi_ordered_values()[-1] == canonical["params"]


def test_field_coercion():
    order = new_app_order(app=APP, appprice="2 RLC", volume="0x0a", tag="tee-gpu")
    assert order.appprice == 2_000_000_000
    assert order.volume == 10
    assert order.tag == TAG_TEE_GPU
    with pytest.raises(InvalidOrderField):
        new_app_order(app="0x1234")
    with pytest.raises(InvalidOrderField):
        new_app_order(volume=-1)
    with pytest.raises(InvalidTag):
        new_app_order(tag=2)
    with pytest.raises(InvalidOrderField):
        new_app_order(unknown=1)


def test_hash_is_deterministic_and_sensitive(domain, app_order):
    digest = app_order.hash(domain, SALT)
    assert digest == app_order.hash(domain, SALT)
    assert len(digest) == 66
    assert dataclasses.replace(app_order, appprice=app_order.appprice + 1).hash(domain, SALT) != digest
    assert app_order.hash(domain, OTHER_SALT) != digest
    assert app_order.hash(dataclasses.replace(domain, chain_id=1), SALT) != digest


def test_equal_canonical_projections_hash_equally(domain):
    a = AppOrder(app=APP, tag=["tee"], appprice="5")
    b = AppOrder(app=APP.upper().replace("0X", "0x"), tag=TAG_TEE, appprice=5)
    assert a.hash(domain, SALT) == b.hash(domain, SALT)


def test_request_hash_depends_on_params(domain, request_order):
    other = dataclasses.replace(
        request_order,
        params={**PARAMS, "iexec_result_storage_proxy": "https://result.example.com/other"},
    )
    assert other.hash(domain, SALT) != request_order.hash(domain, SALT)


@pytest.mark.parametrize("salt", ["0x1234", "11" * 32, None, b"\x00" * 31])
def test_hash_rejects_malformed_salt(domain, app_order, salt):
    with pytest.raises(InvalidSalt):
        app_order.hash(domain, salt)


def test_deal_id_uses_request_hash(domain, request_order):
    from poco_match.identifiers import compute_deal_id

    assert request_order.deal_id(domain, SALT, 3) == compute_deal_id(request_order.hash(domain, SALT), 3)


def test_order_from_mapping_ignores_signature_members():
    order = order_from_mapping(
        "RequestOrder",
        {"requester": REQUESTER, "params": PARAMS, "salt": "0x" + "00" * 32, "sign": "0x"},
    )
    assert isinstance(order, RequestOrder)
    assert order.requester.lower() == REQUESTER
    with pytest.raises(ValueError):
        order_from_mapping("banana", {})


def test_to_dict_is_json_friendly(workerpool_order):
    data = dataclasses.replace(workerpool_order, tag=TAG_TEE).to_dict()
    assert data["tag"] == ["tee"]
    assert data["workerpoolprice"] == "10"
    assert data["category"] == "2"


def test_empty_dataset_order():
    empty = empty_dataset_order()
    assert empty.dataset == NULL_ADDRESS
    assert empty.datasetprice == 0
    assert empty.volume == 0
