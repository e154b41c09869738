import asyncio

import pytest

from conftest import APP, DEAL_ID, HUB, OWNER, REQUESTER, raw_deal, raw_task
from poco_match.chain import HUB_ABI, OWNABLE_ABI, Web3ChainReader
from poco_match.errors import ChainReadError
from poco_match.ethtypes import to_checksum_address
from poco_match.identifiers import compute_task_id


class FakeCall:
    def __init__(self, result):
        self._result = result

    def call(self):
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class FakeFunctions:
    def __init__(self, handlers):
        self._handlers = handlers

    def __getattr__(self, name):
        handler = self._handlers[name]
        return lambda *args: FakeCall(handler(*args))


class FakeContract:
    def __init__(self, handlers):
        self.functions = FakeFunctions(handlers)


class FakeChain:
    def __init__(self):
        self.consumed = {}
        self.calls = []
        self.tasks = {}

    def factory(self, address, abi):
        if abi is HUB_ABI:
            return FakeContract(
                {
                    "viewConsumed": self._view_consumed,
                    "viewAccount": lambda user: (100, 5),
                    "viewDeal": lambda key: raw_deal(),
                    "viewTask": self._view_task,
                    "viewCategory": lambda index: ("CPU", "{}", 300),
                    "countCategory": lambda: 5,
                }
            )
        assert abi is OWNABLE_ABI
        return FakeContract({"owner": lambda: OWNER})

    def _view_consumed(self, key):
        self.calls.append(key)
        return self.consumed.get(key, 0)

    def _view_task(self, key):
        if key not in self.tasks:
            return RuntimeError("execution reverted")
        return self.tasks[key]


def _reader(chain: FakeChain) -> Web3ChainReader:
    return Web3ChainReader(chain.factory, HUB, chain_id=134)


def test_domain_uses_hub_address():
    domain = asyncio.run(_reader(FakeChain()).domain())
    assert domain.verifying_contract == to_checksum_address(HUB)
    assert (domain.name, domain.version, domain.chain_id) == ("iExecODB", "5.0.0", 134)


def test_views_are_projected_into_snapshots():
    chain = FakeChain()
    key = "0x" + "cd" * 32
    chain.consumed[key] = 7
    reader = _reader(chain)

    async def scenario():
        consumed = await reader.view_consumed(key.upper().replace("0X", "0x"))
        account = await reader.view_account(REQUESTER)
        owner = await reader.owner_of(APP)
        deal = await reader.view_deal(DEAL_ID)
        category = await reader.view_category(0)
        count = await reader.count_category()
        return consumed, account, owner, deal, category, count

    consumed, account, owner, deal, category, count = asyncio.run(scenario())
    assert consumed == 7
    assert chain.calls == [key]
    assert (account.stake, account.locked) == (100, 5)
    assert owner == to_checksum_address(OWNER)
    assert deal.id == DEAL_ID
    assert category.hub == to_checksum_address(HUB)
    assert count == 5


def test_view_task_at_derives_task_id():
    chain = FakeChain()
    deal_task_id = compute_task_id(DEAL_ID, 2)
    chain.tasks[deal_task_id] = raw_task()
    task = asyncio.run(_reader(chain).view_task_at(DEAL_ID, 0))
    assert task.id == deal_task_id


def test_failures_are_wrapped():
    reader = _reader(FakeChain())
    with pytest.raises(ChainReadError) as excinfo:
        asyncio.run(reader.view_task("0x" + "00" * 32))
    assert "viewTask" in str(excinfo.value)


class FakeEth:
    def __init__(self, chain: FakeChain, chain_id: int) -> None:
        self.chain_id = chain_id
        self._chain = chain

    def contract(self, address, abi):
        return self._chain.factory(address, abi)


class FakeWeb3:
    chain = FakeChain()
    chain_id = 134

    def __init__(self, provider) -> None:
        self.provider = provider
        self.eth = FakeEth(self.chain, self.chain_id)

    def is_connected(self) -> bool:
        return True


def test_settings_build_reader_through_web3(monkeypatch):
    from poco_match import chain as chain_module
    from poco_match.config import PocoSettings

    monkeypatch.setattr(chain_module, "HTTPProvider", lambda url, request_kwargs=None: (url, request_kwargs))
    monkeypatch.setattr(chain_module, "Web3", FakeWeb3)
    settings = PocoSettings(rpc_url="http://localhost:8545", chain_id=134, hub_address=HUB)
    reader = settings.chain_reader()
    assert asyncio.run(reader.count_category()) == 5

    mismatched = PocoSettings(rpc_url="http://localhost:8545", chain_id=1, hub_address=HUB)
    with pytest.raises(ChainReadError):
        mismatched.chain_reader()
