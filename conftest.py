import random
from types import SimpleNamespace
from unittest import mock

import pytest

from rpc_pool import EndpointPool
from settings import Settings
from tx_executor import TransactionExecutor

WALLET = "0x1111111111111111111111111111111111111111"
TOKEN = "0xAF33ADd7918F685B2A82C1077bd8c07d220FFA04"
WRAPPER = "0xA449bc031fA0b815cA14fAFD0c5EdB75ccD9c80f"
RPC_URLS = ("https://rpc-a.example", "https://rpc-b.example", "https://rpc-c.example")


class FakeConnection:
    """Stands in for ConnectionContext; records every submitted contract call."""

    def __init__(self, endpoint, balance=10**18, allowance=2**256 - 1, gas_price=1_000_000_000):
        self.endpoint = endpoint
        self.address = WALLET
        self.w3 = SimpleNamespace(eth=SimpleNamespace(gas_price=gas_price))
        self.token = mock.MagicMock(name="token")
        self.wrapper = mock.MagicMock(name="wrapper")
        self.wrapper.address = WRAPPER
        self.balance = balance
        self.allowance = allowance
        self.sent = []

    def token_balance(self):
        if isinstance(self.balance, Exception):
            raise self.balance
        return self.balance

    def allowance_for_wrapper(self):
        if isinstance(self.allowance, Exception):
            raise self.allowance
        return self.allowance

    def transact(self, contract_function, overrides):
        self.sent.append((contract_function, overrides))
        return bytes([len(self.sent)]) * 32

    def wait_for_receipt(self, tx_hash):
        return {"status": 1, "blockNumber": 1234}


class ScriptedAction:
    """Transaction action that raises the scripted errors in order, then succeeds."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = []

    def __call__(self, conn, overrides):
        self.calls.append((conn.endpoint, overrides))
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return b"\xab" * 32


class Sleeper:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def make_settings(**overrides):
    values = dict(
        private_key="0x" + "11" * 32,
        rpc_urls=RPC_URLS,
        token_address=TOKEN,
        wrapper_address=WRAPPER,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def sleeper():
    return Sleeper()


@pytest.fixture
def make_executor(sleeper):
    def factory(endpoints=RPC_URLS, max_attempts=5, **conn_kwargs):
        connections = []

        def connect(endpoint):
            conn = FakeConnection(endpoint, **conn_kwargs)
            connections.append(conn)
            return conn

        executor = TransactionExecutor(
            EndpointPool(endpoints),
            connect,
            max_attempts=max_attempts,
            sleep=sleeper,
            rng=random.Random(42),
        )
        executor.connections = connections
        return executor

    return factory
