import random

import pytest
import requests
from web3.exceptions import ContractLogicError

from conftest import RPC_URLS, FakeConnection, ScriptedAction
from failures import AttemptOutcome, TransactionReverted
from rpc_pool import EndpointPool
from tx_executor import TransactionExecutor


def rate_limited():
    return ValueError({"code": -32029, "message": "rate limit exceeded"})


def network_down():
    return requests.exceptions.ConnectionError("Connection refused")


class TestAttemptBudget:
    @pytest.mark.parametrize("budget", [1, 3, 5])
    def test_rate_limited_every_time_retries_exactly_budget_times(self, make_executor, sleeper, budget):
        executor = make_executor(max_attempts=budget)
        action = ScriptedAction(*[rate_limited() for _ in range(budget + 2)])

        assert executor.execute(action, "Wrap #1") is False
        assert len(action.calls) == budget
        # Backoff only between attempts, never after the last one.
        assert len(sleeper.calls) == budget - 1
        assert all(60 <= s <= 120 for s in sleeper.calls)
        assert executor.last_outcome is AttemptOutcome.RATE_LIMITED

    def test_fatal_error_aborts_on_first_attempt(self, make_executor, sleeper):
        executor = make_executor()
        action = ScriptedAction(ContractLogicError("execution reverted"))

        assert executor.execute(action, "Wrap #1") is False
        assert len(action.calls) == 1
        assert sleeper.calls == []
        assert executor.pool.index == 0

    @pytest.mark.parametrize("k", [1, 2, 5])
    def test_success_on_attempt_k_stops_retrying(self, make_executor, k):
        executor = make_executor(max_attempts=5)
        action = ScriptedAction(*[rate_limited() for _ in range(k - 1)])

        assert executor.execute(action, "Unwrap #1") is True
        assert len(action.calls) == k
        assert executor.last_outcome is AttemptOutcome.CONFIRMED

    def test_reverted_receipt_is_fatal(self, make_executor):
        executor = make_executor()
        conn = executor.connection

        def revert(tx_hash):
            raise TransactionReverted("0xab", 7)

        conn.wait_for_receipt = revert
        action = ScriptedAction()

        assert executor.execute(action, "Mint") is False
        assert len(action.calls) == 1


class TestFailover:
    def test_network_failure_advances_pool_once_per_attempt(self, make_executor, sleeper):
        executor = make_executor()
        action = ScriptedAction(network_down(), network_down())

        assert executor.execute(action, "Wrap #1") is True
        assert executor.pool.index == 2
        assert [endpoint for endpoint, _ in action.calls] == [
            "https://rpc-a.example",
            "https://rpc-b.example",
            "https://rpc-c.example",
        ]
        assert sleeper.calls == [2, 2]

    def test_failover_replaces_connection_instead_of_mutating(self, make_executor):
        executor = make_executor()
        first = executor.connection
        executor.execute(ScriptedAction(network_down()), "Approve")

        assert executor.connection is not first
        assert first.endpoint == "https://rpc-a.example"
        assert executor.connection.endpoint == "https://rpc-b.example"
        assert len(executor.connections) == 2

    def test_pool_wraps_to_zero_after_last_endpoint(self, make_executor):
        executor = make_executor(max_attempts=4)
        action = ScriptedAction(*[network_down() for _ in range(4)])

        assert executor.execute(action, "Wrap #1") is False
        assert len(action.calls) == 4
        # Three endpoints, four failovers: a -> b -> c -> a -> b
        assert executor.pool.index == 1

    def test_all_endpoints_down_consumes_full_budget(self, make_executor, sleeper):
        executor = make_executor(max_attempts=5)
        action = ScriptedAction(*[network_down() for _ in range(5)])

        assert executor.execute(action, "Wrap #1") is False
        assert len(action.calls) == 5
        assert sleeper.calls == [2, 2, 2, 2]
        assert executor.last_outcome is AttemptOutcome.NETWORK_FAILURE

    def test_failover_state_is_shared_by_later_calls(self, make_executor):
        executor = make_executor()
        executor.execute(ScriptedAction(network_down()), "Wrap #1")

        later = ScriptedAction()
        assert executor.execute(later, "Unwrap #1") is True
        assert later.calls[0][0] == "https://rpc-b.example"


def test_gas_price_is_nudged_up_by_1_to_100(make_executor):
    executor = make_executor(gas_price=5_000)
    action = ScriptedAction(rate_limited(), rate_limited(), None)

    executor.execute(action, "Mint")

    for _, overrides in action.calls:
        assert 5_001 <= overrides["gasPrice"] <= 5_100


def test_fee_query_failure_is_classified_too(make_executor):
    executor = make_executor()

    class BrokenEth:
        @property
        def gas_price(self):
            raise requests.exceptions.ConnectionError("Max retries exceeded")

    executor.connection.w3.eth = BrokenEth()
    action = ScriptedAction()

    assert executor.execute(action, "Wrap #1") is True
    assert executor.pool.index == 1
    assert len(action.calls) == 1


def test_error_while_reconnecting_escapes_execute(sleeper):
    built = []

    def connect(endpoint):
        if built:
            raise ValueError(f"cannot build provider for {endpoint}")
        built.append(endpoint)
        return FakeConnection(endpoint)

    executor = TransactionExecutor(EndpointPool(RPC_URLS), connect, sleep=sleeper, rng=random.Random(1))
    action = ScriptedAction(network_down())

    with pytest.raises(ValueError, match="cannot build provider"):
        executor.execute(action, "Wrap #1")
    assert executor.pool.index == 1
    assert len(action.calls) == 1


def test_receipt_poll_error_resubmits_the_action(make_executor):
    executor = make_executor()
    first = executor.connection

    def lost_connection(tx_hash):
        raise requests.exceptions.ConnectionError("Connection aborted")

    first.wait_for_receipt = lost_connection
    action = ScriptedAction()

    assert executor.execute(action, "Wrap #1") is True
    # The first broadcast is not tracked after the failover; the call is sent again.
    assert [endpoint for endpoint, _ in action.calls] == [RPC_URLS[0], RPC_URLS[1]]
