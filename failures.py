"""Sorting of transaction errors into retry, failover and abort buckets.

The rule table is plain data: supporting a new RPC provider's error
format means adding a code, status or substring to ``FAILURE_RULES``.
"""

from dataclasses import dataclass
from enum import Enum

import requests
from web3.exceptions import Web3RPCError


class AttemptOutcome(Enum):
    CONFIRMED = "confirmed"
    RATE_LIMITED = "rate_limited"
    NETWORK_FAILURE = "network_failure"
    FATAL_ERROR = "fatal_error"


class TransactionReverted(Exception):
    """A mined transaction came back with status 0."""

    def __init__(self, tx_hash, block_number=None):
        self.tx_hash = tx_hash
        self.block_number = block_number
        super().__init__(f"Transaction {tx_hash} reverted in block {block_number}.")


@dataclass(frozen=True)
class FailureRule:
    outcome: AttemptOutcome
    rpc_codes: frozenset = frozenset()
    http_statuses: frozenset = frozenset()
    exc_types: tuple = ()
    substrings: tuple = ()

    def matches(self, exc, rpc_code, http_status, message):
        if rpc_code is not None and rpc_code in self.rpc_codes:
            return True
        if http_status is not None and http_status in self.http_statuses:
            return True
        if self.exc_types and isinstance(exc, self.exc_types):
            return True
        return any(s in message for s in self.substrings)


FAILURE_RULES = (
    FailureRule(
        AttemptOutcome.RATE_LIMITED,
        rpc_codes=frozenset({-32029, -32005}),
        http_statuses=frozenset({429}),
        substrings=("rate limit exceeded", "too many requests"),
    ),
    FailureRule(
        AttemptOutcome.NETWORK_FAILURE,
        http_statuses=frozenset({500, 502, 503, 504}),
        exc_types=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
        substrings=(
            "failed to detect network",
            "connection refused",
            "connection aborted",
            "max retries exceeded",
            "read timed out",
        ),
    ),
)


def rpc_error_code(exc):
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict):
        error = response.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), int):
            return error["code"]
    if exc.args and isinstance(exc.args[0], dict):
        code = exc.args[0].get("code")
        if isinstance(code, int):
            return code
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def http_status_code(exc):
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def error_message(exc):
    if isinstance(exc, Web3RPCError) and isinstance(exc.rpc_response, dict):
        error = exc.rpc_response.get("error")
        if isinstance(error, dict) and error.get("message"):
            return f"{exc} {error['message']}".lower()
    if exc.args and isinstance(exc.args[0], dict):
        return str(exc.args[0].get("message", exc)).lower()
    return str(exc).lower()


def classify(exc, rules=FAILURE_RULES):
    rpc_code = rpc_error_code(exc)
    http_status = http_status_code(exc)
    message = error_message(exc)
    for rule in rules:
        if rule.matches(exc, rpc_code, http_status, message):
            return rule.outcome
    return AttemptOutcome.FATAL_ERROR
