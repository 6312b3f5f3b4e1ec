import json
import logging

from web3 import Web3
from web3.exceptions import TimeExhausted

from failures import TransactionReverted

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 30
RECEIPT_POLL_WINDOW_SECONDS = 120


def load_abi(path):
    with open(path, "r") as f:
        return json.load(f)


class ConnectionContext:
    """Live handles for one RPC endpoint and the signing wallet.

    A context is never mutated after construction. Failover builds a fresh
    one with ``connect`` and the caller swaps it in.
    """

    def __init__(self, endpoint, w3, account, token_contract, wrapper_contract):
        self.endpoint = endpoint
        self.w3 = w3
        self.account = account
        self.token = token_contract
        self.wrapper = wrapper_contract

    @property
    def address(self):
        return self.account.address

    def token_balance(self):
        return self.token.functions.balanceOf(self.address).call()

    def allowance_for_wrapper(self):
        return self.token.functions.allowance(self.address, self.wrapper.address).call()

    def transact(self, contract_function, overrides):
        params = {
            "from": self.address,
            "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            "chainId": self.w3.eth.chain_id,
        }
        params.update(overrides)
        transaction = contract_function.build_transaction(params)
        signed_txn = self.account.sign_transaction(transaction)
        return self.w3.eth.send_raw_transaction(signed_txn.raw_transaction)

    def wait_for_receipt(self, tx_hash, poll_window=RECEIPT_POLL_WINDOW_SECONDS):
        # No overall deadline: a submitted transaction is awaited until it
        # is mined, one poll window at a time. Only TimeExhausted is absorbed
        # here. Any other RPC error while polling reaches the executor, which
        # retries the action and may broadcast the same call a second time
        # under a new nonce while the first is still pending.
        while True:
            try:
                receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=poll_window)
                break
            except TimeExhausted:
                logger.info(f"Still waiting for {Web3.to_hex(tx_hash)} to be mined...")
        if receipt["status"] == 0:
            raise TransactionReverted(Web3.to_hex(tx_hash), receipt["blockNumber"])
        return receipt


def connect(endpoint, private_key, token_address, wrapper_address, token_abi, wrapper_abi):
    logger.info(f"Connecting using RPC: {endpoint}")
    w3 = Web3(Web3.HTTPProvider(endpoint, request_kwargs={"timeout": HTTP_TIMEOUT_SECONDS}))
    account = w3.eth.account.from_key(private_key)
    token_contract = w3.eth.contract(address=token_address, abi=token_abi)
    wrapper_contract = w3.eth.contract(address=wrapper_address, abi=wrapper_abi)
    logger.info(f"Connection ready. Wallet: {account.address}")
    return ConnectionContext(endpoint, w3, account, token_contract, wrapper_contract)


def connector(settings):
    """Bind everything but the endpoint so failover only needs a URL."""
    token_abi = load_abi(settings.abi_dir / "token.json")
    wrapper_abi = load_abi(settings.abi_dir / "wrapper.json")

    def build(endpoint):
        return connect(
            endpoint,
            settings.private_key,
            settings.token_address,
            settings.wrapper_address,
            token_abi,
            wrapper_abi,
        )

    return build
