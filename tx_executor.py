import logging
import random
import time

from web3 import Web3

from console import SUCCESS
from failures import AttemptOutcome, classify

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
GAS_PRICE_NUDGE = (1, 100)
RATE_LIMIT_BACKOFF = (60, 120)
FAILOVER_PAUSE_SECONDS = 2


class TransactionExecutor:
    """Submits write transactions with retry, RPC failover and abort.

    ``action(connection, overrides)`` must submit exactly one transaction on
    the given connection and return its hash. ``execute`` turns every
    failure of the fee query, the submission or the receipt wait into a
    ``False`` result.
    """

    def __init__(self, pool, connect, max_attempts=DEFAULT_MAX_ATTEMPTS, sleep=time.sleep, rng=random):
        self.pool = pool
        self._connect = connect
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._rng = rng
        self.connection = connect(pool.current())
        self.last_outcome = None

    def failover(self):
        failed = self.pool.current()
        endpoint = self.pool.advance()
        logger.warning(f"Network issue on RPC {failed}. Switching to {endpoint}...")
        self.connection = self._connect(endpoint)
        return self.connection

    def execute(self, action, label):
        for attempt in range(1, self.max_attempts + 1):
            connection = self.connection
            attempts_left = attempt < self.max_attempts
            try:
                gas_price = connection.w3.eth.gas_price + self._rng.randint(*GAS_PRICE_NUDGE)
                tx_hash = action(connection, {"gasPrice": gas_price})
                logger.info(f"{label} transaction sent. Hash: {Web3.to_hex(tx_hash)}")
                receipt = connection.wait_for_receipt(tx_hash)
            except Exception as e:
                outcome = classify(e)
                self.last_outcome = outcome

                if outcome is AttemptOutcome.RATE_LIMITED:
                    logger.warning(f"Rate limit exceeded on attempt {attempt}/{self.max_attempts} for {label}.")
                    if not attempts_left:
                        logger.critical(f"{label} failed after {self.max_attempts} rate-limited attempts. Aborting.")
                        return False
                    backoff = self._rng.randint(*RATE_LIMIT_BACKOFF)
                    logger.info(f"Waiting {backoff}s before retrying {label}...")
                    self._sleep(backoff)
                    continue

                if outcome is AttemptOutcome.NETWORK_FAILURE:
                    logger.warning(f"{label} attempt {attempt}/{self.max_attempts} hit a network error: {e}")
                    self.failover()
                    if attempts_left:
                        self._sleep(FAILOVER_PAUSE_SECONDS)
                    continue

                logger.error(f"A fatal error occurred during {label}: {e}")
                return False

            self.last_outcome = AttemptOutcome.CONFIRMED
            logger.log(SUCCESS, f"{label} confirmed in block: {receipt['blockNumber']}")
            return True

        logger.error(f"{label} gave up after {self.max_attempts} attempts.")
        return False
