"""Wrap/unwrap pair scheduling.

Two orchestration modes share the executor and precondition checks:

* ``ContinuousCycle`` re-checks the balance before every pair and runs
  until the process is stopped, pacing pairs 5-10 minutes apart.
* ``DailyBatchCycle`` prepares once a day (mint + approve), runs a random
  number of pairs back to back, then sleeps out the rest of the day.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from console import SUCCESS
from helpers import random_delay, random_token_id
from preconditions import approve_max, ensure_allowance, ensure_balance, mint_tokens

logger = logging.getLogger(__name__)

SETUP_FAILURE_DELAY = 60
BALANCE_FAILURE_DELAY = 120
PAIR_FAILURE_DELAY = 60
INTER_TX_DELAY = (10, 30)
INTER_PAIR_DELAY = (300, 600)

DAY_SECONDS = 24 * 60 * 60
DAILY_PAIR_GOAL = (25, 50)
BATCH_INTER_TX_DELAY = (30, 60)
BATCH_INTER_PAIR_DELAY = (10, 20)


class SetupError(RuntimeError):
    """The one-time allowance setup before the pair loop failed."""


def wrap_action(token_id):
    return lambda conn, overrides: conn.transact(conn.wrapper.functions.wrap(token_id), overrides)


def unwrap_action(token_id):
    return lambda conn, overrides: conn.transact(conn.wrapper.functions.unwrap(token_id), overrides)


class State(Enum):
    SETUP = "setup"
    CHECK_BALANCE = "check_balance"
    WRAP = "wrap"
    INTER_DELAY = "inter_delay"
    UNWRAP = "unwrap"
    PAIR_DELAY = "pair_delay"
    FAILURE_DELAY = "failure_delay"
    STOPPED = "stopped"


class ContinuousCycle:
    def __init__(self, executor, settings, sleep=time.sleep, rng=random, clock=time.time, max_pairs=None):
        self.executor = executor
        self.settings = settings
        self._sleep = sleep
        self._rng = rng
        self._clock = clock
        if max_pairs is not None and max_pairs < 1:
            raise ValueError(f"max_pairs must be at least 1, got {max_pairs}.")
        self.max_pairs = max_pairs

        self.state = State.SETUP
        self.successful_pairs = 0
        self.token_id = None
        self.pending_delay = 0

    @property
    def pair_label(self):
        return f"#{self.successful_pairs + 1}"

    def _fail(self, delay):
        self.pending_delay = delay
        return State.FAILURE_DELAY

    def step(self):
        handler = getattr(self, f"_on_{self.state.value}")
        self.state = handler()
        return self.state

    def run(self):
        while self.state is not State.STOPPED:
            self.step()
        return self.successful_pairs

    def _on_setup(self):
        logger.info("--- Initial Setup ---")
        if not ensure_allowance(self.executor, self.settings.sufficient_allowance):
            logger.critical(
                f"Initial approval failed. Please check RPC and wallet. Exiting in {SETUP_FAILURE_DELAY}s."
            )
            self._sleep(SETUP_FAILURE_DELAY)
            raise SetupError("Initial allowance setup failed.")
        logger.info("--- Setup Complete ---")
        return State.CHECK_BALANCE

    def _on_check_balance(self):
        started = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        logger.info(f"Starting transaction pair {self.pair_label} at {started:%Y-%m-%d %H:%M:%S} UTC")
        if not ensure_balance(self.executor, self.settings.mint_amount):
            logger.warning(f"Minting check or action failed. Retrying after {BALANCE_FAILURE_DELAY}s.")
            return self._fail(BALANCE_FAILURE_DELAY)
        return State.WRAP

    def _on_wrap(self):
        self.token_id = random_token_id(rng=self._rng, now=self._clock)
        logger.info(f"----- Executing pair for Token ID: {self.token_id} -----")
        if not self.executor.execute(wrap_action(self.token_id), f"Wrap {self.pair_label}"):
            logger.error(f"Wrap transaction failed. Waiting {PAIR_FAILURE_DELAY}s before starting a new pair.")
            return self._fail(PAIR_FAILURE_DELAY)
        return State.INTER_DELAY

    def _on_inter_delay(self):
        delay = random_delay(*INTER_TX_DELAY, rng=self._rng)
        logger.info(f"Wrap successful. Waiting {delay}s before unwrapping.")
        self._sleep(delay)
        return State.UNWRAP

    def _on_unwrap(self):
        ok = self.executor.execute(unwrap_action(self.token_id), f"Unwrap {self.pair_label}")
        self.token_id = None
        if not ok:
            logger.error(f"Unwrap transaction failed. Waiting {PAIR_FAILURE_DELAY}s before starting a new pair.")
            return self._fail(PAIR_FAILURE_DELAY)
        self.successful_pairs += 1
        logger.log(SUCCESS, f"Completed transaction pair #{self.successful_pairs}.")
        return State.PAIR_DELAY

    def _on_pair_delay(self):
        if self.max_pairs is not None and self.successful_pairs >= self.max_pairs:
            logger.info(f"Reached {self.max_pairs} pairs, stopping.")
            return State.STOPPED
        delay = random_delay(*INTER_PAIR_DELAY, rng=self._rng)
        logger.info(f"Waiting for {delay / 60:.2f} minutes until the next pair.")
        self._sleep(delay)
        return State.CHECK_BALANCE

    def _on_failure_delay(self):
        self._sleep(self.pending_delay)
        self.pending_delay = 0
        return State.CHECK_BALANCE

    def _on_stopped(self):
        return State.STOPPED


@dataclass
class DaySummary:
    goal: int
    daily_pairs: int = 0
    daily_tx: int = 0
    prepared: bool = False


class DailyBatchCycle:
    def __init__(self, executor, settings, sleep=time.sleep, rng=random, clock=time.time, period=DAY_SECONDS):
        self.executor = executor
        self.settings = settings
        self._sleep = sleep
        self._rng = rng
        self._clock = clock
        self.period = period
        self.days_run = 0

    def _prepare(self, summary):
        if not mint_tokens(self.executor, self.settings.mint_amount):
            return False
        summary.daily_tx += 1
        if not approve_max(self.executor):
            return False
        summary.daily_tx += 1
        return True

    def _run_pair(self, summary, number):
        token_id = random_token_id(rng=self._rng, now=self._clock)
        label = f"{number}/{summary.goal}"
        logger.info(f"----- Pair {label}, Token ID: {token_id} -----")

        if not self.executor.execute(wrap_action(token_id), f"Wrap {label}"):
            logger.error(f"Wrap {label} failed, skipping this pair.")
            return False
        summary.daily_tx += 1
        self._sleep(random_delay(*BATCH_INTER_TX_DELAY, rng=self._rng))

        if not self.executor.execute(unwrap_action(token_id), f"Unwrap {label}"):
            logger.error(f"Unwrap {label} failed, skipping this pair.")
            return False
        summary.daily_tx += 1
        summary.daily_pairs += 1
        return True

    def run_day(self):
        summary = DaySummary(goal=random_delay(*DAILY_PAIR_GOAL, rng=self._rng))
        logger.info(f"Starting daily cycle with a goal of {summary.goal} pairs.")

        summary.prepared = self._prepare(summary)
        if not summary.prepared:
            logger.error("Daily preparation (mint + approve) failed. Skipping today's pairs.")
            return summary

        for number in range(1, summary.goal + 1):
            self._run_pair(summary, number)
            self._sleep(random_delay(*BATCH_INTER_PAIR_DELAY, rng=self._rng))

        logger.log(
            SUCCESS,
            f"Daily cycle done: {summary.daily_pairs}/{summary.goal} pairs, {summary.daily_tx} transactions.",
        )
        return summary

    def run(self, max_days=None):
        while max_days is None or self.days_run < max_days:
            started = self._clock()
            self.run_day()
            self.days_run += 1
            remaining = max(0, self.period - (self._clock() - started))
            if max_days is not None and self.days_run >= max_days:
                break
            logger.info(f"Sleeping {remaining / 3600:.2f} hours until the next daily cycle.")
            self._sleep(remaining)
        return self.days_run
