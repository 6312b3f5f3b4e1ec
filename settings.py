import logging
import os
from dataclasses import dataclass
from pathlib import Path

from web3 import Web3

DEFAULT_RPC_URLS = (
    "https://sepolia.base.org",
    "https://base-sepolia.drpc.org",
    "https://base-sepolia.therpc.io",
)
DEFAULT_TOKEN_CONTRACT_ADDRESS = "0xAF33ADd7918F685B2A82C1077bd8c07d220FFA04"
DEFAULT_WRAPPER_CONTRACT_ADDRESS = "0xA449bc031fA0b815cA14fAFD0c5EdB75ccD9c80f"

ABI_DIR = Path(__file__).resolve().parent / "abi"

RUN_MODES = ("continuous", "batch")

# Amount to mint when the balance is empty, and the allowance below which
# the wrapper gets re-approved.
MINT_AMOUNT = Web3.to_wei(100, "ether")
SUFFICIENT_ALLOWANCE = Web3.to_wei(1_000_000, "ether")
MAX_UINT256 = 2**256 - 1


class ConfigError(RuntimeError):
    """Process configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    private_key: str
    rpc_urls: tuple
    token_address: str
    wrapper_address: str
    run_mode: str = "continuous"
    max_attempts: int = 5
    log_level: str = "INFO"
    mint_amount: int = MINT_AMOUNT
    sufficient_allowance: int = SUFFICIENT_ALLOWANCE
    abi_dir: Path = ABI_DIR


def _checksum(name, value):
    try:
        return Web3.to_checksum_address(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {name}: {value!r} ({e})") from e


def load_settings(environ=None):
    env = os.environ if environ is None else environ

    private_key = (env.get("PRIVATE_KEY") or "").strip()
    if not private_key:
        raise ConfigError("Missing PRIVATE_KEY in environment variables.")

    raw_urls = env.get("RPC_URLS")
    if raw_urls is None:
        rpc_urls = DEFAULT_RPC_URLS
    else:
        rpc_urls = tuple(url.strip() for url in raw_urls.split(",") if url.strip())
    if not rpc_urls:
        raise ConfigError("RPC_URLS is set but contains no endpoints.")

    run_mode = (env.get("RUN_MODE") or "continuous").strip().lower()
    if run_mode not in RUN_MODES:
        raise ConfigError(f"Unknown RUN_MODE {run_mode!r}, expected one of {', '.join(RUN_MODES)}.")

    raw_attempts = env.get("MAX_ATTEMPTS") or "5"
    try:
        max_attempts = int(raw_attempts)
    except ValueError as e:
        raise ConfigError(f"MAX_ATTEMPTS must be an integer, got {raw_attempts!r}.") from e
    if max_attempts < 1:
        raise ConfigError("MAX_ATTEMPTS must be at least 1.")

    log_level = (env.get("LOG_LEVEL") or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown LOG_LEVEL {log_level!r}.")

    return Settings(
        private_key=private_key,
        rpc_urls=rpc_urls,
        token_address=_checksum(
            "TOKEN_CONTRACT_ADDRESS",
            env.get("TOKEN_CONTRACT_ADDRESS") or DEFAULT_TOKEN_CONTRACT_ADDRESS,
        ),
        wrapper_address=_checksum(
            "WRAPPER_CONTRACT_ADDRESS",
            env.get("WRAPPER_CONTRACT_ADDRESS") or DEFAULT_WRAPPER_CONTRACT_ADDRESS,
        ),
        run_mode=run_mode,
        max_attempts=max_attempts,
        log_level=log_level,
        abi_dir=Path(env["ABI_DIR"]) if env.get("ABI_DIR") else ABI_DIR,
    )
