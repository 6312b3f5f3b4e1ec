import logging

from web3 import Web3

from settings import MAX_UINT256

logger = logging.getLogger(__name__)


def mint_tokens(executor, amount, label="Mint"):
    return executor.execute(
        lambda conn, overrides: conn.transact(conn.token.functions.mint(conn.address, amount), overrides),
        label,
    )


def approve_max(executor, label="Approve"):
    return executor.execute(
        lambda conn, overrides: conn.transact(
            conn.token.functions.approve(conn.wrapper.address, MAX_UINT256), overrides
        ),
        label,
    )


def ensure_balance(executor, mint_amount):
    """Mint ``mint_amount`` tokens when the wallet balance is exactly zero."""
    logger.info("Checking token balance...")
    try:
        balance = executor.connection.token_balance()
    except Exception as e:
        logger.error(f"Failed to check token balance: {e}")
        return False

    logger.info(f"Current balance: {Web3.from_wei(balance, 'ether')} tokens.")
    if balance == 0:
        logger.info("Balance is empty. Minting new tokens...")
        return mint_tokens(executor, mint_amount)
    logger.info("Sufficient balance, no minting needed.")
    return True


def ensure_allowance(executor, threshold):
    """Approve the wrapper for the maximum amount when the allowance is below ``threshold``."""
    logger.info("Checking token allowance for the wrapper contract...")
    try:
        allowance = executor.connection.allowance_for_wrapper()
    except Exception as e:
        logger.error(f"Failed to check token allowance: {e}")
        return False

    logger.info(f"Current allowance: {Web3.from_wei(allowance, 'ether')} tokens.")
    if allowance < threshold:
        logger.info("Allowance is low. Setting approval to maximum...")
        return approve_max(executor)
    logger.info("Sufficient allowance, no approval needed.")
    return True
