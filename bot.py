import argparse
import logging
import sys

from dotenv import load_dotenv

from connection import connector
from console import setup_logging
from cycles import ContinuousCycle, DailyBatchCycle, SetupError
from rpc_pool import EndpointPool
from settings import RUN_MODES, ConfigError, load_settings
from tx_executor import TransactionExecutor

logger = logging.getLogger("bot")


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a whole number of at least 1, got {value}")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run mint/approve/wrap/unwrap cycles on a test network.")
    parser.add_argument("--mode", choices=RUN_MODES, help="override RUN_MODE from the environment")
    parser.add_argument("--max-pairs", type=positive_int, default=None, help="stop continuous mode after N pairs")
    parser.add_argument("--max-days", type=positive_int, default=None, help="stop batch mode after N daily cycles")
    return parser.parse_args(argv)


def build_cycle(settings, mode, args, connect=None):
    pool = EndpointPool(settings.rpc_urls)
    executor = TransactionExecutor(pool, connect or connector(settings), max_attempts=settings.max_attempts)
    if mode == "batch":
        return DailyBatchCycle(executor, settings)
    return ContinuousCycle(executor, settings, max_pairs=args.max_pairs)


def main(argv=None):
    args = parse_args(argv)
    load_dotenv()

    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging()
        logger.critical(str(e))
        return 1

    setup_logging(settings.log_level)
    mode = args.mode or settings.run_mode
    logger.info(f"Starting in {mode} mode with {len(settings.rpc_urls)} RPC endpoint(s).")
    if mode == "batch" and args.max_pairs is not None:
        logger.warning("--max-pairs only applies to continuous mode; ignoring it.")
    if mode == "continuous" and args.max_days is not None:
        logger.warning("--max-days only applies to batch mode; ignoring it.")

    try:
        cycle = build_cycle(settings, mode, args)
        if mode == "batch":
            cycle.run(max_days=args.max_days)
        else:
            cycle.run()
    except SetupError as e:
        logger.critical(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted, exiting.")
        return 130
    except Exception:
        logger.critical("An unexpected error occurred in the main loop.", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
