import logging
import sys

from colorama import Fore, Style, just_fix_windows_console

# Confirmed transactions and completed pairs sit between INFO and WARNING.
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LEVEL_COLORS = {
    logging.DEBUG: Style.DIM,
    logging.INFO: "",
    SUCCESS: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.MAGENTA + Style.BRIGHT,
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColorFormatter(logging.Formatter):
    def format(self, record):
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno, "")
        if not color:
            return message
        return f"{color}{message}{Style.RESET_ALL}"


def setup_logging(level="INFO", stream=None):
    just_fix_windows_console()
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, ColorFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # web3 and urllib3 are chatty at DEBUG.
    logging.getLogger("web3").setLevel(max(root.level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(root.level, logging.WARNING))
    return root
