"""Logger setup for the pool controller"""

import logging
import os
import sys
from .. import config

# Names of the handlers installed here, so a second call replaces them
CONSOLE_HANDLER = "poolcontrol-console"
FILE_HANDLER = "poolcontrol-file"


def setup_logging(level: str = None, log_file: str = None):
    """Configure the root logger; safe to call more than once."""
    level = (level or config.LOG_LEVEL).upper()
    log_file = log_file or config.LOG_FILE

    root = logging.getLogger()
    root.setLevel(level)
    for handler in [h for h in root.handlers if h.get_name() in (CONSOLE_HANDLER, FILE_HANDLER)]:
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # File handler
    try:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.set_name(FILE_HANDLER)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as e:
        root.warning(f"Could not create file handler: {e}")

    # paho is chatty at DEBUG
    logging.getLogger("paho").setLevel(logging.WARNING)

    root.info("Logging configured")
