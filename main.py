from __future__ import annotations

import sys

from dotenv import load_dotenv

from config.app_config import ConfigError, load_config
from utils.logger import Logger, log_event


def main() -> int:
    logger = Logger().build()

    # .env fills in anything the real environment doesn't set
    load_dotenv()

    try:
        config = load_config()
    except ConfigError as e:
        print("Invalid configuration:", file=sys.stderr)
        for issue in e.issues:
            print(f"- {issue}", file=sys.stderr)
        print("Fix: set the variables above in .env (see .env.example).", file=sys.stderr)
        return 1

    log_event(logger, "config_loaded", **config.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
