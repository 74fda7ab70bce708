"""Command line entry point: ``python -m ecobee_bridge``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import RunOutcome, async_run
from .config import load_config
from .exceptions import ConfigurationError

_LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecobee-bridge",
        description=(
            "Poll ecobee remote sensors once and switch Kasa plugs "
            "with a hysteresis rule."
        ),
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="read options from this .env file (default: ./.env when present)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one cycle and return the exit status."""
    args = build_parser().parse_args(argv)

    env_file = args.env_file
    if env_file is None and Path(".env").is_file():
        env_file = Path(".env")

    try:
        config = load_config(env_file)
    except ConfigurationError as err:
        logging.basicConfig(level=logging.INFO)
        _LOGGER.error("%s", err)
        return RunOutcome.CONFIG_ERROR.exit_code

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    outcome = asyncio.run(async_run(config))
    _LOGGER.debug("Run finished: %s", outcome.name)
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
