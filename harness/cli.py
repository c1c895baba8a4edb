"""Command line interface for the calculator service harness."""

import argparse
import asyncio
import logging
import sys

from harness.agents.orchestrator import Orchestrator
from harness.core.config import LOG_DIR, LOG_LEVEL
from harness.core.errors import ConfigError
from harness.services.repo_service import parse_repo_list
from harness.utils.logging_config import setup_logging

logger = logging.getLogger("harness")

EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calc-harness",
        description="Build, run and compare containerized calculator services",
    )
    parser.add_argument(
        "repo_list",
        help="File with one repository URL per line ('#' starts a comment)",
    )
    parser.add_argument(
        "--fresh-clone",
        action="store_true",
        help="Delete existing workspaces and clone every repository again",
    )
    return parser


def main(argv=None) -> int:
    """Main function with command line argument parsing."""
    args = build_parser().parse_args(argv)

    setup_logging(level=getattr(logging, LOG_LEVEL, logging.INFO), log_dir=LOG_DIR)

    try:
        specs = parse_repo_list(args.repo_list)
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_CONFIG_ERROR

    orchestrator = Orchestrator(specs, fresh_clone=args.fresh_clone)
    reports = asyncio.run(orchestrator.run())

    print(orchestrator.render(reports))
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
