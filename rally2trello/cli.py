"""CLI entry point for rally2trello."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from rally2trello.config import CONFIG_FILE, DEFAULT_LIST, Config, load_config, load_env_file
from rally2trello.exceptions import ConfigurationError, RallyAPIError, TrelloAPIError
from rally2trello.importer import CardImporter, ImportResult
from rally2trello.logging_config import setup_logging
from rally2trello.models import Board, TrelloList
from rally2trello.rally_client import RallyClient
from rally2trello.trello_client import TrelloClient

logger = logging.getLogger("rally2trello.cli")

EPILOG = """
Credentials are read from config.yml (rally.api_key, trello.developer_key,
trello.user_token) or from the RALLY_API_KEY, TRELLO_API_KEY and TRELLO_TOKEN
environment variables. A .env file (or the file named by RALLY2TRELLO_ENV_FILE)
is loaded first without overriding variables that are already set.

Examples:
    rally2trello -i "Sprint 42" -b "Team Board"
    rally2trello -i "Sprint 42" -b "Team Board" -l Backlog --rally-defects
    rally2trello -i "Sprint 42" -b "Team Board" --dry-run
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rally2trello",
        description="Import the user stories (and optionally defects) of a Rally "
        "iteration into a Trello list, skipping cards that already exist.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", default=CONFIG_FILE, help="YAML config file")
    parser.add_argument("-w", "--rally-workspace", help="Rally workspace name")
    parser.add_argument("-p", "--rally-project", help="Rally project name")
    parser.add_argument("-i", "--rally-iteration", help="Rally iteration name (required)")
    parser.add_argument(
        "-d",
        "--rally-defects",
        action="store_true",
        default=None,
        help="Import defects (off by default)",
    )
    parser.add_argument(
        "-b", "--trello-board", help="Target Trello board (will be created if necessary)"
    )
    parser.add_argument(
        "-l",
        "--trello-list",
        help=f'Trello list name (will be created if necessary, default is "{DEFAULT_LIST}")',
    )
    parser.add_argument(
        "-n", "--dry-run", action="store_true", help="Show what would be created, change nothing"
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Errors only")
    verbosity.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", help="Also write a timestamped log to this file")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, dict[str, object]]:
    return {
        "rally": {
            "workspace": args.rally_workspace,
            "project": args.rally_project,
            "iteration": args.rally_iteration,
            "defects": args.rally_defects,
        },
        "trello": {
            "board": args.trello_board,
            "list": args.trello_list,
        },
    }


def resolve_target(
    trello: TrelloClient, board_name: str, list_name: str, dry_run: bool
) -> tuple[Board, TrelloList]:
    """Find or create the target board and list; in a dry run only report creations"""
    if not dry_run:
        board = trello.resolve_or_create_board(board_name)
        return board, trello.resolve_or_create_list(list_name, board)

    board = trello.find_board(board_name)
    if board is None:
        logger.info(f"[DRY RUN] Would create board '{board_name}'")
        return Board(id="", name=board_name), TrelloList(id="", name=list_name, board_id="")

    trello_list = trello.find_list(list_name, board)
    if trello_list is None:
        logger.info(f"[DRY RUN] Would create list '{list_name}'")
        trello_list = TrelloList(id="", name=list_name, board_id=board.id)
    return board, trello_list


def run_import(
    config: Config,
    rally: RallyClient,
    trello: TrelloClient,
    dry_run: bool = False,
) -> ImportResult:
    """Fetch the iteration's work items and import them into the configured list"""
    iteration = config.rally.iteration or ""

    # Checked before any Rally query
    logger.info("🔍 Validating Trello credentials...")
    trello.validate_credentials()
    logger.info("✅ Trello credentials valid")

    stories = rally.stories_for_iteration(iteration)
    if not stories:
        logger.info(f"No user stories found for iteration '{iteration}'")
    defects = rally.defects_for_iteration(iteration)
    if not defects:
        logger.info(f"No defects found for iteration '{iteration}'")

    board, trello_list = resolve_target(
        trello, config.trello.board or "", config.trello.list or "", dry_run
    )
    logger.info(f"Importing to board '{board.name}'")
    logger.info(f"Importing to list '{trello_list.name}'")

    importer = CardImporter(trello, rally_base_url=config.rally.base_url, dry_run=dry_run)
    return importer.run(
        stories, defects, board, trello_list, include_defects=config.rally.defects
    )


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        log_level = "DEBUG"
    elif args.quiet:
        log_level = "ERROR"
    else:
        log_level = (args.log_level or "INFO").upper()
    setup_logging(log_level, args.log_file)

    load_env_file(os.getenv("RALLY2TRELLO_ENV_FILE", ".env"))

    try:
        config = load_config(args.config, overrides_from_args(args))
        config.ensure_complete()
    except ConfigurationError as e:
        for error in e.errors:
            logger.error(f"❌ {error}")
        logger.error("")
        logger.error(parser.format_usage().rstrip())
        sys.exit(1)

    if args.dry_run:
        logger.info("🔍 Dry run: no boards, lists or cards will be created")

    # Type narrowing for mypy
    assert config.rally.api_key is not None
    assert config.rally.workspace is not None
    assert config.rally.project is not None
    assert config.trello.developer_key is not None
    assert config.trello.user_token is not None

    try:
        with (
            RallyClient(
                config.rally.api_key,
                config.rally.workspace,
                config.rally.project,
                base_url=config.rally.base_url,
            ) as rally,
            TrelloClient(config.trello.developer_key, config.trello.user_token) as trello,
        ):
            run_import(config, rally, trello, dry_run=args.dry_run)
    except (RallyAPIError, TrelloAPIError) as e:
        logger.error(f"❌ Import failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
