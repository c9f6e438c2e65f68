#!/usr/bin/env python3
"""svbisect - Subversion Bisection CLI Tool.

Main command-line interface for bisecting the history of a subversion
working copy.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from svbisect.config import BisectConfig, StateConfig, SvnConfig
from svbisect.core import BisectRunner, BoundKind, SessionController
from svbisect.core.runner import replay_log
from svbisect.core.session import BISECT_COMMANDS
from svbisect.errors import BisectError, ConfigError
from svbisect.persistence import DatabaseError, SessionStore
from svbisect.svn import SvnClient, SvnCommandError


# Constants
DEFAULT_CONFIG_PATH = "svbisect.yaml"
GLOBAL_OPTIONS_WITH_VALUE = ("-c", "--config")

# Configure logging
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    The default configuration file is optional; an explicitly named file
    must exist.

    Args:
        config_path: Path to YAML configuration file (None for the default)

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If an explicit config file is missing or the file is malformed
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)

    if not path.exists():
        if config_path:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.debug(f"No config file at {path}, using defaults")
        return {}

    try:
        with path.open() as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    logger.debug(f"Loaded configuration from {path}")
    return config_dict


def create_bisect_config(config_dict: Dict[str, Any]) -> BisectConfig:
    """Create BisectConfig from config dict.

    Args:
        config_dict: Configuration dictionary from YAML

    Returns:
        BisectConfig object
    """
    svn_dict = config_dict.get("svn") or {}
    state_dict = config_dict.get("state") or {}
    defaults = StateConfig()

    return BisectConfig(
        svn=SvnConfig(
            command=svn_dict.get("command"),
            update_depth=svn_dict.get("update_depth", "infinity"),
        ),
        state=StateConfig(
            data_dir=state_dict.get("data_dir", defaults.data_dir),
            database=state_dict.get("database", defaults.database),
            log_file=state_dict.get("log_file", defaults.log_file),
        ),
        command_name=config_dict.get("command_name", "svbisect"),
    )


def create_controller(config_path: Optional[str] = None) -> SessionController:
    """Create a session controller for the working copy in the current directory.

    Raises:
        ConfigError: If the configuration cannot be loaded
        NotAWorkingCopy: If the current directory is not in a working copy
    """
    config = create_bisect_config(load_config(config_path))
    if config_path:
        config.config_file = str(Path(config_path).resolve())
    client = SvnClient(config.svn.command)
    wc_info = client.working_copy_info()
    store = SessionStore(
        str(config.state.data_path(wc_info.root_path)),
        db_name=config.state.database,
        log_name=config.state.log_file,
    )
    return SessionController(client, store, config)


def _scan_global_args(argv: List[str]) -> Tuple[Optional[int], Optional[str]]:
    """Find the sub-command position and the config path in argv."""
    config_path = None
    index = 0
    while index < len(argv):
        arg = argv[index]
        if arg in GLOBAL_OPTIONS_WITH_VALUE:
            if index + 1 < len(argv):
                config_path = argv[index + 1]
            index += 2
            continue
        if arg.startswith("--config="):
            config_path = arg.split("=", 1)[1]
        elif not arg.startswith("-"):
            return index, config_path
        index += 1
    return None, config_path


def resolve_term_alias(argv: List[str]) -> List[str]:
    """Replace a custom good/bad term in argv with the command it stands for.

    Args:
        argv: Command-line arguments (without the program name)

    Returns:
        argv, with the sub-command rewritten if it is a session term
    """
    index, config_path = _scan_global_args(argv)
    if index is None or argv[index] in BISECT_COMMANDS:
        return argv

    try:
        controller = create_controller(config_path)
    except (BisectError, SvnCommandError) as exc:
        logger.debug(f"Cannot look up term aliases: {exc}")
        return argv

    try:
        aliases = controller.command_aliases()
    except DatabaseError as exc:
        logger.debug(f"Cannot read term aliases: {exc}")
        return argv
    finally:
        controller.store.close()

    command = aliases.get(argv[index])
    if command is None:
        return argv
    return [*argv[:index], command, *argv[index + 1 :]]


def cmd_start(args: argparse.Namespace) -> int:
    """Start a bisect session.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    command_args = ["start"]
    for option, value in (
        ("--good", args.good),
        ("--bad", args.bad),
        ("--term-good", args.term_good),
        ("--term-bad", args.term_bad),
    ):
        if value is not None:
            command_args.extend([option, value])

    controller = create_controller(args.config)
    try:
        controller.start(
            good=args.good,
            bad=args.bad,
            term_good=args.term_good,
            term_bad=args.term_bad,
            command_args=command_args,
        )
    finally:
        controller.store.close()
    return 0


def _mark(args: argparse.Namespace, kind: BoundKind) -> int:
    controller = create_controller(args.config)
    try:
        command_args = [kind.value]
        if args.revision:
            command_args.append(args.revision)
        controller.mark_bound(kind, args.revision, command_args=command_args)
        controller.record_status()
    finally:
        controller.store.close()
    return 0


def cmd_good(args: argparse.Namespace) -> int:
    """Mark a revision as good (default: the working-copy revision)."""
    return _mark(args, BoundKind.LOWER)


def cmd_bad(args: argparse.Namespace) -> int:
    """Mark a revision as bad (default: the working-copy revision)."""
    return _mark(args, BoundKind.UPPER)


def cmd_skip(args: argparse.Namespace) -> int:
    """Skip revisions or revision ranges.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    controller = create_controller(args.config)
    try:
        revisions = controller.expand_revisions(args.revisions)
        result = controller.mark_skip(revisions, command_args=["skip", *args.revisions])
        if result.changed:
            controller.record_status()
        else:
            print("No new revisions to skip")
    finally:
        controller.store.close()
    return 0


def cmd_unskip(args: argparse.Namespace) -> int:
    """Make skipped revisions eligible for testing again."""
    controller = create_controller(args.config)
    try:
        revisions = controller.expand_revisions(args.revisions)
        result = controller.mark_unskip(revisions, command_args=["unskip", *args.revisions])
        if result.changed:
            controller.record_status()
        else:
            print("None of the given revisions are skipped")
    finally:
        controller.store.close()
    return 0


def cmd_terms(args: argparse.Namespace) -> int:
    """Display the terms used for good and bad revisions.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    controller = create_controller(args.config)
    try:
        bisect_session = controller.load()
    finally:
        controller.store.close()

    if args.term == "good":
        print(bisect_session.good_name)
    elif args.term == "bad":
        print(bisect_session.bad_name)
    else:
        print(f"The term for the good state is {bisect_session.good_name}")
        print(f"The term for the bad  state is {bisect_session.bad_name}")
        status = bisect_session.waiting_status()
        if status:
            print(status)
    return 0


def cmd_log(args: argparse.Namespace) -> int:
    """Print the replay log of the active session."""
    controller = create_controller(args.config)
    try:
        for line in controller.read_log():
            print(line)
    finally:
        controller.store.close()
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Bisect automatically by running a command on each revision.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    command = list(args.probe)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        print("Error: 'run' requires a command to execute", file=sys.stderr)
        return 1

    controller = create_controller(args.config)
    try:
        BisectRunner(controller, command).run()
    finally:
        controller.store.close()
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    """Replay a saved log file as a shell script from the working-copy root."""
    log_file = str(Path(args.log_file).resolve())
    client = SvnClient(create_bisect_config(load_config(args.config)).svn.command)
    root = client.working_copy_info().root_path
    replay_log(log_file, root)
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    """End the bisect session.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    controller = create_controller(args.config)
    try:
        target = controller.reset(args.revision, restore=not args.no_update)
    finally:
        controller.store.close()

    if target is None:
        print("No bisect session in progress")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="svbisect",
        description="Find the revision that introduced a change using binary search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH} if present)",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # start command
    parser_start = subparsers.add_parser("start", help="Start a bisect session")
    parser_start.add_argument(
        "-g", "--good", metavar="REV", help="A revision known not to contain the change"
    )
    parser_start.add_argument(
        "-b", "--bad", metavar="REV", help="A revision known to contain the change"
    )
    parser_start.add_argument(
        "--term-good",
        "--good-term",
        dest="term_good",
        metavar="TERM",
        help="An alternate name for the 'good' subcommand",
    )
    parser_start.add_argument(
        "--term-bad",
        "--bad-term",
        dest="term_bad",
        metavar="TERM",
        help="An alternate name for the 'bad' subcommand",
    )

    # good / bad commands
    parser_good = subparsers.add_parser(
        "good", aliases=["mark-good"], help="Mark a revision as good"
    )
    parser_good.add_argument("revision", nargs="?", help="Revision (default: working copy)")

    parser_bad = subparsers.add_parser("bad", aliases=["mark-bad"], help="Mark a revision as bad")
    parser_bad.add_argument("revision", nargs="?", help="Revision (default: working copy)")

    # skip / unskip commands
    parser_skip = subparsers.add_parser("skip", help="Skip revisions that cannot be tested")
    parser_skip.add_argument(
        "revisions", nargs="*", metavar="REV|REV:REV", help="Revisions (default: working copy)"
    )

    parser_unskip = subparsers.add_parser("unskip", help="Reinstate skipped revisions")
    parser_unskip.add_argument(
        "revisions", nargs="*", metavar="REV|REV:REV", help="Revisions (default: working copy)"
    )

    # terms command
    parser_terms = subparsers.add_parser("terms", help="Display the good and bad terms")
    terms_group = parser_terms.add_mutually_exclusive_group()
    terms_group.add_argument(
        "--good",
        "--term-good",
        dest="term",
        action="store_const",
        const="good",
        help="Display only the term for the 'good' subcommand",
    )
    terms_group.add_argument(
        "--bad",
        "--term-bad",
        dest="term",
        action="store_const",
        const="bad",
        help="Display only the term for the 'bad' subcommand",
    )

    # log command
    subparsers.add_parser("log", help="Display the bisect log")

    # run command
    parser_run = subparsers.add_parser(
        "run", help="Bisect automatically using a command's exit status"
    )
    parser_run.add_argument(
        "probe",
        nargs=argparse.REMAINDER,
        metavar="CMD [ARGS...]",
        help="Command to run (0=good, 125=skip, 1-127=bad, other=abort)",
    )

    # replay command
    parser_replay = subparsers.add_parser("replay", help="Replay a bisect log file")
    parser_replay.add_argument("log_file", help="Path to log file")

    # reset command
    parser_reset = subparsers.add_parser("reset", help="End the bisect session")
    reset_group = parser_reset.add_mutually_exclusive_group()
    reset_group.add_argument(
        "-n",
        "--no-update",
        action="store_true",
        help="Leave the working copy at its current revision",
    )
    reset_group.add_argument(
        "revision", nargs="?", help="Revision to update to (default: original revision)"
    )

    return parser


COMMAND_HANDLERS = {
    "start": cmd_start,
    "good": cmd_good,
    "mark-good": cmd_good,
    "bad": cmd_bad,
    "mark-bad": cmd_bad,
    "skip": cmd_skip,
    "unskip": cmd_unskip,
    "terms": cmd_terms,
    "log": cmd_log,
    "run": cmd_run,
    "replay": cmd_replay,
    "reset": cmd_reset,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    argv = resolve_term_alias(argv)

    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    handler = COMMAND_HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    # Route to command handler
    try:
        return handler(args)

    except (BisectError, SvnCommandError, DatabaseError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as exc:
        logger.error(f"Fatal error: {exc}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
