"""Main entry point for pbhost CLI"""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .cli import PbhostCLI
from .config import PbhostConfig
from .errors import PbhostError
from .structured_logging import level_for_verbosity, setup_logging
from .utils import msg_error

logger = logging.getLogger("pbhost.main")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class PbhostArgumentParser(argparse.ArgumentParser):
    """argparse with usage errors mapped to exit code 1"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = PbhostArgumentParser(
        prog="pbhost",
        description="pbhost - run several PocketBase projects behind one nginx proxy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--version", action="version", version=f"pbhost {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Show log output (-v info, -vv debug)"
    )
    parser.add_argument("-C", "--workdir", type=Path, help="Run as if started in this directory")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute", parser_class=PbhostArgumentParser)

    # add command
    add_parser = subparsers.add_parser("add", help="Register a new project and start it")
    add_parser.add_argument("name", help="Project name (letters, digits, '-' and '_')")
    add_parser.add_argument("port", nargs="?", help="Port (default: random free port)")
    add_parser.add_argument("--no-start", action="store_true", help="Only register, do not start containers")

    # remove command
    remove_parser = subparsers.add_parser("remove", help="Unregister a project and stop it")
    remove_parser.add_argument("name", help="Project name")
    remove_data = remove_parser.add_mutually_exclusive_group()
    remove_data.add_argument("--yes", "-y", action="store_true", help="Delete the data directory without asking")
    remove_data.add_argument("--keep-data", action="store_true", help="Never delete the data directory")

    # list command
    list_parser = subparsers.add_parser("list", help="List registered projects")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # lifecycle commands
    for command, help_text in (
        ("start", "Start a project (or 'all')"),
        ("stop", "Stop a project (or 'all')"),
        ("restart", "Restart a project (or 'all')"),
    ):
        lifecycle_parser = subparsers.add_parser(command, help=help_text)
        lifecycle_parser.add_argument("name", help="Project name or 'all'")

    # logs command
    logs_parser = subparsers.add_parser("logs", help="Show project logs")
    logs_parser.add_argument("name", help="Project name")
    logs_parser.add_argument("-f", "--follow", action="store_true", help="Follow log output")
    logs_parser.add_argument("-n", "--lines", type=int, help="Number of lines to show")

    # status command
    status_parser = subparsers.add_parser("status", help="Show Docker, proxy and project health")
    status_parser.add_argument("--probe", action="store_true", help="Check each project's health endpoint via the proxy")

    # cleanup command
    cleanup_parser = subparsers.add_parser("cleanup", help="Remove containers that are no longer registered")
    cleanup_parser.add_argument("--prune", action="store_true", help="Also run 'docker system prune -f'")

    # build command
    subparsers.add_parser("build", help="Build the PocketBase image")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Rebuild routes and proxy dependencies from the registry")
    sync_parser.add_argument("--check", action="store_true", help="Only report drift, exit 1 if any")

    # init command
    init_parser = subparsers.add_parser("init", help="Create pbhost.yml and starter files")
    init_parser.add_argument("--domain", "-d", help="Base domain (default: localhost)")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing files")

    return parser


def run_command(cli: PbhostCLI, args: argparse.Namespace) -> bool:
    if args.command == "add":
        return cli.add(args.name, args.port, start=not args.no_start)
    if args.command == "remove":
        return cli.remove(args.name, assume_yes=args.yes, keep_data=args.keep_data)
    if args.command == "list":
        return cli.list(as_json=args.json)
    if args.command == "start":
        return cli.start(args.name)
    if args.command == "stop":
        return cli.stop(args.name)
    if args.command == "restart":
        return cli.restart(args.name)
    if args.command == "logs":
        return cli.logs(args.name, follow=args.follow, lines=args.lines)
    if args.command == "status":
        return cli.status(probe=args.probe)
    if args.command == "cleanup":
        return cli.cleanup(prune=args.prune)
    if args.command == "build":
        return cli.build()
    if args.command == "sync":
        return cli.sync(check=args.check)
    if args.command == "init":
        return cli.init(domain=args.domain, force=args.force)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_FAILURE

    level = level_for_verbosity(args.verbose) if args.verbose else None
    setup_logging(level=level, command=args.command)

    try:
        config = PbhostConfig(args.workdir)
        cli = PbhostCLI(config)
        success = run_command(cli, args)
    except PbhostError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        msg_error(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        print("\nInterrupted")
        return EXIT_INTERRUPTED

    return EXIT_OK if success else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
