"""Main entry point for the snapshot restore tool."""
import argparse
import logging
import signal
import sys
from typing import List, Optional

from snapshot_restore.cli.commands import build_context, cleanup_command, run_command, step_command
from snapshot_restore.core.config import load_config
from snapshot_restore.core.exceptions import ConfigError, DatabaseError, InstallerError, StorageError
from snapshot_restore.core.logging import log_config, setup_logging
from snapshot_restore.domain.models import Step
from snapshot_restore.ui.factory import create_interface

STEP_IDS = [step.value for step in Step]

# Global interface to access in signal handler
interface = None


def signal_handler(sig, frame):
    """Handle SIGINT (Ctrl+C) signal for graceful exit.

    Args:
        sig: Signal number
        frame: Current stack frame
    """
    print("\nReceived interrupt signal. Progress so far is kept on disk; run again to resume.")
    logging.info("Received interrupt signal. Exiting.")

    if interface is not None and hasattr(interface, 'close'):
        interface.close()

    sys.exit(1)


def _add_override_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("overrides", "Values that replace those found in the snapshot")
    group.add_argument("--name", help="Database name")
    group.add_argument("--user", help="Database user")
    group.add_argument("--password", help="Database password")
    group.add_argument("--host", help="Database host, optionally host:port")
    group.add_argument("--port", help="Database port")
    group.add_argument("--site-url", dest="site_url", help="URL the restored site is served from")
    group.add_argument("--prefix", help="Table prefix for restored tables")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Resumable snapshot restore tool")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Step command
    step_parser = subparsers.add_parser("step", help="Run one installer step and print the result")
    step_parser.add_argument("--step", choices=STEP_IDS, help="Step to run (default: check)")
    step_parser.add_argument("--chunk", type=int, help="Chunk number for the files and tables steps")
    step_parser.add_argument("--preview", action="store_true", help="Show check results even when all pass")
    _add_override_options(step_parser)

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the installer to completion")
    run_parser.add_argument("--step", choices=STEP_IDS, help="Step to start from (default: check)")
    run_parser.add_argument("--yes", "-y", action="store_true", help="Deploy without asking for confirmation")
    _add_override_options(run_parser)

    # Cleanup command
    subparsers.add_parser("cleanup", help="Remove installer leftovers")

    # Global options
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--interface", choices=["rich", "ascii"], help="Console interface")

    args = parser.parse_args(argv)

    # Show help if no command is specified
    if not args.command:
        parser.print_help()
        sys.exit(0)

    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Run the snapshot restore tool.

    Returns:
        int: Exit code
    """
    global interface
    try:
        # Register signal handler
        signal.signal(signal.SIGINT, signal_handler)

        args = parse_args(argv)

        # Load configuration first so we can access logging settings
        config = load_config(args.config)

        if args.verbose:
            config.logging.level = 'DEBUG'

        # Console logging first, the error log location depends on the context
        setup_logging(config.logging, error_log="")
        context = build_context(config)
        log_path = context.error_log_path()
        setup_logging(config.logging, error_log=str(log_path) if log_path else "")

        if args.verbose:
            logging.info("Verbose flag detected, switching to DEBUG log level")
            log_config(config)

        interface = create_interface(args.interface or config.ui.interface, config.ui)

        if args.command == "step":
            return step_command(args, config, context)
        elif args.command == "run":
            return run_command(args, config, interface, context)
        elif args.command == "cleanup":
            return cleanup_command(args, config, interface, context)
        return 1

    except ConfigError as e:
        logging.error(f"Configuration error: {str(e)}")
        return 1
    except DatabaseError as e:
        logging.error(f"Database error: {str(e)}")
        return 1
    except StorageError as e:
        logging.error(f"Storage error: {str(e)}")
        return 1
    except InstallerError as e:
        logging.error(f"Installer error: {str(e)}")
        return 1
    except Exception as e:
        logging.exception(f"Unexpected error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
