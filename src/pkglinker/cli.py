#!/usr/bin/env python3
"""
pkglinker CLI: reclaim disk space by linking identical installed packages.
Scans node_modules trees, links duplicate copies of the same package version,
and keeps a reference store of created links that --prune revalidates.
"""
from __future__ import annotations  # Enable postponed evaluation of annotations (PEP 563)
import argparse
import os
import signal
import sys
import threading
import time
from typing import NoReturn, Optional
import logging

logging.basicConfig(
    level=logging.ERROR,
    format="%(levelname)-8s | %(name)-25s | %(message)s"
)

from pkglinker.core.models import ActionMode, LinkParams, PkgLinkError, RunSummary
from pkglinker.commands import PkgLinkCommand
from pkglinker.config import ConfigError, LinkConfig, load_config, default_config_path
from pkglinker.utils.convert_utils import ConvertUtils
from pkglinker.aliases import LINK_MODE_ALIASES, LINK_MODE_CHOICES, LINK_MODE_HELP_TEXT, EPILOG_TEXT

EXIT_INVALID_ARGUMENT = 20
EXIT_INVALID_JSON = 21
EXIT_INVALID_CONFIG = 22
EXIT_HELP = 23
EXIT_CANCELLED = 130


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False
        self.term_out: bool = False
        self.console_width: int = 70
        self.command: Optional[PkgLinkCommand] = None
        self._progress_lock = threading.Lock()
        self._cancel_notified = False

        # Fix encoding for Windows consoles to prevent UnicodeEncodeError
        for stream in (sys.stdout, sys.stderr):
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding='utf-8')

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="pkglinker",
            description="pkglinker: link duplicate node_modules packages to save disk space",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )

        parser.add_argument(
            "dirs",
            nargs="*",
            metavar="DIR",
            help="Directories to scan for node_modules packages"
        )

        parser.add_argument(
            "--config", "-c",
            type=str,
            default=None,
            metavar='',
            help=f"Configuration file. Default: {default_config_path()}"
        )
        parser.add_argument(
            "--refs-file", "-r",
            type=str,
            default=None,
            metavar='',
            dest="refs_file",
            help="Reference store file (overrides refsFile from config)"
        )
        parser.add_argument(
            "--size", "-s",
            type=str,
            default=None,
            metavar='',
            help="Minimum package size to link (e.g., 100K, 1MB). Default: 0"
        )
        parser.add_argument(
            "--tree-depth", "-t",
            type=str,
            default=None,
            metavar='',
            dest="tree_depth",
            help="Maximum directory depth below each root (0 = unlimited). Default: 0"
        )
        parser.add_argument(
            "--link-mode",
            choices=LINK_MODE_CHOICES,
            default=None,
            type=str,
            dest="link_mode",
            help=LINK_MODE_HELP_TEXT
        )

        # Actions
        parser.add_argument(
            "--prune", "-p",
            action="store_true",
            help="Remove references to links that no longer match the filesystem (runs before scanning)"
        )
        modes = parser.add_mutually_exclusive_group()
        modes.add_argument(
            "--dryrun", "-d",
            action="store_true",
            help="Show what would be linked without changing anything"
        )
        modes.add_argument(
            "--gen-ln-cmds", "-g",
            action="store_true",
            dest="gen_ln_cmds",
            help="Print equivalent ln commands instead of linking"
        )

        # Output options
        parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output"
        )
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Show progress and detailed logging"
        )
        return parser

    @classmethod
    def parse_args(cls, args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        return cls.build_parser().parse_args(args)

    def validate_args(self, args: argparse.Namespace) -> None:
        """Validate command-line arguments before execution."""
        if not args.dirs and not args.prune:
            self.build_parser().print_help(sys.stderr)
            sys.exit(EXIT_HELP)

        if args.size is not None:
            try:
                args.size = ConvertUtils.human_to_bytes(args.size)
            except ValueError as e:
                self.error_exit(f"Invalid size: {e}", EXIT_INVALID_ARGUMENT)

        if args.tree_depth is not None:
            try:
                args.tree_depth = int(args.tree_depth)
            except ValueError:
                self.error_exit(f"Invalid tree depth: '{args.tree_depth}'", EXIT_INVALID_ARGUMENT)
            if args.tree_depth < 0:
                self.error_exit("Tree depth cannot be negative", EXIT_INVALID_ARGUMENT)

        for directory in args.dirs:
            if not os.path.isdir(directory):
                self.error_exit(f"Directory not found: {directory}", EXIT_INVALID_ARGUMENT)

    def load_configuration(self, args: argparse.Namespace) -> LinkConfig:
        """Load the config file and apply command-line overrides."""
        try:
            config = load_config(args.config)
            return config.with_overrides(
                refs_file=args.refs_file,
                min_size=args.size,
                tree_depth=args.tree_depth,
                link_mode=LINK_MODE_ALIASES.get(args.link_mode) if args.link_mode else None,
            )
        except ConfigError as e:
            code = EXIT_INVALID_JSON if e.invalid_json else EXIT_INVALID_CONFIG
            print(f"config file: {e.path or args.config or default_config_path()}", file=sys.stderr)
            self.error_exit(str(e), code)

    @staticmethod
    def action_mode(args: argparse.Namespace) -> ActionMode:
        if args.gen_ln_cmds:
            return ActionMode.GENERATE_COMMANDS
        if args.dryrun:
            return ActionMode.DRY_RUN
        return ActionMode.LINK

    def create_params(self, args: argparse.Namespace, config: LinkConfig) -> LinkParams:
        """Create LinkParams from CLI arguments and configuration."""
        try:
            return LinkParams(
                root_dirs=[os.path.abspath(d) for d in args.dirs],
                refs_file=os.path.abspath(os.path.expanduser(config.refs_file)),
                prune=args.prune,
                action_mode=self.action_mode(args),
                link_mode=config.link_mode,
                concurrent_ops=config.concurrent_ops,
                min_size=config.min_size,
                tree_depth=config.tree_depth,
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}", EXIT_INVALID_ARGUMENT)

    def progress_callback(self, stage: str, current: int, detail: object) -> None:
        """Single-line progress on stderr, only in verbose terminal sessions."""
        if not self.verbose or not self.term_out:
            return

        if stage == "scanning":
            line = f"  [{stage}] {current} packages  {detail}"
        elif isinstance(detail, int) and detail > 0:
            line = f"  [{stage}] {current}/{detail} ({current / detail * 100:.1f}%)"
        else:
            line = f"  [{stage}] {current}"

        line = line[:self.console_width].ljust(self.console_width)
        with self._progress_lock:
            sys.stderr.write(f"\r{line}")
            sys.stderr.flush()

    @staticmethod
    def output_callback(line: str) -> None:
        print(line)

    def clear_progress(self) -> None:
        if self.verbose and self.term_out:
            with self._progress_lock:
                sys.stderr.write("\r" + " " * self.console_width + "\r")
                sys.stderr.flush()

    def handle_signal(self, signum, frame) -> None:
        """Cancel once, then let the run finish saving what completed."""
        if self._cancel_notified:
            return
        self._cancel_notified = True
        print("cancelling and saving state...", file=sys.stderr)
        if self.command:
            self.command.cancel()

    def install_signal_handlers(self) -> dict:
        """Route SIGINT/SIGTERM to cancellation. Returns the handlers that were replaced."""
        if threading.current_thread() is not threading.main_thread():
            return {}
        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, self.handle_signal)
        return previous

    @staticmethod
    def restore_signal_handlers(previous: dict) -> None:
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)

    def report(self, summary: RunSummary, params: LinkParams) -> None:
        """Print the completion summary."""
        saved = ConvertUtils.bytes_to_human(summary.bytes_saved)
        if not params.action_mode.mutates:
            print(f"# would save: {saved}")
            return
        if self.quiet:
            return
        if summary.store_updated:
            print(f"updated {summary.store_path}")
        if summary.bytes_saved:
            print(f"saved: {saved}")
        if self.verbose:
            print(f"packages scanned: {summary.packages_scanned}, "
                  f"groups linked: {summary.groups_linked}, "
                  f"groups failed: {summary.groups_failed}, "
                  f"references pruned: {summary.refs_pruned}")

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            print(f"⚠️  {message}", file=sys.stderr)

    @staticmethod
    def error_exit(message: str, code: int = 1) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv=None) -> RunSummary:
        """Main entry point."""
        args = self.parse_args(argv)
        self.verbose = args.verbose
        self.quiet = args.quiet
        if self.verbose:
            logging.getLogger().setLevel(logging.INFO)

        self.validate_args(args)
        config = self.load_configuration(args)
        params = self.create_params(args, config)

        self.console_width = config.console_width
        # generated commands may be piped into a shell, keep stdout clean
        self.term_out = sys.stderr.isatty() and params.action_mode != ActionMode.GENERATE_COMMANDS

        self.command = PkgLinkCommand()
        previous_handlers = self.install_signal_handlers()

        try:
            summary = self.command.execute(
                params,
                progress_callback=self.progress_callback,
                output_callback=self.output_callback
            )
        except PkgLinkError as e:
            self.clear_progress()
            self.error_exit(str(e))
        except RuntimeError as e:
            self.clear_progress()
            self.error_exit(f"Scan failed: {e}")
        finally:
            self.restore_signal_handlers(previous_handlers)
        self.clear_progress()

        if summary.cancelled:
            self.warning("Run cancelled, partial results saved")
        self.report(summary, params)

        elapsed = time.time() - self.start_time
        if self.verbose:
            print(f"\n✅ Completed in {elapsed:.2f} seconds")
        return summary


def main() -> None:
    """Application entry point."""
    app = CLIApplication()
    try:
        app.run()
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)")
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
