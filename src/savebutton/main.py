"""Main application entry point."""

import argparse
import asyncio
import getpass
import signal
import sys
from typing import List, Optional

from .api_clients import AuthenticationError, TransportError
from .bridge import DaemonBridge
from .config.settings import get_settings
from .config.store import ConfigurationError, get_config_store
from .core import SyncOrchestrator, SyncReport
from .scheduler import SyncScheduler
from .storage import LocalFileStore
from .utils.logging import setup_logging, get_logger


class SaveButtonApp:
    """Long-running sync service."""

    def __init__(self):
        """Initialize the application."""
        self.settings = get_settings()
        self.logger = get_logger("SaveButton")
        self.running = False
        self._stop_event: Optional[asyncio.Event] = None

        self.file_store = LocalFileStore(self.settings.storage.data_path)
        self.config_store = get_config_store()
        self.orchestrator = SyncOrchestrator(
            config_store=self.config_store,
            file_store=self.file_store,
            bridge=DaemonBridge()
        )
        self.scheduler = SyncScheduler(self.orchestrator)

    async def startup(self):
        """Application startup."""
        self.logger.info(
            f"Starting {self.settings.name} sync",
            version=self.settings.version,
            environment=self.settings.environment,
            data_dir=str(self.file_store.root)
        )

        self.file_store.ensure_dirs()
        await self.scheduler.start()
        self.running = True

        # First cycle right away rather than waiting a full interval
        await self.orchestrator.trigger_sync()

    async def shutdown(self):
        """Application shutdown."""
        self.logger.info("Shutting down Save Button sync")
        self.running = False

        if self.scheduler.running:
            await self.scheduler.stop()
        await self.orchestrator.shutdown()

        self.logger.info("Save Button sync stopped")

    def request_stop(self):
        self.running = False
        if self._stop_event:
            self._stop_event.set()

    async def run(self):
        """Run until a stop is requested."""
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                pass

        await self.startup()
        try:
            await self._stop_event.wait()
        finally:
            await self.shutdown()


def _print_report(report: Optional[SyncReport]) -> int:
    if report is None:
        print("Sync skipped (not configured, or a sync is already running)")
        return 1

    print(f"anga:  {report.anga.downloaded} downloaded, {report.anga.uploaded} uploaded")
    print(f"meta:  {report.meta.downloaded} downloaded, {report.meta.uploaded} uploaded")
    print(f"words: {report.words.downloaded} downloaded")
    for failure in report.failures:
        print(f"FAILED {failure}")
    for error in report.errors:
        print(f"ERROR {error.collection}/{error.filename} ({error.operation}): {error.error}")
    return 0 if report.success else 1


async def _sync_once() -> int:
    settings = get_settings()
    store = LocalFileStore(settings.storage.data_path)
    store.ensure_dirs()
    orchestrator = SyncOrchestrator(get_config_store(), store)
    try:
        return _print_report(await orchestrator.trigger_sync())
    finally:
        await orchestrator.shutdown()


async def _test_connection() -> int:
    settings = get_settings()
    orchestrator = SyncOrchestrator(get_config_store(), LocalFileStore(settings.storage.data_path))
    try:
        await orchestrator.test_connection()
    except AuthenticationError as e:
        print(f"Authentication error: {e}")
        return 2
    except TransportError as e:
        print(f"Connection error: {e}")
        return 3
    print("Connection OK")
    return 0


async def _configure(args: argparse.Namespace) -> int:
    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")

    changes = {"configured": True}
    if args.server is not None:
        changes["server"] = args.server
    if args.email is not None:
        changes["email"] = args.email
    if password:
        changes["password"] = password

    try:
        await get_config_store().save(**changes)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}")
        return 2
    print("Configuration saved")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="savebutton",
        description="Keep the local Save Button collection in sync with the server"
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Sync on a schedule until interrupted (default)")
    subparsers.add_parser("sync", help="Run a single sync cycle")
    subparsers.add_parser("test-connection", help="Check the server accepts the stored credentials")

    configure = subparsers.add_parser("configure", help="Store server and account credentials")
    configure.add_argument("--server", default=None)
    configure.add_argument("--email", default=None)
    configure.add_argument("--password", default=None, help="Prompted for when omitted")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    command = args.command or "run"
    if command == "sync":
        return await _sync_once()
    if command == "test-connection":
        return await _test_connection()
    if command == "configure":
        return await _configure(args)

    await SaveButtonApp().run()
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    cli()
