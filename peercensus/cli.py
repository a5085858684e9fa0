"""Click CLI entry point for the peer census collector."""
from __future__ import annotations

import logging
import signal
import sys
import threading

import click

from peercensus import __version__
from peercensus.config import Settings
from peercensus.credentials import AccessToken, read_access_token
from peercensus.errors import CredentialInputError, FatalStorageError, GeoLookupError
from peercensus.node import JsonLinesPeerSource
from peercensus.output.terminal import (
    print_archive_notice, print_event_source, print_fatal, render_geolocation,
)
from peercensus.scheduler import Scheduler
from peercensus.telemetry.enrich import PeerEventEnricher
from peercensus.telemetry.geolocate import GeoLocator
from peercensus.telemetry.log import TelemetryLog
from peercensus.telemetry.publish import ArchivePublisher, GitRepository

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="peercensus")
def cli() -> None:
    """Peer census - geolocated peer telemetry published to git."""
    pass


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from None


def _install_shutdown_handlers(shutdown: threading.Event) -> dict:
    """Route SIGINT/SIGTERM to the shutdown event. Returns previous handlers."""
    previous = {}
    if threading.current_thread() is not threading.main_thread():
        return previous
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, lambda *_: shutdown.set())
    return previous


def _restore_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


@cli.command()
@click.option("--geo-db", type=click.Path(dir_okay=False),
              help="IP geolocation database (.mmdb)")
@click.option("--log-file", type=click.Path(dir_okay=False),
              help="Where peer observations accumulate between archives")
@click.option("--repo-dir", type=click.Path(file_okay=False),
              help="Git working tree the log is committed into")
@click.option("--remote", help="Git remote to push to")
@click.option("--branch", "refspec", help="Refspec to push")
@click.option("--interval-hours", type=click.FloatRange(min=0, min_open=True),
              help="Hours between archive cycles")
@click.option("--events", "events", type=click.File("r", encoding="utf-8"),
              default="-", show_default=True,
              help="JSON-lines peer event stream")
@click.option("--stop-at-eof", is_flag=True,
              help="Shut down once the event stream ends")
@click.option("--no-archive", is_flag=True,
              help="Don't ask for an access token; never publish")
@click.option("--verbose", is_flag=True, help="Debug logging")
def run(geo_db: str | None, log_file: str | None, repo_dir: str | None,
        remote: str | None, refspec: str | None, interval_hours: float | None,
        events, stop_at_eof: bool, no_archive: bool, verbose: bool) -> None:
    """Collect peer telemetry and publish it periodically."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s: %(message)s",
    )

    settings = _load_settings()
    if geo_db:
        settings.geo_database = geo_db
    if log_file:
        settings.log_file = log_file
    if repo_dir:
        settings.repo_dir = repo_dir
    if remote:
        settings.remote = remote
    if refspec:
        settings.refspec = refspec
    if interval_hours:
        settings.archive_interval_seconds = interval_hours * 3600

    try:
        token = AccessToken() if no_archive else read_access_token()
    except CredentialInputError as e:
        print_fatal(str(e))
        sys.exit(1)

    with token:
        try:
            _run(settings, token, events, stop_at_eof)
        except FatalStorageError as e:
            print_fatal(str(e))
            sys.exit(1)
        except Exception as e:
            logger.debug("Unexpected error", exc_info=True)
            print_fatal(f"Unexpected error occurred: {e}")
            sys.exit(1)


def _run(settings: Settings, token: AccessToken, events, stop_at_eof: bool) -> None:
    print_archive_notice(bool(token))

    log = TelemetryLog(settings.log_file)
    publisher = ArchivePublisher(
        log, GitRepository(settings.repo_dir),
        remote=settings.remote, refspec=settings.refspec,
        push_timeout=settings.push_timeout_seconds,
    )
    scheduler = Scheduler(
        log, publisher, token,
        interval=settings.archive_interval_seconds,
        tick=settings.tick_seconds,
    )

    # Unpublished data from a previous run is dropped before any new events
    scheduler.purge_stale_log()

    enricher = PeerEventEnricher(GeoLocator(settings.geo_database), log)
    source = JsonLinesPeerSource(
        events, on_finished=scheduler.shutdown.set if stop_at_eof else None,
    )
    enricher.attach(source)

    previous = _install_shutdown_handlers(scheduler.shutdown)
    try:
        print_event_source(getattr(events, "name", "<stream>"))
        source.start()
        scheduler.run()
    finally:
        source.stop()
        _restore_handlers(previous)


@cli.command()
@click.argument("address")
@click.option("--geo-db", type=click.Path(dir_okay=False),
              help="IP geolocation database (.mmdb)")
def locate(address: str, geo_db: str | None) -> None:
    """Show the geolocation recorded for ADDRESS (host:port or [host]:port)."""
    settings = _load_settings()
    locator = GeoLocator(geo_db or settings.geo_database)
    try:
        geo = locator.resolve(address)
    except GeoLookupError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    render_geolocation(address, geo)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
