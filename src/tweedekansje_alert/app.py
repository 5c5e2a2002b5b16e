"""Application bootstrapper for the Tweedekansje alert service."""
from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from .config import AppConfig, load_config
from .scheduler.poller import PollingScheduler
from .services.watch_check import WatchCheckService
from .web.app import bootstrap_app, build_services

logger = logging.getLogger(__name__)


def create_polling_runtime(watch_check: WatchCheckService, config: AppConfig) -> PollingScheduler:
    """Create the background scheduler that runs polling passes."""

    def _task() -> None:
        summary = watch_check.run_all()
        logger.info("Scheduled pass sent %s emails", summary.emails_sent)

    scheduler = PollingScheduler(config.polling.interval_seconds, _task, run_immediately=True)
    scheduler.start()
    return scheduler


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def run() -> None:
    """Entrypoint used by the CLI to launch the HTTP API and scheduler."""

    _configure_logging()
    config = load_config()
    app, services = bootstrap_app(config)
    scheduler = create_polling_runtime(services.watch_check, config)
    app.config["scheduler"] = scheduler
    try:
        app.run(debug=config.environment == "development", use_reloader=False)
    finally:
        scheduler.stop()


def check_once(store_id: Optional[str] = None) -> None:
    """Run a single polling pass and print its summary as JSON."""

    _configure_logging()
    services = build_services(load_config())
    if store_id:
        summary = services.watch_check.run_store(store_id)
    else:
        summary = services.watch_check.run_all()
    print(json.dumps(summary.to_dict(), indent=2, default=str))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="tweedekansje-alert")
    subcommands = parser.add_subparsers(dest="command")
    subcommands.add_parser("serve", help="Run the HTTP API with the background scheduler")
    check = subcommands.add_parser("check", help="Run one polling pass and exit")
    check.add_argument("--store", dest="store_id", default=None, help="Only check watches for this store id")

    args = parser.parse_args(argv)
    if args.command == "check":
        check_once(args.store_id)
    else:
        run()


if __name__ == "__main__":  # pragma: no cover - manual execution only
    main()
