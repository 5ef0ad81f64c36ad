"""Run the reporting agent until interrupted."""

from __future__ import annotations

import argparse
import signal
import threading

from backend.collector.agent import MetricsAgent, MetricsReporter
from backend.collector.config import load_settings
from backend.collector.infra.logging import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-a", dest="address", help="server address host:port")
    parser.add_argument("-r", dest="report_interval", help="seconds between reports")
    parser.add_argument("-p", dest="poll_interval", help="seconds between polls")
    parser.add_argument("--profile", help="config profile name (defaults to 'dev')")
    args = parser.parse_args()

    settings = load_settings(
        profile=args.profile,
        overrides={
            "address": args.address,
            "report_interval": args.report_interval,
            "poll_interval": args.poll_interval,
        },
    )
    setup_logging(settings.log_level, json_output=settings.log_json)

    stop_event = threading.Event()
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, lambda *_: stop_event.set())

    reporter = MetricsReporter(settings.server.address)
    try:
        MetricsAgent(settings.agent, reporter).run(stop_event)
    finally:
        reporter.close()


if __name__ == "__main__":
    main()
