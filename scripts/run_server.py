"""Run the metrics collection server under uvicorn."""

from __future__ import annotations

import argparse

import uvicorn

from backend.collector.config import load_settings
from backend.collector.infra.logging import get_logger, setup_logging
from backend.collector.main import create_app

logger = get_logger(__name__)


def split_address(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    if not port.isdigit():
        raise SystemExit(f"Invalid listen address '{address}', expected host:port")
    return host or "0.0.0.0", int(port)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-a", dest="address", help="listen address host:port")
    parser.add_argument(
        "-i", dest="store_interval", help="seconds between snapshots; 0 writes through"
    )
    parser.add_argument("-f", dest="file_storage_path", help="snapshot file path")
    parser.add_argument("-r", dest="restore", help="restore the snapshot on start (true/false)")
    parser.add_argument("-d", dest="database_dsn", help="database DSN; selects the SQL backend")
    parser.add_argument("--profile", help="config profile name (defaults to 'dev')")
    args = parser.parse_args()

    settings = load_settings(
        profile=args.profile,
        overrides={
            "address": args.address,
            "store_interval": args.store_interval,
            "file_storage_path": args.file_storage_path,
            "restore": args.restore,
            "database_dsn": args.database_dsn,
        },
    )
    setup_logging(settings.log_level, json_output=settings.log_json)
    host, port = split_address(settings.server.address)
    logger.info("metrics_server_listening", extra={"url": f"http://{host}:{port}"})
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
