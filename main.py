"""CLI entrypoint: serve the harvest API or run a harvest from the terminal."""

from __future__ import annotations

import argparse
import logging
import os
import threading

import requests
from dotenv import load_dotenv

from artifact_store import ArtifactStore
from client_state import HarvestPhase, HarvestView, consume
from csv_sink import save_csv
from harvester import start_harvest
from models import HarvestRequest, InvalidRequest
from progress_channel import COMPLETE, ERROR, PAPERS, PROGRESS, STATUS, ProgressChannel, ProgressEvent

DEFAULT_HOST = os.getenv("SCHOLAR_HARVEST_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("SCHOLAR_HARVEST_PORT", "8000"))
DEFAULT_OUTPUT_DIR = os.getenv("HARVEST_OUTPUT_DIR", ".")
REMOTE_CONNECT_TIMEOUT_SECONDS = 10


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Harvest Google Scholar results (via SerpAPI) into CSV")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the streaming harvest HTTP API")
    serve.add_argument("--host", default=DEFAULT_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)

    harvest = subparsers.add_parser("harvest", help="Harvest one query and save the CSV locally")
    harvest.add_argument("query", help="Google Scholar search query")
    harvest.add_argument(
        "--api-key",
        default=os.getenv("SERPAPI_API_KEY", ""),
        help="SerpAPI key (defaults to SERPAPI_API_KEY)",
    )
    harvest.add_argument("--max-results", type=int, default=None, help="Maximum number of records to collect")
    harvest.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, help="Directory the CSV is written to")
    harvest.add_argument(
        "--server",
        default=None,
        help="Base URL of a running harvest API; harvests in-process when omitted",
    )

    args = parser.parse_args(argv)
    if args.command == "harvest":
        try:
            args.request = HarvestRequest.create(args.api_key, args.query, args.max_results)
        except InvalidRequest as exc:
            harvest.error(str(exc))
    return args


def log_event(event: ProgressEvent) -> None:
    data = event.data
    if event.kind == STATUS:
        logging.info("%s", data.get("message", ""))
    elif event.kind == PROGRESS:
        logging.info("%s (collected so far: %s)", data.get("message", ""), data.get("totalSoFar", 0))
    elif event.kind == PAPERS:
        logging.info(
            "+%s papers, total=%s, latest: %s",
            data.get("newCount", 0),
            data.get("totalSoFar", 0),
            data.get("latestTitle", ""),
        )
    elif event.kind == ERROR:
        logging.error("%s", data.get("message", ""))
    elif event.kind == COMPLETE:
        logging.info("Harvest complete: %s papers", data.get("totalRecords", 0))


def run_local(request: HarvestRequest, output_dir: str) -> HarvestView:
    """Harvest in-process. Ctrl-C stops paging but still exports what was collected."""
    store = ArtifactStore()
    cancel = threading.Event()
    channel, _ = start_harvest(request, store, cancel)
    view = HarvestView()

    _drain(channel, view, cancel)

    if view.download_ready:
        save_csv(store.get(view.filename), output_dir, view.filename)
    return view


def _drain(channel: ProgressChannel, view: HarvestView, cancel: threading.Event) -> None:
    while True:
        try:
            for event in channel:
                view.apply(event)
                log_event(event)
            return
        except KeyboardInterrupt:
            if cancel.is_set():
                raise
            logging.warning("Interrupted; stopping after the current page (collected %s)", view.total_records)
            cancel.set()


def run_remote(request: HarvestRequest, output_dir: str, server: str) -> HarvestView:
    """Harvest through a running API, following its event stream."""
    base_url = server.rstrip("/")
    payload = {"apiKey": request.credential, "keyword": request.query, "maxResults": request.max_records}
    view = HarvestView()

    with requests.post(
        f"{base_url}/api/scrape",
        json=payload,
        stream=True,
        timeout=(REMOTE_CONNECT_TIMEOUT_SECONDS, None),
    ) as response:
        response.raise_for_status()
        consume(response.iter_content(chunk_size=None), view, on_event=log_event)

    if view.download_ready:
        download = requests.get(
            f"{base_url}/api/download",
            params={"file": view.filename},
            timeout=REMOTE_CONNECT_TIMEOUT_SECONDS,
        )
        download.raise_for_status()
        save_csv(download.content.decode("utf-8"), output_dir, view.filename)
    return view


def serve(host: str, port: int) -> None:
    import uvicorn  # noqa: PLC0415

    uvicorn.run("app:app", host=host, port=port)


def main(argv: list[str] | None = None) -> int:
    """Initialize config and dispatch the chosen command."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    if args.command == "serve":
        serve(args.host, args.port)
        return 0

    if args.server:
        view = run_remote(args.request, args.output_dir, args.server)
    else:
        view = run_local(args.request, args.output_dir)

    logging.info("%s", view.message)
    if view.error_message:
        logging.warning("Run reported an error: %s", view.error_message)
    return 1 if view.phase is HarvestPhase.ERROR else 0


if __name__ == "__main__":
    raise SystemExit(main())
