"""CLI entrypoint for scheduling runs, manual overrides and generation sync."""

from __future__ import annotations

import argparse
from datetime import date, datetime
import json
import logging
from pathlib import Path
import sys

from config import Settings
from orchestrator import SchedulingOrchestrator, build_context
from utils.exceptions import ConfigurationError, PipelineError
from utils.logger import configure_logging


logger = logging.getLogger(__name__)


def _dump(payload) -> None:
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(mode="json")
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _json_file(path: str):
    try:
        raw = Path(path).read_text(encoding="utf-8").strip()
        payload = json.loads(raw) if raw else {}
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read metadata file: {exc}", {"path": path}) from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("metadata file must hold a JSON object", {"path": path})
    return payload


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ConfigurationError("invalid --date, expected YYYY-MM-DD", {"date": value}) from exc


def _parse_local_time(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M")
    except ValueError as exc:
        raise ConfigurationError("invalid --at, expected YYYY-MM-DDTHH:MM", {"at": value}) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reel scheduler CLI")
    parser.add_argument("--env-file", default="", help="Path to .env (default: config/.env)")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default="", help="Also write logs to logs/<name>")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status")

    run = sub.add_parser("run")
    run.add_argument("--limit", type=int, default=None)
    run.add_argument("--date", default="", help="Start date YYYY-MM-DD")

    manual = sub.add_parser("manual-schedule")
    manual.add_argument("--file", required=True)
    manual.add_argument("--at", required=True, help="Local time YYYY-MM-DDTHH:MM")
    manual.add_argument("--count-in-baseline", action="store_true")

    delete = sub.add_parser("delete")
    delete.add_argument("--file", required=True)

    submit = sub.add_parser("submit")
    submit.add_argument("--prompt", required=True)

    poll = sub.add_parser("poll")
    poll.add_argument("--task-id", required=True)
    poll.add_argument("--prompt", default="")

    sub.add_parser("sync-feed")

    download = sub.add_parser("download")
    download.add_argument("--url", default="")
    download.add_argument("--file", default="")
    download.add_argument("--meta-json", default="", help="Path to WorkItem metadata JSON")
    download.add_argument("--unique-id", default="")

    return parser


def run_command(args: argparse.Namespace, settings: Settings) -> None:
    ctx = build_context(settings)
    orchestrator = SchedulingOrchestrator(ctx)

    if args.command == "status":
        _dump(orchestrator.status())
        return

    if args.command == "run":
        start = _parse_date(args.date) if args.date else None
        with ctx.guard.hold("batch"):
            _dump(orchestrator.run_batch(limit=args.limit, start_date=start))
        return

    if args.command == "manual-schedule":
        local_time = _parse_local_time(args.at)
        with ctx.guard.hold("manual"):
            item = orchestrator.manual_schedule(args.file, local_time, count_in_baseline=args.count_in_baseline)
        _dump(item.to_record())
        return

    if args.command == "delete":
        removed = orchestrator.delete_item(args.file)
        _dump({"deleted": removed.file_name})
        return

    reconciler = ctx.reconciler()

    if args.command == "submit":
        _dump(reconciler.submit(args.prompt))
        return

    if args.command == "poll":
        result = reconciler.poll(args.task_id, request_text=args.prompt or None)
        payload = result.model_dump(mode="json")
        if result.match is not None:
            payload["low_confidence"] = result.match.is_low_confidence
        _dump(payload)
        return

    if args.command == "sync-feed":
        _dump({"created": reconciler.sync_feed()})
        return

    if args.command == "download":
        metadata = _json_file(args.meta_json) if args.meta_json else None
        _dump(
            reconciler.download(
                url=args.url or None,
                file_name=args.file or None,
                metadata=metadata,
                unique_id=args.unique_id or None,
            )
        )
        return


def main() -> None:
    args = build_parser().parse_args()
    configure_logging(
        getattr(logging, str(args.log_level).upper(), logging.INFO),
        log_file=args.log_file or None,
    )
    settings = Settings.load_from_env_file(Path(args.env_file) if args.env_file else None)

    try:
        run_command(args, settings)
    except PipelineError as exc:
        logger.error("command_failed command=%s error=%s", args.command, exc)
        _dump({"error": type(exc).__name__, "message": exc.message, "details": exc.details})
        sys.exit(1)


if __name__ == "__main__":
    main()
