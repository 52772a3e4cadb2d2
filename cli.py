"""
Lambda provisioner CLI (flat-layout friendly).

Usage
-----
lambdaprov deploy --app api --stage dev --inputs inputs.json
lambdaprov info --app api --stage dev
lambdaprov metrics --app api --stage dev --start 2026-01-01T00:00:00Z --end 2026-01-02T00:00:00Z
lambdaprov remove --app api --stage dev

State is kept in ``--state-dir`` (or STATE_DIR env var, default .lambda_state).
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from contracts.errors import ProvisioningError
from contracts.services import AwsClientFactory
from infra.aws_config import transport_from_settings
from infra.config import Settings, get_settings
from infra.logging_config import StructuredLogger, setup_logging
from services.provisioning.component import ClientsForRegion, LambdaComponent
from services.provisioning.state_store import JsonStateStore
from version import ENGINE_NAME, ENGINE_VERSION

_LOGGER = StructuredLogger("cli")


def make_clients_for_region(settings: Settings) -> ClientsForRegion:
    factory = AwsClientFactory(session=boto3.Session(), transport=transport_from_settings(settings.aws))
    return factory.for_region


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _parse_ts(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise SystemExit(f"Invalid ISO-8601 timestamp: {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _load_inputs(path: Optional[str]) -> dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.is_file():
        raise SystemExit(f"inputs file not found: {p}")
    payload = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise SystemExit("inputs file must contain a JSON object")
    return payload


def _store(args: argparse.Namespace, settings: Settings) -> JsonStateStore:
    return JsonStateStore(args.state_dir or settings.provisioning.state_dir)


def _component(args: argparse.Namespace, settings: Settings, store: JsonStateStore) -> LambdaComponent:
    return LambdaComponent(
        instance_name=args.app,
        stage=args.stage,
        state=store.load(args.app, args.stage),
        clients_for_region=make_clients_for_region(settings),
        provisioning=settings.provisioning,
    )


def cmd_deploy(args: argparse.Namespace) -> None:
    settings = get_settings()
    store = _store(args, settings)
    component = _component(args, settings, store)
    inputs = _load_inputs(args.inputs)
    if not inputs.get("region"):
        inputs["region"] = settings.aws.default_region
    try:
        outputs = component.deploy(inputs)
    finally:
        # partial progress (roles created, etc.) is kept even when a later step fails
        store.save(args.app, args.stage, component.state)
    _print_json(outputs)


def cmd_remove(args: argparse.Namespace) -> None:
    settings = get_settings()
    store = _store(args, settings)
    component = _component(args, settings, store)
    try:
        component.remove()
    finally:
        if component.state.is_empty():
            store.delete(args.app, args.stage)
        else:
            store.save(args.app, args.stage, component.state)
    _print_json({"removed": True})


def cmd_info(args: argparse.Namespace) -> None:
    settings = get_settings()
    component = _component(args, settings, _store(args, settings))
    descriptor = component.info()
    _print_json({"state": component.state.to_dict(), "function": asdict(descriptor) if descriptor else None})


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = get_settings()
    component = _component(args, settings, _store(args, settings))
    end = _parse_ts(args.end) if args.end else datetime.now(timezone.utc)
    start = _parse_ts(args.start) if args.start else end - timedelta(days=1)
    _print_json(component.metrics(start, end))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=ENGINE_NAME, description="AWS Lambda provisioner")
    p.add_argument("--version", action="version", version=f"{ENGINE_NAME} {ENGINE_VERSION}")
    p.add_argument("--log-level", default=None, help="DEBUG|INFO|WARNING|ERROR (or LAMBDAPROV_LOG_LEVEL).")
    p.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines.")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_identity(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--app", required=True, help="Deployment (instance) name.")
        sp.add_argument("--stage", required=True, help="Stage, e.g. dev or prod.")
        sp.add_argument("--state-dir", default=None, help="State directory (or STATE_DIR env var).")

    sp = sub.add_parser("deploy", help="Create or update the function.")
    add_identity(sp)
    sp.add_argument("--inputs", default=None, help="JSON file with component inputs.")
    sp.set_defaults(func=cmd_deploy)

    sp = sub.add_parser("remove", help="Delete the function and the roles it owns.")
    add_identity(sp)
    sp.set_defaults(func=cmd_remove)

    sp = sub.add_parser("info", help="Show stored state and the deployed function.")
    add_identity(sp)
    sp.set_defaults(func=cmd_info)

    sp = sub.add_parser("metrics", help="Fetch CloudWatch metrics through the meta role.")
    add_identity(sp)
    sp.add_argument("--start", default=None, help="Range start, ISO-8601 (default: end - 24h).")
    sp.add_argument("--end", default=None, help="Range end, ISO-8601 (default: now).")
    sp.set_defaults(func=cmd_metrics)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, json_logs=args.json_logs)
    try:
        args.func(args)
    except (ProvisioningError, ClientError, BotoCoreError) as exc:
        _LOGGER.exception("command_failed", command=args.cmd, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
