"""smart-title CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from .config import TitleConfig
from .errors import NoAvailableModelsError
from .logger import DEFAULT_LOG_DIR, TitleLogger
from .models.selectors import ModelSelector
from .providers import default_registry
from .providers.base import ProviderRegistry
from .providers.dryrun import DryRunProviderRegistry
from .utils import load_dotenv


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="smart-title", description="Title model selection")
    sub = parser.add_subparsers(dest="command")

    select = sub.add_parser("select", help="Resolve the model used for title generation")
    select.add_argument("--model", help='Configured model in "provider/model" form')
    select.add_argument("--timeout", type=float, help="Per-attempt construction timeout in seconds")
    select.add_argument("--debug", action="store_true", help="Write debug logs")
    select.add_argument("--log-dir", dest="log_dir", help="Debug log directory")
    select.add_argument("--json", action="store_true", help="Print the selection as JSON")
    select.add_argument("--dryrun", action="store_true", help="Use the offline registry")
    select.add_argument("--providers", default="", help="Comma-separated authenticated providers (dry-run)")
    select.add_argument(
        "--fail",
        action="append",
        default=[],
        help="provider/model that fails to construct (dry-run, repeatable)",
    )
    return parser


def _split_ids(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_registry(args: argparse.Namespace) -> ProviderRegistry:
    if args.dryrun:
        return DryRunProviderRegistry(_split_ids(args.providers), failing=args.fail)
    return default_registry()


def _handle_select(args: argparse.Namespace) -> int:
    config = TitleConfig.from_env().with_model(args.model)
    if args.debug:
        config = config.merged({"debug": True})
    if args.timeout is not None:
        config = config.merged({"model_timeout_s": args.timeout})
    logger = TitleLogger(Path(args.log_dir) if args.log_dir else DEFAULT_LOG_DIR, enabled=config.debug)
    selector = ModelSelector(
        registry=_build_registry(args),
        logger=logger,
        attempt_timeout_s=config.model_timeout_s,
    )
    try:
        result = asyncio.run(selector.select(config.model))
    except NoAvailableModelsError as exc:
        if args.json:
            print(json.dumps({"error": str(exc)}))
        else:
            print(f"Model selection failed: {exc}")
        return 1
    if args.json:
        print(json.dumps(result.to_dict()))
        return 0
    print(f"Model: {result.model_info} ({result.source})")
    print(f"Reason: {result.reason}")
    if result.failed_model:
        print(f"Configured model {result.failed_model} failed; using {result.model_info}")
    return 0


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "select":
        raise SystemExit(_handle_select(args))
    parser.print_help()
    raise SystemExit(1)


if __name__ == "__main__":
    main()
