# src/main.py — v3
"""CLI entry point: run, identity and context commands.

Usage:
    pinhandoff run [--mode build|upload|combined] [options]
    pinhandoff identity
    pinhandoff context show [--json]
    pinhandoff context merge '<json object>'
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from pinhandoff.config.settings import Settings, load_settings
from pinhandoff.core.errors import ConfigError, PinHandoffError
from pinhandoff.logging.context import set_run_context
from pinhandoff.logging.logger import setup_logging
from pinhandoff.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    setup_logging(level="DEBUG" if args.verbose else "INFO")
    try:
        settings = load_settings(**_overrides(args))
    except ConfigError as exc:
        logger.error("config phase failed: %s", exc)
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    set_run_context(settings.github_run_id)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except PinHandoffError as exc:
        logger.error("%s phase failed: %s", exc.phase or args.command, exc, exc_info=args.verbose)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pinhandoff",
        description=f"pinhandoff v{__version__}: build/upload handoff for paid content publishing",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-w", "--workspace", default=None,
        help="Working area holding action-context/ (default: GITHUB_WORKSPACE or .)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser("run", help="Run the build, upload or combined phase")
    p_run.add_argument(
        "--mode", choices=["build", "upload", "combined", "all"], default=None,
        help="Phase to run (default: MODE input, else build)",
    )
    p_run.add_argument("--path", dest="content_path", default=None, help="Content path to pack")
    p_run.add_argument("--artifact-name", default=None, help="Override the build bundle name")
    p_run.add_argument("--min-days", default=None, help="Target runway in days")
    p_run.add_argument("--max-balance", default=None, help="Balance cap (token amount)")
    p_run.add_argument("--max-top-up", default=None, help="Per-run top-up cap (token amount)")
    p_run.add_argument("--provider-address", default=None, help="Storage provider override")
    p_run.add_argument(
        "--with-cdn", action="store_const", const="true", default=None,
        help="Request CDN delivery",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- identity ---
    p_identity = subparsers.add_parser(
        "identity", help="Print the artifact identity this execution resolves to",
    )
    p_identity.add_argument("--artifact-name", default=None, help="Manual override")
    p_identity.set_defaults(func=_cmd_identity, mode="build")

    # --- context ---
    p_context = subparsers.add_parser("context", help="Inspect or update the context record")
    context_sub = p_context.add_subparsers(dest="context_command", required=True)

    p_show = context_sub.add_parser("show", help="Print context_* outputs")
    p_show.add_argument("--json", action="store_true", help="Print the raw record")
    p_show.set_defaults(func=_cmd_context_show, mode="build")

    p_merge = context_sub.add_parser("merge", help="Merge a JSON object into the record")
    p_merge.add_argument("partial", help="JSON object of fields to overwrite")
    p_merge.set_defaults(func=_cmd_context_merge, mode="build")

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    keys = (
        "mode", "content_path", "artifact_name", "min_days", "max_balance",
        "max_top_up", "provider_address", "with_cdn", "workspace",
    )
    return {k: getattr(args, k) for k in keys if getattr(args, k, None) is not None}


def _trigger(settings: Settings):
    from pinhandoff.identity.events import read_event_payload, trigger_from_event

    payload = read_event_payload(settings.github_event_path)
    return trigger_from_event(settings.github_event_name, payload, settings.github_run_id)


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the configured phase and publish step outputs."""
    from pinhandoff.archive.packer_factory import create_packer
    from pinhandoff.channel.channel_factory import create_channel
    from pinhandoff.context.store import ContextStore
    from pinhandoff.payment.ledger_factory import create_ledger
    from pinhandoff.pipeline.orchestrator import PhaseOrchestrator
    from pinhandoff.pipeline.outputs import write_outputs, write_summary
    from pinhandoff.publish.publisher_factory import create_publisher

    store = ContextStore(settings.workspace_path)
    orchestrator = PhaseOrchestrator(
        settings=settings,
        store=store,
        channel=create_channel(settings),
        packer=create_packer(settings),
        ledger=create_ledger(settings) if settings.pays else None,
        publisher=create_publisher(settings) if settings.pays else None,
        trigger=_trigger(settings),
    )

    logger.info("Running %s phase", settings.mode)
    result = await orchestrator.run()

    write_outputs(settings.github_output, result.outputs())
    write_summary(settings.github_step_summary, await store.load(), result.status or "")
    _print_result_summary(result)
    return 0


async def _cmd_identity(args: argparse.Namespace, settings: Settings) -> int:
    from pinhandoff.identity.resolver import resolve_identity

    print(resolve_identity(_trigger(settings), settings.artifact_name or None))
    return 0


async def _cmd_context_show(args: argparse.Namespace, settings: Settings) -> int:
    """Print the record, and emit context_* step outputs when under Actions."""
    from pinhandoff.context.store import ContextStore, context_outputs
    from pinhandoff.pipeline.outputs import write_outputs

    context = await ContextStore(settings.workspace_path).load()
    if args.json:
        print(context.model_dump_json(indent=2))
        return 0

    outputs = context_outputs(context)
    write_outputs(settings.github_output, outputs)
    for name, value in outputs.items():
        print(f"{name}={value}")
    return 0


async def _cmd_context_merge(args: argparse.Namespace, settings: Settings) -> int:
    from pinhandoff.context.store import ContextStore

    try:
        partial = json.loads(args.partial)
    except json.JSONDecodeError as e:
        raise ConfigError(f"partial is not valid JSON: {e}", phase="context") from e
    if not isinstance(partial, dict):
        raise ConfigError("partial must be a JSON object", phase="context")

    try:
        context = await ContextStore(settings.workspace_path).merge(partial)
    except PinHandoffError as e:
        raise e.with_phase("context")
    except ValidationError as e:
        raise ConfigError(f"partial does not fit the context record: {e}", phase="context") from e
    print(context.model_dump_json(indent=2))
    return 0


def _print_result_summary(result: Any) -> None:
    """Print a human-readable summary of a PhaseResult."""
    print(f"\n{result.mode.capitalize()} complete:")
    print(f"  Status:        {result.status or ''}")
    print(f"  Content hash:  {result.content_hash}")
    print(f"  Artifact:      {result.artifact_identity}")
    if result.piece_cid or result.dataset_id:
        print(f"  Piece CID:     {result.piece_cid}")
        print(f"  Dataset ID:    {result.dataset_id}")
        print(f"  Provider:      {result.provider.name or 'Unknown'} (ID {result.provider.id or 'Unknown'})")
    if result.status_reason:
        print(f"  Reason:        {result.status_reason}")


if __name__ == "__main__":
    sys.exit(main())
