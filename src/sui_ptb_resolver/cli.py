"""
sui-ptb-resolver command line.

Usage:
    sui-ptb-resolver resolve --target 0xPKG::resolver::resolve --state 0xSTATE --payload-hex 01ab...
    sui-ptb-resolver decode-discovered 0x0103...
    sui-ptb-resolver decode-event needs-data <base64>
"""

from __future__ import annotations

import argparse
import base64
import binascii
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sui_ptb_resolver.config import NETWORKS, get_network_config, load_resolver_config
from sui_ptb_resolver.converters import bytes_to_address, bytes_to_hex, hex_to_bytes
from sui_ptb_resolver.discovered import DiscoveredData
from sui_ptb_resolver.errors import ResolverError
from sui_ptb_resolver.events import ErrorEvent, InstructionsEvent, NeedsDataEvent
from sui_ptb_resolver.lookup_keys import LookupKind
from sui_ptb_resolver.models import InstructionGroup
from sui_ptb_resolver.orchestrator import ResolverOutput, SuiPTBResolver
from sui_ptb_resolver.reconstructor import TransactionReconstructor

console = Console()
logger = logging.getLogger(__name__)


def _preview(value: bytes) -> str:
    try:
        text = value.decode("utf-8")
    except UnicodeDecodeError:
        return ""
    return text if text.isprintable() else ""


def _discovered_table(entries: list[tuple[str, bytes]], title: str) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Semantic key", style="cyan")
    table.add_column("Bytes", justify="right")
    table.add_column("Value")
    for i, (key, value) in enumerate(entries):
        preview = _preview(value)
        table.add_row(str(i), key, str(len(value)), preview or bytes_to_hex(value))
    return table


def _group_summary(group: InstructionGroup) -> dict[str, Any]:
    tx = TransactionReconstructor().build(group)
    return {
        **tx.to_ptb_spec(),
        "required_objects": [bytes_to_address(o) for o in group.required_objects],
        "required_types": list(group.required_types),
    }


def _output_to_dict(output: ResolverOutput) -> dict[str, Any]:
    return {
        "iterations": output.iterations,
        "discovered": {k: bytes_to_hex(v) for k, v in output.discovered.items()},
        "required_objects": output.required_objects,
        "required_types": output.required_types,
        "ptb": output.transaction.to_ptb_spec(),
    }


def _emit_json(obj: Any) -> None:
    sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_resolve(args: argparse.Namespace) -> int:
    if args.payload_hex is not None:
        payload = hex_to_bytes(args.payload_hex)
    else:
        try:
            payload = base64.b64decode(args.payload_base64, validate=True)
        except binascii.Error as e:
            console.print(f"[red]Invalid --payload-base64:[/red] {e}")
            return 2

    config = load_resolver_config()
    if config.debug:
        logging.getLogger("sui_ptb_resolver").setLevel(logging.DEBUG)
    overrides: dict[str, Any] = {}
    if args.network:
        overrides["network"] = get_network_config(args.network)
    if args.rpc_url:
        network = overrides.get("network", config.network)
        overrides["network"] = type(network)(network.name, args.rpc_url)
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.trace_dir is not None:
        overrides["trace_dir"] = args.trace_dir
    if overrides:
        config = config.with_overrides(**overrides).validate()

    resolver = SuiPTBResolver(config)
    try:
        output = resolver.resolve_move_call(args.target, args.state, payload)
    except ResolverError as e:
        if args.json:
            _emit_json({"error": e.to_dict()})
        else:
            console.print(Panel(str(e), title=f"[red]{type(e).__name__}[/red]", border_style="red"))
        return 1
    finally:
        close = getattr(resolver.client, "close", None)
        if close is not None:
            close()

    if args.json:
        _emit_json(_output_to_dict(output))
        return 0

    console.print(f"[bold green]Resolved after {output.iterations} iteration(s)[/bold green]")
    console.print(_discovered_table(list(output.discovered.items()), "Discovered data"))
    console.print_json(json.dumps(output.transaction.to_ptb_spec()))
    if output.required_objects:
        console.print("[bold]Required objects:[/bold] " + ", ".join(output.required_objects))
    if output.required_types:
        console.print("[bold]Required types:[/bold] " + ", ".join(output.required_types))
    return 0


def cmd_decode_discovered(args: argparse.Namespace) -> int:
    data = DiscoveredData.decode(hex_to_bytes(args.data))
    if args.json:
        _emit_json([{"key": k, "value": bytes_to_hex(v)} for k, v in data.entries()])
    else:
        console.print(_discovered_table(data.entries(), f"Discovered data ({len(data)} entries)"))
    return 0


def cmd_decode_event(args: argparse.Namespace) -> int:
    try:
        raw = base64.b64decode(args.data, validate=True)
    except binascii.Error as e:
        console.print(f"[red]Invalid base64:[/red] {e}")
        return 2

    out: dict[str, Any]
    if args.kind == "needs-data":
        ev = NeedsDataEvent.decode(raw)
        lookup = ev.to_lookup()
        out = {
            "parent_object": bytes_to_address(ev.parent_object),
            "lookup_kind": LookupKind(ev.lookup_kind).name,
            "lookup_key": bytes_to_hex(ev.lookup_key),
            "key_type": ev.key_type,
            "semantic_key": ev.semantic_key,
            "lookup": type(lookup).__name__,
        }
    elif args.kind == "instructions":
        out = _group_summary(InstructionsEvent.decode(raw).group)
    else:
        out = {"message": ErrorEvent.decode(raw).message}

    if args.json:
        _emit_json(out)
    else:
        console.print_json(json.dumps(out))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sui-ptb-resolver", description="Resolve Sui PTBs through trial execution")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_resolve = subparsers.add_parser("resolve", help="Resolve a PTB via devInspect of a resolver entry point")
    p_resolve.add_argument("--target", required=True, help="Resolver function, e.g. 0xPKG::resolver::resolve")
    p_resolve.add_argument("--state", required=True, help="Resolver state object id")
    payload = p_resolve.add_mutually_exclusive_group(required=True)
    payload.add_argument("--payload-hex", help="Payload bytes as hex")
    payload.add_argument("--payload-base64", help="Payload bytes as base64")
    p_resolve.add_argument("--network", choices=sorted(NETWORKS), help="Network (default from SUI_PTB_NETWORK)")
    p_resolve.add_argument("--rpc-url", help="Fullnode URL (overrides --network)")
    p_resolve.add_argument("--max-iterations", type=int, help="Iteration budget (1-100)")
    p_resolve.add_argument("--trace-dir", type=Path, help="Write a JSONL trace of the session here")
    p_resolve.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    p_resolve.set_defaults(func=cmd_resolve)

    p_disc = subparsers.add_parser("decode-discovered", help="Decode a BCS discovered-data table")
    p_disc.add_argument("data", help="Table bytes as hex")
    p_disc.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    p_disc.set_defaults(func=cmd_decode_discovered)

    p_event = subparsers.add_parser("decode-event", help="Decode a resolver event payload")
    p_event.add_argument("kind", choices=["needs-data", "instructions", "error"])
    p_event.add_argument("data", help="Event BCS as base64")
    p_event.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    p_event.set_defaults(func=cmd_decode_event)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ResolverError as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
