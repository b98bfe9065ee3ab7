"""dnsop CLI: run the engines and the reconciler from the command line.

Usage examples::

    dnsop generate-endpoints --hostname shop.example.com \\
        --routing '{"addresses": {"192.0.2.1": "IPAddress"}, "strategy": "simple"}'
    dnsop select-zone --provider inmemory -c '{"zones": ["example.com"]}' shop.example.com
    dnsop list-records --provider aws -c '{"region_name": "us-east-1"}' Z0123456789
    dnsop reconcile resources.json
    dnsop run resources.json

A resources file is a JSON object with ``providers`` (provider
descriptors) and ``records`` (record resources), both in camelCase form.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Any, get_args

from dnsop.base.config import ControllerConfig
from dnsop.base.exceptions import DNSOpError
from dnsop.base.logger import op_logger
from dnsop.base.supported_providers import existing_providers


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ``dnsop`` CLI.

    Returns:
        Configured :class:`~argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        prog="dnsop",
        description="Multi-writer DNS record controller",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (defaults to DNSOP_LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate-endpoints", help="Compile a routing into endpoints")
    gen.add_argument("--hostname", required=True, help="Hostname to publish")
    gen.add_argument("--routing", required=True, help="Routing as JSON (camelCase)")
    gen.add_argument("--labels", default=None, help="Object labels as JSON")
    gen.add_argument("--name", default="dnsrecord", help="Name of the publishing object")
    gen.add_argument("--namespace", default="default", help="Namespace of the publishing object")

    for command, help_text, positional, positional_help in (
        ("select-zone", "Pick the zone for a root host", "root_host", "Root host"),
        ("list-records", "List the records of a zone", "zone_id", "Zone ID"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument(
            "--provider", "-p",
            required=True,
            choices=list(get_args(existing_providers)),
            help="DNS provider",
        )
        p.add_argument(
            "--config", "-c",
            type=str,
            default="{}",
            help='JSON config string (e.g. \'{"region_name":"us-east-1"}\')',
        )
        p.add_argument(positional, help=positional_help)
        if command == "select-zone":
            p.add_argument("--domain-filter", action="append", default=[], help="Domain suffix")
            p.add_argument("--zone-id-filter", action="append", default=[], help="Zone ID")

    for command, help_text in (
        ("reconcile", "Run one pass for every record in a resources file"),
        ("run", "Keep reconciling the records of a resources file until interrupted"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument("resources", help="Path to a resources JSON file")
    return parser


def _load_json(raw: str, flag: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        print(f"Invalid {flag} JSON: {e}", file=sys.stderr)
        sys.exit(1)


def _dump(result: Any) -> None:
    print(json.dumps(result, indent=2, default=str))


def _load_store(path: str) -> Any:
    from dnsop.model.provider import ProviderDescriptor
    from dnsop.model.record import DNSRecord
    from dnsop.store import RecordStore

    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read resources file: {e}", file=sys.stderr)
        sys.exit(1)

    store = RecordStore()
    for raw in data.get("providers", []):
        store.put_provider(ProviderDescriptor.model_validate(raw))
    for raw in data.get("records", []):
        store.create(DNSRecord.model_validate(raw))
    return store


def _cmd_generate(ns: argparse.Namespace) -> Any:
    from dnsop.generator import generate_endpoints
    from dnsop.model.routing import Routing

    routing = Routing.from_dict(_load_json(ns.routing, "--routing"))
    labels = _load_json(ns.labels, "--labels") if ns.labels is not None else None
    endpoints = generate_endpoints((ns.namespace, ns.name), labels, ns.hostname, routing)
    return [ep.model_dump(by_alias=True, exclude={"labels"}) for ep in endpoints]


def _cmd_select_zone(ns: argparse.Namespace) -> Any:
    from dnsop.factory import provider_factory
    from dnsop.zones import select_zone

    provider = provider_factory(ns.provider, _load_json(ns.config, "--config"))
    zone = select_zone(ns.root_host, provider.list_zones(), ns.domain_filter, ns.zone_id_filter)
    return zone.model_dump(by_alias=True)


def _cmd_list_records(ns: argparse.Namespace) -> Any:
    from dnsop.factory import provider_factory

    provider = provider_factory(ns.provider, _load_json(ns.config, "--config"))
    return [ep.model_dump(by_alias=True) for ep in provider.list_records(ns.zone_id)]


def _cmd_reconcile(ns: argparse.Namespace) -> Any:
    from dnsop.controller import DNSRecordReconciler

    store = _load_store(ns.resources)
    asyncio.run(DNSRecordReconciler(store).reconcile_all())
    return {
        r.key: r.status.model_dump(by_alias=True, mode="json") for r in store.list_records()
    }


def _cmd_run(ns: argparse.Namespace) -> Any:
    from dnsop.controller import DNSRecordReconciler, ReconcileLoop

    store = _load_store(ns.resources)

    async def _main() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        await ReconcileLoop(DNSRecordReconciler(store)).run(stop)

    asyncio.run(_main())
    return None


_COMMANDS = {
    "generate-endpoints": _cmd_generate,
    "select-zone": _cmd_select_zone,
    "list-records": _cmd_list_records,
    "reconcile": _cmd_reconcile,
    "run": _cmd_run,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Dispatches to the requested command and prints its result as JSON.
    Any dnsop or configuration error exits with status 1.

    Args:
        argv: Optional argument list (defaults to ``sys.argv``).
    """
    parser = _build_parser()
    ns = parser.parse_args(argv)

    op_logger.setLevel(ns.log_level or ControllerConfig().log_level)

    try:
        result = _COMMANDS[ns.command](ns)
    except (DNSOpError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if result is not None:
        _dump(result)


if __name__ == "__main__":
    main()
