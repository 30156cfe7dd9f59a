"""``portico`` command line.

Usage::

    portico serve myproject.web:app -l http://*:8080
    portico serve -l "https://*:8443?cert=cert.pem&key=key.pem" --cluster -w 4
    portico check http://*:3000 "http://*?fd=3"
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config.settings import ServerConfig, cfg
from ..server.application import App, Application
from ..server.errors import MalformedListenSpec, ServerError
from ..server.listen import parse_listen_url
from ..server.supervisor import Server

logger = logging.getLogger(__name__)
console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portico",
        description="Serve an application on one or more listen locations.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the server.")
    serve.add_argument(
        "app",
        nargs="?",
        default=None,
        help="Application as 'module:attribute' (default: built-in hello app).",
    )
    serve.add_argument(
        "-l", "--listen",
        action="append",
        default=None,
        metavar="URL",
        help="Listen location, may be repeated (default: PORTICO_LISTEN or http://*:3000).",
    )
    serve.add_argument(
        "-c", "--cluster",
        action="store_true",
        default=False,
        help="Fork worker processes that share the listen locations.",
    )
    serve.add_argument(
        "-w", "--workers",
        type=int,
        default=None,
        help="Number of worker processes in cluster mode (default: CPU count).",
    )
    serve.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Do not announce listen locations or log every request.",
    )

    check = sub.add_parser("check", help="Parse listen locations and show their bind targets.")
    check.add_argument("locations", nargs="+", metavar="URL")
    return parser


def load_app(target: str | None) -> Application:
    """Import ``module:attribute``; call it if it is a factory."""
    if not target:
        return App()
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"expected 'module:attribute', got {target!r}")
    obj = getattr(importlib.import_module(module_name), attr)
    if isinstance(obj, type) or (callable(obj) and not isinstance(obj, Application)):
        obj = obj()
    if not isinstance(obj, Application):
        raise TypeError(f"{target} is not an application (needs warmup, new_http_context, "
                        "new_websocket_context and handle_request)")
    return obj


def server_config(args: argparse.Namespace) -> ServerConfig:
    return cfg.server_config(
        listen=tuple(args.listen) if args.listen else None,
        cluster=True if args.cluster else None,
        workers=args.workers,
        quiet=True if args.quiet else None,
    )


def check_locations(locations: Sequence[str]) -> int:
    """Print a table of parsed listen locations; return the exit code."""
    table = Table(title="Listen locations")
    for column in ("Location", "Scheme", "Bind", "Host", "Port", "FD", "TLS material"):
        table.add_column(column)

    failed = 0
    for location in locations:
        try:
            spec = parse_listen_url(location)
        except MalformedListenSpec as exc:
            failed += 1
            table.add_row(escape(location), f"[red]{escape(exc.reason)}[/red]", "", "", "", "", "")
            continue
        tls = ""
        if spec.encrypted:
            cert = escape(spec.cert) if spec.cert else "[red]no cert[/red]"
            key = escape(spec.key) if spec.key else "[red]no key[/red]"
            tls = f"{cert} / {key}"
        table.add_row(
            escape(location),
            spec.scheme,
            spec.bind_target(),
            "*" if spec.all_interfaces else escape(spec.host or ""),
            "" if spec.port is None else str(spec.port),
            "" if spec.fd is None else str(spec.fd),
            tls,
        )
    console.print(table)
    return 1 if failed else 0


def main(argv: Sequence[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )

    if args.command == "check":
        sys.exit(check_locations(args.locations))

    cfg.reload()
    try:
        config = server_config(args)
        app = load_app(args.app)
    except (ImportError, AttributeError, TypeError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(2)

    if config.quiet:
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logger.info(
        "Starting server: listen=%s cluster=%s workers=%d",
        ", ".join(config.listen), config.cluster, config.workers,
    )

    try:
        asyncio.run(Server(app, config).serve())
    except ServerError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
