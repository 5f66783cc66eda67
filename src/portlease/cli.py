"""portlease command-line interface."""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from portlease.client import PortLeaseClient, default_url
from portlease.engine.errors import PortLeaseError, ServiceNotFound
from portlease.models import Lease
from portlease.runner import DEFAULT_ENV_NAME, keep_alive, run_with_lease


def _format_lease(lease: Lease) -> str:
    tags = f", Tags: {','.join(lease.tags)}" if lease.tags else ""
    return f"Port: {lease.port}, Service: {lease.service_name}, TTL: {lease.ttl_seconds}s{tags}"


async def _alloc(client: PortLeaseClient, args: argparse.Namespace) -> int:
    lease = await client.allocate(args.service_name, ttl_seconds=args.ttl, tags=args.tag)
    print(f"Allocated port: {lease.port}")
    print(f"Lease: {_format_lease(lease)}")
    return 0


async def _release(client: PortLeaseClient, args: argparse.Namespace) -> int:
    await client.release(args.port)
    print(f"Released port: {args.port}")
    return 0


async def _heartbeat(client: PortLeaseClient, args: argparse.Namespace) -> int:
    lease = await client.heartbeat(args.port)
    print(f"Renewed port {lease.port} until {lease.expires_at.isoformat()}")
    return 0


async def _list(client: PortLeaseClient, args: argparse.Namespace) -> int:
    leases = await client.list_active()
    print("Active Leases:")
    for lease in leases:
        print(_format_lease(lease))
    return 0


async def _lookup(client: PortLeaseClient, args: argparse.Namespace) -> int:
    try:
        result = await client.lookup(args.service_name)
    except ServiceNotFound:
        print(f"No port found for service: {args.service_name}", file=sys.stderr)
        return 1
    if args.all:
        for port in result.all_ports:
            print(port)
    else:
        print(result.port)
    return 0


async def _loop(client: PortLeaseClient, args: argparse.Namespace) -> int:
    lease = await keep_alive(
        client,
        args.service_name,
        ttl_seconds=args.ttl,
        tags=args.tag,
        heartbeat_interval=args.interval,
    )
    print(f"Lease on port {lease.port} was lost", file=sys.stderr)
    return 1


async def _run(client: PortLeaseClient, args: argparse.Namespace) -> int:
    command = args.command
    if not command:
        print("No command specified", file=sys.stderr)
        return 1
    try:
        return await run_with_lease(
            client,
            args.service_name,
            command,
            ttl_seconds=args.ttl,
            env_name=args.env_name,
            tags=args.tag,
            heartbeat_interval=args.interval,
        )
    except OSError as e:
        print(f"Failed to run command: {e}", file=sys.stderr)
        return 1


def _serve(args: argparse.Namespace) -> int:
    from portlease.config import Settings
    from portlease.main import main as serve

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.pool_min is not None:
        overrides["pool_min"] = args.pool_min
    if args.pool_max is not None:
        overrides["pool_max"] = args.pool_max
    if args.database:
        overrides["database_path"] = args.database
    serve(Settings(**overrides))
    return 0


COMMANDS = {
    "alloc": _alloc,
    "release": _release,
    "heartbeat": _heartbeat,
    "list": _list,
    "lookup": _lookup,
    "loop": _loop,
    "run": _run,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portlease", description="Lease TCP ports from the portlease daemon")
    parser.add_argument("--url", default=None, help=f"Daemon URL (default: $PORTLEASE_URL or {default_url()})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command_name", required=True)

    serve = subparsers.add_parser("serve", help="Run the lease daemon")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Listen port")
    serve.add_argument("--pool-min", type=int, help="Lowest port in the pool")
    serve.add_argument("--pool-max", type=int, help="Highest port in the pool")
    serve.add_argument("--database", help="SQLite database path")

    def add_lease_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("service_name", help="Service name for the allocation")
        sub.add_argument("--ttl", type=int, default=None, help="TTL in seconds (default: server default)")
        sub.add_argument("--tag", action="append", default=None, help="Tag the lease (repeatable)")

    alloc = subparsers.add_parser("alloc", help="Allocate a new port")
    add_lease_options(alloc)

    release = subparsers.add_parser("release", help="Release an allocated port")
    release.add_argument("port", type=int)

    heartbeat = subparsers.add_parser("heartbeat", help="Renew a lease once")
    heartbeat.add_argument("port", type=int)

    subparsers.add_parser("list", help="List all active leases")

    lookup = subparsers.add_parser("lookup", help="Lookup a service by name")
    lookup.add_argument("service_name")
    lookup.add_argument("--all", action="store_true", help="Print every port of the service")

    loop = subparsers.add_parser("loop", help="Allocate a port and send heartbeats in a loop")
    add_lease_options(loop)
    loop.add_argument("--interval", type=float, default=None, help="Heartbeat interval in seconds")

    run = subparsers.add_parser("run", help="Run a command with an allocated port (portlease run SERVICE -- CMD...)")
    add_lease_options(run)
    run.add_argument("--env-name", default=DEFAULT_ENV_NAME, help="Environment variable for the port")
    run.add_argument("--interval", type=float, default=None, help="Heartbeat interval in seconds")

    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    async with PortLeaseClient(base_url=args.url) as client:
        return await COMMANDS[args.command_name](client, args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Everything after "--" is the command for `run`
    command: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, command = argv[:split], argv[split + 1 :]

    args = build_parser().parse_args(argv)
    args.command = command

    if args.command_name == "serve":
        return _serve(args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(_dispatch(args))
    except PortLeaseError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
