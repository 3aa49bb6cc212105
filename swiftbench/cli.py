"""
Command line interface for the Swift client and benchmark tool.

Global options come before the subcommand; subcommand options follow it.
Options take either a single or a double dash (``-count`` or ``--count``).
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

import aiohttp
import uvloop

from swiftbench import commands
from swiftbench.algorithms import BenchmarkConfig, FixedCountBenchmark, MixedBenchmark
from swiftbench.common import OperationKind
from swiftbench.configuration import (
    AUTH_KEY,
    AUTH_PASSWORD,
    AUTH_TENANT,
    AUTH_URL,
    AUTH_USER,
    CONCURRENCY,
    DEFAULT_CONTAINERS,
    DEFAULT_COUNT,
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_OBJECT_SIZE,
    DEFAULT_MIXED_RATIOS,
    DEFAULT_MIXED_TIME,
    DEFAULT_OBJECT_PREFIX,
    DEFAULT_OBJECT_SIZE,
    DELETE_SAFETY_MARGIN,
    OVERRIDE_URLS,
    REPORT_INTERVAL_SECONDS,
    STORAGE_INTERNAL,
    STORAGE_REGION,
)
from swiftbench.errors import ConfigurationError, SwiftBenchError
from swiftbench.observability import PrometheusExporter
from swiftbench.systems import SwiftSystem

# Set up logging (only if not already configured)
if not logging.root.handlers:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

BENCH_KINDS = {
    'bench-delete': OperationKind.DELETE,
    'bench-get': OperationKind.GET,
    'bench-head': OperationKind.HEAD,
    'bench-post': OperationKind.POST,
    'bench-put': OperationKind.PUT,
}


def parse_headers(values: Optional[List[str]]) -> Dict[str, str]:
    """Turn repeated ``name:value`` options into a header dict.

    Raises:
        ConfigurationError: If a value has no colon or an empty name
    """
    headers = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise ConfigurationError(f"invalid header {value!r}; use name:value")
        headers[name.strip()] = content.strip()
    return headers


def _option(parser, name: str, **kwargs):
    """Register an option under both its single and double dash spellings."""
    flags = [f"-{name}"] if len(name) == 1 else [f"-{name}", f"--{name}"]
    return parser.add_argument(*flags, dest=name.replace("-", "_"), **kwargs)


def build_storage(args) -> SwiftSystem:
    """Create the storage system described by the global options.

    Raises:
        ConfigurationError: If auth settings are missing
    """
    if not args.A:
        raise ConfigurationError("No Auth URL set; use -A")
    if not args.U:
        raise ConfigurationError("No Auth User set; use -U")
    if not args.K and not args.P:
        raise ConfigurationError("No Auth Key or Password set; use -K or -P")
    return SwiftSystem(
        auth_url=args.A,
        user=args.U,
        key=args.K,
        password=args.P,
        tenant=args.T,
        region=args.R,
        internal=args.I,
        override_urls=(args.O or "").split(),
    )


class SwiftBenchCLI:
    """CLI for single storage requests and benchmark runs."""

    def __init__(self, storage_factory=None, out=None):
        self.parser = self._create_parser()
        self.storage_factory = storage_factory or build_storage
        self.out = out or sys.stdout

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            prog='swift-bench',
            description='Swift object storage client and benchmark tool',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            allow_abbrev=False,
            epilog="""
Examples:
  # Show the storage URL and token
  swift-bench -A http://127.0.0.1:8080/auth/v1.0 -U test:tester -K testing auth

  # PUT 10000 objects at 32 concurrency, then GET them back twice
  swift-bench -C 32 bench-put -count 10000 bench
  swift-bench -C 32 bench-get -count 10000 -iterations 2 -csv get.csv bench

  # Mixed traffic for an hour, one DELETE per two of each other kind
  swift-bench -C 8 bench-mixed -time 1h -ratios 1,2,2,2,2 bench

[container] [object] can also be specified as [container]/[object]
            """
        )

        _option(parser, 'A', default=AUTH_URL, help='URL of the auth system. Env: AUTH_URL')
        _option(parser, 'T', default=AUTH_TENANT, help='Tenant name for the auth system. Env: AUTH_TENANT')
        _option(parser, 'U', default=AUTH_USER, help='User name, or tenant:user. Env: AUTH_USER')
        _option(parser, 'K', default=AUTH_KEY, help='Key for the auth system. Env: AUTH_KEY')
        _option(parser, 'P', default=AUTH_PASSWORD, help='Password for the auth system. Env: AUTH_PASSWORD')
        _option(parser, 'O', default=OVERRIDE_URLS,
                help='Space separated storage URLs to use instead of the one from auth. Env: OVERRIDE_URLS')
        _option(parser, 'R', default=STORAGE_REGION, help='Storage region to use. Env: STORAGE_REGION')
        _option(parser, 'I', action='store_true', default=STORAGE_INTERNAL,
                help='Use internal storage URLs. Env: STORAGE_INTERNAL')
        _option(parser, 'C', type=int, default=CONCURRENCY,
                help='Maximum number of concurrent operations (default: 1). Env: CONCURRENCY')
        _option(parser, 'H', action='append', default=[], metavar='NAME:VALUE',
                help='Header to send with every request; may be repeated')
        _option(parser, 'v', action='store_true', help='Verbose output')
        _option(parser, 'continue-on-error', action='store_true',
                help='Keep going when an operation fails')
        _option(parser, 'prometheus-port', type=int, default=0,
                help='Serve request metrics on this port (default: disabled)')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        subparsers.add_parser('auth', help='Show the storage URL(s) and token')

        for command, kind in BENCH_KINDS.items():
            noun = f"{kind.value}s" if kind is not OperationKind.PUT else "PUTs"
            bench = subparsers.add_parser(command, help=f'Benchmark object {kind.value} requests',
                                          allow_abbrev=False)
            _option(bench, 'containers', type=int, default=DEFAULT_CONTAINERS,
                    help='Number of containers to use')
            _option(bench, 'count', type=int, default=DEFAULT_COUNT,
                    help='Number of objects, distributed across containers')
            _option(bench, 'csv', default='', help=f'Store the timing of each of the {noun} in a CSV file')
            _option(bench, 'csvot', default='', help=f'Store the number of {noun} over time in a CSV file')
            if kind in (OperationKind.GET, OperationKind.HEAD):
                _option(bench, 'iterations', type=int, default=DEFAULT_ITERATIONS,
                        help='Number of passes over the objects')
            if kind is OperationKind.PUT:
                _option(bench, 'size', type=int, default=DEFAULT_OBJECT_SIZE, help='Bytes for each object')
                _option(bench, 'maxsize', type=int, default=DEFAULT_MAX_OBJECT_SIZE,
                        help='Vary object sizes randomly between -size and -maxsize')
            bench.add_argument('path', nargs='*', help='<container> [object prefix]')

        mixed = subparsers.add_parser('bench-mixed', help='Benchmark a timed mix of requests',
                                      allow_abbrev=False)
        _option(mixed, 'containers', type=int, default=DEFAULT_CONTAINERS, help='Number of containers to use')
        _option(mixed, 'csv', default='', help='Store the timing of each request in a CSV file')
        _option(mixed, 'csvot', default='', help='Store the number of requests over time in a CSV file')
        _option(mixed, 'size', type=int, default=DEFAULT_OBJECT_SIZE, help='Bytes for each object')
        _option(mixed, 'time', default=DEFAULT_MIXED_TIME, help='How long to run, such as 10m or 1h')
        _option(mixed, 'ratios', default=DEFAULT_MIXED_RATIOS,
                help='Workers per concurrency unit for delete,get,head,post,put')
        _option(mixed, 'delete-margin', type=int, default=DELETE_SAFETY_MARGIN,
                help='Completed PUTs the DELETE cursor must trail by')
        mixed.add_argument('path', nargs='*', help='<container> [object prefix]')

        for command in ('delete', 'head', 'post', 'put'):
            simple = subparsers.add_parser(command, help=f'{command.upper()} the account, a container or an object')
            simple.add_argument('path', nargs='*', help='[container] [object]')

        get = subparsers.add_parser('get', help='List the account or a container, or fetch an object',
                                    allow_abbrev=False)
        _option(get, 'r', action='store_true', help='Emit raw results')
        _option(get, 'n', action='store_true', help='In listings, emit the names only')
        _option(get, 'marker', default='', help='In listings, the start marker')
        _option(get, 'endmarker', default='', help='In listings, the stop marker')
        _option(get, 'reverse', action='store_true', help='In listings, reverse the order')
        _option(get, 'limit', type=int, default=0, help='In listings, limit the results')
        _option(get, 'prefix', default='', help='In listings, only names with this prefix')
        _option(get, 'delimiter', default='', help='In listings, roll names up at this delimiter')
        get.add_argument('path', nargs='*', help='[container] [object]')

        upload = subparsers.add_parser('upload', help='Upload a file or directory tree')
        upload.add_argument('sourcepath', help='Local file or directory')
        upload.add_argument('path', nargs='*', help='[container] [object prefix]')

        download = subparsers.add_parser('download', help='Download an object, container or account')
        _option(download, 'a', action='store_true', help='Download the entire account')
        download.add_argument('path', nargs='+', help='[container] [object] <destpath>')

        return parser

    def bench_config(self, args) -> BenchmarkConfig:
        """Build the immutable run settings from the parsed options."""
        container, prefix = commands.parse_path(args.path)
        if not container:
            raise ConfigurationError(f"{args.command} requires <container>")
        return BenchmarkConfig(
            container=container,
            prefix=prefix or DEFAULT_OBJECT_PREFIX,
            containers=args.containers,
            count=getattr(args, 'count', DEFAULT_COUNT),
            iterations=getattr(args, 'iterations', DEFAULT_ITERATIONS),
            timespan=getattr(args, 'time', DEFAULT_MIXED_TIME),
            concurrency=args.C,
            size=getattr(args, 'size', DEFAULT_OBJECT_SIZE),
            max_size=getattr(args, 'maxsize', DEFAULT_MAX_OBJECT_SIZE),
            ratios=getattr(args, 'ratios', DEFAULT_MIXED_RATIOS),
            csv_path=args.csv,
            csvot_path=args.csvot,
            continue_on_error=args.continue_on_error,
            headers=parse_headers(args.H),
            report_interval=REPORT_INTERVAL_SECONDS,
            delete_margin=getattr(args, 'delete_margin', DELETE_SAFETY_MARGIN),
        )

    async def run_bench(self, args, storage) -> int:
        config = self.bench_config(args)
        exporter = None
        if args.prometheus_port:
            exporter = PrometheusExporter(args.prometheus_port)
            exporter.start_server()
        if args.command == 'bench-mixed':
            driver = MixedBenchmark(storage, config, exporter=exporter, out=self.out)
        else:
            driver = FixedCountBenchmark(storage, config, BENCH_KINDS[args.command],
                                         exporter=exporter, out=self.out)
        await driver.run()
        return 0

    async def run_command(self, args, storage) -> int:
        """Run one non-benchmark command against an open storage system."""
        headers = parse_headers(args.H)
        concurrency = max(1, args.C)
        if args.command == 'auth':
            await commands.auth(storage, out=self.out)
        elif args.command == 'get':
            container, obj = commands.parse_path(args.path)
            await commands.get(
                storage, container, obj, headers,
                raw=args.r, names_only=args.n, marker=args.marker, end_marker=args.endmarker,
                limit=args.limit, prefix=args.prefix, delimiter=args.delimiter, reverse=args.reverse,
                out=self.out,
            )
        elif args.command in ('delete', 'head', 'post', 'put'):
            container, obj = commands.parse_path(args.path)
            if args.command == 'head':
                await commands.head(storage, container, obj, headers, out=self.out)
            else:
                await getattr(commands, args.command)(storage, container, obj, headers)
        elif args.command == 'upload':
            container, obj = commands.parse_path(args.path)
            await commands.upload(storage, args.sourcepath, container, obj, headers,
                                  concurrency, args.continue_on_error)
        elif args.command == 'download':
            container, obj = commands.parse_path(args.path[:-1])
            await commands.download(storage, container, obj, args.path[-1], args.a, headers,
                                    concurrency, args.continue_on_error)
        else:
            logger.error(f"Unknown command: {args.command}")
            return 1
        return 0

    async def dispatch(self, args) -> int:
        if args.command in BENCH_KINDS or args.command == 'bench-mixed':
            # Settings errors surface before any request is made.
            self.bench_config(args)
        parse_headers(args.H)
        async with self.storage_factory(args) as storage:
            if args.command in BENCH_KINDS or args.command == 'bench-mixed':
                return await self.run_bench(args, storage)
            return await self.run_command(args, storage)

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1
        if parsed_args.v:
            logging.getLogger().setLevel(logging.DEBUG)

        try:
            return uvloop.run(self.dispatch(parsed_args))
        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1
        except SwiftBenchError as e:
            logger.error(str(e))
            return 1
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Request failed: {e}")
            return 1


def main():
    """Main entry point."""
    cli = SwiftBenchCLI()
    exit(cli.run())


if __name__ == '__main__':
    main()
