#!/usr/bin/env python3
"""
Command-line interface for the auto discount engine.

Usage:
    uv run python cli.py [--data-dir DIR] [--verbose] [command] [options]

Commands:
    run         Run a full discount pass
    cleanup     Remove engine discounts from out-of-stock products
    preview     Count products a rule would affect, without writing
    stats       Show discount statistics
    test        Run the test suite
    serve       Start the API server

Examples:
    uv run python cli.py run
    uv run python cli.py run --save
    uv run python cli.py preview --min-age 30 --respect-manual
    uv run python cli.py serve
"""

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from catalog.data_store import CatalogStore
from catalog.errors import CatalogAccessError
from discounts.errors import ConcurrentPassError, PreviewError
from discounts.service import AutoDiscountService


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )


def build_service(data_dir: Optional[Path]) -> AutoDiscountService:
    service = AutoDiscountService(CatalogStore(data_dir=data_dir))
    service.migrate_legacy_settings()
    return service


def _header(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70 + "\n")


def run_pass(service: AutoDiscountService, save: bool) -> int:
    """Run a full pass and print the summary."""
    _header("FULL DISCOUNT PASS")
    try:
        result = service.run_full_pass()
    except (ConcurrentPassError, CatalogAccessError) as e:
        print(f"Pass failed: {e}")
        return 1

    if result.skipped_reason:
        print(f"Nothing to do ({result.skipped_reason})")
    else:
        print(f"  Applied:    {result.applied}")
        print(f"  Unchanged:  {result.unchanged}")
        print(f"  Cleared:    {result.cleared} ({result.out_of_stock_cleared} out of stock)")
        print(f"  Skipped:    {result.skipped}")
    if result.errors:
        print("\nErrors:")
        for error in result.errors:
            print(f"  {error.product_id or '(rule)'}: {error.reason}")

    if save:
        service.catalog.save()
        print("\nChanges saved.")
    return 0


def run_cleanup(service: AutoDiscountService, save: bool) -> int:
    _header("OUT-OF-STOCK CLEANUP")
    try:
        cleared = service.cleanup_out_of_stock()
    except (ConcurrentPassError, CatalogAccessError) as e:
        print(f"Cleanup failed: {e}")
        return 1
    print(f"Cleared {cleared} products")
    if save:
        service.catalog.save()
        print("\nChanges saved.")
    return 0


def run_preview(service: AutoDiscountService, min_age: int, respect_manual: bool) -> int:
    _header(f"PREVIEW: min age {min_age} days")
    try:
        result = service.preview(min_age, respect_manual)
    except PreviewError as e:
        print(str(e))
        return 1

    print(f"This rule would affect {result.count} products "
          f"(total regular value ${result.total_regular_value})")
    for sample in result.sample:
        print(f"  {sample.id}  {sample.name:<32} ${sample.price}  {sample.link}")
    if result.remaining > 0:
        print(f"  ...and {result.remaining} more")
    return 0


def run_stats(service: AutoDiscountService) -> int:
    _header("DISCOUNT STATISTICS")
    try:
        stats = service.get_stats()
    except CatalogAccessError as e:
        print(f"Catalog unavailable: {e}")
        return 1

    print(f"  Products in stock:   {stats.total_products}")
    print(f"  Discounted:          {stats.discounted_products} ({stats.discounted_percentage}%)")
    print(f"  Excluded:            {stats.excluded_products} ({stats.excluded_percentage}%)")
    print(f"  Total discount:      ${stats.total_discount_amount}")
    print(f"  Average discount:    ${stats.average_discount}")
    print(f"  Active rules:        {stats.active_rules}/{stats.configured_rules}")
    if stats.rules_usage:
        print("\nRule usage:")
        for priority, usage in stats.rules_usage.items():
            print(f"  Priority {priority} ({usage.discount_percent}%): {usage.count} products")
    return 0


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Auto Discounts CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run
  %(prog)s run --save
  %(prog)s cleanup
  %(prog)s preview --min-age 30 --respect-manual
  %(prog)s stats
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory with the JSON fixtures")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a full discount pass")
    run_parser.add_argument("--save", action="store_true", help="Write changes back to the fixtures")

    # Cleanup command
    cleanup_parser = subparsers.add_parser("cleanup", help="Clear discounts on out-of-stock products")
    cleanup_parser.add_argument("--save", action="store_true", help="Write changes back to the fixtures")

    # Preview command
    preview_parser = subparsers.add_parser("preview", help="Preview a rule without writing")
    preview_parser.add_argument("--min-age", type=int, required=True, help="Minimum product age in days")
    preview_parser.add_argument("--respect-manual", action="store_true", help="Skip manually discounted products")

    # Stats command
    subparsers.add_parser("stats", help="Show discount statistics")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args(argv)

    if args.command == "test":
        run_tests(args.pytest_args)
        return 0
    if args.command == "serve":
        run_server(args.host, args.port, args.reload)
        return 0
    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.verbose)
    service = build_service(args.data_dir)

    if args.command == "run":
        return run_pass(service, args.save)
    if args.command == "cleanup":
        return run_cleanup(service, args.save)
    if args.command == "preview":
        return run_preview(service, args.min_age, args.respect_manual)
    if args.command == "stats":
        return run_stats(service)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
