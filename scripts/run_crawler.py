"""Rescan every registered scope (optionally registering a new one first).

Usage:
    uv run python scripts/run_crawler.py
    uv run python scripts/run_crawler.py --user 1 --add ~/Documents
    uv run python scripts/run_crawler.py --data-dir /tmp/tagscope -v
"""

from __future__ import annotations

import argparse
import logging
import sys

from tagscope import TagScope, TagScopeError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--data-dir", help="directory holding tagscope.db")
    parser.add_argument("--database-url", help="explicit SQLAlchemy URL (sqlite+aiosqlite only)")
    parser.add_argument("--user", type=int, default=1, help="owner for --add (default: 1)")
    parser.add_argument("--add", metavar="PATH", help="register PATH as a new scope first")
    parser.add_argument("-v", "--verbose", action="store_true", help="log at DEBUG level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    with TagScope(database_url=args.database_url, data_dir=args.data_dir) as ts:
        added: int | None = None
        if args.add:
            try:
                scope = ts.add_scope(args.user, args.add)
            except TagScopeError as e:
                print(f"Cannot add {args.add}: {e}", file=sys.stderr)
                return 1
            added = scope.id
            print(f"Registered scope {scope.id}: {scope.path}")

        scopes = ts.list_scopes()
        if not scopes:
            print("No scopes registered.")
            return 0

        for scope in scopes:
            if scope.id != added:
                ts.scan_scope(scope.id)
        print(f"Scanning {len(scopes)} scope(s)...")
        ts.wait_for_scans()

        print()
        print("=" * 60)
        for scope in scopes:
            result = ts.last_scan(scope.id)
            if result is None:
                print(f"  [{scope.id}] {scope.path}: did not run")
                continue
            status = "ok" if result.completed else "aborted"
            print(
                f"  [{scope.id}] {scope.path}: {status}, "
                f"{result.files_processed} files, {result.files_indexed} indexed, "
                f"{result.items_ignored} ignored, {result.pruned} pruned, "
                f"{result.errors} errors"
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
