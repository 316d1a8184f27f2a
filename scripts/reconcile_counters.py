#!/usr/bin/env python3
"""
Counter reconciliation — re-derive like/subscriber counters from relations.

The request path never scans the relations table; this script does, and
rewrites any counter that drifted (e.g. after a CounterDesyncError alert).

  python scripts/reconcile_counters.py                      # every kind
  python scripts/reconcile_counters.py --kind video_like
  python scripts/reconcile_counters.py --kind subscription --target <uuid>
  python scripts/reconcile_counters.py --dry-run

Uses the same DATABASE_URL / TIDB_* settings as the API.
"""
import argparse
import asyncio
import logging
import sys

from mediahub import ledger
from mediahub.database import AsyncSessionLocal, engine
from mediahub.identifiers import as_entity_id
from mediahub.models import RelationKind

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger("reconcile_counters")


async def run(kinds: list[RelationKind], target: str | None, dry_run: bool) -> int:
    target_id = as_entity_id(target) if target else None
    total = 0
    try:
        for kind in kinds:
            async with AsyncSessionLocal() as session:
                if dry_run:
                    drifts = await ledger.find_drifts(session, kind, target_id)
                else:
                    drifts = await ledger.reconcile(session, kind, target_id)
            for d in drifts:
                print(f"  {d.kind.value:<13} {d.target_id}  {d.recorded} → {d.actual}")
            logger.info("%s: %d drifted counter(s)", kind.value, len(drifts))
            total += len(drifts)
    finally:
        await engine.dispose()
    return total


def main() -> None:
    parser = argparse.ArgumentParser(description="Reconcile denormalized counters")
    parser.add_argument(
        "--kind",
        choices=[k.value for k in RelationKind],
        help="Only this relation kind (default: all)",
    )
    parser.add_argument("--target", help="Only this target id (requires --kind)")
    parser.add_argument(
        "--dry-run", action="store_true", help="Report drift without writing"
    )
    args = parser.parse_args()

    if args.target and not args.kind:
        parser.error("--target requires --kind")

    kinds = [RelationKind(args.kind)] if args.kind else list(RelationKind)
    drifted = asyncio.run(run(kinds, args.target, args.dry_run))
    sys.exit(1 if drifted and args.dry_run else 0)


if __name__ == "__main__":
    main()
