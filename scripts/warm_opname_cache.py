#!/usr/bin/env python3
"""
Warm the Stock Opname read cache for common search prefixes.

Posts a `warmupCache` action to a running service. Without seeds the service
samples a few short prefixes from its own catalog.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from client_opname.app.api_client import OpnameApiClient
from shared.config import get_client_config


async def warm(*, api_url: str, location_query: Optional[str], product_query: Optional[str], timeout: float) -> dict:
    """Trigger a warm and return the service's summary."""
    client = OpnameApiClient(api_url, timeout=timeout)
    return await client.warmup_cache(location_query, product_query)


def _parse_args() -> argparse.Namespace:
    config = get_client_config()
    parser = argparse.ArgumentParser(description="Warm the stock opname search cache.")
    parser.add_argument("--api-url", default=config.api_url, help="Service endpoint URL")
    parser.add_argument("--location-query", default=None, help="Seed for location prefixes")
    parser.add_argument("--product-query", default=None, help="Seed for product prefixes")
    parser.add_argument("--timeout", type=float, default=config.request_timeout_seconds, help="Request timeout in seconds")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        summary = asyncio.run(
            warm(
                api_url=args.api_url,
                location_query=args.location_query,
                product_query=args.product_query,
                timeout=args.timeout,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-warm] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0 if summary.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())
