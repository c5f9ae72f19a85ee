# flake8: noqa E402
# Run via uv so project deps are loaded, e.g.:
# uv run scripts/gas_price_probe.py --priority fast --cached-calls 3 --max-age 30
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from decimal import Decimal
from pathlib import Path
from typing import Any

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.gas import GasPriority
from services.gas_price import new_gas_price_suggester, set_key, suggest_gas_price

WEI_PER_GWEI = Decimal(10**9)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch a live gas price suggestion from ETH Gas Station.")
    parser.add_argument(
        "--priority",
        choices=[priority.value for priority in GasPriority],
        default=GasPriority.FAST.value,
        help="Priority tier to query (default: fast).",
    )
    parser.add_argument(
        "--api-key",
        help="Use the key-authenticated endpoint (default: GAS_STATION_API_KEY from the environment, if set).",
    )
    parser.add_argument(
        "--cached-calls",
        type=int,
        default=0,
        help="Number of calls to route through a cached suggester (default: 0 = single uncached call).",
    )
    parser.add_argument(
        "--max-age",
        type=float,
        default=60.0,
        help="Maximum age in seconds of cached quotes when --cached-calls is used (default: 60).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Seconds to sleep between cached calls (default: 1).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def render(priority: str, wei: int) -> dict[str, Any]:
    return {
        "priority": priority,
        "wei": str(wei),
        "gwei": str(Decimal(wei) / WEI_PER_GWEI),
    }


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # urllib3 logs request lines with the api-key query parameter at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO)

    if args.api_key:
        set_key(args.api_key)

    if args.cached_calls <= 0:
        print(json.dumps(render(args.priority, suggest_gas_price(args.priority)), indent=2))
        return

    suggester = new_gas_price_suggester(args.max_age)
    results = []
    for index in range(args.cached_calls):
        if index:
            time.sleep(args.interval)
        payload = render(args.priority, suggester(args.priority))
        payload["age_seconds"] = round(suggester.age(), 3)
        results.append(payload)
    print(json.dumps(results, indent=2))


if __name__ == "__main__":
    main()
