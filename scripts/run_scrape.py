"""Manual scrape runner for testing and debugging domain configurations.

Runs one job through the orchestrator and prints the items it returns
along with the strategy that produced them.

Usage:
    python scripts/run_scrape.py --source ebay.fr --query "vélo cargo"
    python scripts/run_scrape.py --source autoscout24 --pages 3 --zip 75001 --zipr 50
    python scripts/run_scrape.py --source leboncoin --query '{"filters": {"category": {"id": "2"}}}'
"""

import asyncio
import argparse
import json
import os
import sys
import uuid
from typing import Optional

# Add backend to path so scripts run without an editable install
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from scrapeflow.exceptions import ScrapeFlowError
from scrapeflow.log_config import configure_logging
from scrapeflow.models import ScrapeJob
from scrapeflow.orchestrator import ScrapeOrchestrator


def print_progress(job_id: str, percent: int, status: str, item_count: Optional[int] = None) -> None:
    suffix = f" ({item_count} items)" if item_count is not None else ""
    print(f"  [{percent:>3}%] {status}{suffix}")


async def run_scrape(
    source: str,
    query: str,
    pages: int = 1,
    zip_code: Optional[str] = None,
    radius: Optional[int] = None,
    limit: int = 10,
    as_json: bool = False,
) -> int:
    """Run one scrape job and display the results.

    Returns:
        Process exit code
    """
    job = ScrapeJob(
        source=source,
        query=query,
        page_count=pages,
        zip=zip_code,
        zipr=radius,
        job_id=uuid.uuid4().hex[:8],
    )
    orchestrator = ScrapeOrchestrator(progress_sink=None if as_json else print_progress)

    if not as_json:
        print(f"\n{'='*70}")
        print(f"  Scraping {source} (job {job.job_id})")
        print(f"{'='*70}")
        print(f"  Query: {query or '-'}")
        print(f"  Pages: {pages}")
        print(f"{'='*70}\n")

    try:
        result = await orchestrator.scrape(job)
    except ScrapeFlowError as e:
        print(f"\nError: {e.message}", file=sys.stderr)
        return 1
    finally:
        await orchestrator.cleanup()

    if as_json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return 0

    meta = result.metadata
    print(f"\n{'='*70}")
    print(f"  Top {min(limit, result.item_count)} of {result.item_count} items")
    print(f"{'='*70}\n")
    for i, item in enumerate(result.items[:limit], 1):
        print(f"[{i}] {item.title or '(no title)'}")
        if item.price is not None:
            print(f"    Price: {item.price}")
        for key, value in item.extra.items():
            if value not in (None, "", []):
                print(f"    {key}: {value}")
        if item.url:
            print(f"    URL: {item.url[:100]}")
        print()

    print(f"{'='*70}")
    print(f"  Summary")
    print(f"{'='*70}")
    print(f"  Strategy: {meta.strategy_used.value}")
    print(f"  Pages scraped: {meta.pages_scraped} (stop: {meta.stop_reason})")
    print(f"  Execution time: {meta.execution_time_ms} ms")
    print(f"{'='*70}\n")
    return 0


def main():
    """Parse arguments and run the scrape."""
    parser = argparse.ArgumentParser(
        description="Run a scrape job through the orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_scrape.py --source ebay.fr --query "vélo cargo"
  python scripts/run_scrape.py --source autoscout24 --pages 3 --zip 75001 --zipr 50
        """,
    )
    parser.add_argument("--source", required=True, help="Site identifier or URL (e.g., 'ebay.fr')")
    parser.add_argument("--query", default="", help="Search text, or a JSON object for API sources")
    parser.add_argument("--pages", type=int, default=1, help="Number of pages to fetch (default: 1)")
    parser.add_argument("--zip", dest="zip_code", help="Postal code for geo-radius searches")
    parser.add_argument("--zipr", type=int, help="Search radius in km around --zip")
    parser.add_argument("--limit", type=int, default=10, help="Maximum number of items to display")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    args = parser.parse_args()
    configure_logging(args.log_level)

    sys.exit(
        asyncio.run(
            run_scrape(args.source, args.query, args.pages, args.zip_code, args.zipr, args.limit, args.json)
        )
    )


if __name__ == "__main__":
    main()
