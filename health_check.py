#!/usr/bin/env python3
"""
Health check for the event cache: runs one refresh and reports on it.

Usage:
    python health_check.py [command]

Commands:
    status      - Overall status and scrape summary (default)
    sources     - Per-source health with recent history
    cache       - Cache size and age
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from tonight.config import load_settings
from tonight.service import TonightService


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"
    END = "\033[0m"


STATUS_COLORS = {
    "ok": Colors.GREEN,
    "empty": Colors.YELLOW,
    "degraded": Colors.YELLOW,
    "error": Colors.RED,
    "timeout": Colors.RED,
    "critical": Colors.RED,
}


def colored(status) -> str:
    if status is None:
        return f"{Colors.WHITE}unknown{Colors.END}"
    return f"{STATUS_COLORS.get(status, Colors.WHITE)}{status}{Colors.END}"


def dot(status) -> str:
    return f"{STATUS_COLORS.get(status, Colors.WHITE)}●{Colors.END}"


def format_duration(ms) -> str:
    """Format milliseconds to human readable."""
    if ms is None:
        return "N/A"
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.1f}s"


def show_status(health: dict) -> None:
    scrape = health["scrape"]
    print(f"{Colors.BOLD}📊 Event Cache Health{Colors.END}")
    print("=" * 50)
    print(f"Status: {colored(health['status'])}")
    print(f"Last refresh: {Colors.WHITE}{health['cache']['last_refresh'] or 'never'}{Colors.END}")
    print(f"Duration: {format_duration(scrape['total_duration_ms'])}")
    print(f"Events: {scrape['deduped_events']} deduped / {scrape['total_events']} raw")
    print(
        f"Sources: {Colors.GREEN}{scrape['sources_ok']} ok{Colors.END}, "
        f"{Colors.YELLOW}{scrape['sources_empty']} empty{Colors.END}, "
        f"{Colors.RED}{scrape['sources_failed']} failed{Colors.END}"
    )


def show_sources(health: dict) -> None:
    print(f"{Colors.BOLD}📋 Sources{Colors.END}")
    print("=" * 70)
    for label, source in health["sources"].items():
        history = "".join(dot(h["status"]) for h in source["history"])
        print(f"{Colors.BOLD}{label}{Colors.END}: {colored(source['status'])} {history}")
        print(f"   Events: {source['last_count']}  Duration: {format_duration(source['duration_ms'])}  "
              f"HTTP: {source['http_status'] or 'N/A'}  Success rate: {source['success_rate'] or 'N/A'}")
        if source["consecutive_zeros"]:
            print(f"   {Colors.YELLOW}Consecutive zeros: {source['consecutive_zeros']}{Colors.END}")
        if source["last_error"]:
            print(f"   {Colors.RED}Error: {source['last_error']}{Colors.END}")


def show_cache(status: dict) -> None:
    print(f"{Colors.BOLD}🗂  Cache{Colors.END}")
    print("=" * 40)
    print(f"Size: {Colors.CYAN}{status['cache_size']}{Colors.END}")
    age = status["cache_age_minutes"]
    print(f"Age: {'never refreshed' if age is None else f'{age} minutes'}")
    print(f"Fresh: {colored('ok' if status['cache_fresh'] else 'empty')}")


async def main():
    """Main entry point."""
    command = sys.argv[1] if len(sys.argv) > 1 else "status"
    if command not in ("status", "sources", "cache"):
        print(f"Unknown command: {command}")
        print(__doc__)
        sys.exit(1)

    load_dotenv()
    logging.basicConfig(level=logging.WARNING, format="%(name)s | %(levelname)s | %(message)s")

    service = TonightService(load_settings(os.getenv("TONIGHT_CONFIG", "config.yaml")))
    try:
        await service.refresh_cache()
        if command == "status":
            show_status(service.get_health_status())
        elif command == "sources":
            show_sources(service.get_health_status())
        else:
            show_cache(service.get_cache_status())
    finally:
        await service.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Interrupted{Colors.END}")
