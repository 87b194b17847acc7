#!/usr/bin/env python3
"""
wayback_agg.py
Query every archive source for a domain concurrently, merge what comes back
into one url -> date index, and write it out as plain URLs or as
`<iso timestamp> <url>` lines.
"""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import aiohttp

from archive_sources import Provider, Record, default_providers

DATE_FORMAT = "%Y%m%d%H%M%S"


def merge(results: Dict[str, str], records: Iterable[Record]) -> Dict[str, str]:
    """Insert records keyed by URL; a later insert replaces the stored date"""
    for rec in records:
        if rec.url:
            results[rec.url] = rec.date
    return results


async def aggregate(
    domain: str,
    include_subdomains: bool = True,
    providers: Optional[List[Provider]] = None,
    session=None,
    verbose: bool = False,
) -> Dict[str, str]:
    """Run all providers for one domain and return the deduplicated result set.

    Every provider runs to completion; a provider that raises contributes
    nothing. Which provider's date is kept for a URL reported by more than
    one source is not defined.
    """
    if providers is None:
        providers = default_providers()
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await aggregate(domain, include_subdomains, providers, own_session, verbose)

    if verbose:
        log(f"[*] {domain}: querying {len(providers)} sources...")
    tasks = [p.fetch(session, domain, include_subdomains) for p in providers]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    results: Dict[str, str] = {}
    for provider, outcome in zip(providers, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            if verbose:
                log(f"[!] {provider.name} error: {outcome}")
            continue
        if verbose:
            log(f"[+] {provider.name}: Found {len(outcome)} urls")
        merge(results, outcome)
    return results


def parse_date(date: str) -> datetime:
    """Parse a 14-digit archive timestamp as UTC. Raises ValueError."""
    if len(date) != 14 or not date.isdigit():
        raise ValueError(f"not a {DATE_FORMAT} timestamp: {date!r}")
    return datetime.strptime(date, DATE_FORMAT).replace(tzinfo=timezone.utc)


def emit(results: Dict[str, str], dates: bool = False, out=None, err=None) -> int:
    """Write one line per URL to `out`; returns the number of lines written.

    In dates mode a URL whose date does not parse is reported on `err`
    and left out.
    """
    if out is None:
        out = sys.stdout
    if err is None:
        err = sys.stderr
    written = 0
    for url, date in results.items():
        if dates:
            try:
                stamp = parse_date(date)
            except ValueError:
                print(f"failed to parse date [{date}] for URL [{url}]", file=err)
                continue
            out.write(f"{stamp.isoformat()} {url}\n")
        else:
            out.write(f"{url}\n")
        written += 1
    return written


def log(msg: str):
    print(msg, file=sys.stderr)
