#!/usr/bin/env python3
"""
waybackurls.py
Fetch known URLs for domains from the Wayback Machine, Common Crawl and
VirusTotal (set VT_API_KEY), one domain at a time.

Usage: python3 waybackurls.py [--dates] [--no-subs] example.com
       cat domains.txt | python3 waybackurls.py --dates
"""

import argparse
import asyncio
import sys
from pathlib import Path

import aiohttp

from archive_sources import default_providers
from wayback_agg import aggregate, emit, log


def get_versions(domain):
    """Crawled versions of a URL; not implemented, yields nothing"""
    return []


def read_domains(args, stdin=None):
    if args.domains:
        domains = args.domains
    else:
        domains = (stdin or sys.stdin).read().splitlines()
    return [d.strip() for d in domains if d.strip()]


def build_parser():
    parser = argparse.ArgumentParser(description="fetch known URLs for domains from web archives")
    parser.add_argument("domains", nargs="*", help="domains to query (default: read from stdin)")
    parser.add_argument("--dates", action="store_true", help="show date of fetch in the first column")
    parser.add_argument("--no-subs", action="store_true", help="don't include subdomains of the target domain")
    parser.add_argument("--get-versions", action="store_true", help="list URLs for crawled versions of input URL(s)")
    parser.add_argument("--cc-index", default=None, help="Common Crawl index name (default: $CC_INDEX or CC-MAIN-2018-22)")
    parser.add_argument("--timeout", type=float, default=None, help="per-source request timeout in seconds (default: none)")
    parser.add_argument("-o", "--output", type=Path, default=None, help="write URLs to this file instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="print per-source progress to stderr")
    return parser


async def run_domains(domains, args, out):
    providers = default_providers(timeout=args.timeout, cc_index=args.cc_index)
    total = 0
    async with aiohttp.ClientSession() as session:
        for domain in domains:
            results = await aggregate(domain, not args.no_subs, providers, session, args.verbose)
            written = emit(results, dates=args.dates, out=out)
            total += written
            if args.verbose:
                log(f"[+] {domain}: {written} urls")
    return total


async def main(argv=None):
    args = build_parser().parse_args(argv)
    domains = read_domains(args)

    if args.get_versions:
        for domain in domains:
            for version in get_versions(domain):
                print(version)
        return 0

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w") as out:
            total = await run_domains(domains, args, out)
        log(f"[+] wrote {total} urls to {args.output}")
    else:
        await run_domains(domains, args, sys.stdout)
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("Interrupted")


if __name__ == "__main__":
    run()
