#!/usr/bin/env python3
"""
archive_sources.py
URL archive sources (Wayback CDX, Common Crawl index, VirusTotal) behind one
async fetch interface. Each source makes one request and decodes its own
wire format into Record(date, url) pairs.
"""

import asyncio
import json
import os
from typing import List, NamedTuple, Optional

import aiohttp
import async_timeout

WAYBACK_CDX = "http://web.archive.org/cdx/search/cdx"
COMMONCRAWL_INDEX = "http://index.commoncrawl.org"
VIRUSTOTAL_REPORT = "https://www.virustotal.com/vtapi/v2/domain/report"

DEFAULT_CC_INDEX = "CC-MAIN-2018-22"
HEADERS = {"User-Agent": "Mozilla/5.0 (ReconToolkit/1.0)"}


class Record(NamedTuple):
    date: str
    url: str


class FetchError(Exception):
    """A source produced nothing usable for this call"""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class SourceUnavailable(FetchError):
    pass


class MalformedEnvelope(FetchError):
    pass


def url_pattern(domain: str, include_subdomains: bool) -> str:
    """`*.domain/*` when subdomains are wanted, `domain/*` otherwise"""
    wildcard = "*." if include_subdomains else ""
    return f"{wildcard}{domain}/*"


class Provider:
    """Base class for an archive source.

    Subclasses set `name` and implement `build_query` and `parse`. `fetch`
    owns the network round trip and maps transport failures to FetchError.
    """

    name = "provider"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def build_query(self, domain: str, include_subdomains: bool):
        raise NotImplementedError

    def parse(self, body: str) -> List[Record]:
        raise NotImplementedError

    async def fetch(self, session, domain: str, include_subdomains: bool) -> List[Record]:
        url, params = self.build_query(domain, include_subdomains)
        body = await self._get(session, url, params)
        return self.parse(body)

    async def _get(self, session, url: str, params: dict) -> str:
        try:
            async with async_timeout.timeout(self.timeout):
                async with session.get(url, params=params, headers=HEADERS) as resp:
                    if resp.status >= 400:
                        raise SourceUnavailable(self.name, f"HTTP {resp.status}")
                    return await resp.text(errors="ignore")
        except asyncio.TimeoutError:
            raise SourceUnavailable(self.name, f"timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise SourceUnavailable(self.name, str(e)) from e

    def _decode(self, body: str):
        try:
            return json.loads(body)
        except ValueError as e:
            raise MalformedEnvelope(self.name, f"undecodable body ({e})") from e


class WaybackProvider(Provider):
    """web.archive.org CDX API"""

    name = "wayback"

    def build_query(self, domain, include_subdomains):
        params = {
            "url": url_pattern(domain, include_subdomains),
            "output": "json",
            "collapse": "urlkey",
        }
        return WAYBACK_CDX, params

    def parse(self, body):
        # an empty body is what the CDX server sends for "no captures"
        if not body.strip():
            return []
        rows = self._decode(body)
        if not isinstance(rows, list):
            raise MalformedEnvelope(self.name, "expected a JSON array")

        out = []
        # rows[0] is the column header: urlkey, timestamp, original, ...
        for row in rows[1:]:
            if not isinstance(row, list) or len(row) < 3:
                continue
            timestamp, original = row[1], row[2]
            if not isinstance(timestamp, str) or not isinstance(original, str) or not original:
                continue
            out.append(Record(timestamp, original))
        return out


class CommonCrawlProvider(Provider):
    """Common Crawl CDX index (newline-delimited JSON)"""

    name = "commoncrawl"

    def __init__(self, index: str = DEFAULT_CC_INDEX, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.index = index

    def build_query(self, domain, include_subdomains):
        params = {"url": url_pattern(domain, include_subdomains), "output": "json"}
        return f"{COMMONCRAWL_INDEX}/{self.index}-index", params

    def parse(self, body):
        out = []
        for line in body.splitlines():
            try:
                entry = json.loads(line)
            except ValueError:
                continue
            if not isinstance(entry, dict):
                continue
            timestamp, url = entry.get("timestamp"), entry.get("url")
            if isinstance(timestamp, str) and isinstance(url, str) and url:
                out.append(Record(timestamp, url))
        return out


class VirusTotalProvider(Provider):
    """VirusTotal v2 domain report (requires VT_API_KEY)

    An explicit `api_key` wins; otherwise VT_API_KEY is looked up on every
    fetch, so a key exported mid-run is picked up by the next domain.
    """

    name = "virustotal"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.api_key = api_key

    def credential(self) -> Optional[str]:
        return self.api_key or os.environ.get("VT_API_KEY")

    def build_query(self, domain, include_subdomains):
        # the report covers the domain as a whole; there is no pattern to widen
        return VIRUSTOTAL_REPORT, {"apikey": self.credential(), "domain": domain}

    async def fetch(self, session, domain, include_subdomains):
        if not self.credential():
            return []
        return await super().fetch(session, domain, include_subdomains)

    def parse(self, body):
        report = self._decode(body)
        if not isinstance(report, dict):
            raise MalformedEnvelope(self.name, "expected a JSON object")

        detected = report.get("detected_urls")
        if not isinstance(detected, list):
            return []
        out = []
        for item in detected:
            url = item.get("url") if isinstance(item, dict) else None
            if isinstance(url, str) and url:
                # the report carries scan dates in another format; not mapped yet
                out.append(Record("", url))
        return out


def default_providers(timeout: Optional[float] = None, cc_index: Optional[str] = None) -> List[Provider]:
    """The fixed set of sources queried for every domain"""
    return [
        WaybackProvider(timeout=timeout),
        CommonCrawlProvider(index=cc_index or os.environ.get("CC_INDEX") or DEFAULT_CC_INDEX, timeout=timeout),
        VirusTotalProvider(timeout=timeout),
    ]
