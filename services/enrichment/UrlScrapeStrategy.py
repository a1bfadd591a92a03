"""Reads the first link in the user's message and injects its readable text."""

import ipaddress
import re
from urllib.parse import urlparse

import html2text
import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.models.context import EnrichmentKind, EnrichmentResult, RequestContext
from services.enrichment.EnrichmentStrategyInterface import EnrichmentStrategyInterface

_URL_RE = re.compile(r"https?://[^\s<>\"'`]+", re.IGNORECASE)
_TRAILING_PUNCT = ".,;:!?)]}"

# non-content elements removed before conversion
_BLOCK_RE = re.compile(
    r"<(script|style|nav|footer|header|aside|noscript|iframe|form|svg|template)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_AD_RE = re.compile(
    r"<(div|section|aside|ins|span)\b[^>]*\b(?:class|id)\s*=\s*[\"'][^\"']*"
    r"\b(?:ad|ads|advert|advertisement|adsbygoogle|sponsored|promo|banner|cookie)\b"
    r"[^\"']*[\"'][^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)


def find_first_url(text: str) -> str | None:
    """Return the first http(s) URL token in the text, without trailing punctuation."""
    match = _URL_RE.search(text or "")
    if not match:
        return None
    return match.group(0).rstrip(_TRAILING_PUNCT) or None


def html_to_text(html: str) -> str:
    """Strip non-content elements, convert to text and collapse whitespace."""
    cleaned = _COMMENT_RE.sub(" ", html)
    cleaned = _BLOCK_RE.sub(" ", cleaned)
    cleaned = _AD_RE.sub(" ", cleaned)

    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.ignore_emphasis = True
    converter.body_width = 0
    text = converter.handle(cleaned)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _is_public_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    if not host or host == "localhost" or host.endswith(".local") or host.endswith(".internal"):
        return False
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return True
    return ip.is_global


class UrlScrapeStrategy(EnrichmentStrategyInterface):
    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config)
        self.max_chars = int(helper_config.get_number_val("SCRAPE_MAX_CHARS", default=6000, min_val=100))
        self.timeout = helper_config.get_number_val("SCRAPE_TIMEOUT", default=10.0)
        self.allow_private_hosts = helper_config.get_bool_val("SCRAPE_ALLOW_PRIVATE_HOSTS", default=False)
        self._transport = transport

    def get_kind(self) -> EnrichmentKind:
        return EnrichmentKind.SCRAPE

    def is_applicable(self, ctx: RequestContext) -> bool:
        return find_first_url(ctx.query) is not None

    async def do_enrich(self, ctx: RequestContext) -> EnrichmentResult | None:
        url = find_first_url(ctx.query)
        if url is None:
            return None
        text = await self.do_scrape(url)
        if not text:
            return None
        return EnrichmentResult(kind=self.get_kind(), injected_text=text, source_descriptor=url)

    async def do_scrape(self, url: str) -> str | None:
        """Fetch a page and return its readable text, truncated to SCRAPE_MAX_CHARS.

        Never raises: any fetch or parse failure yields None.
        """
        if not self.allow_private_hosts and not _is_public_host(url):
            self.logging.warning("Refusing to scrape non-public host: %s", url)
            return None
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={
                    "User-Agent": BROWSER_USER_AGENT,
                    "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.5",
                    "Accept-Language": "en-US,en;q=0.9,id;q=0.8",
                },
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()

            content_type = resp.headers.get("content-type", "")
            if "text/html" in content_type or "application/xhtml" in content_type:
                text = html_to_text(resp.text)
            elif content_type.startswith("text/"):
                text = _WHITESPACE_RE.sub(" ", resp.text).strip()
            else:
                self.logging.info("Skipping scrape of %s: unsupported content type '%s'.", url, content_type)
                return None
        except httpx.HTTPStatusError as e:
            self.logging.warning("Scrape of %s failed with status %d.", url, e.response.status_code)
            return None
        except Exception as e:
            self.logging.warning("Scrape of %s failed: %s", url, e)
            return None

        if not text:
            return None
        self.logging.info("Scraped %s: %d characters (limit %d).", url, len(text), self.max_chars)
        return text[: self.max_chars]
