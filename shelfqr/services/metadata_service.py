"""
Link Metadata Service

Best-effort scraping of a product page's title, image, description and
favicon so a shop owner can paste a link and get a filled-in product card.

Design Decisions:
- Regex extraction over the first 100 KiB of HTML (250 KiB for Amazon, whose
  image data sits deep in the page); no HTML parser
- Browser-like request headers to reduce bot blocks
- Amazon pages get extra image heuristics (media CDN URLs, hiRes/large JSON,
  landingImage, data-a-dynamic-image)
- Falls back to the Microlink API when the fetch failed or found nothing useful
"""

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx

from shelfqr.core.exceptions import InvalidURLError, MetadataFetchError
from shelfqr.core.setting import settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 100 * 1024
AMAZON_MAX_BYTES = 250 * 1024

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_FAVICON_RE = re.compile(
    r"""<link[^>]+rel=["'](?:icon|shortcut icon)["'][^>]+href=["']([^"']+)["']""", re.IGNORECASE
)
_FAVICON_REVERSED_RE = re.compile(
    r"""<link[^>]+href=["']([^"']+)["'][^>]+rel=["'](?:icon|shortcut icon)["']""", re.IGNORECASE
)

_AMAZON_MEDIA_RE = re.compile(r"https://m\.media-amazon\.com/images/I/[A-Za-z0-9_-]+\.(?:jpg|jpeg|png|webp)")
# (pattern, unescape "\/" sequences)
_AMAZON_JSON_IMAGE_PATTERNS = (
    (re.compile(r'"hiRes"\s*:\s*"(https://[^"]+)"'), False),
    (re.compile(r'"large"\s*:\s*"(https://[^"]+)"'), False),
    (re.compile(r'"hiRes"\s*:\s*"((https?:\\?/\\?/[^"]+))"'), True),
    (re.compile(r'"large"\s*:\s*"((https?:\\?/\\?/[^"]+))"'), True),
)
_LANDING_IMAGE_PATTERNS = (
    re.compile(r"""id=["']landingImage["'][^>]+src=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(r"""src=["']([^"']+)["'][^>]+id=["']landingImage["']""", re.IGNORECASE),
    re.compile(r"""id=["']landingImage["'][^>]+data-a-dynamic-image=["']([^"']+)["']""", re.IGNORECASE),
)
_FIRST_QUOTED_URL_RE = re.compile(r'"((https?:[^"]+))"')
_DYNAMIC_IMAGE_RE = re.compile(r"""data-a-dynamic-image=["'](\{[^"']+\})["']""", re.IGNORECASE)
_IMG_BLOCK_PATTERNS = (
    re.compile(r"""id=["']imgBlkFront["'][^>]+src=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(r"""id=["']ebooksImgBlkFront["'][^>]+src=["']([^"']+)["']""", re.IGNORECASE),
)
_AMAZON_TITLE_SUFFIXES = (
    re.compile(r"\s*:\s*Amazon\.com\s*:.*$", re.IGNORECASE),
    re.compile(r"\s*-\s*Amazon\.com$", re.IGNORECASE),
    re.compile(r"Amazon\.com\s*:\s*", re.IGNORECASE),
)


@dataclass
class LinkMetadata:
    title: str = ""
    image: str = ""
    description: str = ""
    favicon: str = ""
    site_name: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def extract_meta_content(html: str, prop: str) -> str:
    """Content of <meta property|name="prop">, in either attribute order."""
    name = re.escape(prop)
    match = re.search(
        rf"""<meta[^>]+(?:property|name)=["']{name}["'][^>]+content=["']([^"']+)["']""",
        html,
        re.IGNORECASE,
    )
    if match:
        return match.group(1)
    match = re.search(
        rf"""<meta[^>]+content=["']([^"']+)["'][^>]+(?:property|name)=["']{name}["']""",
        html,
        re.IGNORECASE,
    )
    if match:
        return match.group(1)
    return ""


def extract_title(html: str) -> str:
    match = _TITLE_RE.search(html)
    return match.group(1).strip() if match else ""


def resolve_url(url: str, base: str) -> str:
    if not url:
        return ""
    try:
        return urljoin(base, url)
    except ValueError:
        return url


def extract_favicon(html: str, base_url: str) -> str:
    match = _FAVICON_RE.search(html) or _FAVICON_REVERSED_RE.search(html)
    if match:
        return resolve_url(match.group(1), base_url)
    return resolve_url("/favicon.ico", base_url)


def is_internal_host(hostname: str) -> bool:
    return (
        hostname == "localhost"
        or hostname == "127.0.0.1"
        or hostname.startswith("192.168.")
        or hostname.startswith("10.")
        or hostname.startswith("172.")
        or hostname.endswith(".local")
    )


def browser_headers(origin: str, hostname: str) -> dict:
    headers = {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Sec-Ch-Ua": '"Chromium";v="120", "Google Chrome";v="120", "Not_A Brand";v="24"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"Windows"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    if "amazon" in hostname:
        headers["Referer"] = f"{origin}/"
    return headers


def _unescape_amp(value: str) -> str:
    return value.replace("\\u0026", "&")


def _asset_url(asset) -> str:
    """Microlink image/logo objects look like {"url": ...}; anything else is ignored."""
    if not isinstance(asset, dict):
        return ""
    url = asset.get("url")
    return url if isinstance(url, str) else ""


def _is_weak_image(image: str) -> bool:
    return not image or len(image) < 50


def _first_dynamic_image(html: str) -> str:
    """First URL key of a data-a-dynamic-image JSON attribute, or ""."""
    match = _DYNAMIC_IMAGE_RE.search(html)
    if not match:
        return ""
    decoded = match.group(1).replace("&quot;", '"').replace('\\"', '"')
    try:
        images = json.loads(decoded)
    except ValueError:
        return ""
    if not isinstance(images, dict) or not images:
        return ""
    return _unescape_amp(next(iter(images)))


def apply_amazon_extraction(html: str, base_url: str, metadata: LinkMetadata) -> None:
    """Improve metadata.image for Amazon product pages, in place."""
    image = metadata.image

    if _is_weak_image(image) or "placeholder" in image:
        match = _AMAZON_MEDIA_RE.search(html)
        if match:
            image = _unescape_amp(match.group(0))

    if _is_weak_image(image):
        for pattern, unescape_slashes in _AMAZON_JSON_IMAGE_PATTERNS:
            if not _is_weak_image(image):
                break
            match = pattern.search(html)
            if match:
                candidate = match.group(1)
                if unescape_slashes:
                    candidate = candidate.replace("\\/", "/")
                image = _unescape_amp(candidate)

    if not image:
        landing = None
        for pattern in _LANDING_IMAGE_PATTERNS:
            landing = pattern.search(html)
            if landing:
                break
        if landing:
            raw = landing.group(1)
            if raw.startswith("http"):
                image = raw
            elif raw.startswith("{") and "http" in raw:
                first_url = _FIRST_QUOTED_URL_RE.search(raw)
                if first_url:
                    image = _unescape_amp(first_url.group(1))
            else:
                image = resolve_url(raw, base_url)

        if not image:
            image = _first_dynamic_image(html)

        if not image:
            twitter_image = extract_meta_content(html, "twitter:image")
            if twitter_image:
                image = resolve_url(twitter_image, base_url)

        if not image:
            for pattern in _IMG_BLOCK_PATTERNS:
                block = pattern.search(html)
                if block:
                    image = resolve_url(block.group(1), base_url)
                    break

    if _is_weak_image(image) or "placeholder" in image:
        dynamic = _first_dynamic_image(html)
        if dynamic.startswith("http"):
            image = dynamic

    metadata.image = image


def clean_amazon_title(title: str) -> str:
    for pattern in _AMAZON_TITLE_SUFFIXES:
        title = pattern.sub("", title, count=1)
    return title.strip()


def parse_html_metadata(html: str, base_url: str, hostname: str) -> LinkMetadata:
    """Build metadata from page HTML (Open Graph first, then plain meta/title)."""
    metadata = LinkMetadata(
        title=extract_meta_content(html, "og:title") or extract_title(html),
        image=resolve_url(extract_meta_content(html, "og:image"), base_url),
        description=extract_meta_content(html, "og:description") or extract_meta_content(html, "description"),
        favicon=extract_favicon(html, base_url),
        site_name=extract_meta_content(html, "og:site_name") or hostname.replace("www.", "", 1),
    )
    if "amazon" in hostname:
        apply_amazon_extraction(html, base_url, metadata)
    return metadata


class MetadataService:
    """
    Fetches and parses link metadata.

    The httpx client is injectable so tests can mount a MockTransport.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        fetch_timeout: Optional[float] = None,
        microlink_timeout: Optional[float] = None,
        microlink_url: Optional[str] = None,
    ):
        self.client = client
        self.fetch_timeout = fetch_timeout or settings.METADATA_FETCH_TIMEOUT_SECONDS
        self.microlink_timeout = microlink_timeout or settings.MICROLINK_TIMEOUT_SECONDS
        self.microlink_url = microlink_url or settings.MICROLINK_API_URL

    @staticmethod
    def validate_url(url: str):
        """
        Raises:
            InvalidURLError: If the URL is unparsable or points at an internal host
        """
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            raise InvalidURLError(url, reason="Invalid URL")
        if not parsed.scheme or not hostname:
            raise InvalidURLError(url, reason="Invalid URL")
        if is_internal_host(hostname.lower()):
            raise InvalidURLError(url, reason="Internal URLs are not allowed")
        return parsed

    async def fetch(self, url: str) -> LinkMetadata:
        """
        Fetch metadata for a URL.

        Raises:
            InvalidURLError: If the URL fails validation
            MetadataFetchError: If reading the page body times out
        """
        parsed = self.validate_url(url)
        hostname = parsed.hostname.lower()
        is_amazon = "amazon" in hostname

        if self.client is None:
            async with httpx.AsyncClient() as client:
                return await self._fetch_with(client, url, parsed, hostname, is_amazon)
        return await self._fetch_with(self.client, url, parsed, hostname, is_amazon)

    async def _fetch_with(self, client, url, parsed, hostname, is_amazon) -> LinkMetadata:
        metadata = LinkMetadata(site_name=hostname.replace("www.", "", 1))
        origin = f"{parsed.scheme}://{parsed.netloc}"
        fetched = False

        request = client.build_request(
            "GET",
            url,
            headers=browser_headers(origin, hostname),
            timeout=self.fetch_timeout,
        )
        try:
            response = await client.send(request, stream=True, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.info(f"Direct metadata fetch failed for {url}: {e}")
            response = None

        if response is not None:
            try:
                fetched = response.is_success
                content_type = response.headers.get("content-type", "")
                if fetched and ("text/html" in content_type or "application/xhtml" in content_type):
                    max_bytes = AMAZON_MAX_BYTES if is_amazon else DEFAULT_MAX_BYTES
                    html = await self._read_limited(response, max_bytes)
                    metadata = parse_html_metadata(html, origin, hostname)
            except httpx.TimeoutException:
                raise MetadataFetchError(url, timed_out=True)
            finally:
                await response.aclose()

        if not fetched or not metadata.image or (is_amazon and not metadata.title):
            await self._apply_microlink(client, url, metadata)

        if metadata.title and "amazon" in hostname:
            metadata.title = clean_amazon_title(metadata.title)

        return metadata

    @staticmethod
    async def _read_limited(response: httpx.Response, max_bytes: int) -> str:
        chunks = []
        total = 0
        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            total += len(chunk)
            if total >= max_bytes:
                break
        return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

    async def _apply_microlink(self, client: httpx.AsyncClient, url: str, metadata: LinkMetadata) -> None:
        """Fill empty fields from Microlink. Failures leave metadata untouched."""
        try:
            response = await client.get(
                self.microlink_url,
                params={"url": url, "screenshot": "false", "video": "false", "audio": "false"},
                headers={"Accept": "application/json"},
                timeout=self.microlink_timeout,
            )
            if not response.is_success:
                return
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Microlink fallback failed for {url}: {e}")
            return

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return
        image_url = _asset_url(data.get("image"))
        logo_url = _asset_url(data.get("logo"))
        if image_url and not metadata.image:
            metadata.image = image_url
        if data.get("title") and not metadata.title:
            metadata.title = data["title"]
        if data.get("description") and not metadata.description:
            metadata.description = data["description"]
        if logo_url and not metadata.favicon:
            metadata.favicon = logo_url
