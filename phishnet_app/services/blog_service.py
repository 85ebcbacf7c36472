"""
Cybersecurity blog aggregated from RSS feeds.

Both feeds are fetched concurrently; each fetch is retried with exponential
backoff and degrades to an empty list. The merged, newest-first list is
cached so most requests never leave the process.
"""

import asyncio
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, List, Optional

import httpx
from bs4 import BeautifulSoup
from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET
from pydantic import TypeAdapter

from phishnet_app.cache.strategies import CacheStrategy
from phishnet_app.config import settings
from phishnet_app.schemas.blog import BlogPost

logger = logging.getLogger(__name__)

NAMESPACES = {
    "media": "http://search.yahoo.com/mrss/",
    "content": "http://purl.org/rss/1.0/modules/content/",
    "dc": "http://purl.org/dc/elements/1.1/",
}

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko)",
    "Accept": "application/rss+xml, application/atom+xml, application/xml",
    "Cache-Control": "no-cache",
}

DEFAULT_CATEGORY = "Security Tips"
CATEGORIES = (
    "Security Tips",
    "Threat Analysis",
    "Case Studies",
    "Email Security",
    "Enterprise",
    "Phishing",
)

CATEGORY_KEYWORDS = {
    "Security Tips": [
        "tips", "best practices", "how to", "guide", "protection", "prevent", "defense",
        "secure", "safety", "protect", "advice", "recommendations", "tutorial", "steps",
    ],
    "Threat Analysis": [
        "threat", "attack", "malware", "ransomware", "vulnerability", "exploit",
        "breach", "hacker", "cybercrime", "campaign", "apt", "analysis", "investigation",
        "discovered", "uncovered", "detected",
    ],
    "Case Studies": [
        "case study", "incident", "post-mortem", "analysis", "examination", "investigation",
        "real-world", "example", "breakdown", "how", "lessons learned",
    ],
    "Email Security": [
        "email", "smtp", "spf", "dkim", "dmarc", "authentication", "spoofing", "phishing email",
        "inbox", "mailbox", "email security", "email protection", "compromise", "credential",
    ],
    "Enterprise": [
        "enterprise", "business", "corporate", "organization", "company", "employee",
        "workplace", "industry", "sector", "firms", "organizations", "institutions",
    ],
    "Phishing": [
        "phishing", "phish", "credential theft", "social engineering", "impersonation",
        "fake", "scam", "fraudulent", "deceptive", "cloned", "spoofed", "impersonate",
    ],
}

SUMMARY_MAX_LENGTH = 300
WORDS_PER_MINUTE = 200
MAX_BACKOFF_SECONDS = 10
ALL_BLOGS_CACHE_KEY = "blogs:all"
COUNTS_SAMPLE_SIZE = 100

_posts_adapter = TypeAdapter(List[BlogPost])


@dataclass(frozen=True)
class FeedSource:
    key: str
    url: str
    author: str
    site: str


def default_sources() -> List[FeedSource]:
    return [
        FeedSource("hackersNews", settings.rss_feed_hackers_news, "The Hacker News", "thehackernews.com"),
        FeedSource("bleepingComputer", settings.rss_feed_bleeping_computer, "BleepingComputer", "bleepingcomputer.com"),
    ]


# ---- item formatting ----

def strip_html(html: Optional[str]) -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)


def calculate_read_time(text: str) -> int:
    """Minutes at 200 words per minute, never less than one."""
    words = len(text.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def categorize(title: str, text: str, feed_categories: List[str]) -> List[str]:
    categories = []

    for feed_category in feed_categories:
        lowered = feed_category.lower()
        for category in CATEGORIES:
            if category.lower() in lowered and category not in categories:
                categories.append(category)

    if not categories:
        haystack = f"{title} {text}".lower()
        for category, keywords in CATEGORY_KEYWORDS.items():
            if any(keyword in haystack for keyword in keywords):
                categories.append(category)

    return categories or [DEFAULT_CATEGORY]


def _text(item: ET.Element, path: str) -> Optional[str]:
    element = item.find(path, NAMESPACES)
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


def _image(item: ET.Element, content: Optional[str]) -> Optional[str]:
    for path in ("media:content", "media:thumbnail"):
        element = item.find(path, NAMESPACES)
        if element is not None and element.get("url"):
            return element.get("url")

    image = item.find("image")
    if image is not None:
        url = _text(image, "url") or (image.text or "").strip()
        if url:
            return url

    if content:
        tag = BeautifulSoup(content, "html.parser").find("img", src=True)
        if tag:
            return tag["src"]
    return None


def _pub_date(value: Optional[str]) -> datetime:
    parsed = None
    if value:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.debug("Unparseable pubDate: %s", value)
    if parsed is None:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_post(item: ET.Element, source: FeedSource) -> BlogPost:
    """Turn one RSS <item> into a BlogPost."""
    title = _text(item, "title") or "Untitled"
    link = _text(item, "link")
    description = _text(item, "description")
    content = _text(item, "content:encoded")

    text = strip_html(description or content)
    read_time = calculate_read_time(strip_html(content or description))
    pub_date = _pub_date(_text(item, "pubDate"))
    feed_categories = [
        element.text.strip() for element in item.findall("category") if element.text
    ]
    categories = categorize(title, text, feed_categories)

    return BlogPost(
        id=f"{source.key}-{_text(item, 'guid') or link}",
        title=title,
        link=link,
        author=_text(item, "dc:creator") or _text(item, "author") or source.author,
        pub_date=pub_date,
        pub_date_formatted=f"{pub_date:%B} {pub_date.day}, {pub_date.year}",
        summary=text[:SUMMARY_MAX_LENGTH],
        image=_image(item, content or description),
        categories=categories,
        source=source.key,
        source_url=source.site,
        read_time=f"{read_time} min read",
        tags=list(categories),
    )


def parse_feed(xml: bytes) -> List[ET.Element]:
    """
    All <item> elements of an RSS document.

    Feeds are remote input, so DTD entity declarations are refused.
    """
    root = SafeET.fromstring(xml, forbid_dtd=False, forbid_entities=True)
    return root.findall(".//item")


class BlogService:
    """
    Aggregates the configured RSS feeds.

    `transport` and `backoff_base` exist so tests can substitute an
    httpx.MockTransport and skip the backoff sleeps.
    """

    def __init__(
        self,
        cache: CacheStrategy,
        sources: Optional[List[FeedSource]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        backoff_base: float = 1.0,
    ):
        self.cache = cache
        self.sources = sources if sources is not None else default_sources()
        self.transport = transport
        self.max_retries = max_retries or settings.rss_max_retries
        self.backoff_base = backoff_base

    async def fetch_feed(self, client: httpx.AsyncClient, url: str) -> List[ET.Element]:
        """
        Fetch and parse one feed.

        Returns:
            The feed's items, or an empty list once every attempt failed
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info("📡 Fetching RSS feed (attempt %s/%s): %s", attempt, self.max_retries, url)
                response = await client.get(url)
                response.raise_for_status()
                return parse_feed(response.content)
            except DefusedXmlException as e:
                logger.error("❌ Refusing unsafe XML from %s: %s", url, e)
                return []
            except (httpx.HTTPError, ET.ParseError) as e:
                if attempt == self.max_retries:
                    logger.error("❌ All %s attempts failed for %s: %s", self.max_retries, url, e)
                    return []

                delay = min(self.backoff_base * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS)
                logger.warning("⚠️  Attempt %s failed for %s, retrying in %ss: %s", attempt, url, delay, e)
                await asyncio.sleep(delay)
        return []

    async def _fetch_all(self) -> List[BlogPost]:
        async with httpx.AsyncClient(
            timeout=settings.rss_timeout,
            headers=REQUEST_HEADERS,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            results = await asyncio.gather(
                *(self.fetch_feed(client, source.url) for source in self.sources)
            )

        posts = []
        for source, items in zip(self.sources, results):
            logger.info("📊 Fetched %s items from %s", len(items), source.key)
            posts.extend(format_post(item, source) for item in items)

        posts.sort(key=lambda post: post.pub_date, reverse=True)
        return posts

    async def all_posts(self) -> List[BlogPost]:
        """The merged feed, newest first, served from cache when possible."""
        cached = await self.cache.get(ALL_BLOGS_CACHE_KEY)
        if cached:
            return _posts_adapter.validate_json(cached)

        posts = await self._fetch_all()
        # An empty result is most likely an outage; retry on the next request
        if posts:
            await self.cache.set(
                ALL_BLOGS_CACHE_KEY,
                _posts_adapter.dump_json(posts).decode("utf-8"),
                ttl=settings.blog_cache_ttl,
            )
        return posts

    async def get_all_blogs(self, limit: int = 50) -> List[BlogPost]:
        return (await self.all_posts())[:limit]

    async def get_blogs_by_category(self, category: Optional[str], limit: int = 50) -> List[BlogPost]:
        posts = await self.all_posts()
        if not category or category.lower() == "all":
            return posts[:limit]

        wanted = category.lower()
        matching = [
            post for post in posts
            if any(name.lower() == wanted for name in post.categories)
        ]
        return matching[:limit]

    async def get_category_counts(self) -> Dict[str, int]:
        counts = {category: 0 for category in CATEGORIES}
        for post in (await self.all_posts())[:COUNTS_SAMPLE_SIZE]:
            for category in post.categories:
                if category in counts:
                    counts[category] += 1
        return counts

    async def search_blogs(self, query: str, limit: int = 50) -> List[BlogPost]:
        needle = query.lower()
        matching = [
            post for post in await self.all_posts()
            if needle in post.title.lower()
            or needle in post.summary.lower()
            or needle in post.author.lower()
        ]
        return matching[:limit]
