"""
Referrer resolution: map a referrer URL to a traffic source label.
"""

from functools import lru_cache
from typing import Tuple
from urllib.parse import urlsplit


DIRECT = "Direct"
UNKNOWN = "Unknown"

# (hostname fragment, label). Substring match, first entry wins.
KNOWN_SOURCES: Tuple[Tuple[str, str], ...] = (
    ("google.", "Google"),
    ("bing.com", "Bing"),
    ("duckduckgo.com", "DuckDuckGo"),
    ("yahoo.com", "Yahoo"),
    ("baidu.com", "Baidu"),
    ("yandex.", "Yandex"),
    ("twitter.com", "Twitter/X"),
    ("facebook.com", "Facebook"),
    ("instagram.com", "Instagram"),
    ("linkedin.com", "LinkedIn"),
    ("reddit.com", "Reddit"),
    ("youtube.com", "YouTube"),
    ("news.ycombinator.com", "Hacker News"),
    ("github.com", "GitHub"),
    ("gitlab.com", "GitLab"),
)

# Exact hostnames only: "t.co" is a substring of far too many domains
KNOWN_HOSTS = {
    "t.co": "Twitter/X",
}


@lru_cache(maxsize=4096)
def resolve_referrer(referrer: str) -> str:
    """
    Resolve a referrer URL to a source label.

    Returns:
        "Direct" for an empty referrer, "Unknown" if it can't be parsed as
        an absolute URL, a known source name, or the bare hostname.
    """
    if not referrer:
        return DIRECT

    try:
        parts = urlsplit(referrer.strip())
        hostname = parts.hostname
    except ValueError:
        return UNKNOWN

    if not parts.scheme or not hostname:
        return UNKNOWN

    if hostname in KNOWN_HOSTS:
        return KNOWN_HOSTS[hostname]

    for fragment, label in KNOWN_SOURCES:
        if fragment in hostname:
            return label

    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname
