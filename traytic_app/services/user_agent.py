"""
User-agent classification: browser, OS, device class and bot detection.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Tuple

from user_agents import parse


# Known automation fragments, matched case-insensitively as substrings
BOT_PATTERNS: Tuple[str, ...] = (
    "bot",
    "crawler",
    "spider",
    "scraper",
    "headless",
    "phantom",
    "selenium",
    "puppeteer",
    "playwright",
)

UNKNOWN = "Unknown"


class DeviceType:
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


@dataclass(frozen=True)
class UserAgentInfo:
    browser: str
    browser_version: str
    os: str
    os_version: str
    device_type: str
    is_bot: bool


def is_bot(user_agent: str, extra_patterns: Iterable[str] = ()) -> bool:
    """True if the user agent contains any bot pattern"""
    ua = (user_agent or "").lower()
    return any(pattern.lower() in ua for pattern in (*BOT_PATTERNS, *extra_patterns) if pattern)


def _family(name: str) -> str:
    # ua-parser reports unrecognized families as "Other"
    if not name or name == "Other":
        return UNKNOWN
    return name


@lru_cache(maxsize=4096)
def _parse(user_agent: str) -> Tuple[str, str, str, str, str]:
    ua = parse(user_agent)

    if ua.is_tablet:
        device_type = DeviceType.TABLET
    elif ua.is_mobile:
        device_type = DeviceType.MOBILE
    else:
        device_type = DeviceType.DESKTOP

    return (
        _family(ua.browser.family),
        ua.browser.version_string or "",
        _family(ua.os.family),
        ua.os.version_string or "",
        device_type,
    )


def classify_user_agent(user_agent: str, extra_bot_patterns: Iterable[str] = ()) -> UserAgentInfo:
    """
    Classify a raw user agent string.

    Anything not recognized as mobile or tablet is reported as desktop.
    Parsing is memoized: a site's traffic comes from a small set of
    distinct user agents.
    """
    user_agent = user_agent or ""
    browser, browser_version, os_name, os_version, device_type = _parse(user_agent)
    return UserAgentInfo(
        browser=browser,
        browser_version=browser_version,
        os=os_name,
        os_version=os_version,
        device_type=device_type,
        is_bot=is_bot(user_agent, extra_bot_patterns),
    )
