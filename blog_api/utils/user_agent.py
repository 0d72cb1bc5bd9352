"""
User-Agent Classification

Maps a raw User-Agent header to coarse device, browser and OS labels
using ordered, case-sensitive substring rules. The first rule whose
needle occurs in the string wins, so a Chrome UA that also mentions
"Safari" is classified as Chrome.
"""

from typing import NamedTuple

UNKNOWN = "Unknown"

DEVICE_RULES: tuple[tuple[str, str], ...] = (
    ("Mobile", "Mobile"),
    ("Tablet", "Tablet"),
)
DEFAULT_DEVICE = "Desktop"

BROWSER_RULES: tuple[tuple[str, str], ...] = (
    ("Chrome", "Chrome"),
    ("Firefox", "Firefox"),
    ("Safari", "Safari"),
    ("Edge", "Edge"),
)
DEFAULT_BROWSER = "Other"

OS_RULES: tuple[tuple[str, str], ...] = (
    ("Windows", "Windows"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
    ("Android", "Android"),
    ("iOS", "iOS"),
)
DEFAULT_OS = "Other"


class DeviceInfo(NamedTuple):
    device_type: str
    browser: str
    os: str


def _first_match(user_agent: str, rules: tuple[tuple[str, str], ...], default: str) -> str:
    for needle, label in rules:
        if needle in user_agent:
            return label
    return default


def classify(user_agent: str | None) -> DeviceInfo:
    """
    Classify a User-Agent string.

    Args:
        user_agent: Raw header value, may be None or empty

    Returns:
        DeviceInfo with device_type, browser and os labels
    """
    ua = user_agent or ""
    return DeviceInfo(
        device_type=_first_match(ua, DEVICE_RULES, DEFAULT_DEVICE),
        browser=_first_match(ua, BROWSER_RULES, DEFAULT_BROWSER),
        os=_first_match(ua, OS_RULES, DEFAULT_OS),
    )


def device_category(user_agent: str | None) -> str:
    """Breakdown key for the device map; missing UAs are bucketed as Unknown."""
    if not user_agent:
        return UNKNOWN
    return classify(user_agent).device_type
