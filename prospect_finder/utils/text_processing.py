from __future__ import annotations
import re
from html import unescape


def strip_tags(html: str) -> str:
    """Remove HTML tags and decode entities."""
    text = re.sub(r'<[^>]+>', ' ', html)
    text = unescape(text)
    return re.sub(r'\s+', ' ', text).strip()


def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace into single spaces."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.replace("\xa0", " ")).strip()


def slugify(text: str) -> str:
    """Lower-case and hyphenate whitespace, as job boards expect in path segments."""
    return re.sub(r"\s+", "-", text.strip()).lower()


def parse_rating(value: str | None) -> float | None:
    """Parse a map rating such as "4,5" or "4.5 stars"; only (0, 5] is accepted."""
    if not value:
        return None
    match = re.search(r"\d+(?:[.,]\d+)?", value)
    if not match:
        return None
    rating = float(match.group(0).replace(",", "."))
    return rating if 0 < rating <= 5 else None


def parse_review_count(value: str | None) -> int | None:
    """Keep only the digits: "(1,234)" -> 1234."""
    if not value:
        return None
    digits = re.sub(r"[^\d]", "", value)
    return int(digits) if digits else None
