"""
Content Transform
=================

Utilities for turning article HTML into the plain-text excerpts and
timestamps a Bluesky record needs.
"""

import html
import re
from datetime import datetime, timezone

DEFAULT_EXCERPT_LENGTH = 55
DEFAULT_TEXT_LENGTH = 400
DEFAULT_EXCERPT_MORE = ' [...]'


def html_to_plain_text(markup):
    """Strip HTML tags, convert <p>/<br> to newlines."""
    if not markup:
        return ''
    text = markup
    text = re.sub(r'<br\s*/?>', '\n', text)
    text = re.sub(r'</p>\s*<p[^>]*>', '\n\n', text)
    text = re.sub(r'<(script|style)[^>]*>.*?</\1>', '', text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r'<[^>]+>', '', text)
    text = html.unescape(text).replace('\xa0', ' ')
    text = re.sub(r'[ \t]+\n', '\n', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def trim_words(text, num_words=DEFAULT_EXCERPT_LENGTH, more=DEFAULT_EXCERPT_MORE):
    """
    Trim text to a number of words, appending ``more`` only when something was cut.
    Text that is already short enough is returned unchanged.
    """
    text = (text or '').strip()
    words = text.split()
    if len(words) <= num_words:
        return text
    return ' '.join(words[:num_words]) + more


def trim_chars(text, max_chars=DEFAULT_TEXT_LENGTH, more=DEFAULT_EXCERPT_MORE):
    """
    Trim text to at most ``max_chars`` characters (marker included), cutting on
    a word boundary when possible.
    """
    text = (text or '').strip()
    if len(text) <= max_chars:
        return text

    budget = max(max_chars - len(more), 0)
    cut = text[:budget]
    if budget < len(text) and not text[budget].isspace():
        head, sep, _ = cut.rpartition(' ')
        # A single giant word is cut mid-word rather than dropped
        if sep and head.strip():
            cut = head
    return cut.rstrip() + more


def excerpt_source(post):
    """Plain text to excerpt from: the author's excerpt, falling back to the body."""
    return html_to_plain_text(post.excerpt) or html_to_plain_text(post.content)


def get_excerpt(post, length=DEFAULT_EXCERPT_LENGTH, more=DEFAULT_EXCERPT_MORE):
    """Word-trimmed summary of a post (the link-card description)."""
    return trim_words(excerpt_source(post), length, more)


def get_text_excerpt(post, max_chars=DEFAULT_TEXT_LENGTH, more=DEFAULT_EXCERPT_MORE):
    """Character-bounded summary of a post (the record body)."""
    return trim_chars(excerpt_source(post), max_chars, more)


def parse_timestamp(value):
    """Parse a datetime, Unix timestamp or ISO/SQLite timestamp string. Naive values are UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso_utc(value=None):
    """
    ISO-8601 UTC timestamp with a ``+00:00`` offset and second precision,
    e.g. ``2024-05-01T09:30:00+00:00``. None means now.
    """
    dt = parse_timestamp(value) or datetime.now(timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat()
