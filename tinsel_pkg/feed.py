"""
RSS 2.0 serialization for feeds written from templates.
"""

from datetime import datetime, date, timezone
from email.utils import format_datetime
from typing import Any, Dict, List
from xml.sax.saxutils import escape

XML_ENTITIES = {'"': '&quot;', "'": '&apos;'}


def escape_xml(value: Any) -> str:
    return escape(str(value), XML_ENTITIES)


def parse_date(date_str):
    """Parse a date string."""
    if isinstance(date_str, datetime):
        return date_str
    elif isinstance(date_str, date):
        return datetime(date_str.year, date_str.month, date_str.day)
    elif isinstance(date_str, str):
        try:
            return datetime.fromisoformat(date_str.strip().replace('Z', '+00:00'))
        except ValueError:
            pass
        for fmt in ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d', '%b %d, %Y', '%B %d, %Y']:
            try:
                return datetime.strptime(date_str.strip(), fmt)
            except ValueError:
                continue
    raise ValueError(f"Unrecognized date: {date_str!r}")


def format_pubdate(value) -> str:
    """Format a date as an RFC 822 date in UTC."""
    parsed = parse_date(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return format_datetime(parsed.astimezone(timezone.utc), usegmt=True)


def to_rss_xml(channel: Dict[str, Any], items: List[Dict[str, Any]]) -> str:
    """
    Serialize a channel and its items to RSS 2.0 XML.

    Args:
        channel: Mapping with ``title``, ``description`` and ``url``
        items: Mappings with ``title``, ``description``, ``url`` and ``pubdate``

    Returns:
        The XML document as a string
    """
    rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
<title>{escape_xml(channel['title'])}</title>
<link>{escape_xml(channel['url'])}</link>
<description>{escape_xml(channel['description'])}</description>
'''

    for item in items:
        rss_content += f'''<item>
<title>{escape_xml(item['title'])}</title>
<link>{escape_xml(item['url'])}</link>
<description>{escape_xml(item['description'])}</description>
<pubDate>{format_pubdate(item['pubdate'])}</pubDate>
</item>
'''

    rss_content += '''</channel>
</rss>
'''
    return rss_content
