"""Builders for the files produced by user capture actions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from ..storage import Collection
from ..utils.timestamp import generate_timestamp, url_to_domain_slug


@dataclass
class CapturedFile:
    """A file ready to be written into a collection."""

    collection: Collection
    filename: str
    content: Union[bytes, str]


def bookmark_file(url: str, now: Optional[datetime] = None) -> CapturedFile:
    timestamp = generate_timestamp(now)
    return CapturedFile(
        collection=Collection.ANGA,
        filename=f"{timestamp}-{url_to_domain_slug(url)}.url",
        content=f"[InternetShortcut]\nURL={url}\n",
    )


def quote_file(text: str, now: Optional[datetime] = None) -> CapturedFile:
    return CapturedFile(
        collection=Collection.ANGA,
        filename=f"{generate_timestamp(now)}-quote.md",
        content=text,
    )


def image_file(source_url: str, data: bytes, content_type: str = "image/png",
               now: Optional[datetime] = None) -> CapturedFile:
    """Name an image after the last path segment of its source URL."""
    timestamp = generate_timestamp(now)
    try:
        basename = unquote(urlparse(source_url).path.rsplit("/", 1)[-1])
    except ValueError:
        basename = ""

    basename = basename.replace("\\", "-").lstrip(".")
    if not basename:
        ext = content_type.split("/")[-1] or "png"
        basename = f"image.{ext}"

    return CapturedFile(
        collection=Collection.ANGA,
        filename=f"{timestamp}-{basename}",
        content=data,
    )


def note_file(anga_filename: str, note: str, now: Optional[datetime] = None) -> CapturedFile:
    """Build a meta TOML file attaching ``note`` to an anga file."""
    note = " ".join(note.splitlines()).strip()
    content = (
        "[anga]\n"
        f"filename = \"{anga_filename}\"\n"
        "\n"
        "[meta]\n"
        f"note = '''{note}'''\n"
    )
    return CapturedFile(
        collection=Collection.META,
        filename=f"{generate_timestamp(now)}-note.toml",
        content=content,
    )
