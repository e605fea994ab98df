"""URL based resource type classification."""

import logging
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import urlparse, unquote

from ..models.session import ResourceType

logger = logging.getLogger(__name__)


EXTENSION_TYPES = {
    '.js': ResourceType.SCRIPT,
    '.mjs': ResourceType.SCRIPT,
    '.cjs': ResourceType.SCRIPT,
    '.css': ResourceType.STYLESHEET,
    '.png': ResourceType.IMAGE,
    '.jpg': ResourceType.IMAGE,
    '.jpeg': ResourceType.IMAGE,
    '.gif': ResourceType.IMAGE,
    '.svg': ResourceType.IMAGE,
    '.ico': ResourceType.IMAGE,
    '.webp': ResourceType.IMAGE,
    '.avif': ResourceType.IMAGE,
    '.bmp': ResourceType.IMAGE,
    '.woff': ResourceType.FONT,
    '.woff2': ResourceType.FONT,
    '.ttf': ResourceType.FONT,
    '.otf': ResourceType.FONT,
    '.eot': ResourceType.FONT,
    '.mp4': ResourceType.MEDIA,
    '.webm': ResourceType.MEDIA,
    '.ogg': ResourceType.MEDIA,
    '.mp3': ResourceType.MEDIA,
    '.wav': ResourceType.MEDIA,
    '.m3u8': ResourceType.MEDIA,
    '.json': ResourceType.DATA,
    '.xml': ResourceType.DATA,
    '.csv': ResourceType.DATA,
    '.txt': ResourceType.DATA,
    '.html': ResourceType.DOCUMENT,
    '.htm': ResourceType.DOCUMENT,
    '.php': ResourceType.DOCUMENT,
    '.asp': ResourceType.DOCUMENT,
    '.aspx': ResourceType.DOCUMENT,
}

# Top level MIME types for data: URLs
MIME_TYPES = {
    'image': ResourceType.IMAGE,
    'font': ResourceType.FONT,
    'audio': ResourceType.MEDIA,
    'video': ResourceType.MEDIA,
}

MIME_SUBTYPES = {
    'javascript': ResourceType.SCRIPT,
    'css': ResourceType.STYLESHEET,
    'json': ResourceType.DATA,
    'xml': ResourceType.DATA,
    'html': ResourceType.DOCUMENT,
}


def _classify_data_url(url: str) -> ResourceType:
    """Classify a data: URL from its declared MIME type."""
    mime = url[5:].split(',', 1)[0].split(';', 1)[0].strip().lower()
    if not mime:
        return ResourceType.DATA

    top, _, sub = mime.partition('/')
    if top in MIME_TYPES:
        return MIME_TYPES[top]
    for marker, resource_type in MIME_SUBTYPES.items():
        if marker in sub:
            return resource_type
    return ResourceType.DATA


def classify(url: Optional[str]) -> ResourceType:
    """Map a URL to a coarse resource type from its path extension.

    Never raises. Missing or unparseable URLs are UNKNOWN, URLs without a
    recognized extension are treated as documents.

    Args:
        url: Request URL

    Returns:
        Classified ResourceType
    """
    if not url:
        return ResourceType.UNKNOWN

    try:
        if url[:5].lower() == 'data:':
            return _classify_data_url(url)

        path = unquote(urlparse(url).path or '')
        suffix = PurePosixPath(path).suffix.lower()
    except Exception as e:
        logger.debug(f"Failed to classify URL {url[:100]}: {e}")
        return ResourceType.UNKNOWN

    return EXTENSION_TYPES.get(suffix, ResourceType.DOCUMENT)


STATIC_TYPES = frozenset({
    ResourceType.SCRIPT,
    ResourceType.STYLESHEET,
    ResourceType.IMAGE,
    ResourceType.FONT,
    ResourceType.MEDIA,
})


def is_static_resource(url: Optional[str]) -> bool:
    """Check whether a URL points at a static asset (script, style, image, font, media)."""
    return classify(url) in STATIC_TYPES
