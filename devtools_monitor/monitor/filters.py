"""Selective URL filter for detailed event logging.

The filter only decides whether a detailed log line is emitted; counters
are updated regardless of its outcome.
"""

import logging
from typing import Iterable, List, Optional, Tuple, FrozenSet

from .classifier import is_static_resource

logger = logging.getLogger(__name__)


class UrlFilter:
    """Allow-list of URL substrings, with optional static-asset suppression."""

    def __init__(
        self,
        urls: Optional[Iterable[str]] = None,
        exclude_static_resources: bool = False,
    ):
        """Initialize URL filter.

        Args:
            urls: URL substrings to allow; empty or None matches everything
            exclude_static_resources: Suppress scripts, styles, images,
                fonts and media from detailed logs
        """
        self._state: Tuple[FrozenSet[str], bool] = (frozenset(), exclude_static_resources)
        self.set_urls(urls)

    def set_urls(self, urls: Optional[Iterable[str]]) -> None:
        """Replace the allow-list. Empty or None resets to match everything."""
        patterns = frozenset(u for u in (urls or []) if u)
        # Single reference swap, readers see either the old or the new state
        self._state = (patterns, self._state[1])
        if patterns:
            logger.info(f"Selective logging enabled for: {sorted(patterns)}")
        else:
            logger.debug("Selective logging disabled (all URLs)")

    def set_exclude_static_resources(self, exclude: bool) -> None:
        self._state = (self._state[0], exclude)

    @property
    def urls(self) -> List[str]:
        return sorted(self._state[0])

    @property
    def exclude_static_resources(self) -> bool:
        return self._state[1]

    @property
    def is_active(self) -> bool:
        patterns, exclude_static = self._state
        return bool(patterns) or exclude_static

    def should_log(self, url: Optional[str]) -> bool:
        """Decide whether an event for this URL gets a detailed log line.

        Args:
            url: Event URL (may be None when the protocol omits it)

        Returns:
            True when the allow-list is empty or the URL contains one of
            its substrings, and the URL is not a suppressed static asset
        """
        patterns, exclude_static = self._state

        if exclude_static and is_static_resource(url):
            return False
        if not patterns:
            return True
        if not url:
            return False
        return any(pattern in url for pattern in patterns)

    def __repr__(self) -> str:
        return f"UrlFilter(urls={self.urls}, exclude_static_resources={self.exclude_static_resources})"
