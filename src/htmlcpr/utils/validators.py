"""
URL Classification Utilities

This module classifies the URLs found in HTML and CSS documents as remote,
schema-less or local, and splits local URLs into their filesystem path and
query/fragment suffix.
"""

import re
import logging
from enum import Enum
from typing import Tuple, Optional
from urllib.parse import unquote


class UrlKind(Enum):
    REMOTE = "remote"
    SCHEMELESS = "schemeless"
    LOCAL = "local"


class URLValidator:
    """
    Classifies and normalizes URLs for the copy process.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        # RFC 3986 scheme: ALPHA *( ALPHA / DIGIT / "+" / "-" / "." ) ":"
        self.scheme_pattern = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*:')
        self.scheme_name_pattern = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*$')

    def classify(self, url: str) -> UrlKind:
        """
        Classify a raw URL string.

        Args:
            url: The URL exactly as written in the document

        Returns:
            UrlKind.REMOTE for URLs with an explicit scheme, UrlKind.SCHEMELESS
            for protocol-relative URLs, UrlKind.LOCAL for everything else
        """
        url = url.strip()
        if self.scheme_pattern.match(url):
            return UrlKind.REMOTE
        if url.startswith('//'):
            return UrlKind.SCHEMELESS
        return UrlKind.LOCAL

    def split(self, url: str) -> Tuple[str, str]:
        """
        Split a local URL into path and suffix.

        Args:
            url: Local URL, e.g. 'fonts/icons.woff?v=4#iefix'

        Returns:
            Tuple of (path, suffix) where suffix starts with '?' or '#'
            and is empty when the URL has neither
        """
        url = url.strip()
        cut = len(url)
        for marker in ('?', '#'):
            idx = url.find(marker)
            if idx != -1:
                cut = min(cut, idx)
        return url[:cut], url[cut:]

    def filesystem_path(self, url: str) -> Optional[str]:
        """
        Get the percent-decoded filesystem part of a local URL.

        Returns:
            Decoded path, or None for fragment/query-only URLs
        """
        path, _ = self.split(url)
        if not path:
            return None
        return unquote(path)

    def normalize_scheme(self, scheme: str) -> Optional[str]:
        """
        Normalize a scheme name given as configuration ('https' or 'https:').

        Returns:
            Lowercased scheme without the colon, or None if invalid
        """
        if not isinstance(scheme, str):
            return None
        scheme = scheme.strip()
        if scheme.endswith(':'):
            scheme = scheme[:-1]
        if not self.scheme_name_pattern.match(scheme):
            self.logger.debug(f"Rejected scheme name: {scheme!r}")
            return None
        return scheme.lower()


# Global validator instance
_validator_instance: Optional[URLValidator] = None


def get_validator() -> URLValidator:
    """
    Get the global URL validator instance.

    Returns:
        URLValidator instance
    """
    global _validator_instance
    if _validator_instance is None:
        _validator_instance = URLValidator()
    return _validator_instance


def classify_url(url: str) -> UrlKind:
    """Classify a URL as remote, schema-less or local."""
    return get_validator().classify(url)


def split_url(url: str) -> Tuple[str, str]:
    """Split a local URL into (path, '?query#fragment')."""
    return get_validator().split(url)
