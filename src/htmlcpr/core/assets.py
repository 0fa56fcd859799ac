"""
Reference extraction and rewrite utilities.

This module discovers resource references in HTML and CSS text and splices
replacement URLs back into the original text. Elements are located with
BeautifulSoup; the exact character span of every URL is then taken from the
raw markup so untouched regions of a document stay byte-identical.
"""

from __future__ import annotations

import re
import html
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from .errors import MalformedReferenceError
from .files import FileFormat


# Elements and the attributes on them that carry resource URLs
URL_ATTRIBUTES = {
    'img': ('src', 'srcset'),
    'script': ('src',),
    'link': ('href',),
    'source': ('src', 'srcset'),
    'video': ('src', 'poster'),
    'audio': ('src',),
    'track': ('src',),
    'embed': ('src',),
    'iframe': ('src',),
    'input': ('src',),
    'object': ('data',),
}

# <link> rel values whose href is a resource; other rels (canonical, next, ...) are navigation
LINK_RESOURCE_RELS = frozenset({
    'stylesheet', 'icon', 'apple-touch-icon', 'apple-touch-icon-precomposed',
    'preload', 'prefetch', 'modulepreload', 'manifest', 'mask-icon',
})

ATTR_RE = re.compile(r'''([^\s"'>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+)))?''')
TAG_GAP_RE = re.compile(r'[\s/]*')
STYLE_CLOSE_RE = re.compile(r'</style\s*>', re.I)
SRCSET_URL_RE = re.compile(r'[\s,]*(\S+)')
CHARREF_RE = re.compile(r'&(#[0-9]+;?|#[xX][0-9a-fA-F]+;?|[^\t\n\f <&#;]{1,32};?)')

CSS_URL_OPEN_RE = re.compile(r'(?<![\w-])url\(', re.I)
CSS_URL_RE = re.compile(r'''url\(\s*(?:"([^"\n]*)"|'([^'\n]*)'|([^\s"'()]*))\s*\)''', re.I)
CSS_IMPORT_RE = re.compile(r'''@import\s+(?:"([^"\n]*)"|'([^'\n]*)')''', re.I)
CSS_COMMENT_RE = re.compile(r'/\*.*?(?:\*/|$)', re.S)


@dataclass(frozen=True)
class Reference:
    url: str              # URL as written, character references decoded
    start: int            # span of the raw value in the owning text
    end: int
    context: str          # e.g. 'img[src]', 'css:url', 'style[attr]:url'
    quote: str = ''       # delimiting quote character, '' when unquoted
    is_css: bool = False
    escaped: bool = False  # raw value used character references

    def encode(self, value: str) -> str:
        """Encode a replacement URL for the syntax this reference came from."""
        if self.is_css:
            return value
        if self.escaped:
            value = html.escape(value, quote=False)
        if self.quote == '"':
            value = value.replace('"', '&quot;')
        elif self.quote == "'":
            value = value.replace("'", '&#x27;')
        return value


@dataclass(frozen=True)
class _RawAttribute:
    name: str
    start: int
    end: int
    quote: Optional[str]  # None when the attribute has no value


class ReferenceCollector:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def collect(self, text: str, fmt: FileFormat) -> List[Reference]:
        """Return the references in text, ordered by position."""
        if fmt is FileFormat.HTML:
            refs = self._collect_html(text)
        elif fmt is FileFormat.CSS:
            refs = self._collect_css(text, 0, len(text), 'css')
        else:
            return []
        refs.sort(key=lambda r: r.start)
        return refs

    def _collect_html(self, text: str) -> List[Reference]:
        soup = BeautifulSoup(text, 'html.parser')
        line_starts = self._line_starts(text)
        refs: List[Reference] = []

        for tag in soup.find_all(True):
            wanted = self._url_attributes(tag)
            if not wanted and not tag.has_attr('style') and tag.name != 'style':
                continue
            offset = self._tag_offset(tag, text, line_starts)
            if offset is None:
                self.logger.warning(f"Could not locate <{tag.name}> in source text, leaving it untouched")
                continue
            try:
                attrs, tag_end = self._scan_start_tag(text, offset, tag.name)
            except MalformedReferenceError as e:
                self.logger.warning(f"Malformed <{tag.name}> tag left untouched: {e}")
                continue

            for attr in attrs:
                if attr.quote is None:
                    continue
                if attr.name in wanted:
                    context = f"{tag.name}[{attr.name}]"
                    if attr.name == 'srcset':
                        refs.extend(self._srcset_refs(text, attr, context))
                    else:
                        ref = self._make_ref(text, attr.start, attr.end, context, attr.quote)
                        if ref:
                            refs.append(ref)
                elif attr.name == 'style':
                    refs.extend(self._style_attribute_refs(text, attr))

            if tag.name == 'style':
                close = STYLE_CLOSE_RE.search(text, tag_end)
                stop = close.start() if close else len(text)
                refs.extend(self._collect_css(text, tag_end, stop, 'style'))
        return refs

    def _url_attributes(self, tag) -> Tuple[str, ...]:
        if tag.name == 'link':
            rels = tag.get('rel') or []
            if isinstance(rels, str):
                rels = rels.split()
            if not LINK_RESOURCE_RELS.intersection(r.lower() for r in rels):
                return ()
        return URL_ATTRIBUTES.get(tag.name, ())

    def _style_attribute_refs(self, text: str, attr: _RawAttribute) -> List[Reference]:
        """Scan a style attribute as CSS after decoding its character references."""
        css, offsets = self._unescape_with_offsets(text, attr.start, attr.end)
        refs = []
        for ref in self._collect_css(css, 0, len(css), 'style[attr]'):
            start, end = offsets[ref.start], offsets[ref.end]
            refs.append(Reference(url=ref.url, start=start, end=end, context=ref.context,
                                  quote=attr.quote, escaped=text[start:end] != ref.url))
        return refs

    def _unescape_with_offsets(self, text: str, start: int, stop: int) -> Tuple[str, List[int]]:
        """
        Decode character references in text[start:stop].

        Returns:
            Tuple of (decoded text, offsets) where offsets[i] is the index in
            text where decoded character i begins; the last entry is stop
        """
        pieces: List[str] = []
        offsets: List[int] = []
        pos = start
        for m in CHARREF_RE.finditer(text, start, stop):
            pieces.append(text[pos:m.start()])
            offsets.extend(range(pos, m.start()))
            decoded = html.unescape(m.group(0))
            # characters after the first are an undecoded tail of the raw text
            tail = len(decoded) - 1
            pieces.append(decoded)
            offsets.append(m.start())
            offsets.extend(range(m.end() - tail, m.end()))
            pos = m.end()
        pieces.append(text[pos:stop])
        offsets.extend(range(pos, stop))
        offsets.append(stop)
        return ''.join(pieces), offsets

    def _line_starts(self, text: str) -> List[int]:
        starts = [0]
        pos = text.find('\n')
        while pos != -1:
            starts.append(pos + 1)
            pos = text.find('\n', pos + 1)
        return starts

    def _tag_offset(self, tag, text: str, line_starts: Sequence[int]) -> Optional[int]:
        line, column = getattr(tag, 'sourceline', None), getattr(tag, 'sourcepos', None)
        if line is None or column is None or line < 1 or line > len(line_starts):
            return None
        offset = line_starts[line - 1] + column
        name_end = offset + 1 + len(tag.name)
        if text[offset:offset + 1] != '<' or text[offset + 1:name_end].lower() != tag.name:
            return None
        return offset

    def _scan_start_tag(self, text: str, offset: int, name: str) -> Tuple[List[_RawAttribute], int]:
        """
        Tokenize the attributes of the start tag at offset.

        Returns:
            Tuple of (attributes, index just past the closing '>')
        """
        attrs: List[_RawAttribute] = []
        pos = offset + 1 + len(name)
        n = len(text)
        while pos < n:
            pos = TAG_GAP_RE.match(text, pos).end()
            if pos >= n:
                break
            if text[pos] == '>':
                return attrs, pos + 1
            m = ATTR_RE.match(text, pos)
            if not m:
                raise MalformedReferenceError(f"Unterminated attribute value in <{name}>", pos)
            for group, quote in ((2, '"'), (3, "'"), (4, '')):
                if m.group(group) is not None:
                    attrs.append(_RawAttribute(m.group(1).lower(), m.start(group), m.end(group), quote))
                    break
            else:
                attrs.append(_RawAttribute(m.group(1).lower(), m.end(1), m.end(1), None))
            pos = m.end()
        raise MalformedReferenceError(f"Unterminated <{name}> tag", offset)

    def _make_ref(self, text: str, start: int, end: int, context: str, quote: str,
                  is_css: bool = False) -> Optional[Reference]:
        raw = text[start:end]
        start += len(raw) - len(raw.lstrip())
        end -= len(raw) - len(raw.rstrip())
        raw = text[start:end]
        if not raw:
            return None
        url = raw if is_css else html.unescape(raw)
        if url.startswith('#'):
            return None
        return Reference(url=url, start=start, end=end, context=context, quote=quote,
                         is_css=is_css, escaped=url != raw)

    def _srcset_refs(self, text: str, attr: _RawAttribute, context: str) -> List[Reference]:
        refs = []
        pos = attr.start
        while pos < attr.end:
            m = SRCSET_URL_RE.match(text, pos, attr.end)
            if not m:
                break
            url_start, url_end = m.span(1)
            while url_end > url_start and text[url_end - 1] == ',':
                url_end -= 1
            ref = self._make_ref(text, url_start, url_end, context, attr.quote)
            if ref:
                refs.append(ref)
            if url_end < m.end(1):
                pos = m.end(1)
            else:
                comma = text.find(',', url_end, attr.end)
                pos = attr.end if comma == -1 else comma + 1
        return refs

    def _collect_css(self, text: str, start: int, stop: int, origin: str) -> List[Reference]:
        comments = [m.span() for m in CSS_COMMENT_RE.finditer(text, start, stop)]

        def in_comment(pos: int) -> bool:
            return any(s <= pos < e for s, e in comments)

        refs: List[Reference] = []
        for opener in CSS_URL_OPEN_RE.finditer(text, start, stop):
            if in_comment(opener.start()):
                continue
            try:
                m = self._parse_css_url(text, opener.start(), stop)
            except MalformedReferenceError as e:
                self.logger.warning(f"Malformed CSS reference left untouched: {e}")
                continue
            ref = self._css_ref(text, m, f"{origin}:url")
            if ref:
                refs.append(ref)

        for m in CSS_IMPORT_RE.finditer(text, start, stop):
            if in_comment(m.start()):
                continue
            ref = self._css_ref(text, m, f"{origin}:import")
            if ref:
                refs.append(ref)
        return refs

    def _parse_css_url(self, text: str, pos: int, stop: int):
        m = CSS_URL_RE.match(text, pos, stop)
        if not m:
            raise MalformedReferenceError("Unterminated url()", pos)
        return m

    def _css_ref(self, text: str, m, context: str) -> Optional[Reference]:
        # groups are ordered: double-quoted, single-quoted, bare (url() only)
        for group, quote in zip(range(1, m.re.groups + 1), ('"', "'", '')):
            if m.group(group) is not None:
                return self._make_ref(text, m.start(group), m.end(group), context, quote, is_css=True)
        return None


class ReferenceRewriter:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def rewrite(self, text: str, replacements: Sequence[Tuple[Reference, str]]) -> str:
        """
        Splice replacement URLs into text.

        Args:
            text: Original document text
            replacements: (reference, new URL) pairs; spans index into text

        Returns:
            New text with every span replaced and all other characters untouched
        """
        parts = []
        cursor = 0
        for ref, value in sorted(replacements, key=lambda item: item[0].start):
            if ref.start < cursor:
                raise ValueError(f"Overlapping reference spans at offset {ref.start}")
            parts.append(text[cursor:ref.start])
            parts.append(ref.encode(value))
            cursor = ref.end
        parts.append(text[cursor:])
        return ''.join(parts)
