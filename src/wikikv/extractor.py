"""
Incremental page extraction from a MediaWiki XML dump.

PageDecoder turns byte chunks into RawRecords as each <page> element
closes. RecordExtractor drives it cooperatively from the coordinator loop:
it reads a chunk only when the source is not paused, drops pages in
excluded namespaces, short-circuits redirects to the batcher and hands
everything else to the dispatcher.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Iterable, Iterator

from lxml import etree  # type: ignore[import-untyped]

from wikikv.dispatcher import Dispatcher
from wikikv.errors import RecordDecodeError, StreamDecodeError
from wikikv.flow import FlowController
from wikikv.models import (
    DEFAULT_ALLOWED_NAMESPACES,
    PipelineStats,
    RawRecord,
    RedirectRecord,
    canonical_title,
)
from wikikv.source import SourceReader

logger = logging.getLogger("wikikv.extractor")

REDIRECT_PATTERN = re.compile(r"^#redirect:?\s*\[\[(.+)\]\]", re.IGNORECASE)

# Log this many malformed pages at WARNING, the rest at DEBUG
MAX_LOGGED_MALFORMED = 10


# =============================================================================
# FILTERS
# =============================================================================


def namespace_pattern(allowed_namespaces: Iterable[str] = DEFAULT_ALLOWED_NAMESPACES) -> re.Pattern[str]:
    """
    Compile the pattern of titles living in a non-article namespace.

    A namespace prefix is a run of letters followed by a colon and a word
    character ("Template:Foo", "Wikipedia:About"). Prefixes listed in
    allowed_namespaces are exempt. Matching is case-sensitive.
    """
    allowed = [re.escape(name) for name in allowed_namespaces]
    exemption = f"(?!(?:{'|'.join(allowed)}):)" if allowed else ""
    return re.compile(rf"^{exemption}[^\W\d_]+:\w")


def is_excluded_title(
    title: str,
    allowed_namespaces: Iterable[str] = DEFAULT_ALLOWED_NAMESPACES,
) -> bool:
    return namespace_pattern(allowed_namespaces).match(title) is not None


def match_redirect(source_text: str) -> str | None:
    """Return the redirect target if the page body starts with #REDIRECT [[...]]."""
    match = REDIRECT_PATTERN.match(source_text)
    return match.group(1) if match else None


def build_redirect(record: RawRecord, include_source: bool = False) -> RedirectRecord | None:
    target = match_redirect(record.source_text)
    if target is None:
        return None
    return RedirectRecord(
        key=canonical_title(record.title),
        id=record.id,
        title=record.title,
        redirect_to=canonical_title(target),
        source=record.source_text if include_source else None,
    )


# =============================================================================
# PAGE DECODER
# =============================================================================


def _children_by_name(elem: etree._Element) -> dict[str, etree._Element]:
    children: dict[str, etree._Element] = {}
    for child in elem:
        if not isinstance(child.tag, str):
            continue  # comments and processing instructions
        children.setdefault(etree.QName(child).localname, child)
    return children


def page_to_record(page: etree._Element) -> RawRecord:
    """
    Extract a RawRecord from a <page> element.

    Raises:
        RecordDecodeError: If the page has no usable title or id.
    """
    fields = _children_by_name(page)

    title_elem = fields.get("title")
    title = (title_elem.text or "").strip() if title_elem is not None else ""
    if not title:
        raise RecordDecodeError("page without title")

    id_elem = fields.get("id")
    try:
        page_id = int((id_elem.text or "").strip()) if id_elem is not None else None
    except ValueError:
        page_id = None
    if page_id is None:
        raise RecordDecodeError(f"page {title!r} has no valid id")

    source_text = ""
    revision = fields.get("revision")
    if revision is not None:
        text_elem = _children_by_name(revision).get("text")
        if text_elem is not None and text_elem.text:
            source_text = text_elem.text

    return RawRecord(id=page_id, title=title, source_text=source_text)


class PageDecoder:
    """
    Push-style XML decoder yielding one RawRecord per closed <page>.

    The parser is strict: input that is not XML, invalid UTF-8 and a
    document cut off before </mediawiki> raise StreamDecodeError. Pages
    that are well-formed XML but lack a title or id are skipped instead.
    """

    def __init__(self) -> None:
        self._parser = etree.XMLPullParser(
            events=("end",),
            tag="{*}page",
            huge_tree=True,
        )
        self.malformed = 0

    def feed(self, chunk: bytes) -> list[RawRecord]:
        try:
            self._parser.feed(chunk)
        except etree.XMLSyntaxError as e:
            raise StreamDecodeError(f"XML decoding failed: {e}") from e
        return self._collect()

    def close(self) -> list[RawRecord]:
        try:
            root = self._parser.close()
        except etree.XMLSyntaxError as e:
            raise StreamDecodeError(f"XML decoding failed at end of stream: {e}") from e
        if root is None:
            raise StreamDecodeError("Stream ended without an XML document")
        return self._collect()

    def _collect(self) -> list[RawRecord]:
        records: list[RawRecord] = []
        for _event, elem in self._parser.read_events():
            try:
                records.append(page_to_record(elem))
            except RecordDecodeError as e:
                self.malformed += 1
                log = logger.warning if self.malformed <= MAX_LOGGED_MALFORMED else logger.debug
                log(f"⚠️  Skipping malformed page: {e}")
            finally:
                # Free the page and everything before it
                elem.clear()
                while elem.getprevious() is not None:
                    parent = elem.getparent()
                    if parent is None:
                        break
                    del parent[0]
        return records


def iter_records(source: SourceReader) -> Iterator[RawRecord]:
    """Lazily decode every page of a source, unfiltered. Not restartable."""
    decoder = PageDecoder()
    while True:
        chunk = source.read_chunk()
        if not chunk:
            break
        yield from decoder.feed(chunk)
    yield from decoder.close()


# =============================================================================
# RECORD EXTRACTOR
# =============================================================================


class RecordExtractor:
    """
    Cooperative extraction stage of the pipeline.

    Pages decoded from a chunk are queued and routed one by one; routing
    stops as soon as the flow controller pauses the source, and the
    remaining pages wait for the next step after resume.
    """

    def __init__(
        self,
        source: SourceReader,
        dispatcher: Dispatcher,
        flow: FlowController,
        stats: PipelineStats | None = None,
        include_source: bool = False,
        allowed_namespaces: Iterable[str] = DEFAULT_ALLOWED_NAMESPACES,
    ):
        self.source = source
        self.dispatcher = dispatcher
        self.flow = flow
        self.stats = stats if stats is not None else PipelineStats()
        self.include_source = include_source
        self._excluded = namespace_pattern(allowed_namespaces)
        self._decoder = PageDecoder()
        self._pending: deque[RawRecord] = deque()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def step(self) -> bool:
        """
        Do one unit of work.

        Returns:
            False once the stream is exhausted and every page was routed.

        Raises:
            StreamDecodeError: On corrupt input.
        """
        self._route_pending()
        if self.source.paused:
            return True

        if not self._closed:
            chunk = self.source.read_chunk()
            if chunk:
                self._pending.extend(self._decoder.feed(chunk))
            else:
                self._pending.extend(self._decoder.close())
                self._closed = True
            self.stats.records_malformed = self._decoder.malformed
            self._route_pending()

        return not (self._closed and not self._pending)

    def _route_pending(self) -> None:
        while self._pending and not self.source.paused:
            self._route(self._pending.popleft())

    def _route(self, record: RawRecord) -> None:
        if self._excluded.match(record.title):
            self.stats.records_excluded += 1
            return

        # a redirect can be flushed while it is routed, so count it first
        self.stats.records_accepted += 1
        self.flow.record_read()

        redirect = build_redirect(record, self.include_source)
        if redirect is not None:
            self.dispatcher.forward_redirect(redirect)
            self.stats.redirects += 1
        else:
            self.dispatcher.dispatch(record)
            self.stats.dispatched += 1
