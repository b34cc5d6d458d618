"""
Default wikitext parser used by the workers.

Builds a JSON-ready AST from wikitext with wikitextparser. The top level of
a page is split into text runs and markup nodes (templates, parser
functions, wikilinks, external links, comments); the contents of template
arguments and link labels are parsed again as fragments. Every such
re-scan counts as one backtracking event, and a page that needs more
re-scans than the configured limit is given up on.

Failures are returned as ParseFailure values, never raised, so that the
worker can decide what to do with them.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

import wikitextparser as wtp

from wikikv.models import DEFAULT_BACKTRACKING_LIMIT, ParseFailure

Node = dict[str, Any]


class PageParser(Protocol):
    """Interface every worker parser must implement."""

    backtracking_count: int

    def parse(self, text: str) -> list[Node] | ParseFailure: ...


class _BacktrackingLimitExceeded(Exception):
    pass


def _outermost(spans: list[tuple[int, int, Callable[[], Node]]]):
    """Yield the spans that are not nested inside an earlier one, in order."""
    last_end = 0
    for start, end, build in sorted(spans, key=lambda s: (s[0], -s[1])):
        if start >= last_end:
            yield start, end, build
            last_end = end


class WikitextParser:
    """Reusable parser; one instance lives for the whole life of a worker."""

    def __init__(self, backtracking_limit: int = DEFAULT_BACKTRACKING_LIMIT):
        self.backtracking_limit = backtracking_limit
        self.backtracking_count = 0

    def parse(self, text: str) -> list[Node] | ParseFailure:
        self.backtracking_count = 0
        try:
            return self._parse_fragment(text)
        except _BacktrackingLimitExceeded:
            return ParseFailure(
                f"Backtracking limit of {self.backtracking_limit} exceeded"
            )
        except RecursionError:
            return ParseFailure("Markup nested too deeply")

    def _rescan(self, text: str) -> list[Node]:
        self.backtracking_count += 1
        if self.backtracking_count > self.backtracking_limit:
            raise _BacktrackingLimitExceeded
        return self._parse_fragment(text)

    def _parse_fragment(self, text: str) -> list[Node]:
        if not text:
            return []
        parsed = wtp.parse(text)

        spans: list[tuple[int, int, Callable[[], Node]]] = []
        for template in parsed.templates:
            spans.append((*template.span, lambda t=template: self._template_node(t)))
        for function in parsed.parser_functions:
            spans.append((*function.span, lambda f=function: self._function_node(f)))
        for link in parsed.wikilinks:
            spans.append((*link.span, lambda wl=link: self._link_node(wl)))
        for link in parsed.external_links:
            spans.append((*link.span, lambda el=link: _external_link_node(el)))
        for comment in parsed.comments:
            spans.append((*comment.span, lambda c=comment: _comment_node(c)))

        nodes: list[Node] = []
        position = 0
        for start, end, build in _outermost(spans):
            if start > position:
                nodes.append(_text_node(text[position:start]))
            nodes.append(build())
            position = end
        if position < len(text):
            nodes.append(_text_node(text[position:]))
        return nodes

    def _template_node(self, template: wtp.Template) -> Node:
        return {
            "type": "template",
            "name": template.name.strip(),
            "args": [
                {"name": arg.name.strip(), "value": self._rescan(arg.value)}
                for arg in template.arguments
            ],
        }

    def _function_node(self, function: wtp.ParserFunction) -> Node:
        return {
            "type": "parser_function",
            "name": function.name.strip(),
            "args": [self._rescan(arg.value) for arg in function.arguments],
        }

    def _link_node(self, link: wtp.WikiLink) -> Node:
        label = link.text
        return {
            "type": "link",
            "target": link.target.strip(),
            "text": None if label is None else self._rescan(label),
        }


def _text_node(value: str) -> Node:
    return {"type": "text", "value": value}


def _external_link_node(link: wtp.ExternalLink) -> Node:
    return {"type": "external_link", "url": link.url, "text": link.text}


def _comment_node(comment: wtp.Comment) -> Node:
    return {"type": "comment", "value": comment.contents}
