"""Unit tests for the default wikitext parser."""
from __future__ import annotations

from wikikv.models import ParseFailure
from wikikv.wikiparser import WikitextParser


class TestWikitextParser:
    """Test WikitextParser."""

    def test_plain_text(self):
        """Test that plain text becomes a single text node."""
        parser = WikitextParser()
        assert parser.parse("Hello") == [{"type": "text", "value": "Hello"}]
        assert parser.backtracking_count == 0

    def test_empty_text(self):
        """Test that empty text gives an empty AST."""
        assert WikitextParser().parse("") == []

    def test_link_with_label(self):
        """Test a labelled wikilink between text runs."""
        ast = WikitextParser().parse("See [[Foo|the foo]] now")
        assert ast == [
            {"type": "text", "value": "See "},
            {"type": "link", "target": "Foo", "text": [{"type": "text", "value": "the foo"}]},
            {"type": "text", "value": " now"},
        ]

    def test_link_without_label(self):
        """Test a bare wikilink."""
        ast = WikitextParser().parse("[[Foo]]")
        assert ast == [{"type": "link", "target": "Foo", "text": None}]

    def test_nested_template(self):
        """Test a template whose argument holds a link."""
        parser = WikitextParser()
        ast = parser.parse("{{Infobox|name=[[Foo|bar]]}}")
        assert len(ast) == 1
        node = ast[0]
        assert node["type"] == "template"
        assert node["name"] == "Infobox"
        assert node["args"] == [
            {
                "name": "name",
                "value": [
                    {"type": "link", "target": "Foo", "text": [{"type": "text", "value": "bar"}]}
                ],
            }
        ]
        # one re-scan for the argument, one for the link label
        assert parser.backtracking_count == 2

    def test_comment(self):
        """Test that HTML comments become comment nodes."""
        ast = WikitextParser().parse("a<!-- note -->b")
        assert ast == [
            {"type": "text", "value": "a"},
            {"type": "comment", "value": " note "},
            {"type": "text", "value": "b"},
        ]

    def test_limit_exceeded_returns_failure(self):
        """Test that exceeding the backtracking limit returns ParseFailure."""
        parser = WikitextParser(backtracking_limit=1)
        outcome = parser.parse("{{A|x=1|y=2}}")
        assert isinstance(outcome, ParseFailure)
        assert "limit of 1" in outcome.message

    def test_count_resets_between_pages(self):
        """Test that each page starts with a fresh backtracking count."""
        parser = WikitextParser(backtracking_limit=0)
        assert isinstance(parser.parse("[[Foo|bar]]"), ParseFailure)
        assert parser.parse("Hello") == [{"type": "text", "value": "Hello"}]
        assert parser.backtracking_count == 0

    def test_unbalanced_markup_does_not_raise(self):
        """Test that broken markup never raises."""
        outcome = WikitextParser().parse("{{{")
        assert isinstance(outcome, (list, ParseFailure))
