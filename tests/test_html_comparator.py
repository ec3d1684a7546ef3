"""
Tests for HtmlComparator: javadoc detection, head cleanup and the text fallback.
"""

import pytest
from bs4 import BeautifulSoup

from artifact_comparator import (
    PARSER,
    HtmlComparator,
    clean_javadoc,
    compare_text,
    is_javadoc_html,
    serialize_and_normalize,
)
from conftest import javadoc_page, stream


@pytest.fixture
def comparator():
    return HtmlComparator()


def delta_for(comparator, old, new, data):
    return comparator.get_delta(stream(old), stream(new), data)


class TestMatches:
    @pytest.mark.parametrize("value", ["html", "HTML", "htm", "HTM", "Html"])
    def test_html_extensions(self, comparator, value):
        assert comparator.matches(value)

    @pytest.mark.parametrize("value", ["xml", "xhtml", "txt", ""])
    def test_other_extensions(self, comparator, value):
        assert not comparator.matches(value)


class TestJavadocDetection:
    def test_marker_comment_in_head(self):
        soup = BeautifulSoup(javadoc_page(), PARSER)
        assert is_javadoc_html(soup)

    def test_marker_is_case_insensitive_and_trimmed(self):
        soup = BeautifulSoup(javadoc_page(marker="  Generated By JAVADOC (release 21)  "), PARSER)
        assert is_javadoc_html(soup)

    def test_marker_must_be_a_prefix(self):
        soup = BeautifulSoup(javadoc_page(marker="javadoc generated"), PARSER)
        assert not is_javadoc_html(soup)

    def test_marker_outside_head_is_ignored(self):
        html = (
            "<html><head><title>x</title></head>"
            "<body><!-- Generated by javadoc --></body></html>"
        )
        assert not is_javadoc_html(BeautifulSoup(html, PARSER))

    def test_marker_in_any_head_element(self):
        html = (
            "<html><head><title>x</title></head>"
            "<body><head><!-- Generated by javadoc --></head></body></html>"
        )
        assert is_javadoc_html(BeautifulSoup(html, PARSER))

    def test_marker_nested_deeper_than_head_child(self):
        html = "<html><head><noscript><!-- Generated by javadoc --></noscript></head></html>"
        assert not is_javadoc_html(BeautifulSoup(html, PARSER))


class TestCleanJavadoc:
    def clean(self, markup: str) -> BeautifulSoup:
        soup = BeautifulSoup(markup, PARSER)
        clean_javadoc(soup, markup)
        return soup

    def test_removes_head_churn(self):
        soup = self.clean(
            javadoc_page(
                head=(
                    '<meta name="viewport" content="width=device-width">\n'
                    '<link rel="stylesheet" href="stylesheet.css">\n'
                    '<script src="script.js"></script>'
                )
            )
        )
        head = soup.head
        assert head.find("meta") is None
        assert head.find("link") is None
        assert head.find("script") is None
        assert head.find("title") is not None
        assert "Generated by javadoc" not in str(head)

    def test_uppercase_script_and_link_are_removed(self):
        soup = self.clean(javadoc_page(head='<SCRIPT src="a.js"></SCRIPT>\n<LINK rel="icon" href="x.png">'))
        assert soup.head.find("script") is None
        assert soup.head.find("link") is None

    def test_uppercase_meta_is_kept(self):
        soup = self.clean(javadoc_page(head='<META name="generator" content="javadoc">'))
        assert soup.head.find("meta") is not None

    def test_mixed_case_meta_is_kept(self):
        soup = self.clean(javadoc_page(head='<Meta charset="utf-8">'))
        assert soup.head.find("meta") is not None

    def test_removes_root_lang(self):
        soup = self.clean(javadoc_page(lang="de"))
        assert "lang" not in soup.html.attrs

    def test_body_elements_are_untouched(self):
        soup = self.clean(javadoc_page(body='<script>var x = 1;</script><meta name="x">'))
        assert soup.body.find("script") is not None
        assert soup.body.find("meta") is not None


class TestSerializeAndNormalize:
    def test_whitespace_between_tags_is_dropped(self):
        a = BeautifulSoup("<div>\n  <p>a</p>\n\t<p>b</p>\n</div>", PARSER)
        b = BeautifulSoup("<div><p>a</p><p>b</p></div>", PARSER)
        assert serialize_and_normalize(a) == serialize_and_normalize(b)

    def test_whitespace_inside_text_is_collapsed(self):
        soup = BeautifulSoup("<p>a \r\n  b</p>", PARSER)
        assert serialize_and_normalize(soup) == "<p>a b</p>"

    def test_non_breaking_space_is_preserved(self):
        soup = BeautifulSoup("<p>a&nbsp;b</p>", PARSER)
        assert "\xa0" in serialize_and_normalize(soup)


class TestGetDelta:
    def test_identical_javadoc(self, comparator, data):
        page = javadoc_page()
        assert delta_for(comparator, page, page, data) is None

    @pytest.mark.parametrize(
        "head",
        [
            '<script type="text/javascript" src="script.js"></script>',
            '<link rel="stylesheet" type="text/css" href="stylesheet.css">',
            '<meta name="dc.created" content="2024-01-01">',
            "<!-- build 1234 -->",
        ],
    )
    def test_head_churn_is_ignored(self, comparator, data, head):
        assert delta_for(comparator, javadoc_page(), javadoc_page(head=head), data) is None

    def test_lang_is_ignored(self, comparator, data):
        assert delta_for(comparator, javadoc_page(lang="en"), javadoc_page(lang="fr"), data) is None

    def test_whitespace_between_tags_is_ignored(self, comparator, data):
        old = javadoc_page(body="<h1>Class Foo</h1>\n\n    <p>Does foo things.</p>")
        new = javadoc_page(body="<h1>Class Foo</h1><p>Does foo things.</p>")
        assert delta_for(comparator, old, new, data) is None

    def test_text_case_is_ignored(self, comparator, data):
        old = javadoc_page(body="<p>Does foo things.</p>")
        new = javadoc_page(body="<P>DOES FOO THINGS.</P>")
        assert delta_for(comparator, old, new, data) is None

    def test_uppercase_meta_is_a_difference(self, comparator, data):
        new = javadoc_page(head='<META name="generator" content="javadoc">')
        assert delta_for(comparator, javadoc_page(), new, data) is not None

    def test_body_change_is_a_difference(self, comparator, data):
        old = javadoc_page(body="<p>Does foo things.</p>")
        new = javadoc_page(body="<p>Does bar things.</p>")
        delta = delta_for(comparator, old, new, data)
        assert delta is not None
        assert delta.message == "different"

    def test_non_javadoc_uses_text_compare(self, comparator, data):
        old = javadoc_page(marker="javadoc generated")
        new = javadoc_page(marker="javadoc generated", head="<script></script>")
        assert delta_for(comparator, old, new, data) is not None

    def test_non_javadoc_line_endings_only(self, comparator, data):
        old = "<html>\n<body><p>x</p></body>\n</html>\n"
        new = old.replace("\n", "\r\n")
        assert delta_for(comparator, old, new, data) is None

    def test_detection_uses_baseline_only(self, comparator, data):
        old = javadoc_page(marker="not generated")
        new = javadoc_page()
        assert delta_for(comparator, old, new, data) is not None

    def test_undecodable_input_falls_back_to_text(self, comparator, detailed_data):
        old = b"\xff\xfe<html><head><!-- Generated by javadoc --></head></html>"
        new = b"\xff\xfe<html><head><!-- Generated by javadoc --><script></script></head></html>"
        delta = comparator.get_delta(stream(old), stream(new), detailed_data)
        expected = compare_text(stream(old), stream(new), detailed_data)
        assert delta == expected
        assert delta is not None

    def test_undecodable_identical_input(self, comparator, data):
        content = b"\xff<html></html>"
        assert comparator.get_delta(stream(content), stream(content), data) is None

    def test_parse_failure_falls_back_to_text(self, comparator, data, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr("artifact_comparator.BeautifulSoup", broken)
        page = javadoc_page()
        assert delta_for(comparator, page, page, data) is None
        assert delta_for(comparator, page, javadoc_page(lang="de"), data) is not None

    def test_streams_can_be_partially_consumed(self, comparator, data):
        baseline = stream(javadoc_page())
        reactor = stream(javadoc_page(body="<p>changed</p>"))
        baseline.read(10)
        reactor.read()
        assert comparator.get_delta(baseline, reactor, data) is not None
