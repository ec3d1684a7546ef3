"""
Content comparators for build-artifact verification.

A comparator decides whether a baseline artifact entry and the freshly built
("reactor") entry are equivalent. Comparators are plain objects with two methods:

    get_delta(baseline, reactor, data) -> ArtifactDelta | None
    matches(name_or_extension) -> bool

``None`` (``NO_DIFFERENCE``) means the two inputs are equivalent. Registration of
comparators by file type is left to the host (see compare_artifacts.py).
"""

from __future__ import annotations

import difflib
import io
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from bs4 import BeautifulSoup, Comment, Tag

# Parser configuration - the built-in parser is lenient and records where each
# tag starts in the source, which the meta rule below relies on.
PARSER = "html.parser"


# =============================================================================
# Data Model
# =============================================================================


@dataclass(frozen=True)
class ArtifactDelta:
    """A difference between a baseline and a reactor entry."""

    message: str
    detailed_message: str | None = None

    def __str__(self) -> str:
        return self.message


# Sentinel returned by comparators when the inputs are equivalent.
NO_DIFFERENCE: ArtifactDelta | None = None

DEFAULT_DIFF_MESSAGE = "different"


@dataclass
class ComparisonData:
    """Options passed through every comparator untouched."""

    ignored_patterns: list[str] = field(default_factory=list)  # globs the host skips
    show_diff_details: bool = False  # attach a diff to each delta


class ComparatorInputStream(io.BytesIO):
    """Fully buffered input that can be read as bytes or text any number of times."""

    @classmethod
    def from_path(cls, path: Path) -> ComparatorInputStream:
        return cls(Path(path).read_bytes())

    def as_bytes(self) -> bytes:
        return self.getvalue()

    def as_string(self, encoding: str = "utf-8") -> str:
        """Decode the whole buffer; raises UnicodeDecodeError on invalid input."""
        return self.getvalue().decode(encoding)


class ContentsComparator(Protocol):
    def get_delta(
        self,
        baseline: ComparatorInputStream,
        reactor: ComparatorInputStream,
        data: ComparisonData,
    ) -> ArtifactDelta | None: ...

    def matches(self, name_or_extension: str) -> bool: ...


def create_delta(
    message: str,
    baseline: ComparatorInputStream,
    reactor: ComparatorInputStream,
    data: ComparisonData,
) -> ArtifactDelta:
    """Build a delta, with a unified diff of both inputs if details were requested."""
    if not data.show_diff_details:
        return ArtifactDelta(message)
    old_lines = baseline.as_bytes().decode("utf-8", errors="replace").splitlines()
    new_lines = reactor.as_bytes().decode("utf-8", errors="replace").splitlines()
    diff_lines = difflib.unified_diff(
        old_lines, new_lines, fromfile="baseline", tofile="reactor", lineterm=""
    )
    return ArtifactDelta(message, "\n".join(diff_lines))


# =============================================================================
# Text and Binary Comparison
# =============================================================================


def _normalize_line_endings(content: bytes) -> bytes:
    return content.replace(b"\r\n", b"\n").replace(b"\r", b"\n")


def compare_text(
    baseline: ComparatorInputStream,
    reactor: ComparatorInputStream,
    data: ComparisonData,
) -> ArtifactDelta | None:
    """Compare two inputs as text, ignoring the line ending style."""
    if _normalize_line_endings(baseline.as_bytes()) == _normalize_line_endings(reactor.as_bytes()):
        return NO_DIFFERENCE
    return create_delta(DEFAULT_DIFF_MESSAGE, baseline, reactor, data)


class TextComparator:
    """Line-ending insensitive comparison for plain text files."""

    HINT = "txt"
    EXTENSIONS = {"txt", "md", "properties", "css", "js"}

    def get_delta(
        self,
        baseline: ComparatorInputStream,
        reactor: ComparatorInputStream,
        data: ComparisonData,
    ) -> ArtifactDelta | None:
        return compare_text(baseline, reactor, data)

    def matches(self, name_or_extension: str) -> bool:
        return name_or_extension.lower() in self.EXTENSIONS


class BinaryComparator:
    """Byte-for-byte comparison, used for anything no other comparator claims."""

    HINT = "default"

    def get_delta(
        self,
        baseline: ComparatorInputStream,
        reactor: ComparatorInputStream,
        data: ComparisonData,
    ) -> ArtifactDelta | None:
        old_bytes = baseline.as_bytes()
        new_bytes = reactor.as_bytes()
        if old_bytes == new_bytes:
            return NO_DIFFERENCE
        if data.show_diff_details:
            return ArtifactDelta(
                DEFAULT_DIFF_MESSAGE,
                f"baseline: {len(old_bytes)} bytes, reactor: {len(new_bytes)} bytes",
            )
        return ArtifactDelta(DEFAULT_DIFF_MESSAGE)

    def matches(self, name_or_extension: str) -> bool:
        return False


# =============================================================================
# HTML Comparison
# =============================================================================

HEAD_ELEMENT = "head"
META_ELEMENT = "meta"
LINK_ELEMENT = "link"
SCRIPT_ELEMENT = "script"
JAVADOC_MARKER = "generated by javadoc"

# Java-style \s: only ASCII whitespace, so a serialized &nbsp; is left alone.
WHITESPACE_RUN = re.compile(r"\s+", re.ASCII)
SOURCE_TAG_NAME = re.compile(r"<([^\s/>]+)")


def _source_name(tag: Tag, source_lines: list[str]) -> str:
    """Return the tag name as written in the markup (the parser lowercases names)."""
    if tag.sourceline is None or tag.sourcepos is None:
        return tag.name
    line = source_lines[tag.sourceline - 1]
    match = SOURCE_TAG_NAME.match(line, tag.sourcepos)
    return match.group(1) if match else tag.name


def _document_element(soup: BeautifulSoup) -> Tag | None:
    for child in soup.children:
        if isinstance(child, Tag):
            return child
    return None


def is_javadoc_html(soup: BeautifulSoup) -> bool:
    """Check whether any <head> carries the javadoc marker comment."""
    for head in soup.find_all(HEAD_ELEMENT):
        for node in head.children:
            if isinstance(node, Comment) and node.strip().lower().startswith(JAVADOC_MARKER):
                return True
    return False


def clean_javadoc(soup: BeautifulSoup, markup: str) -> None:
    """Strip script, stylesheet, meta and comment churn from every <head>, and the root lang."""
    source_lines = markup.split("\n")
    for head in soup.find_all(HEAD_ELEMENT):
        for node in list(head.children):
            if isinstance(node, Comment):
                node.extract()
            elif isinstance(node, Tag):
                name = node.name.lower()
                # meta is only matched when written in lowercase
                if (
                    name in (SCRIPT_ELEMENT, LINK_ELEMENT)
                    or _source_name(node, source_lines) == META_ELEMENT
                ):
                    node.extract()
    root = _document_element(soup)
    if root is not None:
        root.attrs.pop("lang", None)


def serialize_and_normalize(soup: BeautifulSoup) -> str:
    serialized = WHITESPACE_RUN.sub(" ", str(soup))
    return serialized.replace("\r", "").replace("\n", "").replace("> <", "><")


class HtmlComparator:
    """Compares html files for some special cases and falls back to a text compare otherwise."""

    HINT = "html"

    def get_delta(
        self,
        baseline: ComparatorInputStream,
        reactor: ComparatorInputStream,
        data: ComparisonData,
    ) -> ArtifactDelta | None:
        try:
            if self._javadoc_equivalent(baseline, reactor):
                return NO_DIFFERENCE
        except Exception:
            # Might not be valid html at all; the text compare below decides.
            pass
        return compare_text(baseline, reactor, data)

    def _javadoc_equivalent(
        self, baseline: ComparatorInputStream, reactor: ComparatorInputStream
    ) -> bool:
        baseline_markup = baseline.as_string("utf-8")
        reactor_markup = reactor.as_string("utf-8")
        baseline_soup = BeautifulSoup(baseline_markup, PARSER)
        reactor_soup = BeautifulSoup(reactor_markup, PARSER)
        if not is_javadoc_html(baseline_soup):
            return False
        clean_javadoc(baseline_soup, baseline_markup)
        clean_javadoc(reactor_soup, reactor_markup)
        old_normalized = serialize_and_normalize(baseline_soup)
        new_normalized = serialize_and_normalize(reactor_soup)
        return old_normalized.lower() == new_normalized.lower()

    def matches(self, name_or_extension: str) -> bool:
        return name_or_extension.lower() in (self.HINT, "htm")
