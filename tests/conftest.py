"""
Shared fixtures for the artifact comparator tests.
"""

import pytest

from artifact_comparator import ComparatorInputStream, ComparisonData


JAVADOC_PAGE = """<!DOCTYPE HTML>
<html lang="{lang}">
<head>
<!-- {marker} -->
<title>Foo (api 1.0)</title>
{head}
</head>
<body class="class-declaration-page">
<main role="main">
{body}
</main>
</body>
</html>
"""


def javadoc_page(
    body: str = "<h1>Class Foo</h1>\n<p>Does foo things.</p>",
    head: str = "",
    lang: str = "en",
    marker: str = "Generated by javadoc (17) on Mon Jan 01 00:00:00 UTC 2024",
) -> str:
    return JAVADOC_PAGE.format(body=body, head=head, lang=lang, marker=marker)


def stream(content: str | bytes) -> ComparatorInputStream:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return ComparatorInputStream(content)


@pytest.fixture
def data():
    return ComparisonData()


@pytest.fixture
def detailed_data():
    return ComparisonData(show_diff_details=True)
