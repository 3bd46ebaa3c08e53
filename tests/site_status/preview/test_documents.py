"""
Unit tests for the static preview documents.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

from bs4 import BeautifulSoup

from site_status.preview.documents import (
    full_load_wrapper_document,
    method_not_allowed_document,
    unavailable_document,
)


def test_unavailable_document_should_link_to_escaped_target() -> None:
    """
    Tests that the fallback links to the target and escapes it.
    """
    # Arrange
    url = 'https://acme.example/?q="><script>x()</script>'

    # Act
    document = unavailable_document(url)

    # Assert
    soup = BeautifulSoup(document, "html.parser")
    assert soup.find("script") is None
    assert soup.find("a")["href"] == url
    assert soup.find("a").string == "Open in new tab"
    assert soup.find("p").string == "Preview unavailable"


def test_unavailable_document_should_omit_link_for_non_http_target() -> None:
    """
    Tests that only http(s) targets get a link.
    """
    # Act
    document = unavailable_document("javascript:alert(1)")

    # Assert
    assert BeautifulSoup(document, "html.parser").find("a") is None


def test_method_not_allowed_document_should_escape_url() -> None:
    """
    Tests that the 405 notice escapes the URL.
    """
    # Act
    document = method_not_allowed_document("https://acme.example/<img src=x>")

    # Assert
    assert "<img" not in document
    assert "405 Method Not Allowed" in document


def test_full_load_wrapper_document_should_settle_exactly_once() -> None:
    """
    Tests that the loader flips state through a single guarded function on load, error or timeout.
    """
    # Act
    document = full_load_wrapper_document("https://acme.example/", 2500)

    # Assert
    soup = BeautifulSoup(document, "html.parser")
    frame = soup.find("iframe")
    assert frame["onload"] == "previewSettle('loaded')"
    assert frame["onerror"] == "previewSettle('error')"
    assert soup.body["data-state"] == "loading"
    script = soup.find("script").string
    assert "if (previewSettled) { return; }" in script
    assert 'setTimeout(function () { previewSettle("error"); }, 2500);' in script
