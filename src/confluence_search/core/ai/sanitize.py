"""Strip active content from storage-format markup before it goes to the AI."""

from bs4 import BeautifulSoup, Comment

_STRIPPED_TAGS = ["script", "style", "iframe"]


def sanitize_body(markup: str) -> str:
    """Remove script, style and iframe elements and all comments."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    return str(soup)


def html_to_text(markup: str) -> str:
    """Plain-text rendering of an HTML summary, for terminals."""
    return BeautifulSoup(markup, "html.parser").get_text("\n", strip=True)
