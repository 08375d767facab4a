"""Reduce EPUB XHTML documents to the text a narrator reads aloud.

Spine documents are rendered to Markdown so headings, lists, quotes and
code keep a shape the paragraph splitter can classify. Navigation, page
break markers and note references are removed first, since none of them
belong in the spoken text.
"""

import re
import warnings
from typing import Literal

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from markdownify import markdownify as md

from narrate_parse.text.utils import count_words

# EPUB content documents are XHTML; parsing them as HTML is intended
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

# Elements that never carry narratable content
NON_CONTENT_TAGS = ["script", "style", "nav", "header", "footer", "aside"]

# epub:type / role values for inline markers a listener should not hear
SILENT_SEMANTICS = {"pagebreak", "doc-pagebreak", "noteref", "doc-noteref"}

# Block elements whose text forms one spoken paragraph in plain output
SPOKEN_BLOCK_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre"]

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _is_silent(tag) -> bool:
    semantics = f"{tag.get('epub:type', '')} {tag.get('role', '')}".split()
    return any(value in SILENT_SEMANTICS for value in semantics)


class ContentProcessor:
    """Turn XHTML spine documents into narratable Markdown or plain text."""

    def narratable_soup(self, html_content: bytes | str) -> BeautifulSoup:
        """Parse a document and drop everything that is not read aloud."""
        soup = BeautifulSoup(html_content, "lxml")
        for tag in soup(NON_CONTENT_TAGS):
            tag.decompose()
        for tag in soup.find_all(_is_silent):
            tag.decompose()
        return soup

    def process(
        self,
        html_content: bytes | str,
        output_format: Literal["markdown", "text"] = "markdown",
    ) -> str:
        """Render the narratable part of a document.

        Args:
            html_content: XHTML of one spine document
            output_format: "markdown" keeps block structure for paragraph
                classification; "text" gives one spoken block per paragraph,
                heading or list item, separated by blank lines
        """
        soup = self.narratable_soup(html_content)
        if output_format == "text":
            return self._spoken_blocks(soup)
        return self._structured_markdown(soup)

    def _structured_markdown(self, soup: BeautifulSoup) -> str:
        body = soup.body or soup
        markdown = md(
            str(body),
            heading_style="ATX",
            bullets="-",
            strip=["a", "img"],  # Link text is read, images are not
        )
        lines = [line.rstrip() for line in markdown.replace("\r\n", "\n").split("\n")]
        return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()

    def _spoken_blocks(self, soup: BeautifulSoup) -> str:
        blocks = []
        for element in soup.find_all(SPOKEN_BLOCK_TAGS):
            # Text of a nested block (a <p> inside <blockquote>) belongs to the inner block
            text = " ".join(
                string.strip()
                for string in element.strings
                if string.strip() and string.find_parent(SPOKEN_BLOCK_TAGS) is element
            )
            if text:
                blocks.append(text)
        return "\n\n".join(blocks)

    def extract_title(self, html_content: bytes | str) -> str | None:
        """Chapter title announced before the body: h1, then h2, then <title>."""
        soup = BeautifulSoup(html_content, "lxml")
        for name in ["h1", "h2", "title"]:
            element = soup.find(name)
            if element is None:
                continue
            text = element.get_text(" ", strip=True)
            if text:
                return text
        return None

    def count_words(self, html_content: bytes | str) -> int:
        """Words a narrator would read from the document."""
        return count_words(self.process(html_content, "text"))
