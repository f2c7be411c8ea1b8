"""
Provision Extractor
===================

Extracts numbered articles from regulatory HTML.

EUR-Lex markup differs between documents, so extraction runs in two passes:

1. Heading scan: every ``p``/``div`` is checked for an exact
   ``Article N`` heading; the following siblings form the article body.
   Chapter/section headings seen along the way set the section title.
2. Container fallback (only if pass 1 found nothing): elements whose class
   names an article container are taken whole, with the number read from the
   first ``Article N`` in their text.

Version: 0.1.0
"""

import re

from bs4 import BeautifulSoup, Tag

from services.regulatory_ingestion.models import Provision
from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


ARTICLE_HEADING = re.compile(r"^Article\s+(\d+[a-z]?)$", re.IGNORECASE)
ARTICLE_INLINE = re.compile(r"Article\s+(\d+[a-z]?)", re.IGNORECASE)
SECTION_HEADING = re.compile(r"^(chapter|section|title)\s+([ivxlc]+|\d+)$", re.IGNORECASE)

FALLBACK_SELECTOR = '[class*="article"], .eli-subdivision'

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse runs of whitespace to a single space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def _element_text(element: Tag) -> str:
    return clean_text(element.get_text())


class ProvisionExtractor:
    """
    Heuristic article extractor for regulatory HTML.

    Never raises for unrecognised markup: a page without any article
    headings yields an empty list.
    """

    def __init__(self, max_siblings: int | None = None) -> None:
        """
        Args:
            max_siblings: Upper bound on siblings collected into one article body
        """
        self.max_siblings = (
            max_siblings if max_siblings is not None else settings.ingestion.max_siblings
        )
        if self.max_siblings < 1:
            raise ValueError("max_siblings must be at least 1")

    def extract(self, markup: str, regulation_id: str) -> list[Provision]:
        """
        Extract provisions from markup.

        Args:
            markup: Raw HTML
            regulation_id: Id of the regulation the provisions belong to

        Returns:
            Provisions in document order, unique by id
        """
        soup = BeautifulSoup(markup, "html.parser")

        provisions = self._scan_headings(soup, regulation_id)
        strategy = "heading_scan"

        if not provisions:
            provisions = self._scan_containers(soup, regulation_id)
            strategy = "container_fallback"

        logger.info(
            "provisions_extracted",
            regulation_id=regulation_id,
            count=len(provisions),
            strategy=strategy if provisions else "none",
        )
        return provisions

    def _scan_headings(self, soup: BeautifulSoup, regulation_id: str) -> list[Provision]:
        provisions: dict[str, Provision] = {}
        current_section = ""

        for element in soup.find_all(["p", "div"]):
            text = _element_text(element)

            if SECTION_HEADING.match(text):
                title = element.find_next_sibling()
                title_text = _element_text(title) if title is not None else ""
                if not title_text or ARTICLE_HEADING.match(title_text):
                    title_text = text
                current_section = title_text
                continue

            match = ARTICLE_HEADING.match(text)
            if not match:
                continue

            body = self._collect_body(element)
            if not body:
                continue

            provision = Provision.create(
                regulation_id=regulation_id,
                number=match.group(1),
                full_text=body,
                section_title=current_section,
            )
            if provision.id in provisions:
                logger.debug("duplicate_article_heading", provision_id=provision.id)
                continue
            provisions[provision.id] = provision

        return list(provisions.values())

    def _collect_body(self, heading: Tag) -> str:
        """Join sibling texts after ``heading`` up to the next article heading."""
        parts: list[str] = []
        sibling = heading.find_next_sibling()
        visited = 0

        while sibling is not None and visited < self.max_siblings:
            text = _element_text(sibling)
            if ARTICLE_HEADING.match(text):
                break
            if text:
                parts.append(text)
            visited += 1
            sibling = sibling.find_next_sibling()

        if sibling is not None and visited >= self.max_siblings:
            logger.warning(
                "article_body_truncated",
                heading=_element_text(heading),
                max_siblings=self.max_siblings,
            )

        return "\n\n".join(parts)

    def _scan_containers(self, soup: BeautifulSoup, regulation_id: str) -> list[Provision]:
        provisions: dict[str, Provision] = {}

        for element in soup.select(FALLBACK_SELECTOR):
            text = _element_text(element)
            match = ARTICLE_INLINE.search(text)
            if not match:
                continue

            provision = Provision.create(
                regulation_id=regulation_id,
                number=match.group(1),
                full_text=text,
            )
            if provision.id not in provisions:
                provisions[provision.id] = provision

        return list(provisions.values())
