"""Wiki page listing, fetching and outlining."""

import re
from dataclasses import dataclass
from typing import Optional

from glwiki.models import WikiPage, WikiPageContent
from glwiki.sources.gitlab import GitLabClient

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$", re.MULTILINE)
FENCE_PATTERN = re.compile(r"^(```|~~~).*?^\1", re.MULTILINE | re.DOTALL)


@dataclass
class WikiHeading:
    """A markdown heading used for the table of contents."""

    level: int
    title: str

    @property
    def anchor(self) -> str:
        slug = re.sub(r"[^\w\- ]", "", self.title.lower()).strip()
        return re.sub(r"\s+", "-", slug)


def outline(content: str) -> list[WikiHeading]:
    """Headings of a markdown page in document order.

    Lines inside fenced code blocks are ignored.
    """
    text = FENCE_PATTERN.sub("", content)
    return [
        WikiHeading(level=len(match.group(1)), title=match.group(2).strip())
        for match in HEADING_PATTERN.finditer(text)
    ]


class WikiReader:
    """Thin list-then-fetch flow over a project's wiki."""

    def __init__(self, client: GitLabClient) -> None:
        self.client = client

    def list_pages(self, project_id: int) -> list[WikiPage]:
        return self.client.list_wiki_pages(project_id)

    def get_page(self, project_id: int, slug: str) -> WikiPageContent:
        return self.client.get_wiki_page(project_id, slug)

    def first_page(self, project_id: int) -> Optional[WikiPageContent]:
        """The page opened by default: the first one listed, if any."""
        pages = self.list_pages(project_id)
        if not pages:
            return None
        return self.get_page(project_id, pages[0].slug)
