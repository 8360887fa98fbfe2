"""
Page model for the newspaper view.

The front-end renders the pages `build_newspaper` returns, in order:
cover, index, one page per displayable article, archive, library and
back cover. Items that cannot be shown properly (no title, image, source
or lead) are dropped here, on the article pages and in the archive alike,
rather than failing the page.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .models import DailyMetadata, Edition, NewsItem
from .retrieval import NewspaperData
from .segmentation import Segments, priority_for_score, segment_summary

COVER, INDEX, ARTICLE, ARCHIVE, LIBRARY, BACK_COVER = (
    "cover",
    "index",
    "article",
    "archive",
    "library",
    "back_cover",
)


@dataclass(frozen=True)
class ArticleView:
    item: NewsItem
    segments: Segments
    number: int  # 1-based article number, as printed in the page header

    @property
    def priority(self) -> str:
        return self.segments.priority


@dataclass
class Page:
    kind: str
    label: str
    article: Optional[ArticleView] = None


@dataclass
class Newspaper:
    edition: Edition
    articles: List[ArticleView] = field(default_factory=list)
    archive: List[Edition] = field(default_factory=list)
    podcast: Optional[DailyMetadata] = None
    pages: List[Page] = field(default_factory=list)

    def page_of_article(self, position: int) -> int:
        """Index into `pages` for the article at `position` in the index list."""
        return position + 2


def article_view(item: NewsItem, number: int) -> Optional[ArticleView]:
    """None unless the item has a title, image, source and a lead to show."""
    if not (item.title or "").strip() or not item.image_url or not item.original_url:
        return None
    segments = segment_summary(item.summary, item.original_url)
    if not segments.lead.strip():
        return None
    return ArticleView(item=item, segments=segments, number=number)


def displayable_articles(items: List[NewsItem]) -> List[ArticleView]:
    views: List[ArticleView] = []
    for item in items:
        view = article_view(item, len(views) + 1)
        if view is not None:
            views.append(view)
    return views


def displayable_archive(editions: List[Edition]) -> List[Edition]:
    """Archive editions holding only displayable items; editions left empty are dropped."""
    archive: List[Edition] = []
    for edition in editions:
        news = [view.item for view in displayable_articles(edition.news)]
        if news:
            archive.append(Edition(date=edition.date, news=news))
    return archive


def relevance_badge(score: int) -> str:
    return f"{priority_for_score(score)} · {score}/10"


def build_newspaper(data: NewspaperData, podcast: Optional[DailyMetadata] = None) -> Newspaper:
    articles = displayable_articles(data.today.news)
    pages = [Page(COVER, "Cover"), Page(INDEX, "Index")]
    pages += [Page(ARTICLE, f"{view.number}. {view.item.title}", article=view) for view in articles]
    pages += [Page(ARCHIVE, "Archive"), Page(LIBRARY, "My clippings"), Page(BACK_COVER, "End of edition")]
    return Newspaper(
        edition=data.today,
        articles=articles,
        archive=displayable_archive(data.archive),
        podcast=podcast,
        pages=pages,
    )
