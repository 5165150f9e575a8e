"""Render help-center article text to HTML.

Articles are written in a small markdown subset:

    # Article title         ignored (the title comes from article metadata)
    ## Section title        starts a new section
    ### Sub-heading          heading inside a section
    - item                  unordered list item
    1. item                 ordered list item
    **bold**                inline emphasis
    anything else           a paragraph line

Text is HTML-escaped before any formatting is applied, so article content
can never inject markup.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field

from markupsafe import Markup, escape

from utils.patterns import BOLD_MARKUP, ORDERED_ITEM


@dataclass
class ArticleSection:
    title: str
    blocks: list[str] = field(default_factory=list)

    @property
    def html(self) -> Markup:
        return Markup("\n".join(self.blocks))


def _inline(text: str) -> str:
    escaped = str(escape(text.strip()))
    return BOLD_MARKUP.sub(r"<strong>\1</strong>", escaped)


class _SectionBuilder:
    def __init__(self, title: str) -> None:
        self.section = ArticleSection(title=title)
        self._list_tag: str | None = None
        self._items: list[str] = []

    def _flush_list(self) -> None:
        if self._list_tag and self._items:
            body = "".join(f"<li>{item}</li>" for item in self._items)
            self.section.blocks.append(f"<{self._list_tag}>{body}</{self._list_tag}>")
        self._list_tag = None
        self._items = []

    def _add_item(self, tag: str, text: str) -> None:
        if self._list_tag != tag:
            self._flush_list()
            self._list_tag = tag
        self._items.append(_inline(text))

    def feed(self, line: str) -> None:
        stripped = line.strip()
        if not stripped:
            self._flush_list()
            return
        if stripped.startswith("###"):
            self._flush_list()
            self.section.blocks.append(f"<h4>{_inline(stripped.lstrip('#'))}</h4>")
            return
        if stripped.startswith("- "):
            self._add_item("ul", stripped[2:])
            return
        ordered = ORDERED_ITEM.match(stripped)
        if ordered:
            self._add_item("ol", ordered.group(2))
            return
        self._flush_list()
        self.section.blocks.append(f"<p>{_inline(stripped)}</p>")

    def finish(self) -> ArticleSection:
        self._flush_list()
        return self.section


def render_article(text: str) -> list[ArticleSection]:
    """Split *text* into titled sections of rendered HTML blocks.

    Content that appears before the first ``##`` heading becomes a section
    with an empty title.  Sections with neither title nor content are dropped.
    """
    sections: list[ArticleSection] = []
    builder = _SectionBuilder("")
    for line in textwrap.dedent(text).splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            # document title; rendered from the article metadata instead
            continue
        if stripped.startswith("##") and not stripped.startswith("###"):
            sections.append(builder.finish())
            builder = _SectionBuilder(stripped.lstrip("#").strip())
            continue
        builder.feed(line)
    sections.append(builder.finish())
    return [s for s in sections if s.title or s.blocks]
