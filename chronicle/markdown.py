"""Markdown support.

The CMS's rich text fields are sometimes markdown rather than HTML.  Markdown
is turned into the same HTML the CMS's editor would emit so that the content
renderer only has to understand one thing.

"""

import re
import functools

from marko import Markdown
from marko.ext.gfm import elements, renderer
from marko.helpers import MarkoExtension, render_dispatch
from marko.html_renderer import HTMLRenderer

_md = None

# if any of these are present it's HTML from the rich text editor
HTML_BLOCK_REGEX = re.compile(
    r"<(?:p|div|h[1-6]|ul|ol|pre|table|blockquote|figure|img)\b", re.IGNORECASE
)
# fenced code can show html without being html
FENCED_CODE_REGEX = re.compile(r"^(`{3,}|~{3,}).*?^\1", re.MULTILINE | re.DOTALL)


class ArticleRendererMixin(renderer.GFMRendererMixin):
    """Renderer that mainly inherits the original rendering code except
    marking tables as article tables."""

    @render_dispatch(HTMLRenderer)
    def render_table(self, element):
        head, *body = element.children
        theader = "<thead>\n{}</thead>".format(self.render(head))  # type: ignore
        tbody = ""
        if body:
            tbody = "\n<tbody>\n{}</tbody>".format(
                "".join(self.render(row) for row in body)  # type: ignore
            )
        return f'<table class="article-table">\n{theader}{tbody}</table>'


ArticleGFM = MarkoExtension(
    elements=[
        elements.Paragraph,
        elements.Strikethrough,
        elements.Url,
        elements.Table,
        elements.TableRow,
        elements.TableCell,
    ],
    renderer_mixins=[ArticleRendererMixin],
)


def get_markdown() -> Markdown:
    global _md
    if _md is None:
        _md = Markdown(extensions=[ArticleGFM])
    return _md


def is_html(body: str) -> bool:
    return HTML_BLOCK_REGEX.search(FENCED_CODE_REGEX.sub("", body)) is not None


@functools.lru_cache
def render_markdown(md_str: str) -> str:
    return get_markdown().convert(md_str)


def content_to_html(body: str) -> str:
    """Returns HTML for a rich text body, converting it from markdown if it
    doesn't already look like HTML."""
    if body.strip() == "" or is_html(body):
        return body
    return render_markdown(body)
