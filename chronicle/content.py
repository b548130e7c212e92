"""Turns the HTML of a post body into styled HTML, ready to put on a page.

This is not an HTML parser.  It works by ordered pattern substitution and
assumes that tags are well-formed and lower case, as emitted by the CMS's rich
text editor.  Authors are vetted CMS users so that's a reasonable assumption,
but code blocks are always re-escaped regardless.

The transform is total: it doesn't raise for any input string.

"""

from logging import getLogger
from html import unescape
from typing import List, Optional
import functools
import re

from markupsafe import escape
from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.util import ClassNotFound

from .markdown import content_to_html

logger = getLogger(__name__)

LANGUAGE_CODE_BLOCK_REGEX = re.compile(
    r'<pre><code class="language-([\w+#-]+)">(.*?)</code></pre>', re.DOTALL
)
BARE_CODE_BLOCK_REGEX = re.compile(r"<pre><code>(.*?)</code></pre>", re.DOTALL)
# the output of a previous run, which must be left alone
RENDERED_CODE_BLOCK_REGEX = re.compile(
    r'<div class="code-block">.*?</code></pre></div>', re.DOTALL
)

CODE_BLOCK_SHELL = (
    '<div class="code-block">'
    '<div class="code-block-header">'
    '<span class="code-block-dots"><span></span><span></span><span></span></span>'
    '<span class="code-block-language">{label}</span>'
    '<button type="button" class="code-block-copy" data-copy-code>Copy</button>'
    "</div>"
    '<pre class="code-block-pre"><code class="{code_class}">{code}</code></pre>'
    "</div>"
)

TAG_CLASSES = {
    "h1": "article-heading article-h1",
    "h2": "article-heading article-h2",
    "h3": "article-heading article-h3",
    "h4": "article-heading article-h4",
    "h5": "article-heading article-h5",
    "h6": "article-heading article-h6",
    "p": "article-paragraph",
    "a": "article-link",
    "ul": "article-list article-list-unordered",
    "ol": "article-list article-list-ordered",
    "li": "article-list-item",
    "blockquote": "article-quote",
    "code": "article-inline-code",
    "em": "article-emphasis",
    "strong": "article-strong",
    "img": "article-image",
}

STRUCTURAL_TAG_REGEX = re.compile(
    r"<(?P<tag>h[1-6]|p|a|ul|ol|li|blockquote|code|em|strong|img)"
    r"(?P<attrs>\s[^>]*?)?(?P<close>\s*/?)>"
)
CLASS_ATTR_REGEX = re.compile(r"""(?<![\w-])class\s*=\s*(["'])(.*?)\1""")

TABLE_CLASS = "article-table"
TABLE_WRAPPER_OPEN = '<div class="article-table-wrapper">'
TABLE_REGEX = re.compile(
    r'(?P<wrapper><div class="article-table-wrapper">\s*)?'
    r"<table(?P<attrs>\s[^>]*)?>(?P<body>.*?)</table>",
    re.DOTALL,
)

PLACEHOLDER_REGEX = re.compile("\x00(\\d+)\x00")

TAG_REGEX = re.compile(r"<[^>]*>")

_formatter = HtmlFormatter(nowrap=True)


def html_to_text(html: Optional[str]) -> str:
    """Strip the tags out of some HTML, leaving plain text."""
    return unescape(TAG_REGEX.sub("", html or "")).strip()


def _lexer_for(code: str, language: Optional[str]) -> Lexer:
    if language is not None:
        try:
            return get_lexer_by_name(language, stripnl=False, ensurenl=False)
        except ClassNotFound:
            logger.debug("no lexer called '%s', guessing instead", language)
    return guess_lexer(code, stripnl=False, ensurenl=False)


def highlight_code(code: str, language: Optional[str] = None) -> str:
    """Return highlighted HTML for some source code.

    If highlighting fails for any reason the code is returned escaped but
    otherwise untouched.

    """
    try:
        return pygments_highlight(code, _lexer_for(code, language), _formatter)
    except Exception:
        logger.exception("unable to highlight code block, leaving it plain")
        return str(escape(code))


def merge_classes(existing: str, extra: str) -> str:
    classes = existing.split()
    for class_ in extra.split():
        if class_ not in classes:
            classes.append(class_)
    return " ".join(classes)


def add_classes(attrs: str, classes: str) -> str:
    """Add classes to the attributes of a tag (as text), keeping any already
    present."""
    match = CLASS_ATTR_REGEX.search(attrs)
    if match is None:
        return f'{attrs} class="{classes}"'
    quote, existing = match.group(1), match.group(2)
    merged = merge_classes(existing, classes)
    return f"{attrs[:match.start()]}class={quote}{merged}{quote}{attrs[match.end():]}"


class _Stash:
    """Holds finished fragments out of the way of later substitutions."""

    def __init__(self) -> None:
        self.fragments: List[str] = []

    def put(self, fragment: str) -> str:
        self.fragments.append(fragment)
        return f"\x00{len(self.fragments) - 1}\x00"

    def restore(self, html: str) -> str:
        return PLACEHOLDER_REGEX.sub(
            lambda match: self.fragments[int(match.group(1))], html
        )


def render_code_block(code: str, language: Optional[str], highlight: bool) -> str:
    decoded = unescape(code)
    if highlight:
        body = highlight_code(decoded, language)
    else:
        body = str(escape(decoded))
    if language is not None:
        code_class = f"language-{language} highlight"
    else:
        code_class = "highlight"
    return CODE_BLOCK_SHELL.format(
        label=escape(language or "code"), code_class=code_class, code=body
    )


def _style_tag(match: re.Match) -> str:
    tag = match.group("tag")
    attrs = add_classes(match.group("attrs") or "", TAG_CLASSES[tag])
    return f"<{tag}{attrs}{match.group('close')}>"


def _wrap_table(match: re.Match) -> str:
    attrs = add_classes(match.group("attrs") or "", TABLE_CLASS)
    table = f"<table{attrs}>{match.group('body')}</table>"
    wrapper = match.group("wrapper")
    if wrapper is not None:
        return f"{wrapper}{table}"
    return f"{TABLE_WRAPPER_OPEN}{table}</div>"


@functools.lru_cache(maxsize=256)
def render_blog_content(html: str, highlight: bool = True) -> str:
    """Style the HTML of a post body.

    In order:

    1. code blocks get escaped, (optionally) highlighted and wrapped in a
       window with a title bar and copy button
    2. structural elements (headings, paragraphs, links, lists etc) get
       classes added
    3. tables get wrapped in a scrollable container

    Running it on its own output changes nothing.

    """
    if not html:
        return ""
    # NUL is used for placeholders
    html = html.replace("\x00", "")
    stash = _Stash()

    html = RENDERED_CODE_BLOCK_REGEX.sub(lambda m: stash.put(m.group(0)), html)
    html = LANGUAGE_CODE_BLOCK_REGEX.sub(
        lambda m: stash.put(render_code_block(m.group(2), m.group(1), highlight)),
        html,
    )
    html = BARE_CODE_BLOCK_REGEX.sub(
        lambda m: stash.put(render_code_block(m.group(1), None, highlight)), html
    )

    html = STRUCTURAL_TAG_REGEX.sub(_style_tag, html)
    html = TABLE_REGEX.sub(_wrap_table, html)

    return stash.restore(html)


def render_rich_text(body: str, highlight: bool = True) -> str:
    """Render a rich text field, which may be markdown or HTML."""
    return render_blog_content(content_to_html(body), highlight)
