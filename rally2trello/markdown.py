"""Convert Rally rich-text (HTML) fields into markdown for Trello cards."""

from __future__ import annotations

import html
import re
from collections.abc import Callable

from bs4 import Tag
from markdownify import ATX, MarkdownConverter

from rally2trello.exceptions import UnknownTagError

UNKNOWN_TAG_MODES = ("pass_through", "bypass", "drop", "raise")

# Tags whose markup carries no meaning in markdown; only their content is kept
TRANSPARENT_TAGS = {
    "[document]",
    "html",
    "body",
    "span",
    "font",
    "u",
    "small",
    "big",
    "thead",
    "tbody",
    "tfoot",
}
BLOCK_TAGS = {"div", "section", "article"}
DISCARDED_TAGS = {"head", "title", "meta", "link"}

_BLANK_LINES = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

ConvertFn = Callable[..., str]


class RallyMarkdownConverter(MarkdownConverter):
    """MarkdownConverter that applies an unknown-tag policy

    markdownify keeps the content of any tag it has no converter for. Here
    that fallback is replaced by ``unknown_tags``; tags in TRANSPARENT_TAGS
    still keep just their content.
    """

    def __init__(self, unknown_tags: str = "pass_through", **options):
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        # Rally text is prose, not markdown source
        options.setdefault("escape_asterisks", False)
        options.setdefault("escape_underscores", False)
        options.setdefault("escape_misc", False)
        super().__init__(**options)
        self.unknown_tags = unknown_tags

    def get_conv_fn(self, tag_name: str) -> ConvertFn | None:
        convert_fn = super().get_conv_fn(tag_name)
        if convert_fn is not None or tag_name in TRANSPARENT_TAGS:
            return convert_fn
        if tag_name in BLOCK_TAGS:
            return self.convert_block
        if tag_name in DISCARDED_TAGS:
            return self.convert_discarded
        return self.convert_unknown

    def convert_block(self, el: Tag, text: str, parent_tags: set[str]) -> str:
        text = text.strip()
        return f"\n\n{text}\n\n" if text else ""

    def convert_discarded(self, el: Tag, text: str, parent_tags: set[str]) -> str:
        return ""

    def convert_unknown(self, el: Tag, text: str, parent_tags: set[str]) -> str:
        if self.unknown_tags == "raise":
            raise UnknownTagError(el.name)
        if self.unknown_tags == "drop":
            return ""
        if self.unknown_tags == "bypass":
            return text

        attrs = "".join(f' {key}="{_attr_value(value)}"' for key, value in el.attrs.items())
        if el.is_empty_element:
            return f"<{el.name}{attrs} />"
        return f"<{el.name}{attrs}>{text}</{el.name}>"


def _attr_value(value: object) -> str:
    # bs4 returns multi-valued attributes such as class as lists
    if isinstance(value, list):
        value = " ".join(value)
    return html.escape(str(value), quote=True)


def html_to_markdown(text: str | None, unknown_tags: str = "pass_through") -> str:
    """Convert an HTML fragment to markdown

    Rally stores descriptions and acceptance criteria as HTML. Common
    formatting is translated by markdownify; anything it does not know is
    handled according to ``unknown_tags``:

    - ``pass_through``: keep the tag's markup literally (nothing is lost)
    - ``bypass``: drop the tag but keep and convert its content
    - ``drop``: drop the tag and its content
    - ``raise``: raise UnknownTagError

    Args:
        text: HTML fragment, or None for an empty Rally field
        unknown_tags: One of UNKNOWN_TAG_MODES

    Returns:
        Markdown text without leading or trailing whitespace

    Example:
        >>> html_to_markdown("<p>Add <b>login</b></p>")
        'Add **login**'
    """
    if unknown_tags not in UNKNOWN_TAG_MODES:
        raise ValueError(
            f"Invalid unknown_tags: '{unknown_tags}'. Must be one of: {UNKNOWN_TAG_MODES}"
        )
    if not text:
        return ""

    converted = RallyMarkdownConverter(unknown_tags=unknown_tags).convert(text)
    return _BLANK_LINES.sub("\n\n", converted).strip()
