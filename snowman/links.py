#!/usr/bin/env python3
"""
Link Rewriter

Finds [[...]] link markup inside expanded passage text and rewrites each link
into an HTML element. Three link formats are supported:
- [[target]]
- [[display|target]]
- [[display->target]]

Targets that look like URLs (scheme://...) become plain hyperlinks. Every other
target becomes a passage link carrying the passage name in data-passage.
Unterminated markup is left alone.
"""

import re
from dataclasses import dataclass
from html import escape
from html.parser import HTMLParser
from typing import List, Optional, Tuple

LINK_PATTERN = re.compile(r'\[\[(.*?)\]\]')
EXTERNAL_PATTERN = re.compile(r'^\w+:\/\/\/?\w', re.IGNORECASE | re.ASCII)

EXTERNAL = 'external'
INTERNAL = 'internal'


@dataclass(frozen=True)
class LinkDescriptor:
    """A parsed link: what to show and where it goes.

    show is set for author-written passage anchors carrying data-show; those
    render the passage inline instead of navigating to it.
    """
    display_text: str
    target: str
    kind: str
    show: bool = False

    @property
    def is_external(self) -> bool:
        return self.kind == EXTERNAL


# =============================================================================
# LINK PARSING
# =============================================================================

def parse_link_body(body: str) -> Tuple[str, str]:
    """Split a link body into (display_text, target).

    A '|' takes precedence over '->'. Only the first separator counts, so
    anything after it belongs to the target.

    Args:
        body: The link text without the surrounding [[ ]]

    Returns:
        Tuple of (display_text, target)
    """
    bar_index = body.find('|')
    if bar_index != -1:
        return body[:bar_index], body[bar_index + 1:]

    arrow_index = body.find('->')
    if arrow_index != -1:
        return body[:arrow_index], body[arrow_index + 2:]

    return body, body


def is_external(target: str) -> bool:
    """Check whether a link target is a URL rather than a passage name."""
    return bool(EXTERNAL_PATTERN.match(target))


def describe_link(body: str) -> LinkDescriptor:
    """Build the LinkDescriptor for a raw link body."""
    display, target = parse_link_body(body)
    kind = EXTERNAL if is_external(target) else INTERNAL
    return LinkDescriptor(display_text=display, target=target, kind=kind)


# =============================================================================
# LINK REWRITING
# =============================================================================

def render_link(link: LinkDescriptor) -> str:
    """Render a LinkDescriptor as an HTML anchor.

    External links point straight at their URL. Passage links carry the
    passage name as a navigation instruction instead of a destination.
    """
    if link.is_external:
        return f'<a href="{escape(link.target)}" class="external-link">{link.display_text}</a>'

    return (
        f'<a href="javascript:void(0)" data-passage="{escape(link.target)}" '
        f'class="passage-link">{link.display_text}</a>'
    )


def extract_link_descriptors(text: str) -> List[LinkDescriptor]:
    """List every link in text, in order of appearance."""
    return [describe_link(body) for body in LINK_PATTERN.findall(text)]


def rewrite_links(text: str) -> str:
    """Replace every [[...]] link in text with its rendered element."""
    return LINK_PATTERN.sub(lambda match: render_link(describe_link(match.group(1))), text)


# =============================================================================
# RENDERED LINK DISCOVERY
# =============================================================================

class RenderedLinkParser(HTMLParser):
    """Collect the anchors produced by render_link from rendered HTML"""

    def __init__(self) -> None:
        super().__init__()
        self.links = []
        self.current_link = None
        self.current_data = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag != 'a':
            return

        attrs_dict = dict(attrs)
        if 'data-passage' in attrs_dict:
            # A bare or empty data-show attribute does not count
            show = bool(attrs_dict.get('data-show'))
            self.current_link = (attrs_dict['data-passage'] or '', INTERNAL, show)
        elif 'external-link' in (attrs_dict.get('class') or '').split():
            self.current_link = (attrs_dict.get('href') or '', EXTERNAL, False)
        else:
            return
        self.current_data = []

    def handle_endtag(self, tag: str) -> None:
        if tag == 'a' and self.current_link:
            target, kind, show = self.current_link
            self.links.append(LinkDescriptor(
                display_text=''.join(self.current_data).strip(),
                target=target,
                kind=kind,
                show=show,
            ))
            self.current_link = None
            self.current_data = []

    def handle_data(self, data: str) -> None:
        if self.current_link:
            self.current_data.append(data)


def find_passage_links(html: str, include_external: bool = False) -> List[LinkDescriptor]:
    """Read the activatable links back out of rendered passage HTML.

    Args:
        html: Rendered passage content
        include_external: Also return external hyperlinks

    Returns:
        LinkDescriptors in document order
    """
    parser = RenderedLinkParser()
    parser.feed(html)
    parser.close()
    if include_external:
        return parser.links
    return [link for link in parser.links if not link.is_external]
