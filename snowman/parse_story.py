#!/usr/bin/env python3
"""
Parse Story Module

Loads a published Twine 2 HTML document into a playable Story.

Input: HTML containing <tw-storydata> with <tw-passagedata> children
Output: Story with passages indexed by pid and name

Passage text is kept exactly as stored (entity-encoded); the passage compiler
decodes it right before template expansion.
"""

import logging
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .passage import Passage
from .story import Story

logger = logging.getLogger(__name__)


# =============================================================================
# HTML PARSING
# =============================================================================

class TweeStoryParser(HTMLParser):
    """Parse published Twine HTML to extract story data"""

    def __init__(self) -> None:
        # Keep entity references as written so passage source stays encoded
        super().__init__(convert_charrefs=False)
        self.story_data = {}
        self.passages = []
        self.current_passage = None
        self.current_data = []
        self.in_passage = False

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        attrs_dict = {key: value or '' for key, value in attrs}

        if tag == 'tw-storydata':
            self.story_data = {
                'name': attrs_dict.get('name', 'Untitled'),
                'ifid': attrs_dict.get('ifid', ''),
                'start': attrs_dict.get('startnode', ''),
                'creator': attrs_dict.get('creator', ''),
                'creator_version': attrs_dict.get('creator-version', ''),
                'format': attrs_dict.get('format', 'Unknown'),
                'format_version': attrs_dict.get('format-version', 'Unknown'),
            }
        elif tag == 'tw-passagedata':
            self.in_passage = True
            self.current_passage = {
                'pid': attrs_dict.get('pid', ''),
                'name': attrs_dict.get('name', ''),
                'tags': attrs_dict.get('tags', '').split(),
                'text': '',
            }
            self.current_data = []

    def handle_endtag(self, tag: str) -> None:
        if tag == 'tw-passagedata' and self.in_passage:
            self.current_passage['text'] = ''.join(self.current_data).strip()
            self.passages.append(self.current_passage)
            self.in_passage = False
            self.current_passage = None
            self.current_data = []

    def handle_data(self, data: str) -> None:
        if self.in_passage:
            self.current_data.append(data)

    def handle_entityref(self, name: str) -> None:
        if self.in_passage:
            self.current_data.append(f'&{name};')

    def handle_charref(self, name: str) -> None:
        if self.in_passage:
            self.current_data.append(f'&#{name};')


def parse_story_html(html_content: str) -> Tuple[Dict, List[Dict]]:
    """Parse published Twine HTML and extract story data and passages.

    Args:
        html_content: Published story HTML as a string

    Returns:
        Tuple of (story_data, passages) where passages are dicts with
        pid, name, tags and text in document order
    """
    parser = TweeStoryParser()
    parser.feed(html_content)
    parser.close()
    return parser.story_data, parser.passages


# =============================================================================
# STORY CONSTRUCTION
# =============================================================================

def parse_story(html_content: str, **story_options) -> Story:
    """Parse published Twine HTML into a Story.

    Args:
        html_content: Published story HTML as a string
        **story_options: Passed on to Story (helpers, evaluator, renderer)

    Returns:
        The Story

    Raises:
        ValueError: If the document has no story data or passages, or a
            passage id is not an integer
    """
    story_data, raw_passages = parse_story_html(html_content)

    if not story_data:
        raise ValueError("No <tw-storydata> element found")
    if not raw_passages:
        raise ValueError("Story has no passages")

    passages = []
    for raw in raw_passages:
        try:
            pid = int(raw['pid'])
        except ValueError:
            raise ValueError(f"Passage '{raw['name']}' has invalid pid {raw['pid']!r}") from None

        passages.append(Passage(
            id=pid,
            name=raw['name'],
            tags=tuple(raw['tags']),
            source=raw['text'],
        ))

    # Find start passage by pid, fall back to 'Start' then the first passage
    start_id = None
    if story_data['start'].isdigit() and int(story_data['start']) in {p.id for p in passages}:
        start_id = int(story_data['start'])
    if start_id is None:
        by_name = {p.name: p.id for p in passages}
        start_id = by_name.get('Start', passages[0].id)
        logger.warning(f"Start node {story_data['start']!r} not found, starting at passage {start_id}")

    return Story(
        name=story_data['name'],
        passages=passages,
        start_passage_id=start_id,
        ifid=story_data['ifid'],
        creator=story_data['creator'],
        creator_version=story_data['creator_version'],
        **story_options,
    )


def load_story(path: Path, **story_options) -> Story:
    """Read and parse a published story file."""
    with open(path, 'r', encoding='utf-8') as f:
        html_content = f.read()
    return parse_story(html_content, **story_options)
