#!/usr/bin/env python3
"""
Display sinks.

The engine hands rendered HTML to a sink by region ("passage", "header",
"footer"), sets the document title on checkpoints and passes the story config
on once at startup. How a sink actually shows things is up to the host.
"""

import sys
from html.parser import HTMLParser
from typing import Dict, List, Optional, TextIO, Tuple

from .config import StoryConfig

PASSAGE_REGION = 'passage'
HEADER_REGION = 'header'
FOOTER_REGION = 'footer'

BLOCK_TAGS = {'p', 'div', 'br', 'li', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote', 'pre', 'hr'}


class DisplaySink:
    """Where rendered passages go."""

    def show(self, region: str, content: str) -> None:
        raise NotImplementedError

    def set_title(self, title: str) -> None:
        pass

    def apply_config(self, config: StoryConfig) -> None:
        pass


class RecordingDisplay(DisplaySink):
    """Keeps the latest content per region plus a log of every update."""

    def __init__(self) -> None:
        self.regions: Dict[str, str] = {}
        self.updates: List[Tuple[str, str]] = []
        self.title: Optional[str] = None
        self.dark_theme = False
        self.stylesheets: List[str] = []

    def show(self, region: str, content: str) -> None:
        self.regions[region] = content
        self.updates.append((region, content))

    def set_title(self, title: str) -> None:
        self.title = title

    def apply_config(self, config: StoryConfig) -> None:
        self.dark_theme = config.dark_theme
        self.stylesheets = list(config.stylesheets)

    @property
    def passage(self) -> Optional[str]:
        return self.regions.get(PASSAGE_REGION)


# =============================================================================
# TERMINAL OUTPUT
# =============================================================================

class TextExtractor(HTMLParser):
    """Flatten rendered HTML into readable text"""

    def __init__(self) -> None:
        super().__init__()
        self.parts = []

    def handle_starttag(self, tag, attrs) -> None:
        if tag in BLOCK_TAGS:
            self.parts.append('\n')

    def handle_endtag(self, tag: str) -> None:
        if tag in BLOCK_TAGS:
            self.parts.append('\n')

    def handle_data(self, data: str) -> None:
        self.parts.append(data)

    def text(self) -> str:
        lines = [line.strip() for line in ''.join(self.parts).splitlines()]
        # collapse runs of blank lines
        result = []
        for line in lines:
            if line or (result and result[-1]):
                result.append(line)
        return '\n'.join(result).strip()


def html_to_text(content: str) -> str:
    extractor = TextExtractor()
    extractor.feed(content)
    extractor.close()
    return extractor.text()


class TerminalDisplay(RecordingDisplay):
    """Prints each passage update as plain text."""

    def __init__(self, stream: TextIO = None) -> None:
        super().__init__()
        self.stream = stream or sys.stdout

    def show(self, region: str, content: str) -> None:
        super().show(region, content)
        if region == PASSAGE_REGION:
            print(html_to_text(content), file=self.stream)
        else:
            text = html_to_text(content)
            if text:
                print(f"[{region}] {text}", file=self.stream)

    def set_title(self, title: str) -> None:
        super().set_title(title)
        print(f"== {title} ==", file=self.stream)
