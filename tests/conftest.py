"""Shared fixtures for the Snowman test suite."""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from snowman.passage import Passage
from snowman.story import Story


def plain(text: str) -> str:
    """Renderer that leaves markup untouched, so assertions see exact output."""
    return text


@pytest.fixture
def make_story():
    """Build a Story from (id, name, tags, source) tuples."""
    def build(passages, start=1, name='Test Story', **options):
        options.setdefault('renderer', plain)
        return Story(
            name=name,
            passages=[Passage(id=pid, name=pname, tags=tuple(tags), source=source)
                      for pid, pname, tags, source in passages],
            start_passage_id=start,
            **options,
        )
    return build
