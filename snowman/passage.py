#!/usr/bin/env python3
"""
Passage records and the Passage Compiler.

render_passage() runs the full pipeline for one passage:
unescape source -> expand template -> rewrite links -> markdown to HTML.

Nothing is cached; templates may read story state that changes between calls.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Tuple

import markdown

from .links import rewrite_links
from .templates import expand_template

if TYPE_CHECKING:
    from .story import Story

CHECKPOINT_TAG = 'checkpoint'

Renderer = Callable[[str], str]


@dataclass(frozen=True)
class Passage:
    """One named, tagged fragment of a story. Source stays entity-encoded."""
    id: int
    name: str
    tags: Tuple[str, ...] = field(default_factory=tuple)
    source: str = ''

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    @property
    def is_checkpoint(self) -> bool:
        return self.has_tag(CHECKPOINT_TAG)


def markdown_renderer(text: str) -> str:
    """Default renderer: Python-Markdown, no extensions."""
    return markdown.markdown(text)


def render_passage(passage: Passage, story: 'Story', renderer: Optional[Renderer] = None) -> str:
    """Compile a passage into display HTML.

    Args:
        passage: The passage to compile
        story: The story supplying state, helpers and the template evaluator
        renderer: Markup-to-HTML converter (default: story.renderer)

    Returns:
        Rendered HTML

    Raises:
        TemplateExpansionError: If template expansion fails
    """
    renderer = renderer or story.renderer

    # passage and story win over helpers of the same name
    context = dict(story.helpers)
    context.update(passage=passage, story=story)

    expanded = expand_template(passage.source, context, story.evaluator, name=passage.name)
    return renderer(rewrite_links(expanded))
