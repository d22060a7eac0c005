#!/usr/bin/env python3
"""
Story aggregate.

A Story owns its passages (indexed by id and by name), the free-form state bag
shared by every template, the helper set and the navigation state. Passages
named HEADER, FOOTER and CONFIG are picked up as meta passages.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .config import CONFIG_PASSAGE, StoryConfig, parse_config_source
from .errors import PassageNotFound
from .helpers import default_helpers
from .passage import Passage, Renderer, markdown_renderer
from .templates import JinjaEvaluator, TemplateEvaluator

logger = logging.getLogger(__name__)

HEADER_PASSAGE = 'HEADER'
FOOTER_PASSAGE = 'FOOTER'

Query = Union[int, str]


@dataclass
class NavigationState:
    """Where the player is and how they got there."""
    history: List[int] = field(default_factory=list)
    current_checkpoint: str = ''
    at_checkpoint: bool = True

    @property
    def current(self) -> Optional[int]:
        return self.history[-1] if self.history else None

    @property
    def previous(self) -> Optional[int]:
        if len(self.history) <= 1:
            return None
        return self.history[-2]


class Story:
    """A playable story: passages, state and navigation."""

    def __init__(
        self,
        name: str,
        passages: Iterable[Passage],
        start_passage_id: int,
        helpers: Optional[Dict[str, Callable]] = None,
        evaluator: Optional[TemplateEvaluator] = None,
        renderer: Optional[Renderer] = None,
        ifid: str = '',
        creator: str = '',
        creator_version: str = '',
    ):
        self.name = name
        self.start_passage_id = start_passage_id
        self.ifid = ifid
        self.creator = creator
        self.creator_version = creator_version

        self.passages: Dict[int, Passage] = {}
        self.passages_by_name: Dict[str, Passage] = {}
        for passage in passages:
            if passage.id in self.passages:
                raise ValueError(f"Duplicate passage id {passage.id}")
            if passage.name in self.passages_by_name:
                raise ValueError(f"Duplicate passage name '{passage.name}'")
            self.passages[passage.id] = passage
            self.passages_by_name[passage.name] = passage

        if start_passage_id not in self.passages:
            raise ValueError(f"Start passage {start_passage_id} is not in the story")

        self.state: Dict[str, Any] = {}
        self.navigation = NavigationState()

        self.evaluator = evaluator or JinjaEvaluator()
        self.renderer = renderer or markdown_renderer
        self.helpers = default_helpers(self)
        if helpers:
            self.helpers.update(helpers)

        self.header = self.find_passage(HEADER_PASSAGE)
        self.footer = self.find_passage(FOOTER_PASSAGE)
        config_passage = self.find_passage(CONFIG_PASSAGE)
        self.config: StoryConfig = parse_config_source(config_passage.source if config_passage else None)

        logger.debug(f"Story '{name}' has {len(self.passages)} passages"
                     f" (header: {bool(self.header)}, footer: {bool(self.footer)})")

    # ==================== PASSAGE LOOKUP ====================

    def find_passage(self, query: Query) -> Optional[Passage]:
        """Look a passage up by id (int) or name (str). None when absent."""
        if isinstance(query, bool):
            return None
        if isinstance(query, int):
            return self.passages.get(query)
        if isinstance(query, str):
            return self.passages_by_name.get(query)
        return None

    def get_passage(self, query: Query) -> Passage:
        """Look a passage up by id or name.

        Raises:
            PassageNotFound: If nothing matches
        """
        passage = self.find_passage(query)
        if passage is None:
            raise PassageNotFound(query)
        return passage

    @property
    def start_passage(self) -> Passage:
        return self.passages[self.start_passage_id]

    # ==================== NAVIGATION ACCESSORS ====================

    @property
    def history(self) -> List[int]:
        return self.navigation.history

    @property
    def current_checkpoint(self) -> str:
        return self.navigation.current_checkpoint

    @property
    def current_passage(self) -> Optional[Passage]:
        current = self.navigation.current
        return self.passages.get(current) if current is not None else None

    @property
    def previous_passage(self) -> Optional[int]:
        """Id of the passage shown before the current one."""
        return self.navigation.previous

    @property
    def next_passage(self) -> None:
        """Forward history is not tracked, so there is never a next passage."""
        return None
