#!/usr/bin/env python3
"""
Navigation & Checkpoint Engine

The state machine behind a play session. It tracks the current passage, the
history of visited passages, the current checkpoint and the story state bag,
and keeps them in step with the browser history and the save store.

Browser history rule:
- Entering a checkpoint passage pushes a new back-stack entry, and so does the
  first step after play() starts or after an explicit checkpoint() call
- Any other step replaces the current entry

So the back button moves between checkpoints instead of walking through every
intermediate passage.
"""

import copy
import logging
from typing import Any, Dict, Iterable, Optional

from .display import FOOTER_REGION, HEADER_REGION, PASSAGE_REGION, DisplaySink, RecordingDisplay
from .errors import PassageNotFound, PersistenceError, RestoreFailed, TemplateExpansionError
from .events import EventBus
from .history import BrowserHistory, MemoryHistory, Payload
from .passage import CHECKPOINT_TAG, Passage, render_passage
from .persistence import KeyValueStore, MemoryStore, SaveRecord, SaveStore
from .story import Query, Story

logger = logging.getLogger(__name__)


def should_push_history(tags: Iterable[str], at_checkpoint: bool) -> bool:
    """Decide between pushing and replacing the browser history entry.

    Args:
        tags: Tags of the passage being entered
        at_checkpoint: Whether the engine was at a checkpoint before entering

    Returns:
        True to push a new entry, False to replace the current one
    """
    return at_checkpoint or CHECKPOINT_TAG in tags


class NavigationEngine:
    """Drives a Story: navigation, checkpoints, save/restore and back/forward."""

    def __init__(
        self,
        story: Story,
        display: Optional[DisplaySink] = None,
        history: Optional[BrowserHistory] = None,
        store: Optional[KeyValueStore] = None,
        events: Optional[EventBus] = None,
    ):
        self.story = story
        self.display = display or RecordingDisplay()
        self.history = history or MemoryHistory()
        self.saves = SaveStore(store if store is not None else MemoryStore(), story.name)
        self.events = events or EventBus()

        self.history.on_popped(self.handle_pop)

    @property
    def navigation(self):
        return self.story.navigation

    # ==================== SESSION ====================

    def play(self) -> None:
        """Start the session: resume the saved game or begin at the start passage."""
        self.display.apply_config(self.story.config)

        try:
            has_save = self.saves.exists()
        except PersistenceError as e:
            # restore() reads the store again and reports the failure
            logger.warning(f"Could not check for save '{self.saves.key}': {e}")
            has_save = True

        if has_save and self.restore():
            logger.info(f"Resumed '{self.story.name}' at passage {self.navigation.current}")
            return

        self.go_to_passage(self.story.start_passage_id)
        self.navigation.at_checkpoint = True
        logger.info(f"Started '{self.story.name}' at passage {self.story.start_passage_id}")

    # ==================== NAVIGATION ====================

    def go_to_passage(self, query: Query, add_to_history: bool = True) -> str:
        """Navigate to a passage and display it.

        Args:
            query: Passage id or name
            add_to_history: Append the passage to history (False re-displays)

        Returns:
            The rendered passage HTML

        Raises:
            PassageNotFound: If the query matches nothing; history is untouched
            TemplateExpansionError: If the passage template fails
        """
        return self._go(query, add_to_history, record=True)

    def _go(self, query: Query, add_to_history: bool, record: bool) -> str:
        self.events.emit('go_to_passage:before', query=query)

        passage = self.story.get_passage(query)
        nav = self.navigation
        push = should_push_history(passage.tags, nav.at_checkpoint)

        if add_to_history:
            nav.history.append(passage.id)

        if passage.is_checkpoint:
            self.checkpoint(passage.name)

        if record:
            if push:
                self.history.push_entry(self.history_payload())
            else:
                self.history.replace_entry(self.history_payload())

        nav.at_checkpoint = False
        logger.debug(f"Entered passage {passage.id} '{passage.name}' "
                     f"({'push' if push else 'replace'}, history={nav.history})")

        content = self._display(passage)

        self.events.emit('go_to_passage:after', passage=passage)
        return content

    def _display(self, passage: Passage) -> str:
        content = render_passage(passage, self.story)
        self.display.show(PASSAGE_REGION, content)

        if self.story.header:
            self.display.show(HEADER_REGION, render_passage(self.story.header, self.story))
        if self.story.footer:
            self.display.show(FOOTER_REGION, render_passage(self.story.footer, self.story))

        return content

    def show_passage(self, query: Query) -> str:
        """Render a passage for inline display without navigating to it.

        Raises:
            PassageNotFound: If the query matches nothing
        """
        passage = self.story.get_passage(query)

        self.events.emit('show_passage:before', passage=passage)
        content = render_passage(passage, self.story)
        self.events.emit('show_passage:after', passage=passage)
        return content

    def follow_link(self, target: str, show: bool = False) -> str:
        """Activate a passage link: navigate to it, or render it inline when show is set."""
        if show:
            return self.show_passage(target)
        return self.go_to_passage(target)

    def checkpoint(self, name: str) -> None:
        """Mark the current position as a checkpoint."""
        self.events.emit('checkpoint:before', name=name)

        self.display.set_title(f"{self.story.name}: {name}")
        self.navigation.current_checkpoint = name
        self.navigation.at_checkpoint = True

        self.events.emit('checkpoint:after', name=name)

    def history_payload(self) -> Dict[str, Any]:
        """The state payload handed to the browser history adapter."""
        return {
            'state': copy.deepcopy(self.story.state),
            'history': list(self.navigation.history),
            'checkpointName': self.navigation.current_checkpoint,
        }

    # ==================== SAVE / RESTORE ====================

    def save(self) -> None:
        """Write the save record for this story.

        Raises:
            PersistenceError: If the store rejects the write
        """
        self.events.emit('save:before')
        record = SaveRecord(
            state=self.story.state,
            history=self.navigation.history,
            current_checkpoint=self.navigation.current_checkpoint,
        )
        self.saves.write(record)
        self.events.emit('save:after')

    def restore(self) -> bool:
        """Load the save record and re-display its last passage.

        Returns:
            True on success. False when there is no usable record, in which
            case the engine is left exactly as it was.
        """
        self.events.emit('restore:before')
        snapshot = self._snapshot()

        try:
            record = self.saves.read()
            self.story.state = record.state
            self.navigation.history = list(record.history)
            self.navigation.current_checkpoint = record.current_checkpoint
            self.go_to_passage(record.history[-1], add_to_history=False)
        except (RestoreFailed, PassageNotFound) as e:
            self._rollback(snapshot)
            logger.warning(f"Restore of '{self.saves.key}' failed: {e}")
            self.events.emit('restore:failed', error=e)
            return False
        except TemplateExpansionError:
            self._rollback(snapshot)
            raise

        logger.info(f"Restored '{self.saves.key}' at checkpoint '{self.navigation.current_checkpoint}'")
        self.events.emit('restore:after')
        return True

    def reset(self) -> None:
        """Delete this story's save record. Live state is left alone."""
        self.events.emit('reset:before')
        self.saves.delete()
        self.events.emit('reset:after')

    def _snapshot(self) -> Dict[str, Any]:
        return {
            'state': self.story.state,
            'history': list(self.navigation.history),
            'current_checkpoint': self.navigation.current_checkpoint,
            'at_checkpoint': self.navigation.at_checkpoint,
        }

    def _rollback(self, snapshot: Dict[str, Any]) -> None:
        self.story.state = snapshot['state']
        self.navigation.history = snapshot['history']
        self.navigation.current_checkpoint = snapshot['current_checkpoint']
        self.navigation.at_checkpoint = snapshot['at_checkpoint']

    # ==================== BROWSER HISTORY ====================

    def handle_pop(self, payload: Payload) -> None:
        """Adopt a popped browser history entry.

        An entry with a payload replaces state, history and checkpoint and
        re-displays its last passage. If that passage cannot be displayed the
        engine keeps its previous state. An entry without a payload predates
        the story; it only matters when nothing has been shown yet, and then
        the story starts over.

        Raises:
            TemplateExpansionError: If the popped passage fails to render
        """
        if payload:
            history = payload.get('history') or []
            if not history:
                logger.warning("Ignoring popped history entry with empty history")
                return

            snapshot = self._snapshot()
            try:
                self.story.state = payload.get('state') or {}
                self.navigation.history = list(history)
                self.navigation.current_checkpoint = payload.get('checkpointName') or ''
                # The entry is already in the back stack, so don't record it again
                self._go(history[-1], add_to_history=False, record=False)
            except PassageNotFound as e:
                self._rollback(snapshot)
                logger.warning(f"Ignoring popped history entry: {e}")
            except TemplateExpansionError:
                self._rollback(snapshot)
                raise
        elif not self.navigation.history:
            logger.debug("Popped to pre-story entry with no history, starting over")
            self.story.state = {}
            self.navigation.history = []
            self.navigation.current_checkpoint = ''
            self.go_to_passage(self.story.start_passage_id)
