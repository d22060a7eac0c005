#!/usr/bin/env python3
"""
Default template helpers.

Every passage template can call these by name. A story may override any of
them or add its own through Story(helpers=...).

    You have been here {{ visited() }} times.
    {{ link("Open the door", "Hall" if story.state.key else "Locked") }}
"""

from typing import TYPE_CHECKING, Callable, Dict, Optional

from .passage import Passage, render_passage

if TYPE_CHECKING:
    from .story import Story, Query


def default_helpers(story: 'Story') -> Dict[str, Callable]:
    """Build the default helper set bound to a story."""

    def visited(query: Optional['Query'] = None) -> int:
        """How many times a passage (default: the current one) is in history."""
        if query is None:
            current = story.navigation.current
            if current is None:
                return 0
            passage_id = current
        else:
            passage_id = story.get_passage(query).id
        return story.navigation.history.count(passage_id)

    def previous() -> Optional[Passage]:
        previous_id = story.navigation.previous
        return story.find_passage(previous_id) if previous_id is not None else None

    def show(query: 'Query') -> str:
        return render_passage(story.get_passage(query), story)

    def link(display: str, target: Optional[str] = None) -> str:
        if target is None:
            return f"[[{display}]]"
        return f"[[{display}|{target}]]"

    return {
        'visited': visited,
        'previous': previous,
        'show': show,
        'link': link,
    }
