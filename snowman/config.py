#!/usr/bin/env python3
"""
Story configuration.

Defaults are merged under whatever the CONFIG passage sets. The passage body is
TOML, for example:

    darkTheme = true
    stylesheets = ["https://example.com/extra.css"]
"""

import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .templates import unescape_source

CONFIG_PASSAGE = 'CONFIG'

DEFAULT_CONFIG = {
    'darkTheme': False,
}


@dataclass
class StoryConfig:
    """Configuration values the runtime consumes."""
    dark_theme: bool = False
    stylesheets: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StoryConfig':
        merged = dict(DEFAULT_CONFIG)
        merged.update(data)

        stylesheets = merged.pop('stylesheets', None) or []
        if isinstance(stylesheets, str):
            stylesheets = [stylesheets]

        dark_theme = merged.pop('darkTheme')
        if not isinstance(dark_theme, bool):
            raise ValueError(f"{CONFIG_PASSAGE} darkTheme must be true or false, got {dark_theme!r}")

        return cls(
            dark_theme=dark_theme,
            stylesheets=list(stylesheets),
            extra=merged,
        )


def parse_config_source(source: Optional[str]) -> StoryConfig:
    """Parse the (entity-encoded) body of a CONFIG passage.

    Args:
        source: Stored CONFIG passage source, or None when there is none

    Returns:
        StoryConfig with defaults filled in

    Raises:
        ValueError: If the source is not valid TOML or darkTheme is not a boolean
    """
    if not source:
        return StoryConfig.from_dict({})

    try:
        data = tomllib.loads(unescape_source(source))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid {CONFIG_PASSAGE} passage: {e}") from e

    return StoryConfig.from_dict(data)
