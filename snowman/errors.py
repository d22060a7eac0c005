#!/usr/bin/env python3
"""
Exceptions raised by the Snowman runtime.

- PassageNotFound: a passage query matched nothing (propagates to the host)
- TemplateExpansionError: a template expression or helper failed
- RestoreFailed: the save record is absent or malformed
- PersistenceError: the key-value store could not be read or written
"""


class SnowmanError(Exception):
    """Base class for all runtime errors."""


class PassageNotFound(SnowmanError, LookupError):
    """No passage matches the given id or name."""

    def __init__(self, query) -> None:
        self.query = query
        super().__init__(f'No passage found with ID or name "{query}"')


class TemplateExpansionError(SnowmanError):
    """A passage template could not be expanded."""

    def __init__(self, passage_name: str, message: str) -> None:
        self.passage_name = passage_name
        super().__init__(f'Error expanding passage "{passage_name}": {message}')


class RestoreFailed(SnowmanError):
    """The save record is missing or structurally invalid."""


class PersistenceError(SnowmanError):
    """The backing store is unavailable or rejected a write."""
