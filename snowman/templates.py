#!/usr/bin/env python3
"""
Template Expander

Expands a passage's template source against a data context (the passage, the
story and the story's helper functions) and returns plain markup text.

Passage source is stored entity-encoded, so it is unescaped before it is handed
to the evaluator. The evaluator itself is pluggable: the default runs the
source through a sandboxed Jinja2 environment.
"""

import html
import logging
from typing import Any, Dict, Optional

from jinja2 import TemplateError, Undefined
from jinja2.sandbox import SandboxedEnvironment
from jinja2.utils import missing

from .errors import TemplateExpansionError

logger = logging.getLogger(__name__)


class TemplateEvaluator:
    """Evaluates template expressions in a source string."""

    def evaluate(self, source: str, context: Dict[str, Any]) -> str:
        raise NotImplementedError


class UnknownNameUndefined(Undefined):
    """Fails on use when a top-level name is unknown.

    A missing attribute or key ({{ story.state.lamp }}) still renders empty and
    tests false; a misspelled name ({{ stat.lamp }}, {{ lamp }}) raises.
    """
    __slots__ = ()

    def _check_name(self) -> None:
        if self._undefined_obj is missing:
            self._fail_with_undefined_error()

    def __str__(self) -> str:
        self._check_name()
        return super().__str__()

    def __bool__(self) -> bool:
        self._check_name()
        return super().__bool__()

    def __iter__(self):
        self._check_name()
        return super().__iter__()

    def __len__(self) -> int:
        self._check_name()
        return super().__len__()


class JinjaEvaluator(TemplateEvaluator):
    """Jinja2 evaluator with the sandbox enabled.

    The 'do' extension is loaded so templates can update story state, e.g.
    {% do story.state.update(lamp=True) %}.
    """

    def __init__(self, environment: Optional[SandboxedEnvironment] = None):
        self.environment = environment or SandboxedEnvironment(
            autoescape=False,
            keep_trailing_newline=True,
            undefined=UnknownNameUndefined,
            extensions=['jinja2.ext.do'],
        )

    def evaluate(self, source: str, context: Dict[str, Any]) -> str:
        template = self.environment.from_string(source)
        return template.render(context)


def unescape_source(source: str) -> str:
    """Decode the HTML entities of a stored passage source."""
    return html.unescape(source)


def expand_template(
    source: str,
    context: Dict[str, Any],
    evaluator: Optional[TemplateEvaluator] = None,
    name: str = '',
) -> str:
    """Expand a stored (entity-encoded) template source.

    Args:
        source: Stored passage source
        context: Names visible to template expressions
        evaluator: Evaluator to use (default: JinjaEvaluator)
        name: Passage name, used in error messages

    Returns:
        The expanded text

    Raises:
        TemplateExpansionError: If an expression or helper raises
    """
    evaluator = evaluator or JinjaEvaluator()
    text = unescape_source(source)

    try:
        return evaluator.evaluate(text, context)
    except TemplateExpansionError:
        raise
    except TemplateError as e:
        logger.debug(f"Template error in passage '{name}': {e}")
        raise TemplateExpansionError(name, str(e)) from e
    except Exception as e:
        logger.debug(f"Helper raised in passage '{name}': {e!r}")
        raise TemplateExpansionError(name, f"{type(e).__name__}: {e}") from e
