#!/usr/bin/env python3
"""
Row classification for the annotation pass.

Priority order:
1. Cleanup matchers (malformed data, never annotated)
2. Missing concept or argument
3. Existing observations
4. Everything else goes to Gemini
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

CleanupMatcher = Callable[[str, str, str], bool]


def _has_empty_brackets(concept: str, argument: str, observations: str) -> bool:
    return '[]' in concept or '[]' in argument


def _has_ellipsis(concept: str, argument: str, observations: str) -> bool:
    return '...' in concept or '...' in argument


def _has_placeholder(concept: str, argument: str, observations: str) -> bool:
    return '??' in concept or '??' in argument


def _has_flagged_observations(concept: str, argument: str, observations: str) -> bool:
    return '**' in observations


CLEANUP_MATCHERS: List[CleanupMatcher] = [
    _has_empty_brackets,
    _has_ellipsis,
    _has_placeholder,
    _has_flagged_observations,
]


class RowAction(Enum):
    SKIP_CLEANUP = 'skip_cleanup'
    CLEAN = 'clean'
    SKIP_EMPTY = 'skip_empty'
    SKIP_ANNOTATED = 'skip_annotated'
    ANNOTATE = 'annotate'

    @property
    def is_skip(self) -> bool:
        return self in (RowAction.SKIP_CLEANUP, RowAction.SKIP_EMPTY, RowAction.SKIP_ANNOTATED)


def is_unannotated(observations: Optional[str]) -> bool:
    """An absent cell and an empty string both mean the row has not been annotated."""
    return observations is None or observations == ''


def matches_cleanup(
    concept: Optional[str],
    argument: Optional[str],
    observations: Optional[str],
    matchers: List[CleanupMatcher] = CLEANUP_MATCHERS
) -> bool:
    """Check the row against the cleanup matchers, treating missing fields as ''."""
    concept = concept or ''
    argument = argument or ''
    observations = observations or ''
    return any(matcher(concept, argument, observations) for matcher in matchers)


def classify_row(
    concept: Optional[str],
    argument: Optional[str],
    observations: Optional[str]
) -> RowAction:
    """
    Decide what to do with a row.

    Args:
        concept: Concepto cell (None if absent)
        argument: Argumentos cell (None if absent)
        observations: Observaciones cell (None if absent)

    Returns:
        RowAction
    """
    if matches_cleanup(concept, argument, observations):
        if is_unannotated(observations):
            return RowAction.SKIP_CLEANUP
        return RowAction.CLEAN

    if not concept or not argument:
        return RowAction.SKIP_EMPTY

    if not is_unannotated(observations):
        return RowAction.SKIP_ANNOTATED

    return RowAction.ANNOTATE
