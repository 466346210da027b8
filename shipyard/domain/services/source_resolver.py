"""
Source Resolution Service

Architectural Intent:
- Expands configured source patterns into concrete local paths
- Patterns prefixed with '?' are exclusions forwarded to the archiver
- A pattern that matches nothing contributes nothing; emptiness is judged
  by the caller on the whole result
"""

from __future__ import annotations
import glob
import logging
from typing import Iterable

from shipyard.domain.value_objects.source_files import SourceFiles

logger = logging.getLogger(__name__)

EXCLUDE_PREFIX = "?"


def resolve_sources(patterns: Iterable[str]) -> SourceFiles:
    sources: list[str] = []
    excludes: list[str] = []

    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        if pattern.startswith(EXCLUDE_PREFIX):
            excludes.append(pattern[len(EXCLUDE_PREFIX):])
            continue

        matches = sorted(glob.glob(pattern))
        if not matches:
            logger.debug("Source pattern %r matched nothing", pattern)
        sources.extend(matches)

    return SourceFiles(sources=tuple(sources), excludes=tuple(excludes))
