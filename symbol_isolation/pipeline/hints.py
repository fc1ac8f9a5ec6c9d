"""
Source Hints

Filename/URL keywords that decide, before any pixel is read, whether a symbol
must be processed regardless of its border or can be passed through as-is.
"""

from enum import Enum
from typing import Optional

from symbol_isolation.core.config import Settings, settings as default_settings


class SourceHint(str, Enum):
    NONE = "none"
    FORCE = "force"  # e.g. ".../white-bg/wild.jpg"
    SKIP = "skip"    # placeholders and already-processed assets


def resolve_source_hint(source: Optional[str], settings: Optional[Settings] = None) -> SourceHint:
    """Skip keywords win over force keywords."""
    if not source:
        return SourceHint.NONE

    settings = settings or default_settings
    lowered = source.lower()

    if any(keyword in lowered for keyword in settings.skip_hints):
        return SourceHint.SKIP
    if any(keyword in lowered for keyword in settings.force_hints):
        return SourceHint.FORCE
    return SourceHint.NONE
