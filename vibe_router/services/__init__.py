"""
Services Package - stats accounting and user preference persistence.
"""

from vibe_router.services.preferences import PreferenceStore, UserPreferences
from vibe_router.services.stats import StatsTracker

__all__ = [
    "PreferenceStore",
    "StatsTracker",
    "UserPreferences",
]
