"""
Per-owner study analytics.

All counters live in the owner's ``profile`` record and are updated in a
single read-modify-write, so concurrent questions never lose updates.
"""

import logging
from typing import Optional

from .errors import InvalidInput
from .record_store import RecordStore
from .records import Analytics, Profile, SubjectProgress, load_model, update_model
from .types import BLOOMS_LEVELS

logger = logging.getLogger(__name__)


def running_mean(old_mean: float, sample: float, count: int) -> float:
    """Incremental mean after the ``count``-th sample."""
    return old_mean + (sample - old_mean) / count


class AnalyticsAccumulator:
    """Accumulates question statistics into owner profiles."""

    def __init__(self, store: RecordStore):
        self._store = store

    def record_question(
        self,
        owner: str,
        subject: Optional[str],
        blooms_level: str,
        accuracy: float,
    ) -> Analytics:
        """
        Count one answered question.

        Profile-wide totals are always updated; the subject's progress only
        when ``subject`` is given.

        Raises:
            InvalidInput: ``blooms_level`` is not a Bloom's taxonomy level
        """
        if blooms_level not in BLOOMS_LEVELS:
            raise InvalidInput(f"Unknown Bloom's level: {blooms_level!r}")

        def apply(profile: Profile) -> Analytics:
            analytics = profile.analytics
            analytics.questions_asked += 1
            analytics.blooms_levels[blooms_level] = analytics.blooms_levels.get(blooms_level, 0) + 1
            if subject:
                if subject not in analytics.concepts_learned:
                    analytics.concepts_learned.append(subject)
                progress = profile.subject(subject)
                progress.questions_asked += 1
                progress.average_accuracy = running_mean(
                    progress.average_accuracy, accuracy, progress.questions_asked,
                )
                progress.blooms_levels[blooms_level] = progress.blooms_levels.get(blooms_level, 0) + 1
            return analytics.model_copy(deep=True)

        return update_model(self._store, owner, Profile, apply)

    def subject_progress(self, owner: str, subject: str) -> Optional[SubjectProgress]:
        return load_model(self._store, owner, Profile).analytics.subject_progress.get(subject)

    def summary(self, owner: str) -> Analytics:
        return load_model(self._store, owner, Profile).analytics
