"""
Error taxonomy for the personalization engine.

None of these are fatal to a caller of the public service: transient store
errors divert interactions to the offline queue, and feed errors fall back
to an unranked fetch.
"""


class PersonalizationError(Exception):
    """Base class for engine errors."""
    pass


class ProfileStoreError(PersonalizationError):
    """Remote profile store unreachable or rejected the request."""
    pass


class ProfileConflictError(ProfileStoreError):
    """Concurrent writers kept winning the compare-and-set race."""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(f"Profile {user_id} changed concurrently {attempts} times")
        self.user_id = user_id
        self.attempts = attempts


class OfflineQueueError(PersonalizationError):
    """Local durable queue backend failed."""
    pass


class ArticleSourceError(PersonalizationError):
    """Candidate article fetch failed."""
    pass
