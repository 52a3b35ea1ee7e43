"""Cache Gate

Decides whether a (tour, locale) embedding must be regenerated by comparing
the stored content hash with a freshly computed fingerprint. Only an exact
match skips the work; a missing row or a failed lookup both mean regenerate.
"""

import logging

logger = logging.getLogger(__name__)


class CacheGate:
    def __init__(self, store):
        self.store = store

    def should_regenerate(self, tour_id: int, locale: str, new_fingerprint: str) -> bool:
        try:
            stored = self.store.get_fingerprint(tour_id, locale)
        except Exception as e:
            logger.warning(
                "Fingerprint lookup failed for tour %s (%s); regenerating: %s",
                tour_id,
                locale,
                e,
            )
            return True

        if stored is None:
            logger.debug("No stored embedding for tour %s (%s)", tour_id, locale)
            return True
        return stored != new_fingerprint
