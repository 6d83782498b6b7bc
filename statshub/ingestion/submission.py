"""
Submission Processor

Merges a verified user's stats bundle into the aggregation store: always into
the ``user`` dimension under the anonymized id, plus any extra dimension
entities named by the submission. All targets are merged in one store
transaction, so a rejected submission changes none of them. Store failures
surface to the caller without retry.
"""

from typing import List, Tuple

import structlog

from statshub.errors import StatsHubError
from statshub.metrics import SUBMISSIONS
from statshub.stats.models import StatsSubmission
from statshub.stats.store import StatsStore

logger = structlog.get_logger(__name__)


class SubmissionProcessor:
    """Apply stats submissions to the store"""

    def __init__(self, store: StatsStore):
        self.store = store

    async def submit(self, user_id: int, submission: StatsSubmission) -> List[Tuple[str, str]]:
        """
        Merge a submission for an already verified user.

        Returns:
            The (dimension, entity) pairs written

        Raises:
            StoreError: store unreachable or failing
            CounterOverflowError: a counter would leave the int64 range
        """
        bundle = submission.bundle()
        targets = submission.targets(user_id)

        try:
            await self.store.upsert_many(targets, bundle)
        except StatsHubError as e:
            SUBMISSIONS.labels(status="error").inc()
            logger.warning(
                "Stats submission failed",
                user_id=user_id,
                error=e.message,
            )
            raise

        SUBMISSIONS.labels(status="success").inc()
        logger.debug(
            "Stats submitted",
            user_id=user_id,
            dimensions=[dimension for dimension, _ in targets],
            counters=len(bundle.counter),
            gauges=len(bundle.gauge),
            presence=len(bundle.presence),
        )
        return targets
