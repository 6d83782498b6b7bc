"""
Dimension Query Service

Reads current aggregates out of the store. Each dimension is a consistent
snapshot per entity; different dimensions are read independently.
"""

from typing import Dict, Iterable, Optional

import structlog

from statshub.errors import ClientInputError
from statshub.stats.models import StatsBundle
from statshub.stats.store import StatsStore

logger = structlog.get_logger(__name__)


class DimensionQueryService:
    """Query aggregated stats by dimension"""

    def __init__(self, store: StatsStore):
        self.store = store

    async def query(self, dimensions: Iterable[str]) -> Dict[str, Dict[str, StatsBundle]]:
        """
        Current stats for each requested dimension.

        Args:
            dimensions: Non-empty collection of dimension names

        Returns:
            {dimension: {entity: StatsBundle}}

        Raises:
            ClientInputError: if no dimension was requested
            StoreError: if the store is unreachable (retryable)
        """
        requested = list(dict.fromkeys(dimensions))
        if not requested:
            raise ClientInputError("At least one dimension must be queried")

        result = {}
        for dimension in requested:
            result[dimension] = await self.store.read_dimension(dimension)
            logger.debug("Dimension queried", dimension=dimension, entities=len(result[dimension]))
        return result

    async def entity(self, dimension: str, entity: str) -> Optional[StatsBundle]:
        """Current stats of a single entity, None if it has never submitted"""
        return await self.store.get(dimension, entity)
