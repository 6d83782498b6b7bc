"""
Aggregation Store

Live aggregated stats keyed by (dimension, entity). The Redis implementation
keeps three hashes per entity plus two index sets:

    {prefix}:{dimension}:{entity}:counter
    {prefix}:{dimension}:{entity}:gauge
    {prefix}:{dimension}:{entity}:presence
    {prefix}:{dimension}:entities
    {prefix}:dimensions

Upserts are optimistic transactions (WATCH the counter hashes, MULTI/EXEC the
writes) so concurrent submissions never lose updates. A submission feeding
several entities is applied to all of them in one transaction or not at all.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError, WatchError

from statshub.config import RedisSettings
from statshub.errors import StoreError
from statshub.stats.models import KINDS, StatsBundle, add_counters, validate_dimension_name

logger = structlog.get_logger(__name__)


class StatsStore(ABC):
    """Read/write contract of the aggregation store"""

    async def upsert(self, dimension: str, entity: str, bundle: StatsBundle) -> None:
        """
        Merge a bundle into an entity, creating the entity if needed.

        Counters are added, gauges and presence overwritten. Atomic per entity.
        """
        await self.upsert_many([(dimension, entity)], bundle)

    @abstractmethod
    async def upsert_many(self, targets: Sequence[Tuple[str, str]], bundle: StatsBundle) -> None:
        """
        Merge one bundle into several entities as a single atomic step.

        Every counter sum is checked before anything is written, so an
        overflow in any target leaves all of them unchanged.
        """

    @abstractmethod
    async def get(self, dimension: str, entity: str) -> Optional[StatsBundle]:
        """Current stats of one entity, or None if it was never written"""

    @abstractmethod
    async def list_entities(self, dimension: str) -> List[str]:
        """All entities known in a dimension"""

    @abstractmethod
    async def list_dimensions(self) -> List[str]:
        """All dimensions that have received stats"""

    @abstractmethod
    async def read_dimension(self, dimension: str) -> Dict[str, StatsBundle]:
        """Every entity of a dimension, each read atomically"""

    @abstractmethod
    async def ping(self) -> None:
        """Raise StoreError if the store is unreachable"""

    @abstractmethod
    async def close(self) -> None:
        """Release connections"""


class RedisStatsStore(StatsStore):
    """
    Redis-backed aggregation store.

    Example:
        store = RedisStatsStore.from_settings(settings.redis)
        await store.upsert("user", "42", StatsBundle(counter={"clicks": 3}))
        bundle = await store.get("user", "42")
    """

    def __init__(
        self,
        client: Redis,
        key_prefix: str = "stats",
        max_retries: int = 16,
        read_batch_size: int = 500,
    ):
        self._client = client
        self.key_prefix = key_prefix
        self.max_retries = max_retries
        self.read_batch_size = read_batch_size

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "RedisStatsStore":
        """Build a store on a new connection pool"""
        pool = ConnectionPool.from_url(
            settings.get_url(),
            max_connections=settings.max_connections,
            socket_timeout=settings.socket_timeout,
            decode_responses=True,
        )
        return cls(
            Redis(connection_pool=pool),
            key_prefix=settings.key_prefix,
            max_retries=settings.max_retries,
            read_batch_size=settings.read_batch_size,
        )

    def _key(self, dimension: str, entity: str, kind: str) -> str:
        return f"{self.key_prefix}:{dimension}:{entity}:{kind}"

    def _entities_key(self, dimension: str) -> str:
        return f"{self.key_prefix}:{dimension}:entities"

    @property
    def _dimensions_key(self) -> str:
        return f"{self.key_prefix}:dimensions"

    async def upsert_many(self, targets: Sequence[Tuple[str, str]], bundle: StatsBundle) -> None:
        if not targets:
            return
        for dimension, _ in targets:
            validate_dimension_name(dimension)
        counter_keys = [self._key(dimension, entity, "counter") for dimension, entity in targets]

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                for attempt in range(self.max_retries):
                    try:
                        await pipe.watch(*counter_keys)
                        counters = []
                        for counter_key in counter_keys:
                            if not bundle.counter:
                                counters.append({})
                                continue
                            current = await pipe.hgetall(counter_key)
                            counters.append(add_counters(
                                {stat: int(value) for stat, value in current.items()},
                                bundle.counter,
                            ))

                        pipe.multi()
                        for (dimension, entity), updated in zip(targets, counters):
                            pipe.sadd(self._dimensions_key, dimension)
                            pipe.sadd(self._entities_key(dimension), entity)
                            if updated:
                                pipe.hset(self._key(dimension, entity, "counter"), mapping=updated)
                            if bundle.gauge:
                                pipe.hset(self._key(dimension, entity, "gauge"), mapping=bundle.gauge)
                            if bundle.presence:
                                pipe.hset(self._key(dimension, entity, "presence"), mapping=bundle.presence)
                        await pipe.execute()
                        return
                    except WatchError:
                        logger.debug(
                            "Concurrent update, retrying",
                            targets=len(targets),
                            attempt=attempt + 1,
                        )
        except RedisError as e:
            logger.error("Redis upsert failed", targets=len(targets), error=str(e))
            raise StoreError(f"Unable to post stats: {e}") from e

        raise StoreError(
            f"Unable to post stats: gave up after {self.max_retries} concurrent updates"
        )

    async def get(self, dimension: str, entity: str) -> Optional[StatsBundle]:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.sismember(self._entities_key(dimension), entity)
                for kind in KINDS:
                    pipe.hgetall(self._key(dimension, entity, kind))
                exists, *hashes = await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Unable to query stats: {e}") from e

        if not exists:
            return None
        return _bundle_from_hashes(hashes)

    async def list_entities(self, dimension: str) -> List[str]:
        try:
            entities = await self._client.smembers(self._entities_key(dimension))
        except RedisError as e:
            raise StoreError(f"Unable to list entities of {dimension}: {e}") from e
        return sorted(entities)

    async def list_dimensions(self) -> List[str]:
        try:
            dimensions = await self._client.smembers(self._dimensions_key)
        except RedisError as e:
            raise StoreError(f"Unable to list dimensions: {e}") from e
        return sorted(dimensions)

    async def read_dimension(self, dimension: str) -> Dict[str, StatsBundle]:
        entities = await self.list_entities(dimension)
        result: Dict[str, StatsBundle] = {}

        for start in range(0, len(entities), self.read_batch_size):
            batch = entities[start:start + self.read_batch_size]
            try:
                async with self._client.pipeline(transaction=True) as pipe:
                    for entity in batch:
                        for kind in KINDS:
                            pipe.hgetall(self._key(dimension, entity, kind))
                    hashes = await pipe.execute()
            except RedisError as e:
                raise StoreError(f"Unable to read dimension {dimension}: {e}") from e

            for i, entity in enumerate(batch):
                result[entity] = _bundle_from_hashes(hashes[i * len(KINDS):(i + 1) * len(KINDS)])

        return result

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as e:
            raise StoreError(f"Unable to connect to redis: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")


def _bundle_from_hashes(hashes: List[Dict[str, str]]) -> StatsBundle:
    counter, gauge, presence = (
        {stat: int(value) for stat, value in h.items()} for h in hashes
    )
    return StatsBundle(counter=counter, gauge=gauge, presence=presence)
