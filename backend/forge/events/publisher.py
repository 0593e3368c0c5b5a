"""Event publishers: Redis pub/sub for deployments, in-memory for tests."""

import logging
from typing import Protocol

import redis.asyncio as aioredis

from backend.forge.config import Settings, get_settings
from backend.forge.events.models import PipelineEvent

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    """Protocol for publishing pipeline events to a topic."""

    async def publish(self, topic: str, event: PipelineEvent) -> None:
        """Publish one event. May raise; callers decide whether that matters."""
        ...


class RedisEventPublisher:
    """Publishes events as JSON on Redis pub/sub channels named after topics."""

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisEventPublisher":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def publish(self, topic: str, event: PipelineEvent) -> None:
        await self.client.publish(topic, event.model_dump_json())

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryEventPublisher:
    """Collects published events in order (tests, local runs)."""

    def __init__(self) -> None:
        self.published: list[tuple[str, PipelineEvent]] = []

    async def publish(self, topic: str, event: PipelineEvent) -> None:
        self.published.append((topic, event))

    def events(self, topic: str | None = None) -> list[PipelineEvent]:
        return [event for t, event in self.published if topic is None or t == topic]

    def types(self, topic: str | None = None) -> list[str]:
        return [event.type for event in self.events(topic)]


def get_event_publisher(settings: Settings | None = None) -> EventPublisher:
    """Redis publisher when REDIS_URL is configured, in-memory otherwise."""
    settings = settings or get_settings()
    if settings.redis_url:
        return RedisEventPublisher.from_url(settings.redis_url)
    logger.warning("No REDIS_URL configured, events are kept in memory only")
    return InMemoryEventPublisher()
