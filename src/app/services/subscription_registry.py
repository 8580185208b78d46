from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.app.services.keyed_lock import KeyedLock
from src.domain.models import Topic

logger = logging.getLogger(__name__)


def _topic_key(topic: Topic | str) -> str:
    return str(topic if isinstance(topic, Topic) else Topic.parse(topic))


@dataclass(slots=True)
class SubscriptionRegistry:
    """Many-to-many membership between live connections and topics.

    Locks are always taken connection first, then topic.
    """

    _members: dict[str, set[str]] = field(default_factory=dict, init=False, repr=False)
    _joined: dict[str, set[str]] = field(default_factory=dict, init=False, repr=False)
    _topic_locks: KeyedLock = field(default_factory=KeyedLock, init=False, repr=False)
    _connection_locks: KeyedLock = field(
        default_factory=KeyedLock, init=False, repr=False
    )

    def join(self, connection_id: str, topic: Topic | str) -> bool:
        """Subscribe; returns False if the connection had already joined."""

        key = _topic_key(topic)
        with self._connection_locks.hold(connection_id):
            with self._topic_locks.hold(key):
                members = self._members.setdefault(key, set())
                if connection_id in members:
                    return False
                members.add(connection_id)
            self._joined.setdefault(connection_id, set()).add(key)

        logger.info("Connection %s subscribed to %s", connection_id, key)
        return True

    def leave(self, connection_id: str, topic: Topic | str) -> bool:
        key = _topic_key(topic)
        with self._connection_locks.hold(connection_id):
            if not self._discard(connection_id, key):
                return False
            joined = self._joined.get(connection_id)
            if joined is not None:
                joined.discard(key)
                if not joined:
                    del self._joined[connection_id]

        logger.info("Connection %s unsubscribed from %s", connection_id, key)
        return True

    def drop_connection(self, connection_id: str) -> int:
        """Remove every subscription held by a terminated connection."""

        with self._connection_locks.hold(connection_id):
            topics = self._joined.pop(connection_id, set())
            for key in topics:
                self._discard(connection_id, key)

        if topics:
            logger.info(
                "Connection %s dropped from %d topic(s)", connection_id, len(topics)
            )
        return len(topics)

    def _discard(self, connection_id: str, key: str) -> bool:
        with self._topic_locks.hold(key):
            members = self._members.get(key)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self._members[key]
            return True

    def subscribers_of(self, topic: Topic | str) -> frozenset[str]:
        key = _topic_key(topic)
        with self._topic_locks.hold(key):
            return frozenset(self._members.get(key, ()))

    def topics_of(self, connection_id: str) -> frozenset[str]:
        with self._connection_locks.hold(connection_id):
            return frozenset(self._joined.get(connection_id, ()))
