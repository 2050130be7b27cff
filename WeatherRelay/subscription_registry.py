"""Which connections are interested in which locations."""
import logging
from collections import defaultdict
from typing import Dict, FrozenSet, Set


class SubscriptionRegistry:
    """
    Maps location keys to the ids of connections subscribed to them.

    A key is present only while at least one connection is subscribed, so
    active_keys() is exactly the set of locations worth polling.
    """

    def __init__(self):
        self._subs: Dict[str, Set[str]] = defaultdict(set)

    def subscribe(self, key: str, connection_id: str) -> None:
        self._subs[key].add(connection_id)

    def unsubscribe(self, key: str, connection_id: str) -> None:
        subscribers = self._subs.get(key)
        if subscribers is None:
            return
        subscribers.discard(connection_id)
        if not subscribers:
            del self._subs[key]
            logging.info(f"No subscribers left for '{key}', polling stopped")

    def remove_connection(self, connection_id: str) -> FrozenSet[str]:
        """Drop a connection from every location. Returns the keys it held."""
        released = self.keys_for(connection_id)
        for key in released:
            self.unsubscribe(key, connection_id)
        return released

    def subscribers_of(self, key: str) -> FrozenSet[str]:
        return frozenset(self._subs.get(key, ()))

    def active_keys(self) -> FrozenSet[str]:
        return frozenset(self._subs)

    def keys_for(self, connection_id: str) -> FrozenSet[str]:
        return frozenset(key for key, subscribers in self._subs.items() if connection_id in subscribers)

    def __contains__(self, key: str) -> bool:
        return key in self._subs
