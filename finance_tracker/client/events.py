"""Invalidation bus: tells views which kinds of data need refetching."""
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Iterable

__all__ = [
    'InvalidationBus', 'Invalidation', 'ENTITY_TYPES',
    'TRANSACTIONS', 'BUDGETS', 'SAVINGS', 'SUBSCRIPTIONS',
    'INVESTMENTS', 'CONTEXTS', 'DASHBOARD'
]

TRANSACTIONS = "transactions"
BUDGETS = "budgets"
SAVINGS = "savings"
SUBSCRIPTIONS = "subscriptions"
INVESTMENTS = "investments"
CONTEXTS = "contexts"
DASHBOARD = "dashboard"

ENTITY_TYPES = (TRANSACTIONS, BUDGETS, SAVINGS, SUBSCRIPTIONS, INVESTMENTS, CONTEXTS, DASHBOARD)


class Invalidation(NamedTuple):
    entity: str
    ts: str
    payload: dict


Handler = Callable[[Invalidation], None]


class InvalidationBus:
    """Pub/sub keyed by entity type.

    A view subscribes to the entity types it displays and refetches when one
    of them is published.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, entity: str, handler: Handler) -> None:
        if entity not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type: {entity}")
        self._subscribers.setdefault(entity, []).append(handler)

    def unsubscribe(self, entity: str, handler: Handler) -> None:
        if handler in self._subscribers.get(entity, []):
            self._subscribers[entity].remove(handler)

    def publish(self, entities: Iterable[str], payload: dict = None) -> int:
        """Notify subscribers of each entity type. Returns the number of handlers called."""
        if isinstance(entities, str):
            entities = [entities]

        called = 0
        ts = datetime.now().isoformat()
        for entity in entities:
            event = Invalidation(entity=entity, ts=ts, payload=payload or {})
            for handler in list(self._subscribers.get(entity, [])):
                handler(event)
                called += 1
        return called
