"""
Master data held in memory during an import cycle.

Entities are plain camelCase dicts (the shape the UI exchanges).
MasterData groups them by frontend collection key and never mutates
the lists it was given.
"""

from enum import Enum
from typing import Any, Iterable

from pydantic import Field

from models.base import BaseSchema


class EntityType(str, Enum):
    """Kinds of entity a free-text reference can point at."""
    ITEM = "item"
    MACHINE = "machine"
    LOCATION = "location"
    SECTOR = "sector"
    DIVISION = "division"


# Entity type -> frontend collection key
ENTITY_COLLECTIONS: dict[EntityType, str] = {
    EntityType.ITEM: "items",
    EntityType.MACHINE: "machines",
    EntityType.LOCATION: "locations",
    EntityType.SECTOR: "sectors",
    EntityType.DIVISION: "divisions",
}


class MasterData(BaseSchema):
    """
    Snapshot of every collection fetched from the store.

    Usage:
        master = MasterData(collections={"items": [...], "locations": [...]})
        master.entities(EntityType.ITEM)
    """

    collections: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)

    def collection(self, key: str) -> list[dict[str, Any]]:
        """Records for a frontend collection key (empty if never loaded)."""
        return self.collections.get(key, [])

    def entities(self, entity_type: EntityType) -> list[dict[str, Any]]:
        """Records that back references of the given entity type."""
        return self.collection(ENTITY_COLLECTIONS[entity_type])

    @property
    def items(self) -> list[dict[str, Any]]:
        return self.collection("items")

    @property
    def machines(self) -> list[dict[str, Any]]:
        return self.collection("machines")

    @property
    def locations(self) -> list[dict[str, Any]]:
        return self.collection("locations")

    def with_records(self, key: str, records: Iterable[dict[str, Any]]) -> "MasterData":
        """
        Return a new snapshot with records upserted into one collection.

        Records replace existing ones with the same id; new ids are appended.
        Used to feed a persisted change-set into the next import cycle.
        """
        merged = {r.get("id"): dict(r) for r in self.collection(key)}
        for record in records:
            merged[record.get("id")] = dict(record)

        collections = dict(self.collections)
        collections[key] = list(merged.values())
        return MasterData(collections=collections)
