"""
Entity resolution.

Maps a free-text reference from a spreadsheet (id, part number, name,
alias code) onto the canonical id of a master entity. Source sheets come
from several systems that identify the same part or machine differently,
so each entity type has an ordered list of lookup strategies. The first
strategy that finds an entity wins.

Each strategy is a plain function:

    strategy(entities, reference) -> entity | None
"""

from typing import Any, Callable, Optional, Sequence
import structlog

from models.master_data import EntityType, MasterData
from utils.text_utils import clean_reference, digits_only, safe_str

logger = structlog.get_logger(__name__)

Entity = dict[str, Any]
Strategy = Callable[[Sequence[Entity], str], Optional[Entity]]


def _text(value: Any) -> str:
    return safe_str(value) or ""


# ===================
# STRATEGIES
# ===================

def match_id(entities: Sequence[Entity], reference: str) -> Optional[Entity]:
    """Exact match on canonical id."""
    for entity in entities:
        if _text(entity.get("id")) == reference:
            return entity
    return None


def match_id_ignore_case(entities: Sequence[Entity], reference: str) -> Optional[Entity]:
    """Case-insensitive match on canonical id."""
    wanted = reference.lower()
    for entity in entities:
        if _text(entity.get("id")).lower() == wanted:
            return entity
    return None


def match_fields(fields: Sequence[str]) -> Strategy:
    """Build a case-insensitive exact match over the given fields."""
    def strategy(entities: Sequence[Entity], reference: str) -> Optional[Entity]:
        wanted = reference.lower()
        for entity in entities:
            for name in fields:
                value = _text(entity.get(name)).lower()
                if value and value == wanted:
                    return entity
        return None
    strategy.__name__ = "match_" + "_".join(fields)
    return strategy


def match_digits(fields: Sequence[str]) -> Strategy:
    """
    Build a digits-only match for purely numeric references.

    "00123" hits an item with id "IT-00123" or partNumber "PN/00123".
    """
    def strategy(entities: Sequence[Entity], reference: str) -> Optional[Entity]:
        if not reference.isdigit():
            return None
        for entity in entities:
            for name in fields:
                digits = digits_only(entity.get(name))
                if digits and digits == reference:
                    return entity
        return None
    strategy.__name__ = "match_digits_" + "_".join(fields)
    return strategy


STRATEGIES: dict[EntityType, tuple[Strategy, ...]] = {
    EntityType.ITEM: (
        match_id,
        match_id_ignore_case,
        match_fields(("partNumber", "secondId", "thirdId")),
        match_fields(("name", "fullName")),
        match_digits(("id", "partNumber")),
    ),
    EntityType.MACHINE: (
        match_id,
        match_id_ignore_case,
        match_fields(("chassisNo",)),
        match_fields(("category",)),
    ),
    EntityType.LOCATION: (match_id, match_id_ignore_case, match_fields(("name",))),
    EntityType.SECTOR: (match_id, match_id_ignore_case, match_fields(("name",))),
    EntityType.DIVISION: (match_id, match_id_ignore_case, match_fields(("name",))),
}


# ===================
# RESOLVER
# ===================

class EntityResolver:
    """
    Resolves references against one master data snapshot.

    Results are memoized per (entity type, cleaned reference); the
    snapshot is treated as read-only for the resolver's lifetime.
    """

    def __init__(self, master_data: MasterData):
        self.master_data = master_data
        self._cache: dict[tuple[EntityType, str], Optional[Entity]] = {}

    def find(self, reference: Any, entity_type: EntityType) -> Optional[Entity]:
        """Return the matched entity, or None."""
        cleaned = clean_reference(reference)
        if not cleaned:
            return None

        cache_key = (entity_type, cleaned)
        if cache_key in self._cache:
            return self._cache[cache_key]

        entities = self.master_data.entities(entity_type)
        match = None
        for strategy in STRATEGIES[entity_type]:
            match = strategy(entities, cleaned)
            if match is not None:
                logger.debug(
                    "reference_resolved",
                    entity_type=entity_type.value,
                    reference=cleaned,
                    strategy=strategy.__name__,
                    id=match.get("id")
                )
                break

        self._cache[cache_key] = match
        return match

    def resolve(self, reference: Any, entity_type: EntityType) -> Optional[str]:
        """
        Resolve a reference to a canonical id.

        Args:
            reference: Raw spreadsheet value (str, number, or None)
            entity_type: Which collection to search

        Returns:
            Canonical id, or None when nothing matches
        """
        entity = self.find(reference, entity_type)
        if entity is None:
            return None
        return _text(entity.get("id")) or None
