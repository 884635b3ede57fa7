"""
Row normalization.

Maps a raw spreadsheet row (arbitrary header -> cell) onto the canonical
field names of one import target, using the alias tables declared in
config/import_targets.py.
"""

from typing import Any, Mapping, Optional, Union
import structlog

from config.import_targets import get_import_schema
from models.imports import FieldKind, FieldSpec, ImportSchema, ImportTarget
from utils.text_utils import is_blank, normalize_header, parse_date, parse_number, safe_str

logger = structlog.get_logger(__name__)

ImportRow = dict[str, Union[str, int, float, None]]


def match_field(header_key: str, schema: ImportSchema) -> Optional[FieldSpec]:
    """
    Find the field a normalized header feeds.

    Exact aliases across every field win over any contains pattern;
    contains patterns are tried in field declaration order.
    """
    if not header_key:
        return None
    for spec in schema.fields:
        if header_key in spec.aliases:
            return spec
    for spec in schema.fields:
        if any(pattern in header_key for pattern in spec.contains):
            return spec
    return None


def coerce(value: Any, kind: FieldKind) -> Any:
    """Coerce a cell to its field kind. Returns None for absent values."""
    if is_blank(value):
        return None
    if kind == FieldKind.NUMBER:
        return parse_number(value)
    if kind == FieldKind.DATE:
        return parse_date(value)
    return safe_str(value)


class RowNormalizer:
    """
    Normalizes raw rows for one or more import targets.

    Header lookups are cached per (target, raw header).
    """

    def __init__(self):
        self._header_cache: dict[tuple[ImportTarget, str], Optional[FieldSpec]] = {}

    def _field_for(self, header: Any, schema: ImportSchema) -> Optional[FieldSpec]:
        raw = "" if header is None else str(header)
        cache_key = (schema.target, raw)
        if cache_key not in self._header_cache:
            self._header_cache[cache_key] = match_field(normalize_header(raw), schema)
        return self._header_cache[cache_key]

    def normalize(
        self,
        raw_row: Mapping[Any, Any],
        target: Union[ImportTarget, str],
        row_index: Optional[int] = None
    ) -> Optional[ImportRow]:
        """
        Normalize one raw row.

        Args:
            raw_row: Header -> cell mapping for a single data row
            target: Import target (enum or frontend key)
            row_index: 0-based data row index, stored on targets that keep row order

        Returns:
            Canonical field -> value, or None when every recognized field is empty
        """
        schema = get_import_schema(target)
        row: ImportRow = {}

        for header, value in raw_row.items():
            spec = self._field_for(header, schema)
            if spec is None or row.get(spec.name) is not None:
                continue
            coerced = coerce(value, spec.kind)
            if coerced is not None:
                row[spec.name] = coerced

        if not row:
            return None

        if schema.row_index_field and row_index is not None:
            row[schema.row_index_field] = row_index

        return row

    def normalize_rows(
        self,
        raw_rows: list[Mapping[Any, Any]],
        target: Union[ImportTarget, str]
    ) -> list[tuple[int, ImportRow]]:
        """
        Normalize many rows, dropping empty ones.

        Returns:
            (1-based data row number, normalized row) pairs
        """
        normalized = []
        for index, raw_row in enumerate(raw_rows):
            row = self.normalize(raw_row, target, row_index=index)
            if row is not None:
                normalized.append((index + 1, row))

        logger.info(
            "rows_normalized",
            target=ImportTarget(target).value,
            total=len(raw_rows),
            kept=len(normalized)
        )
        return normalized


# Singleton instance for convenience
_row_normalizer: Optional[RowNormalizer] = None

def get_row_normalizer() -> RowNormalizer:
    """Get or create RowNormalizer instance."""
    global _row_normalizer
    if _row_normalizer is None:
        _row_normalizer = RowNormalizer()
    return _row_normalizer
