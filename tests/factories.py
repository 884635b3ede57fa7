"""
Test data factories.

Uses factory pattern to generate consistent test data.
Records come back in the camelCase shape the import engine works with.
"""

from datetime import datetime
from typing import Optional


class ItemFactory:
    """
    Factory for creating test Item (spare part) data.

    Usage:
        # Create with defaults
        item = ItemFactory.create()

        # Create with overrides
        item = ItemFactory.create(id="IT-9", part_number="PN-55")

        # Create multiple
        items = ItemFactory.create_batch(5)
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        name: Optional[str] = None,
        full_name: Optional[str] = None,
        part_number: Optional[str] = None,
        model_no: str = "",
        stock_quantity: int = 0,
        unit: str = "pcs",
        category: str = "General"
    ) -> dict:
        """
        Create a single item dict.

        Args:
            id: Item code (auto-generated if not provided)
            name: Short description
            full_name: Long description
            part_number: Manufacturer part number
            model_no: Model the part belongs to
            stock_quantity: Units on hand
            unit: Unit of measure
            category: Item category

        Returns:
            Item dict in camelCase
        """
        counter = cls._next_counter()
        return {
            "id": id or f"IT-{1000 + counter}",
            "name": name or f"Test Item {counter}",
            "fullName": full_name,
            "partNumber": part_number,
            "modelNo": model_no,
            "stockQuantity": stock_quantity,
            "unit": unit,
            "category": category,
        }

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list:
        """Create multiple items."""
        return [cls.create(**overrides) for _ in range(count)]

    @classmethod
    def reset_counter(cls):
        """Reset the counter (call in test setup if needed)."""
        cls._counter = 0


class MachineFactory:
    """Factory for creating test Machine (asset) data."""

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        category: str = "Loader",
        chassis_no: Optional[str] = None,
        status: str = "Working",
        machine_local_no: str = "",
        location_id: Optional[str] = None,
        **extra
    ) -> dict:
        """Create a single machine dict."""
        counter = cls._next_counter()
        return {
            "id": id or f"M-{counter}",
            "category": category,
            "chassisNo": chassis_no or f"CH-{counter:04d}",
            "status": status,
            "machineLocalNo": machine_local_no,
            "locationId": location_id,
            **extra,
        }


class LocationFactory:
    """Factory for creating test Location data."""

    _counter = 0

    @classmethod
    def create(cls, id: Optional[str] = None, name: Optional[str] = None) -> dict:
        cls._counter += 1
        return {
            "id": id or f"L-{cls._counter}",
            "name": name or f"Location {cls._counter}",
        }


class IssueRequestFactory:
    """Factory for stored issue request (history) records."""

    @classmethod
    def create(
        cls,
        id: str = "IMP-1700000000000-abcde",
        item_id: str = "IT-9",
        location_id: str = "L-1",
        machine_id: str = "Unknown",
        quantity: int = 12,
        timestamp: Optional[str] = None,
        **extra
    ) -> dict:
        return {
            "id": id,
            "timestamp": timestamp or datetime(2024, 1, 5, 10, 30).isoformat(),
            "itemId": item_id,
            "itemName": "Bolt",
            "locationId": location_id,
            "machineId": machine_id,
            "machineName": "Unknown",
            "quantity": quantity,
            "unit": "pcs",
            "status": "Completed",
            "maintenancePlan": "",
            **extra,
        }


class BomRecordFactory:
    """Factory for stored bill-of-materials lines."""

    @classmethod
    def create(
        cls,
        id: str = "BOM-legacy-001",
        machine_category: str = "Excavator",
        model_no: str = "X100",
        item_id: str = "IT-9",
        quantity: int = 2,
        **extra
    ) -> dict:
        return {
            "id": id,
            "machineCategory": machine_category,
            "modelNo": model_no,
            "itemId": item_id,
            "quantity": quantity,
            **extra,
        }
