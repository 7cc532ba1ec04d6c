"""HP-split quantities.

Every quantity in the supply chain is a total plus three pump variants
(3 HP, 5 HP and 7.5 HP). The variants must always add up to the total and
none of them may be negative.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import WorkflowValidationError

BUCKETS = ("hp_3", "hp_5", "hp_7_5")
BUCKET_LABELS = {
    "total": "Total",
    "hp_3": "3 HP",
    "hp_5": "5 HP",
    "hp_7_5": "7.5 HP",
}


def field_phrase(field: str, noun: str) -> str:
    """``"Received quantity"`` for the total, ``"5 HP received quantity"`` for a bucket."""
    if field == "total":
        return noun[:1].upper() + noun[1:]
    return f"{BUCKET_LABELS[field]} {noun}"


@dataclass(frozen=True)
class HPQuantity:
    total: int = 0
    hp_3: int = 0
    hp_5: int = 0
    hp_7_5: int = 0

    @classmethod
    def zero(cls) -> "HPQuantity":
        return cls()

    @property
    def hp_sum(self) -> int:
        return self.hp_3 + self.hp_5 + self.hp_7_5

    def parts(self):
        return (
            ("total", self.total),
            ("hp_3", self.hp_3),
            ("hp_5", self.hp_5),
            ("hp_7_5", self.hp_7_5),
        )

    def as_dict(self) -> dict:
        return dict(self.parts())

    def __add__(self, other: "HPQuantity") -> "HPQuantity":
        return HPQuantity(
            self.total + other.total,
            self.hp_3 + other.hp_3,
            self.hp_5 + other.hp_5,
            self.hp_7_5 + other.hp_7_5,
        )

    def __sub__(self, other: "HPQuantity") -> "HPQuantity":
        return HPQuantity(
            self.total - other.total,
            self.hp_3 - other.hp_3,
            self.hp_5 - other.hp_5,
            self.hp_7_5 - other.hp_7_5,
        )

    @property
    def is_zero(self) -> bool:
        return all(value == 0 for _, value in self.parts())

    def covers(self, other: "HPQuantity") -> bool:
        """True when this quantity is at least ``other`` in the total and every bucket."""
        mine = self.as_dict()
        return all(mine[field] >= value for field, value in other.parts())

    def first_excess(self, available: "HPQuantity"):
        """Return ``(field, requested, available)`` for the first part above ``available``."""
        limits = available.as_dict()
        for field, value in self.parts():
            if value > limits[field]:
                return field, value, limits[field]
        return None

    def check(self, total_label: str = "total quantity", require_units: bool = True) -> "HPQuantity":
        """Validate the quantity and return it unchanged.

        ``total_label`` names the total in messages, e.g. ``"total quantity
        assigned"``. With ``require_units`` the total must move at least one
        unit.
        """
        for field, value in self.parts():
            if isinstance(value, bool) or not isinstance(value, int):
                raise WorkflowValidationError(
                    f"{field_phrase(field, 'quantity')} must be a whole number, got {value!r}"
                )
            if value < 0:
                raise WorkflowValidationError(
                    f"{field_phrase(field, 'quantity')} cannot be negative ({value})"
                )
        if self.hp_sum != self.total:
            raise WorkflowValidationError(
                f"Sum of HP quantities ({self.hp_sum}) must equal {total_label} ({self.total})"
            )
        if require_units and self.total <= 0:
            raise WorkflowValidationError(
                f"{field_phrase('total', total_label)} must be greater than 0"
            )
        return self

    def __str__(self):
        return (
            f"{self.total} (3 HP: {self.hp_3}, 5 HP: {self.hp_5}, 7.5 HP: {self.hp_7_5})"
        )
