"""
Reconciliation trail for tax computations.

Every figure in a TaxResult is backed by a row naming the step, the
rule it came from, and the legal citation behind that rule.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional


@dataclass(frozen=True)
class ReconciliationRow:
    """One auditable step of a computation."""

    step_id: str
    label: str
    value: Decimal
    formula: Optional[str] = None
    rule_key: Optional[str] = None
    citation: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ReconciliationTrail:
    """Append-only list of reconciliation rows for one computation."""

    def __init__(self) -> None:
        self._rows: list[ReconciliationRow] = []
        self.warnings: list[str] = []  # rows degraded to zero

    def add(self, row: ReconciliationRow) -> ReconciliationRow:
        self._rows.append(row)
        return row

    def record(
        self,
        step_id: str,
        label: str,
        value: Decimal,
        **details: Optional[str],
    ) -> ReconciliationRow:
        """Build a row from its fields and append it."""
        return self.add(ReconciliationRow(step_id, label, value, **details))

    def extend(self, rows: Iterable[ReconciliationRow]) -> None:
        self._rows.extend(rows)

    def find(self, step_id: str) -> Optional[ReconciliationRow]:
        """Return the first row with the given step id."""
        for row in self._rows:
            if row.step_id == step_id:
                return row
        return None

    @property
    def rows(self) -> tuple[ReconciliationRow, ...]:
        return tuple(self._rows)

    def __iter__(self) -> Iterator[ReconciliationRow]:
        return iter(tuple(self._rows))

    def __len__(self) -> int:
        return len(self._rows)
