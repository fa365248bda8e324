"""
Progressive tax band apportionment.

Walks an ordered band sequence, taxing only the portion of the base
that falls inside each band's width. The final band may be declared
unbounded (threshold None); a finite sequence that runs out leaves
the excess reported as untaxed rather than guessed at.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from sme_tax.errors import ValidationError
from sme_tax.reconciliation import ReconciliationRow

ZERO = Decimal("0")


@dataclass(frozen=True)
class TaxBand:
    """A rate tier applied to the slice of income inside its width."""

    label: str
    threshold: Optional[Decimal]  # band width; None = unbounded top band
    rate: Decimal

    @property
    def is_unbounded(self) -> bool:
        return self.threshold is None

    @classmethod
    def from_dict(cls, data: dict) -> "TaxBand":
        threshold = data.get("threshold")
        return cls(
            label=str(data["label"]),
            threshold=None if threshold is None else Decimal(str(threshold)),
            rate=Decimal(str(data["rate"])),
        )


@dataclass(frozen=True)
class BandComputation:
    """Outcome of apportioning one base amount across bands."""

    total: Decimal
    rows: tuple[ReconciliationRow, ...]
    untaxed_remainder: Decimal = ZERO


def band_step_id(label: str) -> str:
    return "BAND_" + "_".join(label.split())


def validate_bands(bands: Sequence[TaxBand]) -> None:
    """Reject band sequences the calculator cannot apportion."""
    errors: dict[str, str] = {}
    for i, band in enumerate(bands):
        if band.is_unbounded and i != len(bands) - 1:
            errors[f"bands[{i}].threshold"] = "only the last band may be unbounded"
        if band.threshold is not None and band.threshold <= 0:
            errors[f"bands[{i}].threshold"] = "band width must be positive"
        if band.rate < 0:
            errors[f"bands[{i}].rate"] = "rate cannot be negative"
    if errors:
        raise ValidationError("Invalid tax band sequence", errors)


class ProgressiveBandCalculator:
    """Apportions a base amount across ordered tax bands."""

    def calculate(
        self,
        amount: Decimal,
        bands: Sequence[TaxBand],
        rule_key: Optional[str] = None,
        citation: Optional[str] = None,
    ) -> BandComputation:
        """
        Tax ``amount`` band by band, lowest band first.

        Returns the total, one reconciliation row per band touched, and
        any amount left over when every finite band is exhausted.
        """
        if amount < 0:
            raise ValidationError(
                "Band base amount cannot be negative", {"amount": str(amount)}
            )
        validate_bands(bands)

        remaining = amount
        total = ZERO
        rows: list[ReconciliationRow] = []

        for band in bands:
            if remaining <= 0:
                break
            in_band = remaining if band.is_unbounded else min(remaining, band.threshold)
            tax = in_band * band.rate
            total += tax
            rows.append(
                ReconciliationRow(
                    step_id=band_step_id(band.label),
                    label=f"Tax at {band.label} ({float(band.rate * 100):g}%)",
                    value=tax,
                    formula=f"{in_band} * {band.rate}",
                    rule_key=rule_key,
                    citation=citation,
                    notes=f"Income in band: {in_band}",
                )
            )
            remaining -= in_band

        return BandComputation(
            total=total,
            rows=tuple(rows),
            untaxed_remainder=max(remaining, ZERO),
        )

    @staticmethod
    def closed_form_total(amount: Decimal, bands: Sequence[TaxBand]) -> Decimal:
        """Sum of per-band contributions computed from cumulative band edges."""
        total = ZERO
        lower = ZERO
        for band in bands:
            if band.is_unbounded:
                total += max(amount - lower, ZERO) * band.rate
                break
            upper = lower + band.threshold
            total += max(min(amount, upper) - lower, ZERO) * band.rate
            lower = upper
        return total
