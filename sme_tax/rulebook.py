"""
Versioned tax rulebooks keyed by (tax year, jurisdiction).

Handles:
- Loading rulebook JSON documents by naming convention
- Process-lifetime caching with a load-once guard
- Rule lookup, constant and expression evaluation
- Caps and rounding, with reconciliation rows carrying citations
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import structlog

from sme_tax.bands import TaxBand, validate_bands
from sme_tax.errors import ConfigurationError, FormulaEvaluationError, rulebook_missing
from sme_tax.formula import FormulaEvaluator, Number, apply_rounding, to_decimal
from sme_tax.reconciliation import ReconciliationTrail

logger = structlog.get_logger(__name__)

RULE_TYPES = frozenset({"constant", "expression", "progressive_bands", "min_tax"})

DEFAULT_RULES_DIR = Path(__file__).resolve().parent / "data" / "rules"

ZERO = Decimal("0")


@dataclass(frozen=True)
class LegalCitation:
    """A statutory provision that a rule implements."""

    id: str
    law: str
    section: str
    text: str = ""
    document_url: Optional[str] = None


@dataclass(frozen=True)
class RuleBookMetadata:
    tax_year: int
    jurisdiction: str
    version: str
    effective_date: date
    expiry_date: Optional[date] = None
    legal_reference: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax_year": self.tax_year,
            "jurisdiction": self.jurisdiction,
            "version": self.version,
            "effective_date": self.effective_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "legal_reference": self.legal_reference,
        }


@dataclass(frozen=True)
class RuleCaps:
    """Bounds applied to an evaluated rule value."""

    max_amount: Optional[Decimal] = None
    min_amount: Optional[Decimal] = None
    max_percentage_of: Optional[str] = None  # variable name
    max_percentage: Optional[Decimal] = None

    def apply(self, value: Decimal, variables: Mapping[str, Number]) -> Decimal:
        if self.max_percentage_of and self.max_percentage is not None:
            if self.max_percentage_of not in variables:
                raise FormulaEvaluationError(
                    f"Cap base '{self.max_percentage_of}' not supplied"
                )
            ceiling = to_decimal(variables[self.max_percentage_of]) * self.max_percentage
            value = min(value, ceiling)
        if self.max_amount is not None:
            value = min(value, self.max_amount)
        if self.min_amount is not None:
            value = max(value, self.min_amount)
        return value


@dataclass(frozen=True)
class TaxRule:
    key: str
    type: str
    formula: str = ""
    description: str = ""
    citation_id: Optional[str] = None
    rounding: Optional[str] = None
    caps: Optional[RuleCaps] = None
    bands: tuple[TaxBand, ...] = ()


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _parse_rule(key: str, data: Mapping[str, Any]) -> TaxRule:
    rule_type = data.get("type")
    if rule_type not in RULE_TYPES:
        raise ConfigurationError(f"Rule {key} has unknown type {rule_type!r}")

    caps = None
    if data.get("caps"):
        raw = data["caps"]
        caps = RuleCaps(
            max_amount=_optional_decimal(raw.get("max_amount")),
            min_amount=_optional_decimal(raw.get("min_amount")),
            max_percentage_of=raw.get("max_percentage_of"),
            max_percentage=_optional_decimal(raw.get("max_percentage")),
        )

    bands = tuple(TaxBand.from_dict(b) for b in data.get("bands", []))
    if rule_type == "progressive_bands":
        if not bands:
            raise ConfigurationError(f"Rule {key} declares no bands")
        validate_bands(bands)
    elif not str(data.get("formula", "")).strip():
        raise ConfigurationError(f"Rule {key} has no formula")

    return TaxRule(
        key=key,
        type=rule_type,
        formula=str(data.get("formula", "")),
        description=data.get("description", ""),
        citation_id=data.get("citation_id"),
        rounding=data.get("rounding"),
        caps=caps,
        bands=bands,
    )


@dataclass(frozen=True)
class TaxRuleBook:
    """An immutable set of rules for one tax year and jurisdiction."""

    metadata: RuleBookMetadata
    citations: Mapping[str, LegalCitation] = field(default_factory=dict)
    rules: Mapping[str, TaxRule] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaxRuleBook":
        meta = data["metadata"]
        metadata = RuleBookMetadata(
            tax_year=int(meta["tax_year"]),
            jurisdiction=str(meta["jurisdiction"]),
            version=str(meta["version"]),
            effective_date=date.fromisoformat(meta["effective_date"]),
            expiry_date=(
                date.fromisoformat(meta["expiry_date"])
                if meta.get("expiry_date")
                else None
            ),
            legal_reference=meta.get("legal_reference"),
        )
        citations = {
            c["id"]: LegalCitation(
                id=c["id"],
                law=c["law"],
                section=c["section"],
                text=c.get("text", ""),
                document_url=c.get("document_url"),
            )
            for c in data.get("citations", [])
        }
        rules = {key: _parse_rule(key, raw) for key, raw in data["rules"].items()}

        for rule in rules.values():
            if rule.citation_id and rule.citation_id not in citations:
                raise ConfigurationError(
                    f"Rule {rule.key} cites unknown citation {rule.citation_id}"
                )

        return cls(
            metadata=metadata,
            citations=MappingProxyType(citations),
            rules=MappingProxyType(rules),
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def rule(self, key: str) -> TaxRule:
        try:
            return self.rules[key]
        except KeyError:
            raise ConfigurationError(
                f"Rule {key} not defined in {self.metadata.jurisdiction} "
                f"{self.metadata.tax_year} rulebook"
            ) from None

    def has_rule(self, key: str) -> bool:
        return key in self.rules

    def citation(self, citation_id: Optional[str]) -> Optional[LegalCitation]:
        if citation_id is None:
            return None
        return self.citations.get(citation_id)

    def citation_for(self, key: str) -> Optional[str]:
        """Return the citation id behind a rule."""
        return self.rule(key).citation_id

    def bands(self, key: str) -> tuple[TaxBand, ...]:
        rule = self.rule(key)
        if rule.type != "progressive_bands":
            raise ConfigurationError(f"Rule {key} is not a progressive_bands rule")
        return rule.bands

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def constant(self, key: str) -> Decimal:
        """Evaluate a rule that needs no variables (rates, thresholds)."""
        return self.evaluate(key, {}, strict=True)

    def evaluate(
        self,
        key: str,
        variables: Mapping[str, Number],
        trail: Optional[ReconciliationTrail] = None,
        step_id: Optional[str] = None,
        label: Optional[str] = None,
        strict: bool = False,
    ) -> Decimal:
        """
        Evaluate a rule, apply its caps and rounding, and record the step.

        A formula that cannot be evaluated yields zero with the failure
        noted on the reconciliation row, unless ``strict`` is set.
        """
        rule = self.rule(key)
        if rule.type == "progressive_bands":
            raise ConfigurationError(f"Rule {key} must be applied as bands")

        notes = None
        try:
            value = FormulaEvaluator(variables).evaluate(rule.formula)
            if rule.caps is not None:
                capped = rule.caps.apply(value, variables)
                if capped != value:
                    notes = f"Capped from {value}"
                value = capped
            value = apply_rounding(value, rule.rounding)
        except FormulaEvaluationError as e:
            if strict:
                raise
            logger.warning(
                "formula_evaluation_failed",
                rule_key=key,
                formula=rule.formula,
                error=str(e),
            )
            value = ZERO
            notes = f"Formula evaluation failed: {e}"
            if trail is not None:
                trail.warnings.append(f"{key}: {e}")

        if trail is not None:
            trail.record(
                step_id or key,
                label or rule.description or key,
                value,
                formula=rule.formula,
                rule_key=key,
                citation=rule.citation_id,
                notes=notes,
            )
        return value


class RuleBookStore:
    """
    Loads and caches rulebook documents from a directory.

    Documents are resolved as ``<jurisdiction>_<tax_year>.json``. A
    missing or corrupt document is a ConfigurationError; tax rules are
    never guessed.
    """

    def __init__(self, rules_dir: Union[str, Path, None] = None) -> None:
        self.rules_dir = Path(rules_dir) if rules_dir else DEFAULT_RULES_DIR
        self._cache: dict[tuple[str, int], TaxRuleBook] = {}
        self._lock = threading.Lock()
        self.documents_read = 0

    def path_for(self, tax_year: int, jurisdiction: str) -> Path:
        return self.rules_dir / f"{jurisdiction.lower()}_{int(tax_year)}.json"

    def load(self, tax_year: int, jurisdiction: str = "ng_federal") -> TaxRuleBook:
        """Return the rulebook for a year and jurisdiction, reading it once."""
        key = (jurisdiction.lower(), int(tax_year))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._cache.get(key)
            if cached is None:
                cached = self._read(*key)
                self._cache[key] = cached
        return cached

    def _read(self, jurisdiction: str, tax_year: int) -> TaxRuleBook:
        path = self.path_for(tax_year, jurisdiction)
        if not path.is_file():
            logger.error("rulebook_missing", path=str(path))
            raise ConfigurationError(rulebook_missing(jurisdiction, tax_year, str(path)))

        self.documents_read += 1
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            rulebook = TaxRuleBook.from_dict(data)
        except ConfigurationError:
            raise
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ConfigurationError(f"Corrupt rulebook {path.name}: {e}") from e

        meta = rulebook.metadata
        if meta.tax_year != tax_year or meta.jurisdiction.lower() != jurisdiction:
            raise ConfigurationError(
                f"Rulebook {path.name} declares {meta.jurisdiction} "
                f"{meta.tax_year}, expected {jurisdiction} {tax_year}"
            )

        logger.info(
            "rulebook_loaded",
            jurisdiction=jurisdiction,
            tax_year=tax_year,
            version=meta.version,
            rules=len(rulebook.rules),
        )
        return rulebook

    def available(self) -> list[tuple[str, int]]:
        """List (jurisdiction, tax_year) pairs present on disk."""
        found: list[tuple[str, int]] = []
        for path in sorted(self.rules_dir.glob("*_*.json")):
            jurisdiction, _, year = path.stem.rpartition("_")
            if year.isdigit():
                found.append((jurisdiction, int(year)))
        return found

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


@lru_cache
def get_store(rules_dir: Optional[str] = None) -> RuleBookStore:
    """Shared store per rules directory, cached for the process lifetime."""
    return RuleBookStore(rules_dir)
