"""
Bank transaction classification.

Handles:
- Priority-ordered pattern table (first match wins)
- Sign-based fallback for unmatched narrations
- Optional AI classifier consulted below a confidence threshold,
  bounded by a timeout with the rule result as the fallback
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol, Sequence

import structlog

from sme_tax.accounts import ChartOfAccounts
from sme_tax.config import get_settings

logger = structlog.get_logger(__name__)


class FlowType(Enum):
    INCOME = "income"
    EXPENSE = "expense"
    ASSET = "asset"  # capital purchase
    LIABILITY = "liability"  # borrowing or repayment
    EQUITY = "equity"  # owner investment or drawing
    TRANSFER = "transfer"  # movement between own accounts


# Direction of the bank movement a flow type implies when a rule names none
_DEFAULT_DIRECTION = {
    FlowType.INCOME: "credit",
    FlowType.EXPENSE: "debit",
    FlowType.ASSET: "debit",
}


def direction_of(amount: Decimal) -> str:
    return "credit" if amount >= 0 else "debit"


def fits_direction(flow_type: FlowType, amount: Decimal) -> bool:
    """Income must arrive as money in and expenses leave as money out."""
    if flow_type == FlowType.INCOME:
        return amount > 0
    if flow_type == FlowType.EXPENSE:
        return amount < 0
    return True


@dataclass(frozen=True)
class ClassificationRule:
    """One row of the priority table."""

    pattern: str
    category: str
    flow_type: FlowType
    account_code: str
    confidence: float = 0.85
    direction: Optional[str] = None  # credit, debit or any; defaults by flow type

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.direction is None:
            object.__setattr__(self, "direction", _DEFAULT_DIRECTION.get(self.flow_type, "any"))
        elif self.direction not in ("credit", "debit", "any"):
            raise ValueError(f"direction must be credit, debit or any, got {self.direction!r}")
        object.__setattr__(self, "_regex", re.compile(self.pattern, re.IGNORECASE))

    def applies_to(self, amount: Decimal) -> bool:
        return self.direction == "any" or self.direction == direction_of(amount)

    def matches(self, text: str) -> bool:
        return self._regex.search(text) is not None


@dataclass(frozen=True)
class Classification:
    """Category, flow type and target account for one transaction."""

    category: str
    flow_type: FlowType
    account_code: str
    confidence: float
    source: str = "rule"  # rule, ai, hybrid, default
    matched_pattern: Optional[str] = None


# ---------------------------------------------------------------------------
# Priority table. Order is significant: specific patterns precede the
# generic ones that would also match them.
# ---------------------------------------------------------------------------

CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    # Financing
    ClassificationRule(r"\bloan\s+(disburse|received|credit|proceeds)", "loan-received", FlowType.LIABILITY, "2500", 0.9, "credit"),
    ClassificationRule(r"\bloan\s+(repay|installment|instalment)|\brepayment\b", "loan-repayment", FlowType.LIABILITY, "2500", 0.9, "debit"),
    ClassificationRule(r"\b(capital\s+injection|owner.?s?\s+(investment|contribution)|share\s+capital)\b", "owner-investment", FlowType.EQUITY, "3000", 0.9, "credit"),
    ClassificationRule(r"\b(drawings?|dividend\s+paid)\b", "owner-drawings", FlowType.EQUITY, "3400", 0.85, "debit"),
    # Payroll
    ClassificationRule(r"\b(salary|salaries|payroll|wages?)\b", "salary-expense", FlowType.EXPENSE, "5500", 0.9),
    ClassificationRule(r"\b(pension|pfa|rsa)\b", "pension-expense", FlowType.EXPENSE, "5520", 0.9),
    ClassificationRule(r"\bnsitf\b", "nsitf-expense", FlowType.EXPENSE, "5530", 0.9),
    ClassificationRule(r"\bitf\b", "itf-expense", FlowType.EXPENSE, "5540", 0.9),
    # Income
    ClassificationRule(r"\b(invoice|payment\s+received|inward\s+transfer|sales?\s+proceeds|pos\s+settlement)\b", "sales-income", FlowType.INCOME, "4000", 0.9),
    ClassificationRule(r"\b(consulting|service)\s+fee\s+received\b", "service-income", FlowType.INCOME, "4010", 0.85),
    ClassificationRule(r"\bdividend\b", "dividend-income", FlowType.INCOME, "4210", 0.85),
    ClassificationRule(r"\binterest\s+(earned|credit|income)\b", "interest-income", FlowType.INCOME, "4200", 0.85),
    ClassificationRule(r"\brent(al)?\s+(income|received)\b", "rental-income", FlowType.INCOME, "4220", 0.85),
    ClassificationRule(r"\brefund\b", "refund", FlowType.INCOME, "4500", 0.7),
    # Bank and tax
    ClassificationRule(r"\b(bank\s+charges?|sms\s+alert|maintenance\s+fee|stamp\s+duty|commission)\b", "bank-charges", FlowType.EXPENSE, "6030", 0.9),
    ClassificationRule(r"\binterest\s+(charged|paid|on\s+loan)\b", "interest-expense", FlowType.EXPENSE, "6500", 0.85),
    ClassificationRule(r"\b(firs|cit|company\s+income\s+tax|tax\s+payment)\b", "income-tax", FlowType.EXPENSE, "7000", 0.85),
    # Operating expenses
    ClassificationRule(r"\b(nepa|phcn|ikeja\s+electric|ekedc|electricity|water\s+bill|diesel|generator)\b", "utilities", FlowType.EXPENSE, "5610", 0.85),
    ClassificationRule(r"\b(mtn|airtel|glo|9mobile|internet|data\s+bundle|airtime)\b", "telecoms", FlowType.EXPENSE, "5620", 0.85),
    ClassificationRule(r"\b(rent|lease)\b", "rent-expense", FlowType.EXPENSE, "5600", 0.85),
    ClassificationRule(r"\b(uber|bolt|fuel|petrol|transport|logistics|haulage)\b", "transport", FlowType.EXPENSE, "6070", 0.8),
    ClassificationRule(r"\b(legal|audit|accountant|consultant|professional\s+fees?)\b", "professional-fees", FlowType.EXPENSE, "5900", 0.85),
    ClassificationRule(r"\binsurance\b", "insurance", FlowType.EXPENSE, "5800", 0.85),
    ClassificationRule(r"\b(flight|hotel|travel)\b", "travel", FlowType.EXPENSE, "6010", 0.8),
    ClassificationRule(r"\b(advert|marketing|facebook\s+ads|google\s+ads|promotion)\b", "advertising", FlowType.EXPENSE, "6000", 0.8),
    ClassificationRule(r"\b(training|course|workshop)\b", "training", FlowType.EXPENSE, "6020", 0.8),
    ClassificationRule(r"\b(repair|maintenance|servicing)\b", "repairs", FlowType.EXPENSE, "5810", 0.8),
    ClassificationRule(r"\b(stationery|office\s+supplies|subscription|software)\b", "office-supplies", FlowType.EXPENSE, "5820", 0.75),
    ClassificationRule(r"\b(stock|inventory|goods\s+purchased|raw\s+materials?)\b", "cost-of-sales", FlowType.EXPENSE, "5000", 0.8),
    # Capital purchases
    ClassificationRule(r"\b(laptop|computer|printer|equipment)\b", "equipment-purchase", FlowType.ASSET, "1540", 0.8),
    ClassificationRule(r"\b(vehicle|car\s+purchase|motor)\b", "vehicle-purchase", FlowType.ASSET, "1530", 0.8),
    ClassificationRule(r"\b(furniture|chairs?|desks?)\b", "furniture-purchase", FlowType.ASSET, "1550", 0.8),
    # Own-account movements
    ClassificationRule(r"\b(transfer\s+to\s+savings|own\s+account)\b", "internal-transfer", FlowType.TRANSFER, "1030", 0.7),
)

DEFAULT_INCOME = ClassificationRule(r".", "other-income", FlowType.INCOME, "4500", 0.3)
DEFAULT_EXPENSE = ClassificationRule(r".", "other-expense", FlowType.EXPENSE, "5820", 0.3)


class TransactionClassifier:
    """
    Rule-based classifier over a priority-ordered pattern table.

    The first rule whose pattern matches and whose direction fits the
    sign of the amount wins; unmatched transactions fall back to
    other-income or other-expense by that sign.
    """

    def __init__(self, rules: Optional[Sequence[ClassificationRule]] = None) -> None:
        self.rules: tuple[ClassificationRule, ...] = tuple(rules or CLASSIFICATION_RULES)

    def classify(
        self,
        description: str,
        amount: Decimal,
        narration: Optional[str] = None,
    ) -> Classification:
        text = " ".join(part for part in (description, narration) if part)
        for rule in self.rules:
            if rule.applies_to(amount) and rule.matches(text):
                return Classification(
                    category=rule.category,
                    flow_type=rule.flow_type,
                    account_code=rule.account_code,
                    confidence=rule.confidence,
                    source="rule",
                    matched_pattern=rule.pattern,
                )

        fallback = DEFAULT_INCOME if amount >= 0 else DEFAULT_EXPENSE
        logger.debug("classification_fallback", description=description, category=fallback.category)
        return Classification(
            category=fallback.category,
            flow_type=fallback.flow_type,
            account_code=fallback.account_code,
            confidence=fallback.confidence,
            source="default",
        )


class AIClassifier(Protocol):
    """Async collaborator that proposes a classification for a transaction."""

    async def classify(
        self, description: str, amount: Decimal, narration: Optional[str] = None
    ) -> Optional[Classification]: ...


class ClassificationChain:
    """
    Rule classifier first, AI classifier second.

    The AI collaborator is consulted only when the rule confidence is
    below ``threshold``. A timeout, an exception, an answer naming an
    account outside the chart, or a flow type the direction of the money
    rules out leaves the rule result in place. Threshold and timeout
    default to the configured settings.
    """

    def __init__(
        self,
        classifier: Optional[TransactionClassifier] = None,
        ai_classifier: Optional[AIClassifier] = None,
        threshold: Optional[float] = None,
        timeout: Optional[float] = None,
        chart: Optional[ChartOfAccounts] = None,
    ) -> None:
        self.classifier = classifier or TransactionClassifier()
        self.ai_classifier = ai_classifier
        settings = get_settings()
        self.threshold = settings.ai_confidence_threshold if threshold is None else threshold
        self.timeout = settings.ai_timeout_seconds if timeout is None else timeout
        self.chart = chart or ChartOfAccounts()

    def classify_rules(
        self, description: str, amount: Decimal, narration: Optional[str] = None
    ) -> Classification:
        return self.classifier.classify(description, amount, narration)

    async def classify(
        self, description: str, amount: Decimal, narration: Optional[str] = None
    ) -> Classification:
        result = self.classify_rules(description, amount, narration)
        if self.ai_classifier is None or result.confidence >= self.threshold:
            return result

        try:
            proposal = await asyncio.wait_for(
                self.ai_classifier.classify(description, amount, narration),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("ai_classification_timeout", description=description, timeout=self.timeout)
            return result
        except Exception as e:
            logger.warning("ai_classification_failed", description=description, error=str(e))
            return result

        if proposal is None:
            return result
        if proposal.account_code not in self.chart:
            logger.warning(
                "ai_classification_rejected",
                description=description,
                account_code=proposal.account_code,
            )
            return result
        if not fits_direction(proposal.flow_type, amount):
            logger.warning(
                "ai_classification_rejected",
                description=description,
                flow_type=proposal.flow_type.value,
                amount=str(amount),
            )
            return result
        if proposal.confidence <= result.confidence:
            return result

        source = "hybrid" if proposal.category == result.category else "ai"
        return replace(proposal, source=source)
