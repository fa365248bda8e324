"""Tests for transaction classification and the AI fallback chain."""

import asyncio
from decimal import Decimal
from typing import Optional

import pytest

from sme_tax.classifier import (
    Classification,
    ClassificationChain,
    ClassificationRule,
    FlowType,
    TransactionClassifier,
)
from sme_tax.config import get_settings


@pytest.fixture
def classifier() -> TransactionClassifier:
    return TransactionClassifier()


class _StubAI:
    """AI collaborator returning a fixed proposal, optionally after a delay."""

    def __init__(self, proposal: Optional[Classification] = None, delay: float = 0.0, error: Exception | None = None):
        self.proposal = proposal
        self.delay = delay
        self.error = error
        self.calls = 0

    async def classify(self, description, amount, narration=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.proposal


def _proposal(code: str = "5600", category: str = "rent-expense", confidence: float = 0.9) -> Classification:
    return Classification(category, FlowType.EXPENSE, code, confidence, source="ai")


# ── Rule classifier ───────────────────────────────────────────────────


@pytest.mark.parametrize(
    "description, amount, category, account",
    [
        ("Salary payment", "-150000", "salary-expense", "5500"),
        ("Invoice payment received", "500000", "sales-income", "4000"),
        ("Ikeja Electric prepaid token", "-20000", "utilities", "5610"),
        ("MTN airtime", "-1000", "telecoms", "5620"),
        ("Loan disbursement from bank", "1000000", "loan-received", "2500"),
        ("Purchase of laptop", "-450000", "equipment-purchase", "1540"),
        ("Bank charges", "-52.50", "bank-charges", "6030"),
    ],
)
def test_rule_matches(classifier, description, amount, category, account):
    result = classifier.classify(description, Decimal(amount))
    assert result.category == category
    assert result.account_code == account
    assert result.source == "rule"


def test_first_matching_rule_wins(classifier: TransactionClassifier):
    # "pension" would also match, but payroll precedes it in the table
    result = classifier.classify("Salary and pension for March", Decimal("-100"))
    assert result.category == "salary-expense"


def test_narration_is_searched(classifier: TransactionClassifier):
    result = classifier.classify("Transfer", Decimal("-80000"), narration="Office rent Q1")
    assert result.category == "rent-expense"


def test_unmatched_falls_back_by_sign(classifier: TransactionClassifier):
    money_in = classifier.classify("XYZ 12345", Decimal("100"))
    money_out = classifier.classify("XYZ 12345", Decimal("-100"))
    assert money_in.category == "other-income"
    assert money_in.flow_type == FlowType.INCOME
    assert money_out.category == "other-expense"
    assert money_out.source == "default"
    assert money_out.confidence < 0.5


def test_custom_rule_table():
    rules = [ClassificationRule(r"\bwidgets?\b", "widget-sales", FlowType.INCOME, "4000", 0.99)]
    result = TransactionClassifier(rules).classify("Widget order", Decimal("10"))
    assert result.category == "widget-sales"
    assert result.matched_pattern == r"\bwidgets?\b"


def test_rule_confidence_must_be_a_probability():
    with pytest.raises(ValueError):
        ClassificationRule("x", "x", FlowType.INCOME, "4000", 1.5)


@pytest.mark.parametrize(
    "description, amount, category",
    [
        ("Payment of supplier invoice 332", "-200000", "other-expense"),
        ("Invoice payment received - Adeyemi Stores", "850000", "sales-income"),
        ("Refund to customer", "-15000", "other-expense"),
        ("Refund from supplier", "15000", "refund"),
        ("Loan repayment reversed by bank", "50000", "other-income"),
        ("Loan disbursement received", "5000000", "loan-received"),
    ],
)
def test_money_direction_constrains_rules(classifier, description, amount, category):
    assert classifier.classify(description, Decimal(amount)).category == category


def test_rule_direction_defaults_by_flow_type():
    assert ClassificationRule("x", "x", FlowType.INCOME, "4000").direction == "credit"
    assert ClassificationRule("x", "x", FlowType.ASSET, "1540").direction == "debit"
    assert ClassificationRule("x", "x", FlowType.TRANSFER, "1030").direction == "any"
    with pytest.raises(ValueError):
        ClassificationRule("x", "x", FlowType.EXPENSE, "5820", direction="sideways")


# ── AI chain ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_confident_rule_skips_ai():
    ai = _StubAI(_proposal())
    chain = ClassificationChain(ai_classifier=ai)
    result = await chain.classify("Salary payment", Decimal("-1000"))
    assert result.category == "salary-expense"
    assert ai.calls == 0


@pytest.mark.asyncio
async def test_low_confidence_consults_ai():
    ai = _StubAI(_proposal())
    chain = ClassificationChain(ai_classifier=ai)
    result = await chain.classify("Payment to Chidi", Decimal("-1000"))
    assert ai.calls == 1
    assert result.category == "rent-expense"
    assert result.source == "ai"


@pytest.mark.asyncio
async def test_ai_timeout_keeps_rule_result():
    chain = ClassificationChain(ai_classifier=_StubAI(_proposal(), delay=1.0), timeout=0.01)
    result = await chain.classify("Payment to Chidi", Decimal("-1000"))
    assert result.category == "other-expense"
    assert result.source == "default"


@pytest.mark.asyncio
async def test_ai_error_keeps_rule_result():
    chain = ClassificationChain(ai_classifier=_StubAI(error=RuntimeError("service down")))
    result = await chain.classify("Payment to Chidi", Decimal("-1000"))
    assert result.category == "other-expense"


@pytest.mark.asyncio
async def test_ai_unknown_account_rejected():
    chain = ClassificationChain(ai_classifier=_StubAI(_proposal(code="9999")))
    result = await chain.classify("Payment to Chidi", Decimal("-1000"))
    assert result.account_code == "5820"


@pytest.mark.asyncio
async def test_ai_agreeing_with_rule_is_hybrid():
    rule_result = TransactionClassifier().classify("Payment to Chidi", Decimal("-1000"))
    ai = _StubAI(_proposal(code=rule_result.account_code, category=rule_result.category))
    result = await ClassificationChain(ai_classifier=ai).classify("Payment to Chidi", Decimal("-1000"))
    assert result.source == "hybrid"
    assert result.confidence == 0.9


@pytest.mark.asyncio
async def test_ai_none_keeps_rule_result():
    chain = ClassificationChain(ai_classifier=_StubAI(None))
    result = await chain.classify("Payment to Chidi", Decimal("-1000"))
    assert result.source == "default"


@pytest.mark.asyncio
async def test_ai_income_proposal_on_money_out_rejected():
    proposal = Classification("sales-income", FlowType.INCOME, "4000", 0.95, source="ai")
    chain = ClassificationChain(ai_classifier=_StubAI(proposal))
    result = await chain.classify("Payment to Chidi", Decimal("-1000"))
    assert result.flow_type == FlowType.EXPENSE
    assert result.source == "default"


# ── Settings ──────────────────────────────────────────────────────────


@pytest.fixture
def ai_env(monkeypatch):
    monkeypatch.setenv("SME_TAX_AI_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("SME_TAX_AI_CONFIDENCE_THRESHOLD", "0.2")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_chain_reads_ai_settings(ai_env):
    chain = ClassificationChain()
    assert chain.timeout == 2.5
    assert chain.threshold == 0.2


@pytest.mark.asyncio
async def test_configured_threshold_skips_ai_for_fallback(ai_env):
    ai = _StubAI(_proposal())
    result = await ClassificationChain(ai_classifier=ai).classify("Payment to Chidi", Decimal("-1000"))
    assert ai.calls == 0
    assert result.category == "other-expense"


def test_explicit_arguments_override_settings(ai_env):
    chain = ClassificationChain(threshold=0.9, timeout=0.5)
    assert (chain.threshold, chain.timeout) == (0.9, 0.5)
