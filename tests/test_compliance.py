"""Tests for the ComplianceChecker."""

from datetime import date
from decimal import Decimal

import pytest

from sme_tax.compliance import (
    BusinessFacts,
    ComplianceChecker,
    CompliancePolicy,
    Severity,
    facts_from,
)
from sme_tax.errors import ComplianceViolationError, ValidationError
from sme_tax.statements import StatementDeriver

D = Decimal


@pytest.fixture
def checker() -> ComplianceChecker:
    return ComplianceChecker()


def _failed(checker: ComplianceChecker, facts) -> set[str]:
    return {r.rule_id for r in checker.check(facts) if not r.passed}


# ── Rules ─────────────────────────────────────────────────────────────


def test_compliant_small_business(checker: ComplianceChecker):
    assert _failed(checker, BusinessFacts(turnover=D("10000000"))) == set()


def test_results_in_rule_order(checker: ComplianceChecker):
    ids = [r.rule_id for r in checker.check(BusinessFacts())]
    assert ids == [
        "firs-vat-threshold",
        "firs-wht-deduction",
        "pencom-contribution",
        "itf-contribution",
        "nsitf-contribution",
        "cama-audit",
    ]


def test_vat_registration_threshold(checker: ComplianceChecker):
    assert "firs-vat-threshold" in _failed(checker, BusinessFacts(turnover=D("25000001")))
    assert "firs-vat-threshold" not in _failed(checker, BusinessFacts(turnover=D("25000000")))
    assert "firs-vat-threshold" not in _failed(
        checker, BusinessFacts(turnover=D("30000000"), is_vat_registered=True)
    )


def test_wht_deduction(checker: ComplianceChecker):
    assert "firs-wht-deduction" in _failed(checker, BusinessFacts(has_qualifying_payments=True))
    assert "firs-wht-deduction" not in _failed(
        checker, BusinessFacts(has_qualifying_payments=True, wht_deducted=True)
    )


def test_employer_contributions(checker: ComplianceChecker):
    failed = _failed(checker, BusinessFacts(employee_count=5))
    assert {"pencom-contribution", "itf-contribution", "nsitf-contribution"} <= failed

    facts = BusinessFacts(
        employee_count=5, pension_contributed=True, itf_contributed=True, nsitf_contributed=True
    )
    assert _failed(checker, facts) == set()


def test_itf_by_turnover(checker: ComplianceChecker):
    failed = _failed(checker, BusinessFacts(turnover=D("50000000"), is_vat_registered=True))
    assert failed == {"itf-contribution"}


def test_audit_threshold(checker: ComplianceChecker):
    facts = BusinessFacts(turnover=D("120000000"), is_vat_registered=True, itf_contributed=True)
    assert _failed(checker, facts) == {"cama-audit"}


def test_check_accepts_mapping(checker: ComplianceChecker):
    assert "firs-vat-threshold" in _failed(checker, {"turnover": "30000000", "employee_count": "0"})


def test_facts_from_mapping_reads_boolean_words():
    facts = BusinessFacts.from_mapping({"is_vat_registered": "false", "wht_deducted": "TRUE", "employee_count": "7"})
    assert facts.is_vat_registered is False
    assert facts.wht_deducted is True
    assert facts.employee_count == 7


def test_facts_from_mapping_rejects_unreadable_values():
    with pytest.raises(ValidationError) as exc:
        BusinessFacts.from_mapping({"turnover": "lots", "itf_contributed": "maybe"})
    assert set(exc.value.errors) == {"turnover", "itf_contributed"}


def test_failed_result_carries_recommendation(checker: ComplianceChecker):
    result = next(r for r in checker.check(BusinessFacts(turnover=D("30000000"))) if not r.passed)
    assert result.message == "VAT registration required"
    assert "Register for VAT" in result.recommendation
    assert result.to_dict()["severity"] == "error"


# ── Alerts and policy ─────────────────────────────────────────────────


def test_alerts_sorted_errors_first(checker: ComplianceChecker):
    alerts = checker.alerts(BusinessFacts(employee_count=6))
    severities = [a.severity for a in alerts]
    assert severities == sorted(severities, key=[Severity.ERROR, Severity.WARNING, Severity.INFO].index)
    assert severities[0] == Severity.ERROR


def test_alert_resolution(checker: ComplianceChecker):
    alert = checker.alerts(BusinessFacts(employee_count=1))[0]
    assert alert.resolved is False
    alert.resolve()
    assert alert.resolved is True


def test_strict_policy_raises_on_errors(checker: ComplianceChecker):
    results = checker.check(BusinessFacts(turnover=D("30000000")))
    with pytest.raises(ComplianceViolationError) as exc:
        checker.apply_policy(results, CompliancePolicy.STRICT)
    assert exc.value.rule_ids == ["firs-vat-threshold"]


def test_strict_policy_allows_warnings(checker: ComplianceChecker):
    results = checker.check(BusinessFacts(turnover=D("50000000"), is_vat_registered=True))
    alerts = checker.apply_policy(results, CompliancePolicy.STRICT)
    assert [a.rule_id for a in alerts] == ["itf-contribution"]


def test_off_policy_returns_nothing(checker: ComplianceChecker):
    results = checker.check(BusinessFacts(turnover=D("30000000")))
    assert checker.apply_policy(results, CompliancePolicy.OFF) == []


# ── Filing deadlines ──────────────────────────────────────────────────


def test_monthly_returns_due_on_21st(checker: ComplianceChecker):
    deadlines = checker.filing_deadlines(2024, as_of=date(2024, 1, 1))
    vat = [d for d in deadlines if d.tax_type == "VAT"]
    assert len(vat) == 12
    assert vat[0].period_end == date(2024, 1, 31)
    assert vat[0].due_date == date(2024, 2, 21)
    assert vat[1].period_end == date(2024, 2, 29)
    assert vat[-1].due_date == date(2025, 1, 21)


def test_income_tax_return_due_june_30(checker: ComplianceChecker):
    deadlines = checker.filing_deadlines(2024, is_company=False, vat_registered=False, as_of=date(2024, 1, 1))
    assert {d.tax_type for d in deadlines} == {"WHT", "PIT"}
    pit = next(d for d in deadlines if d.tax_type == "PIT")
    assert pit.due_date == date(2025, 6, 30)


def test_overdue_and_filed_status(checker: ComplianceChecker):
    deadlines = checker.filing_deadlines(
        2024, as_of=date(2024, 4, 1), filed=[("VAT", date(2024, 1, 31))]
    )
    jan_vat = next(d for d in deadlines if d.tax_type == "VAT" and d.period_end == date(2024, 1, 31))
    jan_wht = next(d for d in deadlines if d.tax_type == "WHT" and d.period_end == date(2024, 1, 31))
    assert jan_vat.status == "filed"
    assert jan_wht.is_overdue is True
    assert jan_wht.days_until_due == -40
    assert deadlines == sorted(deadlines, key=lambda d: (d.due_date, d.tax_type))


def test_deadline_alerts_escalate_after_30_days(checker: ComplianceChecker):
    as_of = date(2024, 4, 1)
    deadlines = checker.filing_deadlines(2024, vat_registered=False, as_of=as_of)
    alerts = checker.deadline_alerts(deadlines, as_of=as_of)
    # January (40 days late) and February (11 days late) WHT returns
    assert [(a.rule_id, a.severity) for a in alerts] == [
        ("filing-wht", Severity.ERROR),
        ("filing-wht", Severity.WARNING),
    ]
    assert alerts[0].deadline == date(2024, 2, 21)


# ── Facts from books ──────────────────────────────────────────────────


def test_facts_from_statement():
    from sme_tax.importer import BankImporter
    from sme_tax.journal import JournalEngine

    engine = JournalEngine()
    BankImporter(engine).import_batch(
        [
            {"id": "1", "date": "2024-01-05", "description": "Invoice payment received", "amount": "30000000", "type": "credit"},
            {"id": "2", "date": "2024-01-25", "description": "Pension remittance", "amount": "50000", "type": "debit"},
        ]
    )
    statement = StatementDeriver(engine.chart).derive(engine.entries)
    facts = facts_from(statement, employee_count=3)
    assert facts.turnover == D("30000000.00")
    assert facts.pension_contributed is True
    assert facts.nsitf_contributed is False
    assert facts.employee_count == 3
    assert "nsitf-contribution" in _failed(ComplianceChecker(), facts)
