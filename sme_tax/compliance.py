"""
Statutory compliance checker.

Monitors:
- VAT registration threshold
- WHT deduction on qualifying payments
- Pension, ITF and NSITF employer contributions
- Statutory audit threshold
- Filing deadlines for VAT, WHT and income tax returns

Checks are pure functions of the facts supplied; storing or resolving
alerts is left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, Sequence, Union

import structlog

from sme_tax.errors import ComplianceViolationError
from sme_tax.statements import StatementDraft
from sme_tax.validation import FieldReader

if TYPE_CHECKING:
    from sme_tax.calculator import TaxResult

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

VAT_REGISTRATION_THRESHOLD = Decimal("25000000")
ITF_EMPLOYEE_THRESHOLD = 5
ITF_TURNOVER_THRESHOLD = Decimal("50000000")
AUDIT_TURNOVER_THRESHOLD = Decimal("120000000")

PENSION_ACCOUNT = "5520"
NSITF_ACCOUNT = "5530"
ITF_ACCOUNT = "5540"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_SEVERITY_ORDER = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


class CompliancePolicy(Enum):
    STRICT = "strict"  # raise on failed error-severity rules
    ADVISORY = "advisory"  # report alerts only
    OFF = "off"


@dataclass(frozen=True)
class BusinessFacts:
    """Flat facts the compliance rules are evaluated against."""

    turnover: Decimal = ZERO
    employee_count: int = 0
    is_vat_registered: bool = False
    has_qualifying_payments: bool = False
    wht_deducted: bool = False
    pension_contributed: bool = False
    itf_contributed: bool = False
    nsitf_contributed: bool = False
    has_audited_accounts: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BusinessFacts":
        reader = FieldReader()
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            raw = data[f.name]
            if f.name == "turnover":
                values[f.name] = reader.decimal(f.name, raw, ZERO)
            elif f.name == "employee_count":
                values[f.name] = reader.integer(f.name, raw, 0)
            else:
                values[f.name] = reader.boolean(f.name, raw)
        reader.check("Invalid business facts")
        return cls(**values)


@dataclass(frozen=True)
class RuleOutcome:
    passed: bool
    message: str
    details: Optional[str] = None
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class ComplianceRule:
    id: str
    name: str
    description: str
    category: str
    severity: Severity
    check: Callable[[BusinessFacts], RuleOutcome]


@dataclass(frozen=True)
class ComplianceResult:
    """Outcome of one rule for one set of facts."""

    rule_id: str
    rule_name: str
    category: str
    severity: Severity
    passed: bool
    message: str
    details: Optional[str] = None
    recommendation: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "category": self.category,
            "severity": self.severity.value,
            "passed": self.passed,
            "message": self.message,
            "details": self.details,
            "recommendation": self.recommendation,
        }


@dataclass
class ComplianceAlert:
    """An actionable alert; stays open until the caller resolves it."""

    rule_id: str
    severity: Severity
    category: str
    message: str
    recommendation: Optional[str] = None
    deadline: Optional[date] = None
    resolved: bool = False

    def resolve(self) -> None:
        self.resolved = True


@dataclass
class FilingDeadline:
    """A return due for one tax type and period."""

    tax_type: str  # VAT, WHT, CIT, PIT
    period_start: date
    period_end: date
    due_date: date
    is_overdue: bool = False
    days_until_due: int = 0
    status: str = "pending"  # pending, filed, overdue


# -----------------------------------------------------------------------
# Rules
# -----------------------------------------------------------------------


def _vat_threshold(facts: BusinessFacts) -> RuleOutcome:
    if facts.turnover > VAT_REGISTRATION_THRESHOLD and not facts.is_vat_registered:
        return RuleOutcome(
            passed=False,
            message="VAT registration required",
            details=f"Turnover of ₦{facts.turnover:,.2f} exceeds ₦25M threshold",
            recommendation="Register for VAT with FIRS immediately to avoid penalties",
        )
    return RuleOutcome(passed=True, message="VAT compliance OK")


def _wht_deduction(facts: BusinessFacts) -> RuleOutcome:
    if facts.has_qualifying_payments and not facts.wht_deducted:
        return RuleOutcome(
            passed=False,
            message="WHT not deducted on qualifying payments",
            recommendation="Ensure WHT is deducted on rent, professional fees, contracts, etc.",
        )
    return RuleOutcome(passed=True, message="WHT compliance OK")


def _pension(facts: BusinessFacts) -> RuleOutcome:
    if facts.employee_count > 0 and not facts.pension_contributed:
        return RuleOutcome(
            passed=False,
            message="Pension contributions not made",
            details="Employer contribution: 10%, Employee: 8% of basic salary",
            recommendation="Ensure monthly pension contributions are remitted to PFAs",
        )
    return RuleOutcome(passed=True, message="Pension compliance OK")


def _itf(facts: BusinessFacts) -> RuleOutcome:
    liable = (
        facts.employee_count >= ITF_EMPLOYEE_THRESHOLD
        or facts.turnover >= ITF_TURNOVER_THRESHOLD
    )
    if liable and not facts.itf_contributed:
        return RuleOutcome(
            passed=False,
            message="ITF contribution required",
            details="1% of annual payroll to Industrial Training Fund",
            recommendation="Register with ITF and make quarterly contributions",
        )
    return RuleOutcome(passed=True, message="ITF compliance OK")


def _nsitf(facts: BusinessFacts) -> RuleOutcome:
    if facts.employee_count > 0 and not facts.nsitf_contributed:
        return RuleOutcome(
            passed=False,
            message="NSITF contribution required",
            details="1% of monthly payroll",
            recommendation="Register with NSITF and make monthly contributions",
        )
    return RuleOutcome(passed=True, message="NSITF compliance OK")


def _audit(facts: BusinessFacts) -> RuleOutcome:
    if facts.turnover >= AUDIT_TURNOVER_THRESHOLD and not facts.has_audited_accounts:
        return RuleOutcome(
            passed=False,
            message="Statutory audit required",
            details="Companies with turnover ≥ ₦120M require audited financial statements",
            recommendation="Engage a registered auditor for annual audit",
        )
    return RuleOutcome(passed=True, message="Audit compliance OK")


COMPLIANCE_RULES: tuple[ComplianceRule, ...] = (
    ComplianceRule(
        "firs-vat-threshold", "VAT Registration Threshold",
        "Companies with turnover above ₦25M must register for VAT",
        "FIRS", Severity.ERROR, _vat_threshold,
    ),
    ComplianceRule(
        "firs-wht-deduction", "WHT Deduction Requirement",
        "WHT must be deducted on qualifying payments",
        "FIRS", Severity.ERROR, _wht_deduction,
    ),
    ComplianceRule(
        "pencom-contribution", "Pension Contribution",
        "Employers must contribute 10% of employee basic salary to pension",
        "PENCOM", Severity.ERROR, _pension,
    ),
    ComplianceRule(
        "itf-contribution", "ITF Contribution",
        "Companies with 5+ employees or ₦50M+ turnover must contribute 1% of payroll",
        "ITF", Severity.WARNING, _itf,
    ),
    ComplianceRule(
        "nsitf-contribution", "NSITF Contribution",
        "Employers must contribute 1% of payroll to NSITF",
        "NSITF", Severity.WARNING, _nsitf,
    ),
    ComplianceRule(
        "cama-audit", "Statutory Audit Requirement",
        "Companies above exemption threshold must have audited accounts",
        "CAMA", Severity.ERROR, _audit,
    ),
)


# -----------------------------------------------------------------------
# Deadlines
# -----------------------------------------------------------------------


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year, 12, 31)
    return date(year, month + 1, 1) - timedelta(days=1)


def _monthly_due_date(year: int, month: int) -> date:
    """Monthly VAT and WHT returns fall due on the 21st of the following month."""
    if month == 12:
        return date(year + 1, 1, 21)
    return date(year, month + 1, 21)


class ComplianceChecker:
    """
    Evaluates business facts against the statutory rule set.

    Results are returned in rule order; alerts are sorted errors first.
    """

    def __init__(self, rules: Optional[Sequence[ComplianceRule]] = None) -> None:
        self.rules: tuple[ComplianceRule, ...] = tuple(rules or COMPLIANCE_RULES)

    @staticmethod
    def _coerce(facts: Union[BusinessFacts, Mapping[str, Any]]) -> BusinessFacts:
        if isinstance(facts, BusinessFacts):
            return facts
        return BusinessFacts.from_mapping(facts)

    def check(
        self, facts: Union[BusinessFacts, Mapping[str, Any]]
    ) -> list[ComplianceResult]:
        """Run every rule and return one result per rule."""
        facts = self._coerce(facts)
        results: list[ComplianceResult] = []
        for rule in self.rules:
            outcome = rule.check(facts)
            results.append(
                ComplianceResult(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    category=rule.category,
                    severity=rule.severity,
                    passed=outcome.passed,
                    message=outcome.message,
                    details=outcome.details,
                    recommendation=outcome.recommendation,
                )
            )
        failed = [r.rule_id for r in results if not r.passed]
        if failed:
            logger.info("compliance_rules_failed", rule_ids=failed)
        return results

    @staticmethod
    def _to_alerts(results: Iterable[ComplianceResult]) -> list[ComplianceAlert]:
        alerts = [
            ComplianceAlert(
                rule_id=r.rule_id,
                severity=r.severity,
                category=r.category,
                message=r.message,
                recommendation=r.recommendation,
            )
            for r in results
            if not r.passed
        ]
        return sorted(alerts, key=lambda a: _SEVERITY_ORDER[a.severity])

    def alerts(
        self, facts: Union[BusinessFacts, Mapping[str, Any]]
    ) -> list[ComplianceAlert]:
        """One alert per failed rule."""
        return self._to_alerts(self.check(facts))

    def apply_policy(
        self,
        results: Sequence[ComplianceResult],
        policy: CompliancePolicy = CompliancePolicy.ADVISORY,
    ) -> list[ComplianceAlert]:
        """
        Turn results into alerts under the caller's policy.

        STRICT raises ComplianceViolationError when any error-severity
        rule failed; ADVISORY returns the alerts; OFF returns nothing.
        """
        if policy == CompliancePolicy.OFF:
            return []
        alerts = self._to_alerts(results)
        if policy == CompliancePolicy.STRICT:
            violations = [a.rule_id for a in alerts if a.severity == Severity.ERROR]
            if violations:
                logger.warning("compliance_violation", rule_ids=violations)
                raise ComplianceViolationError(
                    f"{len(violations)} compliance rule(s) failed: {', '.join(violations)}",
                    violations,
                )
        return alerts

    def filing_deadlines(
        self,
        tax_year: int,
        is_company: bool = True,
        vat_registered: bool = True,
        as_of: Optional[date] = None,
        filed: Iterable[tuple[str, date]] = (),
    ) -> list[FilingDeadline]:
        """
        Returns due for one tax year, sorted by due date.

        ``filed`` holds (tax type, period end) pairs already submitted.
        Income tax returns fall due six months after the year end.
        """
        ref_date = as_of or date.today()
        submitted = set(filed)
        deadlines: list[FilingDeadline] = []

        monthly = ["WHT"] + (["VAT"] if vat_registered else [])
        for tax_type in monthly:
            for month in range(1, 13):
                deadlines.append(
                    FilingDeadline(
                        tax_type,
                        date(tax_year, month, 1),
                        _month_end(tax_year, month),
                        _monthly_due_date(tax_year, month),
                    )
                )

        deadlines.append(
            FilingDeadline(
                "CIT" if is_company else "PIT",
                date(tax_year, 1, 1),
                date(tax_year, 12, 31),
                date(tax_year + 1, 6, 30),
            )
        )

        for d in deadlines:
            d.days_until_due = (d.due_date - ref_date).days
            if (d.tax_type, d.period_end) in submitted:
                d.status = "filed"
            elif ref_date > d.due_date:
                d.is_overdue = True
                d.status = "overdue"

        return sorted(deadlines, key=lambda d: (d.due_date, d.tax_type))

    def deadline_alerts(
        self, deadlines: Iterable[FilingDeadline], as_of: Optional[date] = None
    ) -> list[ComplianceAlert]:
        """Alerts for overdue returns; more than 30 days late is an error."""
        ref_date = as_of or date.today()
        alerts: list[ComplianceAlert] = []
        for d in deadlines:
            if not d.is_overdue:
                continue
            days_late = (ref_date - d.due_date).days
            alerts.append(
                ComplianceAlert(
                    rule_id=f"filing-{d.tax_type.lower()}",
                    severity=Severity.ERROR if days_late > 30 else Severity.WARNING,
                    category="FIRS",
                    message=(
                        f"{d.tax_type} return for {d.period_start.isoformat()} to "
                        f"{d.period_end.isoformat()} is {days_late} days past due"
                    ),
                    recommendation=f"File the {d.tax_type} return immediately. Late penalties may apply.",
                    deadline=d.due_date,
                )
            )
        return sorted(alerts, key=lambda a: _SEVERITY_ORDER[a.severity])


def facts_from(
    statement: StatementDraft,
    result: Optional["TaxResult"] = None,
    **known: Any,
) -> BusinessFacts:
    """
    Build compliance facts from derived statements and a tax result.

    Contributions count as made when their expense accounts carry a
    balance for the period. ``known`` supplies or overrides any fact
    the books cannot show (employee count, audit status, registration).
    """
    totals = statement.account_totals
    values: dict[str, Any] = {
        "turnover": statement.revenue + statement.other_income,
        "pension_contributed": totals.get(PENSION_ACCOUNT, ZERO) > 0,
        "nsitf_contributed": totals.get(NSITF_ACCOUNT, ZERO) > 0,
        "itf_contributed": totals.get(ITF_ACCOUNT, ZERO) > 0,
    }
    if result is not None and result.wht is not None:
        values["has_qualifying_payments"] = bool(result.wht.lines)
        values["wht_deducted"] = result.wht.total_wht > 0
    values.update(known)
    return BusinessFacts.from_mapping(values)
