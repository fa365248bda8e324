"""
Input validation for tax computation requests.

``validate_inputs`` rejects malformed or out-of-range requests before any
computation runs. ``advisory_issues`` reports questionable but legal
inputs; those travel with the TaxResult instead of blocking it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Mapping, Optional

from sme_tax.errors import ValidationError

if TYPE_CHECKING:
    from sme_tax.calculator import FinancialInputs, TaxProfile

ZERO = Decimal("0")
MIN_TAX_YEAR = 2000
MAX_TAX_YEAR = 2100

_NON_NEGATIVE_FIELDS = (
    "gross_revenue",
    "allowable_expenses",
    "cost_of_sales",
    "operating_expenses",
    "capital_allowance",
    "investment_allowance",
    "pioneer_status_relief",
    "prior_year_losses",
    "pension_contributions",
    "nhf_contributions",
    "life_insurance_premiums",
    "other_reliefs",
    "wht_credits",
    "vat_taxable_purchases",
    "annual_payroll",
)


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    severity: str  # error, warning, info
    message: str
    field: str

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
            "field": self.field,
        }

_TRUE_WORDS = frozenset({"true", "1", "yes", "y"})
_FALSE_WORDS = frozenset({"false", "0", "no", "n", ""})


class FieldReader:
    """
    Converts raw request values, collecting one error per bad field.

    Call ``check`` once every field has been read; it raises a single
    ValidationError naming all of them.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self.errors: dict[str, str] = {}

    def fail(self, name: str, message: str) -> None:
        self.errors[f"{self.prefix}{name}"] = message

    def decimal(self, name: str, raw: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
        if raw is None:
            return default
        if isinstance(raw, bool):
            self.fail(name, f"expected a number, got {raw!r}")
            return default
        try:
            value = Decimal(str(raw).strip().replace(",", ""))
        except InvalidOperation:
            self.fail(name, f"expected a number, got {raw!r}")
            return default
        if not value.is_finite():
            self.fail(name, f"expected a finite number, got {raw!r}")
            return default
        return value

    def integer(self, name: str, raw: Any, default: Optional[int] = None) -> Optional[int]:
        if raw is None:
            return default
        value = self.decimal(name, raw)
        if value is None:
            return default
        if value != value.to_integral_value():
            self.fail(name, f"expected a whole number, got {raw!r}")
            return default
        return int(value)

    def boolean(self, name: str, raw: Any, default: bool = False) -> bool:
        if raw is None:
            return default
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, (int, Decimal)) and raw in (0, 1):
            return bool(raw)
        word = str(raw).strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        self.fail(name, f"expected true or false, got {raw!r}")
        return default

    def iso_date(self, name: str, raw: Any) -> Optional[date]:
        if isinstance(raw, date):
            return raw
        if raw is None:
            self.fail(name, "is required")
            return None
        try:
            return date.fromisoformat(str(raw).strip())
        except ValueError:
            self.fail(name, f"expected a YYYY-MM-DD date, got {raw!r}")
            return None

    def require(self, name: str, data: Mapping[str, Any]) -> Any:
        if data.get(name) is None:
            self.fail(name, "is required")
        return data.get(name)

    def merge(self, error: ValidationError, prefix: str) -> None:
        for key, message in error.errors.items():
            self.errors[f"{self.prefix}{prefix}{key}"] = message

    def check(self, message: str) -> None:
        if self.errors:
            raise ValidationError(message, self.errors)


def validate_inputs(profile: "TaxProfile", inputs: "FinancialInputs") -> None:
    """Raise ValidationError with per-field detail for unusable input."""
    from sme_tax.calculator import TaxpayerType

    errors: dict[str, str] = {}

    if not isinstance(profile.taxpayer_type, TaxpayerType):
        errors["profile.taxpayer_type"] = f"unknown taxpayer type {profile.taxpayer_type!r}"
    if not MIN_TAX_YEAR <= profile.tax_year <= MAX_TAX_YEAR:
        errors["profile.tax_year"] = (
            f"tax year must be between {MIN_TAX_YEAR} and {MAX_TAX_YEAR}"
        )
    if not profile.jurisdiction.strip():
        errors["profile.jurisdiction"] = "jurisdiction is required"

    for name in _NON_NEGATIVE_FIELDS:
        if getattr(inputs, name) < 0:
            errors[f"inputs.{name}"] = "cannot be negative"
    for name in ("turnover", "vatable_revenue", "input_vat_paid"):
        value = getattr(inputs, name)
        if value is not None and value < 0:
            errors[f"inputs.{name}"] = "cannot be negative"
    if inputs.employee_count < 0:
        errors["inputs.employee_count"] = "cannot be negative"

    for i, payment in enumerate(inputs.payments):
        if payment.amount < 0:
            errors[f"inputs.payments[{i}].amount"] = "cannot be negative"
    for i, disposal in enumerate(inputs.disposals):
        if disposal.disposal_date < disposal.acquisition_date:
            errors[f"inputs.disposals[{i}].disposal_date"] = "precedes acquisition date"
        for name in ("acquisition_cost", "disposal_proceeds", "improvement_costs", "selling_expenses"):
            if getattr(disposal, name) < 0:
                errors[f"inputs.disposals[{i}].{name}"] = "cannot be negative"
    for i, document in enumerate(inputs.documents):
        if document.amount < 0:
            errors[f"inputs.documents[{i}].amount"] = "cannot be negative"

    if errors:
        raise ValidationError("Invalid tax computation request", errors)


def advisory_issues(profile: "TaxProfile", inputs: "FinancialInputs") -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    revenue = inputs.gross_revenue
    expenses = inputs.total_expenses

    if revenue <= 0:
        issues.append(ValidationIssue(
            "zero-revenue", "warning",
            "Gross revenue is zero; minimum tax rules may apply.",
            "inputs.gross_revenue",
        ))
    if expenses > revenue > 0:
        issues.append(ValidationIssue(
            "expenses-exceed-revenue", "info",
            "Allowable expenses exceed recorded revenue; ensure supporting documentation is retained.",
            "inputs.allowable_expenses",
        ))
    if profile.is_company and not inputs.turnover:
        issues.append(ValidationIssue(
            "missing-turnover", "warning",
            "Turnover is required for accurate company income tax thresholds.",
            "inputs.turnover",
        ))
    if profile.is_vat_registered and revenue <= 0:
        issues.append(ValidationIssue(
            "vat-no-revenue", "info",
            "VAT registration flagged but no vatable revenue supplied.",
            "inputs.vatable_revenue",
        ))
    if inputs.wht_credits > revenue * Decimal("0.25"):
        issues.append(ValidationIssue(
            "high-wht-credits", "info",
            "WHT credits appear unusually high relative to income; confirm certificates before filing.",
            "inputs.wht_credits",
        ))
    if inputs.prior_year_losses > revenue:
        issues.append(ValidationIssue(
            "losses-exceed-revenue", "info",
            "Carried-forward losses exceed current revenue; ensure they are within statutory limits.",
            "inputs.prior_year_losses",
        ))
    if inputs.annual_payroll > 0 and not profile.is_company:
        issues.append(ValidationIssue(
            "individual-payroll", "info",
            "Payroll data supplied for an individual taxpayer; confirm entity structure.",
            "inputs.annual_payroll",
        ))
    return issues
