"""
Rule-driven tax computation.

Handles:
- Personal income tax for freelancers (CRA, reliefs, graduated bands,
  minimum tax)
- Company income tax by turnover tier, with minimum tax
- Withholding tax credits against the income tax charge
- VAT, WHT, CGT, TET, stamp duty and levies as independent sub-results
- One reconciliation trail tying every figure to a rule and citation
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

import structlog

from sme_tax.bands import ProgressiveBandCalculator, TaxBand
from sme_tax.errors import ConfigurationError, ValidationError
from sme_tax.reconciliation import ReconciliationRow, ReconciliationTrail
from sme_tax.rulebook import RuleBookMetadata, RuleBookStore, TaxRuleBook, get_store
from sme_tax.statements import StatementDraft
from sme_tax.tax_types import (
    AssetDisposal,
    CGTCalculator,
    CGTResult,
    LeviesCalculator,
    LeviesResult,
    StampableDocument,
    StampDutyCalculator,
    StampDutyResult,
    TETCalculator,
    TETResult,
    VATCalculator,
    VATResult,
    WHTCalculator,
    WHTPayment,
    WHTResult,
    round_tax,
)
from sme_tax.validation import FieldReader, ValidationIssue, advisory_issues, validate_inputs

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

DISCLAIMER_NOTES = (
    "These calculations are estimates based on simplified rules.",
    "Please verify with FIRS/SBIRS or a qualified tax professional.",
)


class TaxpayerType(Enum):
    FREELANCER = "freelancer"  # personal income tax
    COMPANY = "company"  # company income tax


@dataclass(frozen=True)
class TaxProfile:
    """Who is being taxed, for which year and under which rulebook."""

    taxpayer_type: TaxpayerType
    tax_year: int = 2024
    jurisdiction: str = "ng_federal"
    name: str = ""
    is_vat_registered: bool = False
    industry: Optional[str] = None

    @property
    def is_company(self) -> bool:
        return self.taxpayer_type == TaxpayerType.COMPANY

    @classmethod
    def from_dict(cls, data: dict) -> "TaxProfile":
        raw_type = str(data.get("taxpayer_type", "")).strip().lower()
        try:
            taxpayer_type = TaxpayerType(raw_type)
        except ValueError:
            taxpayer_type = None
        reader = FieldReader("profile.")
        if taxpayer_type is None:
            reader.fail("taxpayer_type", f"unknown taxpayer type {raw_type!r}")
        tax_year = reader.integer("tax_year", data.get("tax_year"), 2024)
        is_vat_registered = reader.boolean("is_vat_registered", data.get("is_vat_registered"))
        reader.check("Invalid tax profile")
        return cls(
            taxpayer_type=taxpayer_type,
            tax_year=tax_year,
            jurisdiction=str(data.get("jurisdiction") or "ng_federal"),
            name=str(data.get("name") or ""),
            is_vat_registered=is_vat_registered,
            industry=data.get("industry"),
        )


_NESTED_RECORDS = {
    "payments": WHTPayment,
    "disposals": AssetDisposal,
    "documents": StampableDocument,
}


def _read_records(reader: FieldReader, name: str, raw: Any) -> list:
    if isinstance(raw, (str, bytes)) or not hasattr(raw, "__iter__"):
        reader.fail(name, "expected a list of records")
        return []
    records = []
    for i, item in enumerate(raw):
        if not isinstance(item, Mapping):
            reader.fail(f"{name}[{i}]", "expected a record")
            continue
        try:
            records.append(_NESTED_RECORDS[name].from_dict(item))
        except ValidationError as e:
            reader.merge(e, f"{name}[{i}].")
    return records


@dataclass(frozen=True)
class FinancialInputs:
    """Annual financial facts feeding one computation."""

    gross_revenue: Decimal = ZERO
    allowable_expenses: Decimal = ZERO
    cost_of_sales: Decimal = ZERO
    operating_expenses: Decimal = ZERO
    turnover: Optional[Decimal] = None  # defaults to gross revenue

    # Company allowances
    capital_allowance: Decimal = ZERO
    investment_allowance: Decimal = ZERO
    pioneer_status_relief: Decimal = ZERO
    prior_year_losses: Decimal = ZERO

    # Personal reliefs
    pension_contributions: Decimal = ZERO
    nhf_contributions: Decimal = ZERO
    life_insurance_premiums: Decimal = ZERO
    other_reliefs: Decimal = ZERO

    wht_credits: Decimal = ZERO

    # VAT
    vatable_revenue: Optional[Decimal] = None  # defaults to gross revenue
    input_vat_paid: Optional[Decimal] = None
    vat_taxable_purchases: Decimal = ZERO

    # Sub-calculator inputs
    payments: tuple[WHTPayment, ...] = ()
    disposals: tuple[AssetDisposal, ...] = ()
    documents: tuple[StampableDocument, ...] = ()
    annual_payroll: Decimal = ZERO
    employee_count: int = 0
    profit_before_tax: Optional[Decimal] = None
    net_profit: Optional[Decimal] = None

    @property
    def total_expenses(self) -> Decimal:
        """Deductions for personal income tax."""
        return self.allowable_expenses or (self.cost_of_sales + self.operating_expenses)

    @classmethod
    def from_statement(cls, statement: StatementDraft, **extras: Any) -> "FinancialInputs":
        """Map a derived statement to inputs; gross revenue includes other income."""
        values: dict[str, Any] = {
            "gross_revenue": statement.revenue + statement.other_income,
            "cost_of_sales": statement.cost_of_sales,
            "operating_expenses": statement.operating_expenses,
            "profit_before_tax": statement.profit_before_tax,
        }
        values.update(extras)
        return cls(**values)

    @classmethod
    def from_dict(cls, data: dict) -> "FinancialInputs":
        reader = FieldReader("inputs.")
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            raw = data[f.name]
            if f.name in _NESTED_RECORDS:
                values[f.name] = tuple(_read_records(reader, f.name, raw))
            elif f.name == "employee_count":
                values[f.name] = reader.integer(f.name, raw, 0)
            else:
                values[f.name] = reader.decimal(f.name, raw, ZERO)
        reader.check("Invalid financial inputs")
        return cls(**values)


@dataclass(frozen=True)
class TaxResult:
    """Outcome of one computation. Sub-results are None when not run or unavailable."""

    taxpayer_type: TaxpayerType
    tax_year: int
    taxable_income: Decimal
    tax_before_credits: Decimal
    credits_applied: Decimal
    total_tax_due: Decimal
    effective_rate: float
    bands: tuple[ReconciliationRow, ...]
    rulebook_metadata: RuleBookMetadata
    reconciliation_report: tuple[ReconciliationRow, ...]
    vat: Optional[VATResult] = None
    wht: Optional[WHTResult] = None
    cgt: Optional[CGTResult] = None
    tet: Optional[TETResult] = None
    stamp_duty: Optional[StampDutyResult] = None
    levies: Optional[LeviesResult] = None
    unavailable: Mapping[str, str] = field(default_factory=dict)  # sub-result name to reason
    notes: tuple[str, ...] = ()
    validation_issues: tuple[ValidationIssue, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "unavailable", MappingProxyType(dict(self.unavailable)))

    @property
    def is_partial(self) -> bool:
        return bool(self.unavailable)

    @property
    def combined_liability(self) -> Decimal:
        """Income tax plus every other tax and levy payable (refundable VAT excluded)."""
        total = self.total_tax_due
        if self.vat is not None:
            total += max(ZERO, self.vat.net_vat_payable)
        if self.cgt is not None:
            total += self.cgt.total_cgt
        if self.tet is not None:
            total += self.tet.tet_payable
        if self.stamp_duty is not None:
            total += self.stamp_duty.total_duty
        if self.levies is not None:
            total += self.levies.total
        return total

    def find_row(self, step_id: str) -> Optional[ReconciliationRow]:
        for row in self.reconciliation_report:
            if row.step_id == step_id:
                return row
        return None

    def to_dict(self) -> dict[str, Any]:
        def sub(result: Any) -> Optional[dict[str, Any]]:
            return None if result is None else result.to_dict()

        return {
            "taxpayer_type": self.taxpayer_type.value,
            "tax_year": self.tax_year,
            "taxable_income": self.taxable_income,
            "tax_before_credits": self.tax_before_credits,
            "credits_applied": self.credits_applied,
            "total_tax_due": self.total_tax_due,
            "effective_rate": self.effective_rate,
            "bands": [row.to_dict() for row in self.bands],
            "vat": sub(self.vat),
            "wht": sub(self.wht),
            "cgt": sub(self.cgt),
            "tet": sub(self.tet),
            "stamp_duty": sub(self.stamp_duty),
            "levies": sub(self.levies),
            "unavailable": dict(self.unavailable),
            "notes": list(self.notes),
            "validation_issues": [issue.to_dict() for issue in self.validation_issues],
            "rulebook": self.rulebook_metadata.to_dict(),
            "reconciliation": [row.to_dict() for row in self.reconciliation_report],
        }


class TaxComputationOrchestrator:
    """
    Combines the rulebook, the band calculator and the per-type
    sub-calculators into one TaxResult.

    A missing or corrupt rulebook aborts the computation. A failing
    sub-calculator only marks its own sub-result unavailable.
    """

    def __init__(
        self,
        store: Optional[RuleBookStore] = None,
        band_calculator: Optional[ProgressiveBandCalculator] = None,
    ) -> None:
        self.store = store or get_store()
        self.band_calculator = band_calculator or ProgressiveBandCalculator()
        self.vat_calculator = VATCalculator()
        self.wht_calculator = WHTCalculator()
        self.cgt_calculator = CGTCalculator()
        self.tet_calculator = TETCalculator()
        self.stamp_duty_calculator = StampDutyCalculator()
        self.levies_calculator = LeviesCalculator()

    # ------------------------------------------------------------------
    # Income tax
    # ------------------------------------------------------------------

    def _personal_income_tax(
        self,
        rulebook: TaxRuleBook,
        inputs: FinancialInputs,
        trail: ReconciliationTrail,
        notes: list[str],
    ) -> tuple[Decimal, Decimal, tuple[ReconciliationRow, ...]]:
        gross = inputs.gross_revenue
        expenses = inputs.total_expenses
        net_income = max(ZERO, gross - expenses)
        trail.record("GROSS_REVENUE", "Gross revenue", gross)
        trail.record("ALLOWABLE_EXPENSES", "Allowable expenses", expenses)
        trail.record(
            "NET_INCOME", "Gross income after allowable expenses", net_income,
            formula="max(0, GROSS_REVENUE - ALLOWABLE_EXPENSES)",
        )

        variables = {
            "gross_revenue": gross,
            "net_income": net_income,
            "pension_contributions": inputs.pension_contributions,
            "nhf_contributions": inputs.nhf_contributions,
            "life_insurance_premiums": inputs.life_insurance_premiums,
            "other_reliefs": inputs.other_reliefs,
        }
        cra_fixed = rulebook.evaluate("CRA_FIXED", variables, trail)
        cra_percent = rulebook.evaluate("CRA_PERCENT", variables, trail)
        cra_additional = rulebook.evaluate("CRA_ADDITIONAL", variables, trail)
        cra = max(cra_fixed, cra_percent) + cra_additional
        trail.record(
            "CRA", "Consolidated relief allowance", cra,
            formula="max(CRA_FIXED, CRA_PERCENT) + CRA_ADDITIONAL",
            rule_key="CRA_FIXED",
            citation=rulebook.citation_for("CRA_FIXED"),
        )
        notes.append(f"Consolidated Relief Allowance (CRA): ₦{cra:,.2f}")

        reliefs = rulebook.evaluate(
            "PIT_RELIEFS", variables, trail,
            step_id="RELIEFS", label="Other reliefs (pension, NHF, insurance)",
        )
        if reliefs > 0:
            notes.append(f"Other reliefs (pension, NHF, insurance, etc.): ₦{reliefs:,.2f}")

        taxable = max(ZERO, net_income - cra - reliefs)
        trail.record(
            "TAXABLE_INCOME", "Taxable income after reliefs", taxable,
            formula="max(0, NET_INCOME - CRA - RELIEFS)",
        )

        computation = self.band_calculator.calculate(
            taxable,
            rulebook.bands("PIT_BANDS"),
            rule_key="PIT_BANDS",
            citation=rulebook.citation_for("PIT_BANDS"),
        )
        trail.extend(computation.rows)
        if computation.untaxed_remainder > 0:
            notes.append(
                f"₦{computation.untaxed_remainder:,.2f} of income lies above the last band "
                "and was not taxed"
            )
        tax = round_tax(computation.total)
        trail.record(
            "PIT_BANDS_TOTAL", "Total PIT from graduated bands", tax,
            rule_key="PIT_BANDS", citation=rulebook.citation_for("PIT_BANDS"),
        )

        minimum = rulebook.evaluate(
            "PIT_MINIMUM_TAX", variables, trail,
            step_id="MINIMUM_TAX", label="Minimum tax threshold",
        )
        if tax < minimum and gross > 0:
            tax = minimum
            notes.append("Minimum tax rule applied (1% of gross revenue).")
            trail.record(
                "MINIMUM_TAX_APPLIED", "Minimum tax applied", tax,
                rule_key="PIT_MINIMUM_TAX",
                citation=rulebook.citation_for("PIT_MINIMUM_TAX"),
            )

        notes.append("Tax calculated under the Personal Income Tax Act (PITA)")
        return taxable, tax, computation.rows

    def _company_income_tax(
        self,
        rulebook: TaxRuleBook,
        inputs: FinancialInputs,
        trail: ReconciliationTrail,
        notes: list[str],
    ) -> tuple[Decimal, Decimal, tuple[ReconciliationRow, ...]]:
        turnover = inputs.turnover or inputs.gross_revenue
        operating = inputs.operating_expenses or inputs.allowable_expenses
        allowances = (
            inputs.capital_allowance
            + inputs.investment_allowance
            + inputs.pioneer_status_relief
        )
        gross_profit = turnover - inputs.cost_of_sales
        taxable = max(ZERO, gross_profit - operating - allowances - inputs.prior_year_losses)

        trail.record("TURNOVER", "Turnover", turnover)
        trail.record(
            "GROSS_PROFIT", "Gross profit", gross_profit,
            formula="TURNOVER - COST_OF_SALES",
        )
        trail.record("OPERATING_EXPENSES", "Operating expenses", operating)
        if allowances > 0:
            trail.record("ALLOWANCES", "Capital and investment allowances", allowances)
        if inputs.prior_year_losses > 0:
            trail.record("PRIOR_YEAR_LOSSES", "Losses brought forward", inputs.prior_year_losses)
            notes.append(f"Carried-forward losses utilised: ₦{inputs.prior_year_losses:,.2f}")
        trail.record(
            "TAXABLE_INCOME", "Assessable profit", taxable,
            formula="max(0, GROSS_PROFIT - OPERATING_EXPENSES - ALLOWANCES - PRIOR_YEAR_LOSSES)",
        )
        notes.append(f"Turnover: ₦{turnover:,.2f}")
        notes.append(f"Gross profit: ₦{gross_profit:,.2f}")

        small = rulebook.evaluate("CIT_SMALL_THRESHOLD", {}, trail)
        medium = rulebook.evaluate("CIT_MEDIUM_THRESHOLD", {}, trail)
        if turnover <= small:
            tier, rate_key = "Small company", "CIT_SMALL_RATE"
        elif turnover <= medium:
            tier, rate_key = "Medium company", "CIT_MEDIUM_RATE"
        else:
            tier, rate_key = "Large company", "CIT_LARGE_RATE"
        rate = rulebook.evaluate(rate_key, {}, trail)

        computation = self.band_calculator.calculate(
            taxable,
            [TaxBand(label=tier, threshold=None, rate=rate)],
            rule_key=rate_key,
            citation=rulebook.citation_for(rate_key),
        )
        trail.extend(computation.rows)
        tax = round_tax(computation.total)
        notes.append(f"{tier} rate of {float(rate * 100):g}% applied")

        minimum = rulebook.evaluate(
            "CIT_MINIMUM_TAX", {"turnover": turnover, "gross_revenue": inputs.gross_revenue},
            trail, step_id="MINIMUM_TAX", label="Minimum tax threshold",
        )
        if turnover > small and tax < minimum:
            tax = minimum
            notes.append("Minimum tax rule applied (0.5% of turnover).")
            trail.record(
                "MINIMUM_TAX_APPLIED", "Minimum tax applied", tax,
                rule_key="CIT_MINIMUM_TAX",
                citation=rulebook.citation_for("CIT_MINIMUM_TAX"),
            )

        notes.append("Tax calculated under the Companies Income Tax Act (CITA)")
        return taxable, tax, computation.rows

    # ------------------------------------------------------------------
    # Sub-calculators
    # ------------------------------------------------------------------

    def _run_isolated(
        self,
        name: str,
        trail: ReconciliationTrail,
        unavailable: dict[str, str],
        calculate,
    ):
        """
        Run one sub-calculator against a scratch trail.

        Its rows join the main trail only on success; any failure other
        than a configuration problem marks the sub-result unavailable.
        """
        scratch = ReconciliationTrail()
        try:
            result = calculate(scratch)
        except ConfigurationError:
            raise
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning("sub_calculator_unavailable", sub_calculator=name, error=reason)
            unavailable[name] = reason
            trail.record(
                f"UNAVAILABLE_{name.upper()}",
                f"{name.replace('_', ' ').upper()} unavailable",
                ZERO,
                notes=reason,
            )
            return None
        trail.extend(scratch.rows)
        trail.warnings.extend(scratch.warnings)
        return result

    def _wants_vat(self, profile: TaxProfile, inputs: FinancialInputs) -> bool:
        return (
            profile.is_vat_registered
            or inputs.vatable_revenue is not None
            or inputs.input_vat_paid is not None
            or inputs.vat_taxable_purchases > 0
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def rulebook_for(self, profile: TaxProfile) -> TaxRuleBook:
        return self.store.load(profile.tax_year, profile.jurisdiction)

    def compute(self, profile: TaxProfile, inputs: FinancialInputs) -> TaxResult:
        """
        Compute income tax and every applicable sub-tax for one profile.

        Raises ValidationError before any work for unusable input and
        ConfigurationError when the rulebook cannot be loaded.
        """
        validate_inputs(profile, inputs)
        issues = tuple(advisory_issues(profile, inputs))
        rulebook = self.rulebook_for(profile)

        trail = ReconciliationTrail()
        notes: list[str] = []
        unavailable: dict[str, str] = {}

        if profile.is_company:
            taxable, tax, band_rows = self._company_income_tax(rulebook, inputs, trail, notes)
        else:
            taxable, tax, band_rows = self._personal_income_tax(rulebook, inputs, trail, notes)

        tax_before_credits = tax
        credits_applied = min(tax_before_credits, max(ZERO, inputs.wht_credits))
        if credits_applied > 0:
            notes.append(f"Withholding tax credits applied: ₦{credits_applied:,.2f}")
            trail.record(
                "WHT_CREDIT", "Withholding tax credits applied", credits_applied,
                formula="min(TAX_BEFORE_CREDITS, WHT_CREDITS)",
            )
        total_due = max(ZERO, tax_before_credits - credits_applied)
        trail.record(
            "TOTAL_TAX_DUE", "Total income tax due", total_due,
            formula="TAX_BEFORE_CREDITS - WHT_CREDIT",
        )

        vat = None
        if self._wants_vat(profile, inputs):
            base = (
                inputs.vatable_revenue
                if inputs.vatable_revenue is not None
                else inputs.gross_revenue
            )
            vat = self._run_isolated(
                "vat", trail, unavailable,
                lambda t: self.vat_calculator.calculate(
                    rulebook, base, inputs.input_vat_paid, inputs.vat_taxable_purchases, t
                ),
            )
            if vat is not None:
                notes.append(f"VAT @ {float(vat.vat_rate * 100):.1f}% on recorded turnover")

        wht = None
        if inputs.payments:
            wht = self._run_isolated(
                "wht", trail, unavailable,
                lambda t: self.wht_calculator.calculate(rulebook, inputs.payments, t),
            )

        cgt = None
        if inputs.disposals:
            cgt = self._run_isolated(
                "cgt", trail, unavailable,
                lambda t: self.cgt_calculator.calculate(rulebook, inputs.disposals, t),
            )

        tet = None
        if profile.is_company:
            tet = self._run_isolated(
                "tet", trail, unavailable,
                lambda t: self.tet_calculator.calculate(rulebook, taxable, True, t),
            )

        stamp_duty = None
        if inputs.documents:
            stamp_duty = self._run_isolated(
                "stamp_duty", trail, unavailable,
                lambda t: self.stamp_duty_calculator.calculate(rulebook, inputs.documents, t),
            )

        levies = None
        if profile.is_company or inputs.annual_payroll > 0:
            pbt = (
                inputs.profit_before_tax
                if inputs.profit_before_tax is not None
                else taxable
            )
            net_profit = (
                inputs.net_profit
                if inputs.net_profit is not None
                else pbt - tax_before_credits
            )
            levies = self._run_isolated(
                "levies", trail, unavailable,
                lambda t: self.levies_calculator.calculate(
                    rulebook,
                    is_company=profile.is_company,
                    net_profit=net_profit,
                    profit_before_tax=pbt,
                    industry=profile.industry,
                    annual_payroll=inputs.annual_payroll,
                    employee_count=inputs.employee_count,
                    turnover=inputs.turnover or inputs.gross_revenue,
                    trail=t,
                ),
            )

        for name, reason in unavailable.items():
            notes.append(f"{name.replace('_', ' ').upper()} unavailable: {reason}")
        for warning in trail.warnings:
            notes.append(f"Row set to zero: {warning}")
        notes.extend(DISCLAIMER_NOTES)
        meta = rulebook.metadata
        notes.append(f"Tax rule set: {meta.jurisdiction} {meta.tax_year} v{meta.version}")

        effective_rate = float(total_due / taxable) if taxable > 0 else 0.0

        logger.info(
            "tax_computed",
            taxpayer_type=profile.taxpayer_type.value,
            tax_year=profile.tax_year,
            taxable_income=str(taxable),
            total_tax_due=str(total_due),
            unavailable=sorted(unavailable),
        )

        return TaxResult(
            taxpayer_type=profile.taxpayer_type,
            tax_year=profile.tax_year,
            taxable_income=taxable,
            tax_before_credits=tax_before_credits,
            credits_applied=credits_applied,
            total_tax_due=total_due,
            effective_rate=effective_rate,
            bands=band_rows,
            rulebook_metadata=meta,
            reconciliation_report=trail.rows,
            vat=vat,
            wht=wht,
            cgt=cgt,
            tet=tet,
            stamp_duty=stamp_duty,
            levies=levies,
            unavailable=unavailable,
            notes=tuple(notes),
            validation_issues=issues,
        )

    def compute_from_statement(
        self, profile: TaxProfile, statement: StatementDraft, **extras: Any
    ) -> TaxResult:
        """Compute from a derived statement; ``extras`` override mapped inputs."""
        return self.compute(profile, FinancialInputs.from_statement(statement, **extras))

    # Single-type entry points for callers that need one tax only.

    def compute_vat(
        self,
        profile: TaxProfile,
        vatable_revenue: Decimal,
        input_vat_paid: Optional[Decimal] = None,
        vat_taxable_purchases: Decimal = ZERO,
    ) -> VATResult:
        return self.vat_calculator.calculate(
            self.rulebook_for(profile), vatable_revenue, input_vat_paid, vat_taxable_purchases
        )

    def compute_wht(self, profile: TaxProfile, payments: Sequence[WHTPayment]) -> WHTResult:
        return self.wht_calculator.calculate(self.rulebook_for(profile), payments)

    def compute_cgt(self, profile: TaxProfile, disposals: Sequence[AssetDisposal]) -> CGTResult:
        return self.cgt_calculator.calculate(self.rulebook_for(profile), disposals)

    def compute_tet(self, profile: TaxProfile, assessable_profit: Decimal) -> TETResult:
        return self.tet_calculator.calculate(
            self.rulebook_for(profile), assessable_profit, profile.is_company
        )

    def compute_stamp_duty(
        self, profile: TaxProfile, documents: Sequence[StampableDocument]
    ) -> StampDutyResult:
        return self.stamp_duty_calculator.calculate(self.rulebook_for(profile), documents)

    def compute_levies(
        self,
        profile: TaxProfile,
        net_profit: Decimal = ZERO,
        profit_before_tax: Decimal = ZERO,
        annual_payroll: Decimal = ZERO,
        employee_count: int = 0,
        turnover: Decimal = ZERO,
    ) -> LeviesResult:
        return self.levies_calculator.calculate(
            self.rulebook_for(profile),
            is_company=profile.is_company,
            net_profit=net_profit,
            profit_before_tax=profit_before_tax,
            industry=profile.industry,
            annual_payroll=annual_payroll,
            employee_count=employee_count,
            turnover=turnover,
        )
