"""Tests for the tax computation orchestrator."""

from datetime import date
from decimal import Decimal

import pytest

from sme_tax.calculator import (
    FinancialInputs,
    TaxComputationOrchestrator,
    TaxProfile,
    TaxpayerType,
)
from sme_tax.errors import ConfigurationError, ValidationError
from sme_tax.rulebook import RuleBookStore
from sme_tax.tax_types import AssetDisposal, StampableDocument, WHTPayment

D = Decimal

FREELANCER = TaxProfile(TaxpayerType.FREELANCER, tax_year=2024)
COMPANY = TaxProfile(TaxpayerType.COMPANY, tax_year=2024)


@pytest.fixture
def orchestrator() -> TaxComputationOrchestrator:
    return TaxComputationOrchestrator(RuleBookStore())


# ── Personal income tax ───────────────────────────────────────────────


def test_freelancer_worked_example(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        FREELANCER,
        FinancialInputs(
            gross_revenue=D("10000000"),
            allowable_expenses=D("2000000"),
            pension_contributions=D("500000"),
        ),
    )
    # CRA = 200,000 + 20% of 8,000,000
    assert result.find_row("CRA").value == D("1800000")
    assert result.taxable_income == D("5700000")
    assert result.total_tax_due == D("1160000")
    assert result.effective_rate == pytest.approx(1160000 / 5700000)
    assert len(result.bands) == 6
    assert result.find_row("RELIEFS").value == D("500000")


def test_freelancer_minimum_tax(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        FREELANCER,
        FinancialInputs(gross_revenue=D("1000000"), allowable_expenses=D("950000")),
    )
    assert result.taxable_income == 0
    assert result.total_tax_due == D("10000")
    assert "Minimum tax rule applied (1% of gross revenue)." in result.notes
    assert result.find_row("MINIMUM_TAX_APPLIED").citation == "PITA_S37"
    assert result.effective_rate == 0.0


def test_reliefs_capped_at_net_income(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        FREELANCER,
        FinancialInputs(
            gross_revenue=D("600000"),
            allowable_expenses=D("500000"),
            pension_contributions=D("900000"),
        ),
    )
    assert result.find_row("RELIEFS").value == D("100000")
    assert result.taxable_income == 0


def test_wht_credits_reduce_tax_due(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        FREELANCER,
        FinancialInputs(
            gross_revenue=D("10000000"),
            allowable_expenses=D("2000000"),
            pension_contributions=D("500000"),
            wht_credits=D("200000"),
        ),
    )
    assert result.tax_before_credits == D("1160000")
    assert result.credits_applied == D("200000")
    assert result.total_tax_due == D("960000")
    assert result.find_row("WHT_CREDIT").value == D("200000")


def test_wht_credits_never_exceed_tax(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        FREELANCER,
        FinancialInputs(gross_revenue=D("1000000"), allowable_expenses=D("950000"), wht_credits=D("50000")),
    )
    assert result.credits_applied == D("10000")
    assert result.total_tax_due == 0


# ── Company income tax ────────────────────────────────────────────────


def test_medium_company(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        COMPANY,
        FinancialInputs(gross_revenue=D("50000000"), operating_expenses=D("10000000")),
    )
    assert result.taxable_income == D("40000000")
    assert result.total_tax_due == D("8000000")
    assert result.bands[0].step_id == "BAND_Medium_company"
    assert result.bands[0].rule_key == "CIT_MEDIUM_RATE"
    assert result.bands[0].citation == "CITA_S40"


def test_company_minimum_tax(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        COMPANY,
        FinancialInputs(gross_revenue=D("30000000"), operating_expenses=D("29990000")),
    )
    assert result.total_tax_due == D("150000")
    assert "Minimum tax rule applied (0.5% of turnover)." in result.notes


def test_small_company_pays_no_cit_and_no_minimum(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        COMPANY,
        FinancialInputs(gross_revenue=D("20000000"), operating_expenses=D("5000000")),
    )
    assert result.total_tax_due == 0
    assert result.bands[0].step_id == "BAND_Small_company"
    assert result.find_row("MINIMUM_TAX_APPLIED") is None


def test_large_company_with_allowances_and_losses(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        COMPANY,
        FinancialInputs(
            gross_revenue=D("200000000"),
            cost_of_sales=D("80000000"),
            operating_expenses=D("40000000"),
            capital_allowance=D("5000000"),
            prior_year_losses=D("15000000"),
        ),
    )
    assert result.taxable_income == D("60000000")
    assert result.total_tax_due == D("18000000")
    assert result.find_row("PRIOR_YEAR_LOSSES").value == D("15000000")


def test_company_runs_tet_and_levies(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        COMPANY,
        FinancialInputs(gross_revenue=D("50000000"), operating_expenses=D("10000000")),
    )
    assert result.tet.tet_payable == D("1200000")
    # Police levy on net profit of 40M - 8M
    assert result.levies.police.amount == D("1600")
    assert result.levies.naseni.is_applicable is False
    assert result.combined_liability == D("8000000") + D("1200000") + D("1600")


# ── Sub-calculators in one computation ────────────────────────────────


def test_vat_registered_profile_computes_vat(orchestrator: TaxComputationOrchestrator):
    profile = TaxProfile(TaxpayerType.FREELANCER, is_vat_registered=True)
    result = orchestrator.compute(
        profile,
        FinancialInputs(gross_revenue=D("10000000"), input_vat_paid=D("200000")),
    )
    assert result.vat.net_vat_payable == D("550000")
    assert result.find_row("VAT_NET").citation == "VATA_S4"


def test_optional_sub_results_absent_when_not_applicable(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(FREELANCER, FinancialInputs(gross_revenue=D("5000000")))
    assert result.vat is None
    assert result.wht is None
    assert result.cgt is None
    assert result.tet is None
    assert result.stamp_duty is None
    assert result.levies is None
    assert result.is_partial is False


def test_all_sub_calculators(orchestrator: TaxComputationOrchestrator):
    inputs = FinancialInputs(
        gross_revenue=D("50000000"),
        operating_expenses=D("10000000"),
        payments=(WHTPayment("rent", D("1000000")),),
        disposals=(
            AssetDisposal("shares", "Shares in X", date(2020, 1, 1), D("1000000"), date(2024, 5, 1), D("3000000")),
        ),
        documents=(StampableDocument("deed", D("10000000")),),
        annual_payroll=D("12000000"),
        employee_count=6,
    )
    result = orchestrator.compute(COMPANY, inputs)
    assert result.wht.total_wht == D("100000")
    assert result.cgt.total_cgt == D("200000")
    assert result.stamp_duty.total_duty == D("150000")
    assert result.levies.nsitf.amount == D("120000")
    assert result.levies.itf.amount == D("120000")
    for step in ("WHT_1", "CGT_1", "STAMP_1", "LEVY_NSITF", "LEVY_ITF", "TET"):
        assert result.find_row(step) is not None


def test_failing_sub_calculator_marks_result_partial(orchestrator: TaxComputationOrchestrator, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disposal data unreadable")

    monkeypatch.setattr(orchestrator.cgt_calculator, "calculate", boom)
    inputs = FinancialInputs(
        gross_revenue=D("10000000"),
        disposals=(
            AssetDisposal("shares", "Shares", date(2020, 1, 1), D("1"), date(2024, 1, 1), D("2")),
        ),
    )
    result = orchestrator.compute(FREELANCER, inputs)
    assert result.cgt is None
    assert result.is_partial is True
    assert result.unavailable == {"cgt": "disposal data unreadable"}
    assert result.find_row("UNAVAILABLE_CGT") is not None
    assert not any(r.step_id.startswith("CGT_") for r in result.reconciliation_report)
    assert result.total_tax_due > 0

    with pytest.raises(TypeError):
        result.unavailable["cgt"] = "cleared"
    assert result.to_dict()["unavailable"] == {"cgt": "disposal data unreadable"}


# ── Reconciliation and errors ─────────────────────────────────────────


def test_every_rule_row_carries_a_citation(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(
        COMPANY,
        FinancialInputs(gross_revenue=D("50000000"), operating_expenses=D("10000000")),
    )
    rule_rows = [r for r in result.reconciliation_report if r.rule_key]
    assert rule_rows
    assert all(r.citation for r in rule_rows)


def test_total_tax_due_row_matches_result(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(FREELANCER, FinancialInputs(gross_revenue=D("4000000")))
    assert result.find_row("TOTAL_TAX_DUE").value == result.total_tax_due


def test_notes_name_rule_set(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(FREELANCER, FinancialInputs(gross_revenue=D("4000000")))
    assert "Tax rule set: ng_federal 2024 v2024.1" in result.notes


def test_negative_input_rejected(orchestrator: TaxComputationOrchestrator):
    with pytest.raises(ValidationError) as exc:
        orchestrator.compute(FREELANCER, FinancialInputs(gross_revenue=D("-1")))
    assert "inputs.gross_revenue" in exc.value.errors


def test_missing_rulebook_is_fatal(orchestrator: TaxComputationOrchestrator):
    profile = TaxProfile(TaxpayerType.COMPANY, tax_year=2031)
    with pytest.raises(ConfigurationError):
        orchestrator.compute(profile, FinancialInputs(gross_revenue=D("1000")))


def test_company_without_turnover_gets_advisory_issue(orchestrator: TaxComputationOrchestrator):
    result = orchestrator.compute(COMPANY, FinancialInputs(gross_revenue=D("1000000")))
    assert "missing-turnover" in {i.code for i in result.validation_issues}


def test_to_dict_is_complete(orchestrator: TaxComputationOrchestrator):
    data = orchestrator.compute(COMPANY, FinancialInputs(gross_revenue=D("1000000"))).to_dict()
    assert data["taxpayer_type"] == "company"
    assert data["rulebook"]["version"] == "2024.1"
    assert data["tet"]["is_applicable"] is True
    assert data["vat"] is None


# ── Inputs and profiles ───────────────────────────────────────────────


def test_profile_from_dict_rejects_unknown_type():
    with pytest.raises(ValidationError):
        TaxProfile.from_dict({"taxpayer_type": "partnership"})


def test_profile_from_dict():
    profile = TaxProfile.from_dict({"taxpayer_type": "Company", "tax_year": "2024", "industry": "ict"})
    assert profile.is_company
    assert profile.tax_year == 2024


def test_inputs_from_dict_parses_nested_items():
    inputs = FinancialInputs.from_dict(
        {
            "gross_revenue": "5000000",
            "employee_count": "3",
            "payments": [{"payment_type": "Rent", "amount": 100000}],
            "documents": [{"document_type": "agreement"}],
            "turnover": None,
        }
    )
    assert inputs.gross_revenue == D("5000000")
    assert inputs.employee_count == 3
    assert inputs.payments[0].payment_type == "rent"
    assert inputs.turnover is None


def test_profile_from_dict_rejects_non_numeric_year():
    with pytest.raises(ValidationError) as exc:
        TaxProfile.from_dict({"taxpayer_type": "company", "tax_year": "twenty"})
    assert set(exc.value.errors) == {"profile.tax_year"}


def test_profile_from_dict_reads_boolean_words():
    profile = TaxProfile.from_dict({"taxpayer_type": "company", "is_vat_registered": "false"})
    assert profile.is_vat_registered is False
    assert TaxProfile.from_dict({"taxpayer_type": "company", "is_vat_registered": "Yes"}).is_vat_registered


def test_inputs_from_dict_collects_bad_fields():
    with pytest.raises(ValidationError) as exc:
        FinancialInputs.from_dict(
            {
                "gross_revenue": "abc",
                "employee_count": "2.5",
                "payments": [{"payment_type": "rent", "amount": "n/a"}, {"amount": 10}],
                "disposals": [{"acquisition_date": "2024-02-30", "acquisition_cost": 1, "disposal_proceeds": 2}],
            }
        )
    assert set(exc.value.errors) == {
        "inputs.gross_revenue",
        "inputs.employee_count",
        "inputs.payments[0].amount",
        "inputs.payments[1].payment_type",
        "inputs.disposals[0].acquisition_date",
        "inputs.disposals[0].disposal_date",
    }


def test_total_expenses_falls_back_to_components():
    inputs = FinancialInputs(cost_of_sales=D("100"), operating_expenses=D("50"))
    assert inputs.total_expenses == D("150")
    assert FinancialInputs(allowable_expenses=D("70"), cost_of_sales=D("100")).total_expenses == D("70")
