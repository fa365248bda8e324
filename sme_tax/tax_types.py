"""
Per-tax-type sub-calculators.

Handles:
- VAT (output less input)
- Withholding tax on qualifying payments
- Capital gains tax on asset disposals
- Tertiary education tax
- Stamp duty on instruments and electronic transfers
- Statutory levies (Police Trust Fund, NASENI, NSITF, ITF)

Every rate comes from the loaded rulebook and every figure is recorded
on the reconciliation trail with the rule's citation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from sme_tax.reconciliation import ReconciliationTrail
from sme_tax.rulebook import TaxRuleBook
from sme_tax.validation import FieldReader

ZERO = Decimal("0")


def round_tax(amount: Decimal) -> Decimal:
    """Round tax to the kobo, half up."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class _Record:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _rate(
    rulebook: TaxRuleBook, key: str, trail: Optional[ReconciliationTrail]
) -> Decimal:
    return rulebook.evaluate(key, {}, trail=trail)


def _row(
    trail: Optional[ReconciliationTrail],
    rulebook: TaxRuleBook,
    step_id: str,
    label: str,
    value: Decimal,
    rule_key: str,
    formula: Optional[str] = None,
    notes: Optional[str] = None,
) -> None:
    if trail is None:
        return
    trail.record(
        step_id,
        label,
        value,
        formula=formula,
        rule_key=rule_key,
        citation=rulebook.citation_for(rule_key),
        notes=notes,
    )


# -----------------------------------------------------------------------
# VAT
# -----------------------------------------------------------------------


@dataclass(frozen=True)
class VATResult(_Record):
    vat_rate: Decimal
    vatable_revenue: Decimal
    output_vat: Decimal
    input_vat: Decimal
    net_vat_payable: Decimal

    @property
    def is_refundable(self) -> bool:
        return self.net_vat_payable < 0


class VATCalculator:
    """Output VAT on vatable revenue less input VAT on purchases."""

    def calculate(
        self,
        rulebook: TaxRuleBook,
        vatable_revenue: Decimal,
        input_vat_paid: Optional[Decimal] = None,
        vat_taxable_purchases: Decimal = ZERO,
        trail: Optional[ReconciliationTrail] = None,
    ) -> VATResult:
        rate = _rate(rulebook, "VAT_RATE", trail)
        output_vat = round_tax(vatable_revenue * rate)
        if input_vat_paid is not None:
            input_vat = round_tax(input_vat_paid)
            input_basis = "input VAT paid as supplied"
        else:
            input_vat = round_tax(vat_taxable_purchases * rate)
            input_basis = f"{vat_taxable_purchases} * {rate}"
        net = output_vat - input_vat

        _row(trail, rulebook, "VAT_OUTPUT", "Output VAT", output_vat, "VAT_RATE",
             formula=f"{vatable_revenue} * {rate}")
        _row(trail, rulebook, "VAT_INPUT", "Input VAT", input_vat, "VAT_RATE", formula=input_basis)
        _row(trail, rulebook, "VAT_NET", "Net VAT payable", net, "VAT_RATE",
             formula="VAT_OUTPUT - VAT_INPUT",
             notes="Refundable / carried forward" if net < 0 else None)

        return VATResult(
            vat_rate=rate,
            vatable_revenue=vatable_revenue,
            output_vat=output_vat,
            input_vat=input_vat,
            net_vat_payable=net,
        )


# -----------------------------------------------------------------------
# Withholding tax
# -----------------------------------------------------------------------

WHT_PAYMENT_TYPES = (
    "dividends",
    "interest",
    "royalties",
    "rent",
    "consultancy",
    "technical_services",
    "commissions",
    "professional_fees_individual",
    "professional_fees_company",
    "construction",
    "contracts",
)


@dataclass(frozen=True)
class WHTPayment:
    payment_type: str
    amount: Decimal
    recipient_resident: bool = True
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "WHTPayment":
        reader = FieldReader()
        payment_type = reader.require("payment_type", data)
        amount = reader.decimal("amount", reader.require("amount", data))
        resident = reader.boolean("recipient_resident", data.get("recipient_resident"), True)
        reader.check("Invalid WHT payment")
        return cls(
            payment_type=str(payment_type).strip().lower(),
            amount=amount,
            recipient_resident=resident,
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class WHTLine(_Record):
    payment_type: str
    gross_amount: Decimal
    rate: Decimal
    wht_amount: Decimal
    net_payment: Decimal
    recipient_resident: bool


@dataclass(frozen=True)
class WHTResult(_Record):
    lines: tuple[WHTLine, ...]
    total_gross: Decimal
    total_wht: Decimal
    skipped: tuple[str, ...] = ()


def wht_rule_key(payment_type: str, resident: bool) -> str:
    suffix = "RESIDENT" if resident else "NON_RESIDENT"
    return f"WHT_{payment_type.upper()}_{suffix}"


class WHTCalculator:
    """Withholding tax deducted at source on qualifying payments."""

    def calculate(
        self,
        rulebook: TaxRuleBook,
        payments: Sequence[WHTPayment],
        trail: Optional[ReconciliationTrail] = None,
    ) -> WHTResult:
        lines: list[WHTLine] = []
        skipped: list[str] = []

        for i, payment in enumerate(payments, start=1):
            key = wht_rule_key(payment.payment_type, payment.recipient_resident)
            if not rulebook.has_rule(key):
                skipped.append(f"Payment {i}: unknown payment type '{payment.payment_type}'")
                continue
            rate = rulebook.evaluate(key, {}, strict=False)
            wht = round_tax(payment.amount * rate)
            lines.append(
                WHTLine(
                    payment_type=payment.payment_type,
                    gross_amount=payment.amount,
                    rate=rate,
                    wht_amount=wht,
                    net_payment=payment.amount - wht,
                    recipient_resident=payment.recipient_resident,
                )
            )
            _row(trail, rulebook, f"WHT_{i}", f"WHT on {payment.payment_type}", wht, key,
                 formula=f"{payment.amount} * {rate}", notes=payment.description or None)

        total_gross = sum((line.gross_amount for line in lines), ZERO)
        total_wht = sum((line.wht_amount for line in lines), ZERO)
        if trail is not None:
            trail.record("WHT_TOTAL", "Total withholding tax", total_wht,
                         notes="; ".join(skipped) or None)
        return WHTResult(
            lines=tuple(lines),
            total_gross=total_gross,
            total_wht=total_wht,
            skipped=tuple(skipped),
        )


# -----------------------------------------------------------------------
# Capital gains tax
# -----------------------------------------------------------------------

CGT_EXEMPT_ASSETS: dict[str, str] = {
    "decorations": "Decorations awarded for valour or gallant conduct",
    "life_insurance": "Life insurance policy proceeds",
    "government_securities": "Government securities",
    "government_stocks": "Gains from Nigerian government stocks",
    "charitable": "Ecclesiastical, charitable or educational institution assets",
    "pension_fund": "Approved pension fund assets",
    "trade_union": "Trade union assets",
}


@dataclass(frozen=True)
class AssetDisposal:
    asset_type: str  # real_estate, shares, business_assets, other, or an exempt kind
    description: str
    acquisition_date: date
    acquisition_cost: Decimal
    disposal_date: date
    disposal_proceeds: Decimal
    improvement_costs: Decimal = ZERO
    selling_expenses: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: dict) -> "AssetDisposal":
        reader = FieldReader()
        disposal = cls(
            asset_type=str(data.get("asset_type", "other")),
            description=data.get("description", ""),
            acquisition_date=reader.iso_date("acquisition_date", data.get("acquisition_date")),
            acquisition_cost=reader.decimal("acquisition_cost", reader.require("acquisition_cost", data)),
            disposal_date=reader.iso_date("disposal_date", data.get("disposal_date")),
            disposal_proceeds=reader.decimal("disposal_proceeds", reader.require("disposal_proceeds", data)),
            improvement_costs=reader.decimal("improvement_costs", data.get("improvement_costs"), ZERO),
            selling_expenses=reader.decimal("selling_expenses", data.get("selling_expenses"), ZERO),
        )
        reader.check("Invalid asset disposal")
        return disposal


@dataclass(frozen=True)
class CGTLine(_Record):
    description: str
    total_cost: Decimal
    net_proceeds: Decimal
    chargeable_gain: Decimal
    cgt_payable: Decimal
    is_exempt: bool = False
    exemption_reason: Optional[str] = None


@dataclass(frozen=True)
class CGTResult(_Record):
    disposals: tuple[CGTLine, ...]
    cgt_rate: Decimal
    total_gain: Decimal
    total_cgt: Decimal


class CGTCalculator:
    """Capital gains tax on chargeable gains; losses are not taxed."""

    def calculate(
        self,
        rulebook: TaxRuleBook,
        disposals: Sequence[AssetDisposal],
        trail: Optional[ReconciliationTrail] = None,
    ) -> CGTResult:
        rate = _rate(rulebook, "CGT_RATE", trail)
        lines: list[CGTLine] = []

        for i, d in enumerate(disposals, start=1):
            total_cost = d.acquisition_cost + d.improvement_costs
            net_proceeds = d.disposal_proceeds - d.selling_expenses
            gain = max(ZERO, net_proceeds - total_cost)
            exemption = CGT_EXEMPT_ASSETS.get(d.asset_type)
            cgt = ZERO if exemption else round_tax(gain * rate)
            lines.append(
                CGTLine(
                    description=d.description,
                    total_cost=total_cost,
                    net_proceeds=net_proceeds,
                    chargeable_gain=gain,
                    cgt_payable=cgt,
                    is_exempt=exemption is not None,
                    exemption_reason=exemption,
                )
            )
            _row(trail, rulebook, f"CGT_{i}", f"CGT on {d.description or d.asset_type}", cgt,
                 "CGT_RATE", formula=f"max(0, {net_proceeds} - {total_cost}) * {rate}",
                 notes=f"Exempt: {exemption}" if exemption else None)

        return CGTResult(
            disposals=tuple(lines),
            cgt_rate=rate,
            total_gain=sum((line.chargeable_gain for line in lines if not line.is_exempt), ZERO),
            total_cgt=sum((line.cgt_payable for line in lines), ZERO),
        )


# -----------------------------------------------------------------------
# Tertiary education tax
# -----------------------------------------------------------------------


@dataclass(frozen=True)
class TETResult(_Record):
    assessable_profit: Decimal
    tet_rate: Decimal
    tet_payable: Decimal
    is_applicable: bool
    note: str


class TETCalculator:
    def calculate(
        self,
        rulebook: TaxRuleBook,
        assessable_profit: Decimal,
        is_company: bool,
        trail: Optional[ReconciliationTrail] = None,
    ) -> TETResult:
        if not is_company:
            return TETResult(
                assessable_profit=assessable_profit,
                tet_rate=ZERO,
                tet_payable=ZERO,
                is_applicable=False,
                note="TET applies only to companies",
            )
        rate = _rate(rulebook, "TET_RATE", trail)
        base = max(ZERO, assessable_profit)
        tet = round_tax(base * rate)
        _row(trail, rulebook, "TET", "Tertiary education tax", tet, "TET_RATE",
             formula=f"{base} * {rate}")
        return TETResult(
            assessable_profit=base,
            tet_rate=rate,
            tet_payable=tet,
            is_applicable=True,
            note=f"Tertiary education tax at {float(rate * 100):g}% of assessable profit",
        )


# -----------------------------------------------------------------------
# Stamp duty
# -----------------------------------------------------------------------

# document type -> (rule key, basis)
_STAMP_RULES: dict[str, tuple[str, str]] = {
    "deed": ("STAMP_DEED_RATE", "ad_valorem"),
    "mortgage": ("STAMP_MORTGAGE_RATE", "ad_valorem"),
    "share_transfer": ("STAMP_SHARE_TRANSFER_RATE", "ad_valorem"),
    "agreement": ("STAMP_AGREEMENT_FIXED", "fixed"),
    "bank_transfer": ("STAMP_TRANSFER_FLAT", "electronic_transfer"),
    "other": ("STAMP_GENERAL_FIXED", "fixed"),
}


@dataclass(frozen=True)
class StampableDocument:
    document_type: str
    amount: Decimal = ZERO
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "StampableDocument":
        reader = FieldReader()
        amount = reader.decimal("amount", data.get("amount"), ZERO)
        reader.check("Invalid stampable document")
        return cls(
            document_type=str(data.get("document_type", "other")).strip().lower(),
            amount=amount,
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class StampDutyLine(_Record):
    document_type: str
    amount: Decimal
    duty: Decimal
    basis: str


@dataclass(frozen=True)
class StampDutyResult(_Record):
    lines: tuple[StampDutyLine, ...]
    total_duty: Decimal


class StampDutyCalculator:
    """Ad valorem, fixed and electronic-transfer stamp duties."""

    def duty_for(
        self, rulebook: TaxRuleBook, document: StampableDocument
    ) -> tuple[Decimal, str, str]:
        """Return (duty, basis, rule key) for one instrument."""
        key, basis = _STAMP_RULES.get(document.document_type, _STAMP_RULES["other"])
        value = rulebook.evaluate(key, {})
        if basis == "ad_valorem":
            return round_tax(document.amount * value), basis, key
        if basis == "electronic_transfer":
            threshold = rulebook.evaluate("STAMP_TRANSFER_THRESHOLD", {})
            duty = value if document.amount >= threshold else ZERO
            return duty, basis, key
        return value, basis, key

    def calculate(
        self,
        rulebook: TaxRuleBook,
        documents: Sequence[StampableDocument],
        trail: Optional[ReconciliationTrail] = None,
    ) -> StampDutyResult:
        lines: list[StampDutyLine] = []
        for i, doc in enumerate(documents, start=1):
            duty, basis, key = self.duty_for(rulebook, doc)
            lines.append(StampDutyLine(doc.document_type, doc.amount, duty, basis))
            _row(trail, rulebook, f"STAMP_{i}",
                 f"Stamp duty on {doc.document_type.replace('_', ' ')}", duty, key,
                 formula=f"{basis} on {doc.amount}", notes=doc.description or None)
        return StampDutyResult(
            lines=tuple(lines),
            total_duty=sum((line.duty for line in lines), ZERO),
        )


# -----------------------------------------------------------------------
# Statutory levies
# -----------------------------------------------------------------------

NASENI_INDUSTRIES = frozenset(
    {"banking", "mobile_telecom", "ict", "aviation", "maritime", "oil_gas"}
)


@dataclass(frozen=True)
class LevyLine(_Record):
    name: str
    base: Decimal
    rate: Decimal
    amount: Decimal
    is_applicable: bool
    note: str


@dataclass(frozen=True)
class LeviesResult(_Record):
    police: LevyLine
    naseni: LevyLine
    nsitf: LevyLine
    itf: LevyLine

    @property
    def lines(self) -> tuple[LevyLine, ...]:
        return (self.police, self.naseni, self.nsitf, self.itf)

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)


class LeviesCalculator:
    """Company levies and employer payroll contributions."""

    def _levy(
        self,
        rulebook: TaxRuleBook,
        trail: Optional[ReconciliationTrail],
        name: str,
        rule_key: str,
        base: Decimal,
        applicable: bool,
        note: str,
    ) -> LevyLine:
        rate = rulebook.evaluate(rule_key, {})
        amount = round_tax(max(ZERO, base) * rate) if applicable else ZERO
        if applicable:
            _row(trail, rulebook, f"LEVY_{name.upper()}", note, amount, rule_key,
                 formula=f"{max(ZERO, base)} * {rate}")
        return LevyLine(name, base, rate, amount, applicable, note)

    def calculate(
        self,
        rulebook: TaxRuleBook,
        is_company: bool,
        net_profit: Decimal = ZERO,
        profit_before_tax: Decimal = ZERO,
        industry: Optional[str] = None,
        annual_payroll: Decimal = ZERO,
        employee_count: int = 0,
        turnover: Decimal = ZERO,
        trail: Optional[ReconciliationTrail] = None,
    ) -> LeviesResult:
        police = self._levy(
            rulebook, trail, "police", "POLICE_LEVY_RATE", net_profit, is_company,
            "Police Trust Fund levy on net profit" if is_company
            else "Police Trust Fund levy applies only to companies",
        )

        in_sector = (industry or "").strip().lower() in NASENI_INDUSTRIES
        naseni = self._levy(
            rulebook, trail, "naseni", "NASENI_LEVY_RATE", profit_before_tax,
            is_company and in_sector,
            "NASENI levy on profit before tax" if is_company and in_sector
            else "NASENI levy applies only to companies in listed sectors",
        )

        nsitf = self._levy(
            rulebook, trail, "nsitf", "NSITF_RATE", annual_payroll,
            annual_payroll > 0,
            "NSITF employer contribution on payroll",
        )

        employee_threshold = rulebook.evaluate("ITF_EMPLOYEE_THRESHOLD", {})
        turnover_threshold = rulebook.evaluate("ITF_TURNOVER_THRESHOLD", {})
        itf_due = employee_count >= employee_threshold or turnover >= turnover_threshold
        itf = self._levy(
            rulebook, trail, "itf", "ITF_RATE", annual_payroll, itf_due,
            "ITF levy on annual payroll" if itf_due
            else f"ITF applies from {employee_threshold} employees or turnover of {turnover_threshold}",
        )

        return LeviesResult(police=police, naseni=naseni, nsitf=nsitf, itf=itf)
