#!/usr/bin/env python3
"""
Quick Start Example
===================

Imports two bank transactions, derives a draft income statement and
estimates company income tax from it, then repeats the worked
freelancer example from flags.

Usage:
    python examples/quick_start.py
"""

from decimal import Decimal

from sme_tax.calculator import FinancialInputs, TaxComputationOrchestrator, TaxProfile, TaxpayerType
from sme_tax.importer import BankImporter
from sme_tax.journal import JournalEngine
from sme_tax.statements import StatementDeriver


def main() -> None:
    # Post bank transactions to an in-memory ledger
    engine = JournalEngine()
    importer = BankImporter(engine)
    summary = importer.import_batch(
        [
            {"id": "1", "date": "2024-03-01", "description": "Salary payment", "amount": "150000", "type": "debit"},
            {"id": "2", "date": "2024-03-02", "description": "Invoice payment received", "amount": "500000", "type": "credit"},
        ]
    )
    print(f"Imported:       {summary.imported} of {summary.total}")

    for entry in engine.entries:
        for line in entry.lines:
            side = "DR" if line.debit else "CR"
            print(f"  {entry.id} {side} {line.account_code}  ₦{line.amount:,.2f}  {line.memo}")

    # Derive statements and compute company income tax
    statement = StatementDeriver(engine.chart).derive(engine.entries)
    print(f"Revenue:        ₦{statement.revenue:,.2f}")
    print(f"Profit b/tax:   ₦{statement.profit_before_tax:,.2f}")

    orchestrator = TaxComputationOrchestrator()
    company = TaxProfile(TaxpayerType.COMPANY, tax_year=2024)
    result = orchestrator.compute_from_statement(company, statement)
    for row in result.bands:
        print(f"Band:           {row.step_id} ₦{row.value:,.2f} [{row.citation}]")
    print(f"CIT Due:        ₦{result.total_tax_due:,.2f}")

    # Freelancer from direct figures
    print("\n--- Freelancer ---")
    freelancer = TaxProfile(TaxpayerType.FREELANCER, tax_year=2024)
    result = orchestrator.compute(
        freelancer,
        FinancialInputs(
            gross_revenue=Decimal("10000000"),
            allowable_expenses=Decimal("2000000"),
            pension_contributions=Decimal("500000"),
        ),
    )
    print(f"CRA:            ₦{result.find_row('CRA').value:,.2f}")
    print(f"Taxable Income: ₦{result.taxable_income:,.2f}")
    print(f"PIT Due:        ₦{result.total_tax_due:,.2f}")
    print(f"Effective Rate: {result.effective_rate:.2%}")

    for note in result.notes:
        print(f"Note:           {note}")


if __name__ == "__main__":
    main()
