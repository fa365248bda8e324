"""
SME Tax Engine
==============

Books-to-tax pipeline for Nigerian small businesses: bank transactions
are classified, posted to a double-entry journal, summarised into draft
financial statements and run through a versioned tax rulebook.

Modules:
    accounts        - Chart of accounts with tax attributes
    classifier      - Rule-based transaction classification with optional AI fallback
    journal         - Double-entry journal engine
    importer        - Bank transaction import (sync and async)
    statements      - Draft income statement, balance sheet and cash flow
    formula         - Safe arithmetic formula evaluation
    bands           - Progressive tax band calculation
    rulebook        - Versioned tax rulebooks with legal citations
    calculator      - PIT/CIT orchestration with reconciliation trail
    tax_types       - VAT, WHT, CGT, TET, stamp duty and levies
    validation      - Request validation and advisory checks
    compliance      - Statutory compliance rules and filing deadlines
    report_generator- Reporting with CSV/JSON export
    cli             - Command-line interface
"""

__version__ = "1.0.0"
__author__ = "Taofik Bishi"

from sme_tax.accounts import ChartOfAccounts
from sme_tax.calculator import (
    FinancialInputs,
    TaxComputationOrchestrator,
    TaxProfile,
    TaxpayerType,
    TaxResult,
)
from sme_tax.classifier import ClassificationChain, TransactionClassifier
from sme_tax.compliance import ComplianceChecker
from sme_tax.importer import BankImporter
from sme_tax.journal import JournalEngine
from sme_tax.report_generator import ReportGenerator
from sme_tax.rulebook import RuleBookStore, TaxRuleBook
from sme_tax.statements import StatementDeriver

__all__ = [
    "ChartOfAccounts",
    "TransactionClassifier",
    "ClassificationChain",
    "JournalEngine",
    "BankImporter",
    "StatementDeriver",
    "RuleBookStore",
    "TaxRuleBook",
    "TaxpayerType",
    "TaxProfile",
    "FinancialInputs",
    "TaxResult",
    "TaxComputationOrchestrator",
    "ComplianceChecker",
    "ReportGenerator",
]
