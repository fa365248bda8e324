"""
Chart of accounts for Nigerian small businesses.

Covers the account classes used by the journal engine and statement
deriver, with the tax attributes the FIRS regime cares about
(deductibility, VAT and WHT applicability).

Sources: IFRS for SMEs presentation, FIRS WHT regulations, CITA
deductibility rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterator, Optional

from sme_tax.errors import UnknownAccountError, account_not_found


class AccountClass(Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


# Classes whose balance increases on the debit side
DEBIT_NORMAL = frozenset({AccountClass.ASSET, AccountClass.EXPENSE})

CASH_ACCOUNTS = frozenset({"1000", "1010", "1020", "1030"})


@dataclass(frozen=True)
class Account:
    """A single ledger account."""

    code: str
    name: str
    account_class: AccountClass
    subclass: str
    description: str = ""
    tax_deductible: bool = False
    vat_applicable: bool = False
    wht_applicable: bool = False
    wht_rate: Optional[Decimal] = None  # decimal, e.g. 0.10 = 10%

    @property
    def is_debit_normal(self) -> bool:
        return self.account_class in DEBIT_NORMAL

    @property
    def is_cash(self) -> bool:
        return self.code in CASH_ACCOUNTS


# ---------------------------------------------------------------------------
# Account data: code -> (name, class, subclass, description, flags)
# ---------------------------------------------------------------------------

_A = AccountClass.ASSET
_L = AccountClass.LIABILITY
_E = AccountClass.EQUITY
_R = AccountClass.REVENUE
_X = AccountClass.EXPENSE

_ACCOUNT_DATA: dict[str, dict] = {
    # Current assets
    "1000": {"name": "Cash and Cash Equivalents", "class": _A, "sub": "current-asset", "desc": "Cash in hand and bank balances"},
    "1010": {"name": "Petty Cash", "class": _A, "sub": "current-asset", "desc": "Small cash fund for minor expenses"},
    "1020": {"name": "Bank - Current Account", "class": _A, "sub": "current-asset", "desc": "Main operating bank account"},
    "1030": {"name": "Bank - Savings Account", "class": _A, "sub": "current-asset", "desc": "Interest-bearing savings account"},
    "1100": {"name": "Accounts Receivable", "class": _A, "sub": "current-asset", "desc": "Trade debtors", "wht": True},
    "1110": {"name": "Allowance for Doubtful Debts", "class": _A, "sub": "current-asset", "desc": "Provision for bad debts (contra)", "deductible": True},
    "1200": {"name": "Inventory - Raw Materials", "class": _A, "sub": "current-asset", "desc": "Materials for production"},
    "1210": {"name": "Inventory - Work in Progress", "class": _A, "sub": "current-asset", "desc": "Partially completed goods"},
    "1220": {"name": "Inventory - Finished Goods", "class": _A, "sub": "current-asset", "desc": "Completed goods ready for sale"},
    "1300": {"name": "Prepaid Expenses", "class": _A, "sub": "current-asset", "desc": "Expenses paid in advance"},
    "1310": {"name": "Prepaid Rent", "class": _A, "sub": "current-asset", "desc": "Rent paid in advance"},
    "1320": {"name": "Prepaid Insurance", "class": _A, "sub": "current-asset", "desc": "Insurance premiums paid in advance"},
    "1400": {"name": "VAT Input (Recoverable)", "class": _A, "sub": "current-asset", "desc": "VAT paid on purchases", "vat": True},
    "1410": {"name": "WHT Receivable", "class": _A, "sub": "current-asset", "desc": "Withholding tax credits receivable"},
    # Fixed and non-current assets
    "1500": {"name": "Land", "class": _A, "sub": "fixed-asset", "desc": "Land owned by the business"},
    "1510": {"name": "Buildings", "class": _A, "sub": "fixed-asset", "desc": "Office/factory buildings", "deductible": True},
    "1511": {"name": "Accumulated Depreciation - Buildings", "class": _A, "sub": "fixed-asset", "desc": "Depreciation on buildings (contra)"},
    "1520": {"name": "Plant and Machinery", "class": _A, "sub": "fixed-asset", "desc": "Production equipment", "deductible": True},
    "1521": {"name": "Accumulated Depreciation - Plant", "class": _A, "sub": "fixed-asset", "desc": "Depreciation on plant (contra)"},
    "1530": {"name": "Motor Vehicles", "class": _A, "sub": "fixed-asset", "desc": "Company vehicles", "deductible": True},
    "1531": {"name": "Accumulated Depreciation - Vehicles", "class": _A, "sub": "fixed-asset", "desc": "Depreciation on vehicles (contra)"},
    "1540": {"name": "Office Equipment", "class": _A, "sub": "fixed-asset", "desc": "Computers and office equipment", "deductible": True},
    "1541": {"name": "Accumulated Depreciation - Equipment", "class": _A, "sub": "fixed-asset", "desc": "Depreciation on equipment (contra)"},
    "1550": {"name": "Furniture and Fittings", "class": _A, "sub": "fixed-asset", "desc": "Office furniture", "deductible": True},
    "1600": {"name": "Intangible Assets", "class": _A, "sub": "non-current-asset", "desc": "Software, patents, goodwill"},
    # Current liabilities
    "2000": {"name": "Accounts Payable", "class": _L, "sub": "current-liability", "desc": "Trade creditors"},
    "2100": {"name": "Accrued Expenses", "class": _L, "sub": "current-liability", "desc": "Expenses incurred but not yet paid"},
    "2110": {"name": "Accrued Salaries", "class": _L, "sub": "current-liability", "desc": "Salaries owed to employees"},
    "2200": {"name": "VAT Output (Payable)", "class": _L, "sub": "current-liability", "desc": "VAT collected on sales, payable to FIRS", "vat": True},
    "2210": {"name": "PAYE Payable", "class": _L, "sub": "current-liability", "desc": "Employee income tax withheld"},
    "2220": {"name": "WHT Payable", "class": _L, "sub": "current-liability", "desc": "Withholding tax on payments", "wht": True},
    "2230": {"name": "Pension Contributions Payable", "class": _L, "sub": "current-liability", "desc": "Employee pension contributions"},
    "2240": {"name": "NHF Contributions Payable", "class": _L, "sub": "current-liability", "desc": "National Housing Fund contributions"},
    "2250": {"name": "NSITF Payable", "class": _L, "sub": "current-liability", "desc": "Nigeria Social Insurance Trust Fund"},
    "2260": {"name": "ITF Payable", "class": _L, "sub": "current-liability", "desc": "Industrial Training Fund levy"},
    "2300": {"name": "Short-term Loans", "class": _L, "sub": "current-liability", "desc": "Overdrafts and short-term borrowings"},
    "2400": {"name": "Deferred Revenue", "class": _L, "sub": "current-liability", "desc": "Revenue received in advance"},
    # Non-current liabilities
    "2500": {"name": "Long-term Loans", "class": _L, "sub": "non-current-liability", "desc": "Bank loans payable beyond 12 months"},
    "2600": {"name": "Deferred Tax Liability", "class": _L, "sub": "non-current-liability", "desc": "Tax payable in future periods"},
    # Equity
    "3000": {"name": "Share Capital", "class": _E, "sub": "share-capital", "desc": "Issued and paid-up share capital"},
    "3100": {"name": "Share Premium", "class": _E, "sub": "reserves", "desc": "Amount received above par value"},
    "3200": {"name": "Retained Earnings", "class": _E, "sub": "retained-earnings", "desc": "Accumulated profits/losses"},
    "3300": {"name": "Revaluation Reserve", "class": _E, "sub": "reserves", "desc": "Asset revaluation surplus"},
    "3400": {"name": "Dividends", "class": _E, "sub": "retained-earnings", "desc": "Dividends declared (contra)"},
    # Revenue
    "4000": {"name": "Sales Revenue", "class": _R, "sub": "operating-revenue", "desc": "Revenue from main business activities", "vat": True},
    "4010": {"name": "Service Revenue", "class": _R, "sub": "operating-revenue", "desc": "Revenue from services rendered", "vat": True, "wht_rate": "0.05"},
    "4020": {"name": "Contract Revenue", "class": _R, "sub": "operating-revenue", "desc": "Revenue from contracts", "vat": True, "wht_rate": "0.05"},
    "4100": {"name": "Sales Returns and Allowances", "class": _R, "sub": "operating-revenue", "desc": "Returns and discounts (contra)"},
    "4200": {"name": "Interest Income", "class": _R, "sub": "other-income", "desc": "Interest earned on deposits", "wht_rate": "0.10"},
    "4210": {"name": "Dividend Income", "class": _R, "sub": "other-income", "desc": "Dividends received"},
    "4220": {"name": "Rental Income", "class": _R, "sub": "other-income", "desc": "Income from property rentals", "wht_rate": "0.10"},
    "4300": {"name": "Gain on Asset Disposal", "class": _R, "sub": "other-income", "desc": "Profit on sale of fixed assets"},
    "4400": {"name": "Foreign Exchange Gain", "class": _R, "sub": "other-income", "desc": "Gain from currency fluctuations"},
    "4500": {"name": "Other Income", "class": _R, "sub": "other-income", "desc": "Miscellaneous income"},
    # Cost of sales
    "5000": {"name": "Cost of Goods Sold", "class": _X, "sub": "cost-of-sales", "desc": "Direct cost of goods sold", "deductible": True},
    "5010": {"name": "Raw Materials Used", "class": _X, "sub": "cost-of-sales", "desc": "Direct materials consumed", "deductible": True},
    "5020": {"name": "Direct Labour", "class": _X, "sub": "cost-of-sales", "desc": "Production staff wages", "deductible": True},
    "5030": {"name": "Manufacturing Overhead", "class": _X, "sub": "cost-of-sales", "desc": "Indirect production costs", "deductible": True},
    "5040": {"name": "Freight-In", "class": _X, "sub": "cost-of-sales", "desc": "Cost of bringing goods to warehouse", "deductible": True},
    # Operating expenses
    "5500": {"name": "Salaries and Wages", "class": _X, "sub": "operating-expense", "desc": "Employee compensation", "deductible": True},
    "5510": {"name": "Staff Welfare", "class": _X, "sub": "operating-expense", "desc": "Employee benefits and welfare", "deductible": True},
    "5520": {"name": "Pension Contribution - Employer", "class": _X, "sub": "operating-expense", "desc": "Employer pension contribution", "deductible": True},
    "5530": {"name": "NSITF Contribution", "class": _X, "sub": "operating-expense", "desc": "Social insurance contribution", "deductible": True},
    "5540": {"name": "ITF Contribution", "class": _X, "sub": "operating-expense", "desc": "Industrial training fund levy", "deductible": True},
    "5600": {"name": "Rent Expense", "class": _X, "sub": "operating-expense", "desc": "Office/premises rent", "deductible": True, "wht_rate": "0.10"},
    "5610": {"name": "Utilities", "class": _X, "sub": "operating-expense", "desc": "Electricity, water and similar", "deductible": True},
    "5620": {"name": "Telephone and Internet", "class": _X, "sub": "operating-expense", "desc": "Communication costs", "deductible": True},
    "5700": {"name": "Depreciation Expense", "class": _X, "sub": "operating-expense", "desc": "Annual depreciation charge", "deductible": True},
    "5710": {"name": "Amortization Expense", "class": _X, "sub": "operating-expense", "desc": "Amortization of intangibles", "deductible": True},
    "5800": {"name": "Insurance Expense", "class": _X, "sub": "operating-expense", "desc": "Business insurance premiums", "deductible": True},
    "5810": {"name": "Repairs and Maintenance", "class": _X, "sub": "operating-expense", "desc": "Equipment and building repairs", "deductible": True},
    "5820": {"name": "Office Supplies", "class": _X, "sub": "operating-expense", "desc": "Stationery and consumables", "deductible": True},
    "5900": {"name": "Professional Fees", "class": _X, "sub": "operating-expense", "desc": "Legal, audit, consulting fees", "deductible": True, "wht_rate": "0.10"},
    "5910": {"name": "Audit Fees", "class": _X, "sub": "operating-expense", "desc": "External audit fees", "deductible": True, "wht_rate": "0.10"},
    "5920": {"name": "Legal Fees", "class": _X, "sub": "operating-expense", "desc": "Legal and company secretarial", "deductible": True, "wht_rate": "0.10"},
    # Administrative expenses
    "6000": {"name": "Advertising and Marketing", "class": _X, "sub": "administrative-expense", "desc": "Promotion and advertising costs", "deductible": True},
    "6010": {"name": "Travel and Entertainment", "class": _X, "sub": "administrative-expense", "desc": "Business travel and meals", "deductible": True},
    "6020": {"name": "Training and Development", "class": _X, "sub": "administrative-expense", "desc": "Staff training costs", "deductible": True},
    "6030": {"name": "Bank Charges", "class": _X, "sub": "administrative-expense", "desc": "Bank fees and commissions", "deductible": True},
    "6040": {"name": "Bad Debts Written Off", "class": _X, "sub": "administrative-expense", "desc": "Irrecoverable debts", "deductible": True},
    "6050": {"name": "Donations and CSR", "class": _X, "sub": "administrative-expense", "desc": "Charitable donations", "deductible": True},
    "6060": {"name": "Fines and Penalties", "class": _X, "sub": "administrative-expense", "desc": "Regulatory fines"},
    "6070": {"name": "Transport Expense", "class": _X, "sub": "administrative-expense", "desc": "Fuel, fares and logistics", "deductible": True},
    # Finance costs
    "6500": {"name": "Interest Expense", "class": _X, "sub": "finance-cost", "desc": "Interest on loans and borrowings", "deductible": True},
    "6510": {"name": "Bank Loan Interest", "class": _X, "sub": "finance-cost", "desc": "Interest on bank facilities", "deductible": True},
    "6600": {"name": "Foreign Exchange Loss", "class": _X, "sub": "finance-cost", "desc": "Loss from currency fluctuations", "deductible": True},
    # Tax expense
    "7000": {"name": "Company Income Tax", "class": _X, "sub": "tax-expense", "desc": "Current year CIT provision"},
    "7010": {"name": "Tertiary Education Tax", "class": _X, "sub": "tax-expense", "desc": "TET on assessable profit"},
    "7020": {"name": "Deferred Tax Expense", "class": _X, "sub": "tax-expense", "desc": "Deferred tax movement"},
}


class ChartOfAccounts:
    """
    Read-only registry of ledger accounts.

    Provides lookup by code, class, subclass and tax attribute.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._load_accounts()

    def _load_accounts(self) -> None:
        for code, data in _ACCOUNT_DATA.items():
            wht_rate = data.get("wht_rate")
            self._accounts[code] = Account(
                code=code,
                name=data["name"],
                account_class=data["class"],
                subclass=data["sub"],
                description=data.get("desc", ""),
                tax_deductible=data.get("deductible", False),
                vat_applicable=data.get("vat", False),
                wht_applicable=data.get("wht", False) or wht_rate is not None,
                wht_rate=Decimal(wht_rate) if wht_rate else None,
            )

    def __contains__(self, code: object) -> bool:
        return code in self._accounts

    def __iter__(self) -> Iterator[Account]:
        return iter(self.all_accounts())

    def __len__(self) -> int:
        return len(self._accounts)

    def get(self, code: str) -> Optional[Account]:
        """Retrieve an account by code, or None."""
        return self._accounts.get(str(code).strip())

    def require(self, code: str) -> Account:
        """Retrieve an account by code, raising UnknownAccountError if absent."""
        account = self.get(code)
        if account is None:
            raise UnknownAccountError(account_not_found(code))
        return account

    def by_class(self, account_class: AccountClass) -> list[Account]:
        return [a for a in self.all_accounts() if a.account_class == account_class]

    def by_subclass(self, subclass: str) -> list[Account]:
        return [a for a in self.all_accounts() if a.subclass == subclass]

    def tax_deductible(self) -> list[Account]:
        """Return accounts whose charges reduce assessable profit."""
        return [a for a in self.all_accounts() if a.tax_deductible]

    def wht_applicable(self) -> list[Account]:
        """Return accounts on which withholding tax is deducted."""
        return [a for a in self.all_accounts() if a.wht_applicable]

    def all_accounts(self) -> list[Account]:
        """Return all accounts sorted by code."""
        return [self._accounts[k] for k in sorted(self._accounts)]
