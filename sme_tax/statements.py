"""
Draft financial statements derived from the journal.

Produces:
- Income statement lines for a period
- Balance sheet totals as at the period end
- Cash flow split into operating, investing and financing activities

Derivation is pure aggregation and can be repeated at any time; the
ledger is never modified.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sme_tax.accounts import AccountClass, ChartOfAccounts
from sme_tax.journal import JournalEntry

ZERO = Decimal("0")

OPERATING_EXPENSE_SUBCLASSES = frozenset(
    {"operating-expense", "administrative-expense", "finance-cost"}
)
INVESTING_SUBCLASSES = frozenset({"fixed-asset", "non-current-asset"})
LOAN_ACCOUNTS = frozenset({"2300", "2500"})


@dataclass(frozen=True)
class StatementDraft:
    """Income statement, balance sheet and cash flow totals."""

    period_start: Optional[date]
    period_end: Optional[date]
    revenue: Decimal
    cost_of_sales: Decimal
    gross_profit: Decimal
    operating_expenses: Decimal
    operating_income: Decimal
    other_income: Decimal
    profit_before_tax: Decimal
    tax_expense: Decimal
    net_income: Decimal
    assets: Decimal
    liabilities: Decimal
    equity: Decimal
    cash_from_operations: Decimal
    cash_from_investing: Decimal
    cash_from_financing: Decimal
    entry_count: int = 0
    account_totals: dict[str, Decimal] = field(default_factory=dict)

    @property
    def net_cash_flow(self) -> Decimal:
        return self.cash_from_operations + self.cash_from_investing + self.cash_from_financing

    @property
    def is_balanced(self) -> bool:
        return self.assets == self.liabilities + self.equity


class StatementDeriver:
    """Aggregates journal entries by account class and subclass."""

    def __init__(self, chart: Optional[ChartOfAccounts] = None) -> None:
        self.chart = chart or ChartOfAccounts()

    def _normal_balances(self, entries: Iterable[JournalEntry]) -> dict[str, Decimal]:
        balances: dict[str, Decimal] = {}
        for entry in entries:
            for line in entry.lines:
                account = self.chart.require(line.account_code)
                delta = line.debit - line.credit
                if not account.is_debit_normal:
                    delta = -delta
                balances[account.code] = balances.get(account.code, ZERO) + delta
        return balances

    def _sum(self, balances: dict[str, Decimal], predicate) -> Decimal:
        return sum(
            (amount for code, amount in balances.items() if predicate(self.chart.require(code))),
            ZERO,
        )

    def _cash_flows(self, entries: Iterable[JournalEntry]) -> tuple[Decimal, Decimal, Decimal]:
        """
        Attribute each cash movement to the counter-accounts of its entry.

        For an entry touching cash, the non-cash lines' (credit - debit)
        sums to the cash movement because the entry balances.
        """
        operations = investing = financing = ZERO
        for entry in entries:
            accounts = [self.chart.require(line.account_code) for line in entry.lines]
            if not any(a.is_cash for a in accounts):
                continue
            for account, line in zip(accounts, entry.lines):
                if account.is_cash:
                    continue
                flow = line.credit - line.debit
                if account.subclass in INVESTING_SUBCLASSES:
                    investing += flow
                elif account.account_class == AccountClass.EQUITY or account.code in LOAN_ACCOUNTS:
                    financing += flow
                else:
                    operations += flow
        return operations, investing, financing

    def derive(
        self,
        entries: Iterable[JournalEntry],
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> StatementDraft:
        """
        Derive a statement draft.

        The income statement and cash flow cover entries dated within
        [start, end]; the balance sheet covers everything up to ``end``.
        """
        to_date = [e for e in entries if end is None or e.date <= end]
        in_period = [e for e in to_date if start is None or e.date >= start]

        period = self._normal_balances(in_period)
        cumulative = self._normal_balances(to_date)

        revenue = self._sum(period, lambda a: a.subclass == "operating-revenue")
        other_income = self._sum(period, lambda a: a.subclass == "other-income")
        cost_of_sales = self._sum(period, lambda a: a.subclass == "cost-of-sales")
        operating_expenses = self._sum(period, lambda a: a.subclass in OPERATING_EXPENSE_SUBCLASSES)
        tax_expense = self._sum(period, lambda a: a.subclass == "tax-expense")

        gross_profit = revenue - cost_of_sales
        operating_income = gross_profit - operating_expenses
        profit_before_tax = operating_income + other_income
        net_income = profit_before_tax - tax_expense

        assets = self._sum(cumulative, lambda a: a.account_class == AccountClass.ASSET)
        liabilities = self._sum(cumulative, lambda a: a.account_class == AccountClass.LIABILITY)
        contributed = self._sum(cumulative, lambda a: a.account_class == AccountClass.EQUITY)
        earnings = self._sum(
            cumulative, lambda a: a.account_class == AccountClass.REVENUE
        ) - self._sum(cumulative, lambda a: a.account_class == AccountClass.EXPENSE)

        operations, investing, financing = self._cash_flows(in_period)

        return StatementDraft(
            period_start=start,
            period_end=end,
            revenue=revenue,
            cost_of_sales=cost_of_sales,
            gross_profit=gross_profit,
            operating_expenses=operating_expenses,
            operating_income=operating_income,
            other_income=other_income,
            profit_before_tax=profit_before_tax,
            tax_expense=tax_expense,
            net_income=net_income,
            assets=assets,
            liabilities=liabilities,
            equity=contributed + earnings,
            cash_from_operations=operations,
            cash_from_investing=investing,
            cash_from_financing=financing,
            entry_count=len(in_period),
            account_totals=dict(sorted(period.items())),
        )
