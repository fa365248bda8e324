"""
Command-line interface for the SME tax engine.

Provides subcommands for transaction classification, bank statement
import, statement derivation, tax computation, rulebook inspection and
compliance checking.
"""

from __future__ import annotations

import argparse
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sme_tax.accounts import ChartOfAccounts
from sme_tax.calculator import (
    FinancialInputs,
    TaxComputationOrchestrator,
    TaxProfile,
    TaxpayerType,
    TaxResult,
)
from sme_tax.classifier import TransactionClassifier
from sme_tax.compliance import (
    BusinessFacts,
    ComplianceChecker,
    CompliancePolicy,
    Severity,
    facts_from,
)
from sme_tax.config import configure_logging, get_settings
from sme_tax.errors import ComplianceViolationError, SMETaxError, ValidationError
from sme_tax.importer import BankImporter, BatchImportSummary
from sme_tax.journal import JournalEngine
from sme_tax.report_generator import ReportGenerator
from sme_tax.rulebook import get_store
from sme_tax.statements import StatementDeriver, StatementDraft

console = Console()

_SEVERITY_COLORS = {Severity.ERROR: "red", Severity.WARNING: "yellow", Severity.INFO: "blue"}


def _money(value: Decimal) -> str:
    return f"₦{value:,.2f}"


def _decimal(value: Optional[str], default: str = "0") -> Decimal:
    try:
        return Decimal(value if value not in (None, "") else default)
    except InvalidOperation:
        console.print(f"[red]Not a number: {value}[/red]")
        sys.exit(1)


def _load_bank_csv(path: str) -> list[dict[str, Any]]:
    """
    Load bank transactions from a CSV file.

    Expected columns: id, date, description, amount, type
    Optional columns: narration, reference, currency
    """
    csv_path = Path(path)
    if not csv_path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        sys.exit(1)

    frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    frame.columns = [c.strip().lower() for c in frame.columns]
    missing = {"date", "description", "amount"} - set(frame.columns)
    if missing:
        console.print(f"[red]Missing columns: {', '.join(sorted(missing))}[/red]")
        sys.exit(1)
    if "id" not in frame.columns:
        frame["id"] = [str(i + 1) for i in range(len(frame))]
    return frame.to_dict("records")


def _import_file(path: str) -> tuple[JournalEngine, BatchImportSummary]:
    settings = get_settings()
    engine = JournalEngine(cash_account=settings.cash_account)
    importer = BankImporter(engine, TransactionClassifier())
    return engine, importer.import_batch(_load_bank_csv(path))


def _parse_date(value: Optional[str], option: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            "Invalid date", {option: f"expected YYYY-MM-DD, got {value!r}"}
        ) from None


def _derive(engine: JournalEngine, args: argparse.Namespace) -> StatementDraft:
    return StatementDeriver(engine.chart).derive(
        engine.entries, _parse_date(args.start, "--start"), _parse_date(args.end, "--end")
    )


def _export(rg: ReportGenerator, report: dict[str, Any], args: argparse.Namespace, section: str) -> None:
    if getattr(args, "export_json", None):
        rg.to_json(report, args.export_json)
        console.print(f"[green]JSON exported to {rg.output_dir / args.export_json}[/green]")
    if getattr(args, "export_csv", None):
        rg.to_csv(report, args.export_csv, section=section)
        console.print(f"[green]CSV exported to {rg.output_dir / args.export_csv}[/green]")


def _report_generator(args: argparse.Namespace) -> ReportGenerator:
    return ReportGenerator(args.output_dir or get_settings().report_dir)


# -----------------------------------------------------------------------
# Subcommand: classify
# -----------------------------------------------------------------------


def cmd_classify(args: argparse.Namespace) -> None:
    """Classify a single bank narration."""
    result = TransactionClassifier().classify(
        args.description, _decimal(args.amount), args.narration
    )
    account = ChartOfAccounts().get(result.account_code)
    console.print(
        Panel(
            f"[bold]Category:[/bold] {result.category}\n"
            f"[bold]Flow:[/bold] {result.flow_type.value}\n"
            f"[bold]Account:[/bold] {result.account_code}"
            f" {account.name if account else ''}\n"
            f"[bold]Confidence:[/bold] {result.confidence:.0%}\n"
            f"[bold]Source:[/bold] {result.source}",
            title="Classification",
            border_style="blue",
        )
    )


# -----------------------------------------------------------------------
# Subcommand: import
# -----------------------------------------------------------------------


def cmd_import(args: argparse.Namespace) -> None:
    """Import a bank statement CSV into the journal."""
    engine, summary = _import_file(args.file)

    table = Table(title="Bank Import", box=box.ROUNDED, show_lines=False)
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    table.add_column("Entry")
    table.add_column("Status")

    for r in summary.results:
        if r.success:
            status = "[green]posted[/green]"
        elif r.skipped:
            status = "[yellow]duplicate[/yellow]"
        else:
            status = f"[red]{(r.error or 'failed')[:40]}[/red]"
        table.add_row(
            r.transaction_id[:12],
            r.type,
            _money(r.amount) if r.amount else "-",
            r.category or "-",
            r.journal_id or "-",
            status,
        )
    console.print(table)

    trial = engine.trial_balance()
    console.print(
        Panel(
            f"[bold]Imported:[/bold] {summary.imported} of {summary.total}\n"
            f"[bold]Skipped:[/bold] {summary.skipped}  "
            f"[bold]Failed:[/bold] {summary.failed}\n"
            f"[bold]Income:[/bold] {_money(summary.income)}\n"
            f"[bold]Expenses:[/bold] {_money(summary.expenses)}\n"
            f"[bold]Net:[/bold] {_money(summary.net_amount)}\n"
            f"[bold]Trial balance:[/bold] "
            f"{'balanced' if trial.is_balanced else '[red]OUT OF BALANCE[/red]'}",
            title="Import Summary",
            border_style="green",
        )
    )

    rg = _report_generator(args)
    _export(rg, rg.import_report(summary), args, section="results")


# -----------------------------------------------------------------------
# Subcommand: statement
# -----------------------------------------------------------------------


def cmd_statement(args: argparse.Namespace) -> None:
    """Derive draft statements from a bank statement CSV."""
    engine, _ = _import_file(args.file)
    statement = _derive(engine, args)

    rg = _report_generator(args)
    report = rg.statement_report(statement, engine.chart)
    console.print(rg.format_text(report))

    if not statement.is_balanced:
        console.print("[red]Balance sheet does not balance[/red]")

    _export(rg, report, args, section="accounts")


# -----------------------------------------------------------------------
# Subcommand: tax
# -----------------------------------------------------------------------


def _print_tax_result(result: TaxResult, show_trail: bool) -> None:
    if result.bands:
        table = Table(title="Income Tax Bands", box=box.ROUNDED)
        table.add_column("Band")
        table.add_column("Tax", justify="right", style="bold")
        table.add_column("Citation", style="dim")
        for row in result.bands:
            table.add_row(row.label, _money(row.value), row.citation or "-")
        console.print(table)

    lines = [
        f"[bold]Taxable Income:[/bold] {_money(result.taxable_income)}",
        f"[bold]Tax Before Credits:[/bold] {_money(result.tax_before_credits)}",
        f"[bold]WHT Credits:[/bold] {_money(result.credits_applied)}",
        f"[bold]Total Tax Due:[/bold] {_money(result.total_tax_due)}",
        f"[bold]Effective Rate:[/bold] {result.effective_rate:.2%}",
    ]
    if result.vat is not None:
        label = "VAT Refundable" if result.vat.is_refundable else "Net VAT Payable"
        lines.append(f"[bold]{label}:[/bold] {_money(abs(result.vat.net_vat_payable))}")
    if result.wht is not None:
        lines.append(f"[bold]WHT Withheld:[/bold] {_money(result.wht.total_wht)}")
    if result.cgt is not None:
        lines.append(f"[bold]CGT:[/bold] {_money(result.cgt.total_cgt)}")
    if result.tet is not None:
        lines.append(f"[bold]TET:[/bold] {_money(result.tet.tet_payable)}")
    if result.stamp_duty is not None:
        lines.append(f"[bold]Stamp Duty:[/bold] {_money(result.stamp_duty.total_duty)}")
    if result.levies is not None:
        lines.append(f"[bold]Levies:[/bold] {_money(result.levies.total)}")
    lines.append(f"[bold]Combined Liability:[/bold] {_money(result.combined_liability)}")

    console.print(
        Panel(
            "\n".join(lines),
            title=f"{result.taxpayer_type.value.title()} Tax {result.tax_year}",
            border_style="yellow" if result.is_partial else "blue",
        )
    )

    for name, reason in result.unavailable.items():
        console.print(f"[yellow]{name.upper()} unavailable: {reason}[/yellow]")
    for issue in result.validation_issues:
        console.print(f"[dim]{issue.severity}: {issue.message}[/dim]")

    if show_trail:
        trail = Table(title="Reconciliation", box=box.SIMPLE)
        trail.add_column("Step", style="dim")
        trail.add_column("Label")
        trail.add_column("Value", justify="right")
        trail.add_column("Rule")
        trail.add_column("Citation")
        for row in result.reconciliation_report:
            trail.add_row(
                row.step_id, row.label, _money(row.value),
                row.rule_key or "", row.citation or "",
            )
        console.print(trail)


def cmd_tax(args: argparse.Namespace) -> None:
    """Compute tax from flags or from a bank statement CSV."""
    settings = get_settings()
    profile = TaxProfile(
        taxpayer_type=TaxpayerType(args.type),
        tax_year=args.year or settings.default_tax_year,
        jurisdiction=args.jurisdiction or settings.default_jurisdiction,
        is_vat_registered=args.vat_registered,
        industry=args.industry,
    )
    extras: dict[str, Any] = {
        "pension_contributions": _decimal(args.pension),
        "nhf_contributions": _decimal(args.nhf),
        "wht_credits": _decimal(args.wht_credits),
        "annual_payroll": _decimal(args.payroll),
        "employee_count": args.employees,
    }
    if args.turnover:
        extras["turnover"] = _decimal(args.turnover)
    if args.input_vat:
        extras["input_vat_paid"] = _decimal(args.input_vat)

    orchestrator = TaxComputationOrchestrator(get_store(settings.rules_dir))
    if args.file:
        engine, _ = _import_file(args.file)
        statement = _derive(engine, args)
        result = orchestrator.compute_from_statement(profile, statement, **extras)
    else:
        if args.revenue is None:
            console.print("[red]Provide --revenue, or --file with bank transactions[/red]")
            sys.exit(1)
        inputs = FinancialInputs(
            gross_revenue=_decimal(args.revenue),
            allowable_expenses=_decimal(args.expenses),
            cost_of_sales=_decimal(args.cost_of_sales),
            **extras,
        )
        result = orchestrator.compute(profile, inputs)

    _print_tax_result(result, args.trail)

    rg = _report_generator(args)
    _export(rg, rg.tax_report(result), args, section="reconciliation")


# -----------------------------------------------------------------------
# Subcommand: rules
# -----------------------------------------------------------------------


def cmd_rules(args: argparse.Namespace) -> None:
    """List available rulebooks or the rules of one rulebook."""
    settings = get_settings()
    store = get_store(settings.rules_dir)

    if args.available:
        table = Table(title="Rulebooks", box=box.ROUNDED)
        table.add_column("Jurisdiction", style="bold")
        table.add_column("Tax Year", justify="right")
        for jurisdiction, year in store.available():
            table.add_row(jurisdiction, str(year))
        console.print(table)
        return

    rulebook = store.load(
        args.year or settings.default_tax_year,
        args.jurisdiction or settings.default_jurisdiction,
    )
    meta = rulebook.metadata
    console.print(
        Panel(
            f"[bold]Jurisdiction:[/bold] {meta.jurisdiction}\n"
            f"[bold]Tax Year:[/bold] {meta.tax_year}\n"
            f"[bold]Version:[/bold] {meta.version}\n"
            f"[bold]Effective:[/bold] {meta.effective_date.isoformat()}\n"
            f"[bold]Reference:[/bold] {meta.legal_reference or '-'}",
            title="Rulebook",
            border_style="cyan",
        )
    )

    table = Table(box=box.SIMPLE)
    table.add_column("Rule", style="bold")
    table.add_column("Type")
    table.add_column("Formula")
    table.add_column("Citation", style="dim")
    for key in sorted(rulebook.rules):
        if args.prefix and not key.startswith(args.prefix.upper()):
            continue
        rule = rulebook.rules[key]
        formula = (
            ", ".join(
                f"{b.label}: {float(b.rate * 100):g}%" for b in rule.bands
            )
            if rule.bands
            else rule.formula
        )
        table.add_row(key, rule.type, formula, rule.citation_id or "")
    console.print(table)


# -----------------------------------------------------------------------
# Subcommand: compliance
# -----------------------------------------------------------------------


def cmd_compliance(args: argparse.Namespace) -> None:
    """Run the statutory compliance checks."""
    checker = ComplianceChecker()
    known = {
        "employee_count": args.employees,
        "is_vat_registered": args.vat_registered,
        "has_audited_accounts": args.audited,
    }

    if args.file:
        engine, _ = _import_file(args.file)
        facts = facts_from(_derive(engine, args), **known)
    else:
        facts = BusinessFacts.from_mapping(
            {
                **known,
                "turnover": _decimal(args.turnover),
                "has_qualifying_payments": args.qualifying_payments,
                "wht_deducted": args.wht_deducted,
                "pension_contributed": args.pension,
                "itf_contributed": args.itf,
                "nsitf_contributed": args.nsitf,
            }
        )

    results = checker.check(facts)
    table = Table(title="Compliance Checks", box=box.ROUNDED)
    table.add_column("Rule", style="bold")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Result")
    for r in results:
        mark = "[green]pass[/green]" if r.passed else f"[{_SEVERITY_COLORS[r.severity]}]fail[/]"
        table.add_row(r.rule_name, r.category, r.severity.value, f"{mark} {r.message}")
    console.print(table)

    try:
        alerts = checker.apply_policy(results, CompliancePolicy(args.policy))
    except ComplianceViolationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    for alert in alerts:
        color = _SEVERITY_COLORS[alert.severity]
        console.print(
            Panel(
                f"{alert.message}\n\n[bold]Action:[/bold] {alert.recommendation or '-'}",
                title=f"[{color}]{alert.severity.value.upper()}[/{color}] - {alert.category}",
                border_style=color,
            )
        )

    deadlines = None
    if args.deadlines:
        deadlines = checker.filing_deadlines(
            args.year or get_settings().default_tax_year,
            vat_registered=facts.is_vat_registered,
        )
        alerts = alerts + checker.deadline_alerts(deadlines)
        upcoming = [d for d in deadlines if not d.is_overdue and d.days_until_due >= 0][:6]
        if upcoming:
            dl = Table(title="Upcoming Filings", box=box.SIMPLE)
            dl.add_column("Tax")
            dl.add_column("Period")
            dl.add_column("Due")
            for d in upcoming:
                dl.add_row(d.tax_type, f"{d.period_start} to {d.period_end}", d.due_date.isoformat())
            console.print(dl)

    rg = _report_generator(args)
    _export(rg, rg.compliance_report(results, alerts, deadlines), args, section="results")


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def _add_export_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--export-json", help="Export report to JSON file")
    p.add_argument("--export-csv", help="Export report section to CSV file")
    p.add_argument("--output-dir", help="Output directory for exports")


def _add_period_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--start", help="Period start (YYYY-MM-DD)")
    p.add_argument("--end", help="Period end (YYYY-MM-DD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sme-tax",
        description="SME Tax Engine - Bank transactions to double-entry books to Nigerian tax estimates",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # classify
    cls_p = subparsers.add_parser("classify", help="Classify a bank narration")
    cls_p.add_argument("description", help="Transaction description")
    cls_p.add_argument("--amount", default="-1", help="Signed amount (positive = money in)")
    cls_p.add_argument("--narration", help="Additional bank narration")
    cls_p.set_defaults(func=cmd_classify)

    # import
    imp_p = subparsers.add_parser("import", help="Import a bank statement CSV")
    imp_p.add_argument("--file", "-f", required=True, help="Bank statement CSV")
    _add_export_args(imp_p)
    imp_p.set_defaults(func=cmd_import)

    # statement
    st_p = subparsers.add_parser("statement", help="Derive draft financial statements")
    st_p.add_argument("--file", "-f", required=True, help="Bank statement CSV")
    _add_period_args(st_p)
    _add_export_args(st_p)
    st_p.set_defaults(func=cmd_statement)

    # tax
    tax_p = subparsers.add_parser("tax", help="Compute tax liability")
    tax_p.add_argument("--type", choices=[t.value for t in TaxpayerType], default="company")
    tax_p.add_argument("--year", type=int, help="Tax year")
    tax_p.add_argument("--jurisdiction", help="Rulebook jurisdiction")
    tax_p.add_argument("--file", "-f", help="Bank statement CSV to derive inputs from")
    _add_period_args(tax_p)
    tax_p.add_argument("--revenue", help="Gross revenue")
    tax_p.add_argument("--expenses", help="Allowable expenses")
    tax_p.add_argument("--cost-of-sales", help="Cost of sales")
    tax_p.add_argument("--turnover", help="Turnover (defaults to revenue)")
    tax_p.add_argument("--pension", help="Pension contributions")
    tax_p.add_argument("--nhf", help="NHF contributions")
    tax_p.add_argument("--wht-credits", help="WHT credits held")
    tax_p.add_argument("--input-vat", help="Input VAT paid")
    tax_p.add_argument("--vat-registered", action="store_true")
    tax_p.add_argument("--industry", help="Industry sector (for NASENI levy)")
    tax_p.add_argument("--payroll", help="Annual payroll")
    tax_p.add_argument("--employees", type=int, default=0, help="Employee count")
    tax_p.add_argument("--trail", action="store_true", help="Show the reconciliation trail")
    _add_export_args(tax_p)
    tax_p.set_defaults(func=cmd_tax)

    # rules
    rules_p = subparsers.add_parser("rules", help="Inspect tax rulebooks")
    rules_p.add_argument("--year", type=int, help="Tax year")
    rules_p.add_argument("--jurisdiction", help="Rulebook jurisdiction")
    rules_p.add_argument("--prefix", help="Only rules whose key starts with this prefix")
    rules_p.add_argument("--available", action="store_true", help="List rulebooks on disk")
    rules_p.set_defaults(func=cmd_rules)

    # compliance
    comp_p = subparsers.add_parser("compliance", help="Run statutory compliance checks")
    comp_p.add_argument("--file", "-f", help="Bank statement CSV to derive facts from")
    _add_period_args(comp_p)
    comp_p.add_argument("--turnover", help="Annual turnover")
    comp_p.add_argument("--employees", type=int, default=0, help="Employee count")
    comp_p.add_argument("--vat-registered", action="store_true")
    comp_p.add_argument("--qualifying-payments", action="store_true",
                        help="Business makes payments subject to WHT")
    comp_p.add_argument("--wht-deducted", action="store_true")
    comp_p.add_argument("--pension", action="store_true", help="Pension contributions remitted")
    comp_p.add_argument("--itf", action="store_true", help="ITF contributions made")
    comp_p.add_argument("--nsitf", action="store_true", help="NSITF contributions made")
    comp_p.add_argument("--audited", action="store_true", help="Accounts are audited")
    comp_p.add_argument("--policy", choices=[p.value for p in CompliancePolicy], default="advisory")
    comp_p.add_argument("--deadlines", action="store_true", help="Show filing deadlines")
    comp_p.add_argument("--year", type=int, help="Tax year for filing deadlines")
    _add_export_args(comp_p)
    comp_p.set_defaults(func=cmd_compliance)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    configure_logging(level=args.log_level)

    try:
        args.func(args)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        for name, message in e.errors.items():
            console.print(f"  [red]{name}: {message}[/red]")
        sys.exit(1)
    except SMETaxError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
