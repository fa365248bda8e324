"""
Report generator.

Produces:
- Tax computation reports with the reconciliation trail
- Draft financial statement reports
- Compliance check and filing deadline reports
- Bank import summaries
- CSV and JSON export
"""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence

import pandas as pd

from sme_tax.calculator import TaxResult
from sme_tax.compliance import ComplianceAlert, ComplianceResult, FilingDeadline
from sme_tax.importer import BatchImportSummary
from sme_tax.statements import StatementDraft


class _DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, date and Enum objects."""

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def _plain(obj: Any) -> Any:
    """Recursively convert Decimal, date and Enum values for serialization."""
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(i) for i in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj


class ReportGenerator:
    """
    Builds structured reports with export capabilities.

    All reports are plain dicts that can be rendered to console-friendly
    text or exported to CSV/JSON files.
    """

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir = Path(output_dir) if output_dir else Path("reports")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Tax computation
    # ------------------------------------------------------------------

    def tax_report(self, result: TaxResult, period_label: str = "") -> dict[str, Any]:
        """Income tax summary, sub-results and the full reconciliation trail."""
        sub_taxes: dict[str, Any] = {}
        if result.vat is not None:
            sub_taxes["net_vat_payable"] = result.vat.net_vat_payable
        if result.wht is not None:
            sub_taxes["wht_withheld"] = result.wht.total_wht
        if result.cgt is not None:
            sub_taxes["cgt_payable"] = result.cgt.total_cgt
        if result.tet is not None:
            sub_taxes["tet_payable"] = result.tet.tet_payable
        if result.stamp_duty is not None:
            sub_taxes["stamp_duty"] = result.stamp_duty.total_duty
        if result.levies is not None:
            sub_taxes["levies"] = result.levies.total

        return {
            "report_type": "tax_computation",
            "period": period_label or str(result.tax_year),
            "generated_date": date.today().isoformat(),
            "summary": {
                "taxpayer_type": result.taxpayer_type.value,
                "taxable_income": result.taxable_income,
                "tax_before_credits": result.tax_before_credits,
                "credits_applied": result.credits_applied,
                "total_tax_due": result.total_tax_due,
                "effective_rate": result.effective_rate,
                **sub_taxes,
                "combined_liability": result.combined_liability,
            },
            "rulebook": result.rulebook_metadata.to_dict(),
            "bands": [
                {"step_id": r.step_id, "label": r.label, "tax": r.value, "citation": r.citation}
                for r in result.bands
            ],
            "reconciliation": [r.to_dict() for r in result.reconciliation_report],
            "unavailable": dict(result.unavailable),
            "validation_issues": [i.to_dict() for i in result.validation_issues],
            "warnings": list(result.notes),
        }

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def statement_report(self, statement: StatementDraft, chart=None) -> dict[str, Any]:
        """Income statement, balance sheet and cash flow sections."""
        period = ""
        if statement.period_start or statement.period_end:
            start = statement.period_start.isoformat() if statement.period_start else "start"
            end = statement.period_end.isoformat() if statement.period_end else "date"
            period = f"{start} to {end}"

        accounts = []
        for code, amount in statement.account_totals.items():
            account = chart.get(code) if chart is not None else None
            accounts.append(
                {"account": code, "name": account.name if account else "", "amount": amount}
            )

        return {
            "report_type": "financial_statements",
            "period": period,
            "generated_date": date.today().isoformat(),
            "summary": {
                "revenue": statement.revenue,
                "cost_of_sales": statement.cost_of_sales,
                "gross_profit": statement.gross_profit,
                "operating_expenses": statement.operating_expenses,
                "operating_income": statement.operating_income,
                "other_income": statement.other_income,
                "profit_before_tax": statement.profit_before_tax,
                "tax_expense": statement.tax_expense,
                "net_income": statement.net_income,
            },
            "balance_sheet": {
                "assets": statement.assets,
                "liabilities": statement.liabilities,
                "equity": statement.equity,
                "balanced": statement.is_balanced,
            },
            "cash_flow": {
                "operating": statement.cash_from_operations,
                "investing": statement.cash_from_investing,
                "financing": statement.cash_from_financing,
                "net_cash_flow": statement.net_cash_flow,
            },
            "accounts": accounts,
            "entry_count": statement.entry_count,
        }

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def compliance_report(
        self,
        results: Sequence[ComplianceResult],
        alerts: Optional[Sequence[ComplianceAlert]] = None,
        deadlines: Optional[Sequence[FilingDeadline]] = None,
    ) -> dict[str, Any]:
        failed = [r for r in results if not r.passed]
        report: dict[str, Any] = {
            "report_type": "compliance_check",
            "generated_date": date.today().isoformat(),
            "summary": {
                "rules_checked": len(results),
                "passed": len(results) - len(failed),
                "failed": len(failed),
                "errors": sum(1 for r in failed if r.severity.value == "error"),
            },
            "results": [r.to_dict() for r in results],
        }

        if alerts:
            report["alerts"] = [
                {
                    "severity": a.severity.value,
                    "rule_id": a.rule_id,
                    "message": a.message,
                    "action": a.recommendation or "",
                    "resolved": a.resolved,
                }
                for a in alerts
            ]

        if deadlines:
            report["overdue_filings"] = [
                {
                    "tax_type": d.tax_type,
                    "period": f"{d.period_start.isoformat()} to {d.period_end.isoformat()}",
                    "due_date": d.due_date.isoformat(),
                    "status": d.status,
                    "days_until_due": d.days_until_due,
                }
                for d in deadlines
                if d.is_overdue
            ]
            report["upcoming_filings"] = [
                {
                    "tax_type": d.tax_type,
                    "due_date": d.due_date.isoformat(),
                    "days_until_due": d.days_until_due,
                }
                for d in deadlines
                if not d.is_overdue and d.status != "filed" and 0 <= d.days_until_due <= 30
            ]

        return report

    # ------------------------------------------------------------------
    # Bank import
    # ------------------------------------------------------------------

    def import_report(self, summary: BatchImportSummary) -> dict[str, Any]:
        return {
            "report_type": "bank_import",
            "generated_date": date.today().isoformat(),
            "summary": {
                "total": summary.total,
                "imported": summary.imported,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "income": summary.income,
                "expenses": summary.expenses,
                "net_amount": summary.net_amount,
            },
            "results": [
                {
                    "transaction_id": r.transaction_id,
                    "success": r.success,
                    "skipped": r.skipped,
                    "category": r.category,
                    "type": r.type,
                    "flow_type": r.flow_type.value if r.flow_type else "",
                    "amount": r.amount,
                    "journal_id": r.journal_id or "",
                    "error": r.error or "",
                }
                for r in summary.results
            ],
            "warnings": [
                f"{r.transaction_id or '(no id)'}: {r.error}"
                for r in summary.results
                if r.error and not r.skipped
            ],
        }

    # ------------------------------------------------------------------
    # Export methods
    # ------------------------------------------------------------------

    def to_json(
        self,
        report: dict[str, Any],
        filename: Optional[str] = None,
    ) -> str:
        """Export a report to JSON. Returns the JSON string."""
        json_str = json.dumps(_plain(report), indent=2, cls=_DecimalEncoder)

        if filename:
            path = self.output_dir / filename
            path.write_text(json_str, encoding="utf-8")

        return json_str

    def to_frame(self, report: dict[str, Any], section: str) -> pd.DataFrame:
        """A report section as a DataFrame: list sections as rows, dicts as key/value."""
        data = report.get(section)
        if not data:
            return pd.DataFrame()
        if isinstance(data, dict):
            return pd.DataFrame(
                [{"key": k, "value": v} for k, v in _plain(data).items()]
            )
        return pd.DataFrame(_plain(list(data)))

    def to_csv(
        self,
        report: dict[str, Any],
        filename: Optional[str] = None,
        section: str = "reconciliation",
    ) -> str:
        """
        Export a report section to CSV. Returns the CSV string.

        The section parameter specifies which list/dict in the report
        to export as rows.
        """
        frame = self.to_frame(report, section)
        if frame.empty:
            return ""

        csv_str = frame.to_csv(index=False)

        if filename:
            path = self.output_dir / filename
            path.write_text(csv_str, encoding="utf-8")

        return csv_str

    # ------------------------------------------------------------------
    # Console-formatted text output
    # ------------------------------------------------------------------

    def format_text(self, report: dict[str, Any]) -> str:
        """Format a report as human-readable text for console output."""
        lines: list[str] = []
        report_type = report.get("report_type", "report").replace("_", " ").title()
        lines.append(f"{'=' * 60}")
        lines.append(f"  {report_type}")
        lines.append(f"  Generated: {report.get('generated_date', '')}")
        if report.get("period"):
            lines.append(f"  Period: {report['period']}")
        lines.append(f"{'=' * 60}")
        lines.append("")

        def section(title: str, values: dict[str, Any]) -> None:
            lines.append(title)
            lines.append("-" * 40)
            for key, value in values.items():
                label = key.replace("_", " ").title()
                if isinstance(value, bool):
                    lines.append(f"  {label}: {'yes' if value else 'no'}")
                elif isinstance(value, (float, Decimal)):
                    if "rate" in key:
                        lines.append(f"  {label}: {float(value):.2%}")
                    else:
                        lines.append(f"  {label}: ₦{float(value):,.2f}")
                else:
                    lines.append(f"  {label}: {value}")
            lines.append("")

        summary = report.get("summary", {})
        if summary:
            section("SUMMARY", summary)
        if report.get("balance_sheet"):
            section("BALANCE SHEET", report["balance_sheet"])
        if report.get("cash_flow"):
            section("CASH FLOW", report["cash_flow"])

        bands = report.get("bands", [])
        if bands:
            lines.append("BANDS")
            lines.append("-" * 40)
            for b in bands:
                lines.append(
                    f"  {b['label']}: ₦{float(b['tax']):>14,.2f}  [{b.get('citation') or '-'}]"
                )
            lines.append("")

        unavailable = report.get("unavailable", {})
        if unavailable:
            lines.append("UNAVAILABLE")
            lines.append("-" * 40)
            for name, reason in unavailable.items():
                lines.append(f"  {name}: {reason}")
            lines.append("")

        alerts = report.get("alerts", [])
        if alerts:
            lines.append("ALERTS")
            lines.append("-" * 40)
            for a in alerts:
                sev = a.get("severity", "info").upper()
                lines.append(f"  [{sev}] {a.get('rule_id', '')}: {a.get('message', '')}")
                if a.get("action"):
                    lines.append(f"          Action: {a['action']}")
            lines.append("")

        overdue = report.get("overdue_filings", [])
        if overdue:
            lines.append("OVERDUE FILINGS")
            lines.append("-" * 40)
            for o in overdue:
                lines.append(f"  {o['tax_type']}: {o['period']} | Due: {o['due_date']}")
            lines.append("")

        warnings = report.get("warnings", [])
        if warnings:
            lines.append("NOTES" if report.get("report_type") == "tax_computation" else "WARNINGS")
            lines.append("-" * 40)
            for w in warnings:
                lines.append(f"  * {w}")
            lines.append("")

        return "\n".join(lines)
