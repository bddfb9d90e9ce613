from pathlib import Path
from typing import List

from ..models.audit import AuditLogEntry, AuditSummary


def _pct(count: int, total: int) -> str:
    return f"{(count / total * 100) if total else 0:.1f}%"


def format_summary(summary: AuditSummary) -> str:
    """Render an audit summary as Markdown."""
    lines: List[str] = []
    lines.append("# Audit Summary")
    lines.append("")

    start = summary.period_start.isoformat() if summary.period_start else "-"
    end = summary.period_end.isoformat() if summary.period_end else "-"
    lines.append(f"**Period**: {start} to {end}")
    lines.append("")

    total = summary.attempts
    lines.append("## Totals")
    lines.append(f"- Attempts: {total}")
    lines.append(f"- Successful: {summary.successful}")
    lines.append(f"- Failed: {summary.failed}")
    lines.append("")

    lines.append("## Decisions")
    lines.append(f"- Auto-approved: {summary.approved} ({_pct(summary.approved, total)})")
    lines.append(f"- For review: {summary.review} ({_pct(summary.review, total)})")
    lines.append(f"- Rejected: {summary.rejected} ({_pct(summary.rejected, total)})")
    lines.append("")

    lines.append("## Validation Pass Rates")
    lines.append(f"- Layer 1 (Extraction): {summary.layer1_pass_rate:.1f}%")
    lines.append(f"- Layer 2 (Semantic): {summary.layer2_pass_rate:.1f}%")
    lines.append(f"- Layer 3 (Cross-Ref): {summary.layer3_pass_rate:.1f}%")
    lines.append(f"- Average Confidence: {summary.average_confidence:.1f}%")
    lines.append("")

    lines.append("## Errors")
    lines.append(f"- Critical: {summary.critical_count}")
    lines.append(f"- Major: {summary.major_count}")
    lines.append(f"- Minor: {summary.minor_count}")
    if summary.top_errors:
        lines.append("")
        lines.append("### Top Errors")
        for error in summary.top_errors:
            lines.append(f"- {error.message} ({error.count}x)")
    lines.append("")

    lines.append("## Human Review")
    lines.append(f"- Pending: {summary.pending_review}")
    lines.append(f"- Verified: {summary.human_verified}")
    lines.append(f"- Rejected: {summary.human_rejected}")

    return "\n".join(lines)


def format_pending(entries: List[AuditLogEntry]) -> str:
    lines = ["# Pending Review", ""]
    if not entries:
        lines.append("Nothing pending.")
    for entry in entries:
        ex = entry.extraction
        lines.append(f"## {entry.audit_id}")
        lines.append(f"- **Company**: {ex.company_name or 'Unknown'} ({ex.ticker or '?'})")
        lines.append(f"- **Quarter**: {ex.quarter or '?'} {ex.fiscal_year or '?'}")
        lines.append(f"- **Confidence**: {entry.validation.confidence}%")
        lines.append(f"- **Source**: {entry.source_url}")
        for reason in entry.decision.reasons:
            lines.append(f"- {reason}")
        lines.append("")
    return "\n".join(lines)


def export_summary_md(summary: AuditSummary, path: Path):
    with open(path, "w") as f:
        f.write(format_summary(summary))
