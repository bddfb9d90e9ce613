import sys
import json
import logging
from datetime import timedelta
from pathlib import Path

import click

from .audit.logger import AuditLogger
from .audit.report import export_summary_md, format_pending, format_summary
from .config import load_env_file, load_settings
from .errors import InputError, format_error
from .fetch.browser import default_browser_factory
from .fetch.fetcher import TranscriptFetcher, build_transcript_url
from .logging import configure_logging
from .models.audit import HumanDecision
from .models.transcript import ExpectedTranscriptData
from .pipeline import run_scraping_pipeline
from .store.sqlite import SQLiteDocumentStore
from .utils.dates import parse_date

# Configure logging at module level
configure_logging()
logger = logging.getLogger(__name__)


def _print_json(data, ok=True, dry_run=None):
    """Helper to print standard JSON envelope."""
    meta = {"version": 1}
    if dry_run is not None:
        meta["dry_run"] = dry_run
    payload = {
        "ok": ok,
        "data": data,
        "meta": meta,
    }
    click.echo(json.dumps(payload, indent=2))


def _parse_expected_date(ctx, param, value):
    if not value:
        return None
    parsed = parse_date(value)
    if not parsed.success:
        raise click.BadParameter(f"could not parse date: {value}")
    return parsed.date


@click.group()
def cli():
    """callverify: earnings call transcript ingestion with audit trail."""
    pass


@cli.command()
@click.option("--url", help="Transcript (or transcript listing) URL. Defaults to the ticker's listing page.")
@click.option("--ticker", required=True, help="Expected ticker, e.g. AAPL")
@click.option("--quarter", required=True, type=click.Choice(["Q1", "Q2", "Q3", "Q4"], case_sensitive=False), help="Expected fiscal quarter")
@click.option("--year", required=True, type=int, help="Expected fiscal year")
@click.option("--company", help="Expected company name (defaults to the ticker)")
@click.option("--event-ticker", "event_ticker", help="Event identifier, e.g. AAPL-24Q4-MENTION")
@click.option("--expected-date", "expected_date", callback=_parse_expected_date, help="Authoritative call date")
@click.option("--save", is_flag=True, help="Persist the transcript unless rejected")
@click.option("--dry-run", "dry_run", is_flag=True, help="Validate and audit only (default)")
@click.option("--verbose", is_flag=True, help="Debug logging and per-layer audit detail")
@click.option("--config", "config_path", help="Path to callverify.yaml")
def scrape(url, ticker, quarter, year, company, event_ticker, expected_date, save, dry_run, verbose, config_path):
    """
    Fetch, validate and audit one earnings call transcript.
    """
    if save and dry_run:
        raise click.BadParameter("--save and --dry-run are mutually exclusive", param_hint="--save")

    if verbose:
        configure_logging(verbose=True)

    settings = load_settings(config_path)
    if verbose:
        settings.audit.verbose = True

    target_url = url or build_transcript_url(ticker)
    expected = ExpectedTranscriptData(
        company_name=company or ticker.upper(),
        ticker=ticker.upper(),
        quarter=quarter.upper(),
        fiscal_year=year,
        expected_date=expected_date,
    )

    db_path = settings.store.db_path
    store = SQLiteDocumentStore(db_path) if save or Path(db_path).exists() else None
    audit_logger = AuditLogger(settings.audit)

    with TranscriptFetcher(settings.scraper, browser_factory=default_browser_factory) as fetcher:
        result = run_scraping_pipeline(
            target_url,
            expected,
            fetcher,
            audit_logger,
            settings=settings,
            store=store,
            event_id=event_ticker,
            save=save,
        )
        stats = fetcher.stats()

    validation = None
    if result.validation is not None:
        validation = {
            "confidence": result.validation.confidence,
            "auto_decision": result.validation.auto_decision.value,
            "reasons": result.validation.reasons,
            "layers_passed": [layer.passed for layer in result.validation.layers],
        }

    _print_json({
        "url": target_url,
        "success": result.success,
        "should_save": result.should_save,
        "saved_record_id": result.saved_record_id,
        "errors": result.errors,
        "warnings": result.scrape.warnings,
        "validation": validation,
        "audit_entry": result.audit_entry.model_dump(mode="json") if result.audit_entry else None,
        "fetch_stats": stats,
    }, ok=result.success, dry_run=not save)

    if not result.success:
        sys.exit(1)


@cli.group()
@click.option("--config", "config_path", help="Path to callverify.yaml")
@click.pass_context
def audit(ctx, config_path):
    """Inspect and amend the audit trail."""
    settings = load_settings(config_path)
    # Reading never echoes entries back to the console
    settings.audit.console = False
    ctx.obj = AuditLogger(settings.audit)


@audit.command("summary")
@click.option("--start", type=click.DateTime(), help="Only entries at or after this time (UTC)")
@click.option("--end", type=click.DateTime(), help="Only entries at or before this time (UTC); a bare date covers the whole day")
@click.option("--markdown", is_flag=True, help="Print a Markdown report instead of JSON")
@click.option("--out", "out_path", type=click.Path(dir_okay=False), help="Also write the Markdown report to this file")
@click.pass_obj
def audit_summary(audit_logger, start, end, markdown, out_path):
    """Summary statistics over the durable audit log."""
    if end is not None and (end.hour, end.minute, end.second) == (0, 0, 0):
        end = end + timedelta(days=1) - timedelta(microseconds=1)

    summary = audit_logger.generate_summary(start, end)
    if out_path:
        export_summary_md(summary, Path(out_path))
        logger.info(f"Summary written to {out_path}")
    if markdown:
        click.echo(format_summary(summary))
        return
    _print_json(summary.model_dump(mode="json"))


@audit.command("pending")
@click.option("--markdown", is_flag=True, help="Print a Markdown list instead of JSON")
@click.pass_obj
def audit_pending(audit_logger, markdown):
    """Entries waiting for human review."""
    entries = audit_logger.get_pending_review()
    if markdown:
        click.echo(format_pending(entries))
        return
    _print_json([e.model_dump(mode="json") for e in entries])


@audit.command("review")
@click.argument("audit_id")
@click.option("--decision", required=True, type=click.Choice([d.value for d in HumanDecision]), help="Reviewer verdict")
@click.option("--by", "reviewed_by", required=True, help="Reviewer name")
@click.option("--notes", default="", help="Free-form notes")
@click.pass_obj
def audit_review(audit_logger, audit_id, decision, reviewed_by, notes):
    """Record a human review for AUDIT_ID (appended, never rewritten)."""
    amended = audit_logger.record_human_review(audit_id, reviewed_by, HumanDecision(decision), notes)
    _print_json(amended.model_dump(mode="json"))


def main():
    """Entry point for the CLI."""
    load_env_file()
    try:
        cli(standalone_mode=False)
    except Exception as e:
        if isinstance(e, click.exceptions.Exit):
            sys.exit(e.exit_code)
        if isinstance(e, click.exceptions.Abort):
            sys.exit(130)

        # Click usage errors (missing args) raise UsageError
        if isinstance(e, click.exceptions.UsageError):
            print(format_error(InputError(e.format_message())))
            sys.exit(1)

        print(format_error(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
