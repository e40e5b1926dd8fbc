"""Typer CLI entrypoint for figsync."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from apps.cli.format_human import render_export_summary, render_sync_summary
from apps.cli.io import dump_report, write_pdf_atomic, write_report_atomic
from core.config import Settings, load_settings
from core.document.models import DocumentTree
from core.orchestrator.pipeline import build_sync_report, export_pdf, plan_export
from core.sources.figma import FigmaClient, load_document_file
from core.sources.sheets import SheetsRecordSource, load_records_csv
from core.sync.field_map import load_field_map
from core.sync.models import AssemblyPlan, Diagnostic, Record
from core.utils.errors import UpstreamFetchError

app = typer.Typer(help="Figma / Google Sheets sync CLI", rich_markup_mode=None)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UPSTREAM = 2
EXIT_DIAGNOSTICS = 4


@app.callback()
def cli_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log engine diagnostics at INFO level.")
    ] = False,
) -> None:
    """Load `.env` and configure logging before any command runs."""

    load_dotenv(override=False)
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("patches")
def patches_command(
    document: Annotated[
        Path | None,
        typer.Option(
            exists=True,
            dir_okay=False,
            file_okay=True,
            help="Saved Figma file JSON; fetched from the API when omitted.",
        ),
    ] = None,
    records: Annotated[
        Path | None,
        typer.Option(
            exists=True,
            dir_okay=False,
            file_okay=True,
            help="CSV export of the sheet; read from Google Sheets when omitted.",
        ),
    ] = None,
    file_key: Annotated[str | None, typer.Option("--file-key")] = None,
    scope: Annotated[str | None, typer.Option(help="Only scan frames under this page.")] = None,
    field_map: Annotated[
        Path | None, typer.Option("--field-map", exists=True, dir_okay=False)
    ] = None,
    limit: Annotated[int | None, typer.Option(help="Only reconcile the first N frames.")] = None,
    out: Annotated[Path | None, typer.Option(help="Write the report JSON to this file.")] = None,
    strict: Annotated[
        bool, typer.Option("--strict", help="Exit 4 when the report carries diagnostics.")
    ] = False,
) -> None:
    """Reconcile sheet rows with design frames and emit the patch report."""

    if limit is not None and limit <= 0:
        typer.echo("ERROR: --limit must be a positive integer.")
        raise typer.Exit(code=EXIT_FAILED)

    failure_stage = "load_config"
    try:
        settings = load_settings()
        mapping = load_field_map(field_map or settings.field_map_path)

        failure_stage = "load_records"
        diagnostics: list[Diagnostic] = []
        record_map = _load_records(settings, records, diagnostics)

        failure_stage = "load_document"
        if document is not None:
            resolved_key = file_key or settings.figma_file_key
            tree = load_document_file(document)
        else:
            resolved_key = file_key or settings.require("figma_file_key")
            tree = asyncio.run(_fetch_document(settings, resolved_key))

        failure_stage = "reconcile"
        report = build_sync_report(
            tree,
            record_map,
            scope_name=scope if scope is not None else settings.figma_target_page,
            field_map=mapping,
            frame_limit=limit if limit is not None else settings.figma_dry_run_limit,
            file_key=resolved_key,
            diagnostics=diagnostics,
        )
    except UpstreamFetchError as exc:
        typer.echo(f"ERROR({failure_stage}): {exc}")
        raise typer.Exit(code=EXIT_UPSTREAM) from exc
    except (ValueError, OSError) as exc:
        typer.echo(f"ERROR({failure_stage}): {exc}")
        raise typer.Exit(code=EXIT_FAILED) from exc

    if out is not None:
        if out.exists():
            typer.echo(f"INFO: overwriting existing output: {out.name}")
        try:
            write_report_atomic(out, report)
        except OSError as exc:
            typer.echo(f"ERROR: write output failed: {exc}")
            raise typer.Exit(code=EXIT_FAILED) from exc
        typer.echo(render_sync_summary(report))
        typer.echo(f"INFO: wrote report to {out}")
    else:
        typer.echo(dump_report(report))

    if strict and report.diagnostics:
        raise typer.Exit(code=EXIT_DIAGNOSTICS)


@app.command("export")
def export_command(
    frame_id: Annotated[
        list[str], typer.Option("--frame-id", help="Frame id to include; repeat for more.")
    ],
    out: Annotated[Path, typer.Option(help="Destination PDF path.")],
    file_key: Annotated[str | None, typer.Option("--file-key")] = None,
    back_name: Annotated[str | None, typer.Option("--back-name")] = None,
) -> None:
    """Export frames with cover, table of contents and back cover as one PDF."""

    failure_stage = "load_config"
    try:
        settings = load_settings()
        resolved_key = file_key or settings.require("figma_file_key")
        resolved_back = back_name or settings.back_frame_name

        failure_stage = "export_pdf"
        plan, pdf_bytes = asyncio.run(_export(settings, resolved_key, frame_id, resolved_back))
    except UpstreamFetchError as exc:
        typer.echo(f"ERROR({failure_stage}): {exc}")
        raise typer.Exit(code=EXIT_UPSTREAM) from exc
    except ValueError as exc:
        typer.echo(f"ERROR({failure_stage}): {exc}")
        raise typer.Exit(code=EXIT_FAILED) from exc

    if out.exists():
        typer.echo(f"INFO: overwriting existing output: {out.name}")
    try:
        write_pdf_atomic(out, pdf_bytes)
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=EXIT_FAILED) from exc

    typer.echo(render_export_summary(plan, len(pdf_bytes)))
    typer.echo(f"INFO: wrote {out}")


@app.command("serve")
def serve_command(
    host: Annotated[str, typer.Option(help="Bind host.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
) -> None:
    """Run the HTTP API with uvicorn."""

    import uvicorn

    uvicorn.run("apps.api.main:app", host=host, port=port)


def _load_records(
    settings: Settings,
    path: Path | None,
    diagnostics: list[Diagnostic],
) -> dict[str, Record]:
    if path is not None:
        return load_records_csv(path, diagnostics=diagnostics)
    return asyncio.run(_record_source(settings).fetch(diagnostics=diagnostics))


def _record_source(settings: Settings) -> SheetsRecordSource:
    return SheetsRecordSource(settings)


def _figma_client(settings: Settings) -> FigmaClient:
    return FigmaClient.from_settings(settings)


async def _fetch_document(settings: Settings, file_key: str) -> DocumentTree:
    async with _figma_client(settings) as client:
        return await client.fetch_document(file_key)


async def _export(
    settings: Settings,
    file_key: str,
    frame_ids: Sequence[str],
    back_name: str,
) -> tuple[AssemblyPlan, bytes]:
    async with _figma_client(settings) as client:
        tree = await client.fetch_document(file_key)
        plan = plan_export(tree, frame_ids, back_name=back_name)
        pdf_bytes = await export_pdf(
            client,
            file_key,
            plan.ordered_ids,
            max_concurrency=settings.max_download_concurrency,
        )
    return plan, pdf_bytes


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
