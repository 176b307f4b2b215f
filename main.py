import logging
from pathlib import Path
from typing import List, Optional

import typer

from voyage_manifest_extraction.errors import CredentialError, VoyageExtractionError
from voyage_manifest_extraction.orchestrator import ExtractionOrchestrator
from voyage_manifest_extraction.progress import ProgressTracker
from voyage_manifest_extraction.schema import StandardizationMode
from voyage_manifest_extraction.settings import Settings


app = typer.Typer(add_completion=False)


def _echo_progress(tracker: ProgressTracker) -> None:
    estimate = tracker.describe()
    suffix = f" - {estimate}" if estimate else ""
    typer.echo(f"[{tracker.completed}/{tracker.total}] chunks done{suffix}")


@app.command()
def process(
    files: List[Path],
    output: Path = typer.Option(
        Path("compiled_voyage_logs.xlsx"),
        "--output",
        "-o",
        help="Output Excel file path",
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="pydantic-ai model name (default: openai:gpt-4o)"
    ),
    api_key: Optional[str] = typer.Option(
        None, "--api-key", help="API key for the extraction model (default: OPENAI_API_KEY)"
    ),
    page_chunk_size: Optional[int] = typer.Option(
        None, "--page-chunk-size", min=1, help="Pages sent per extraction call"
    ),
    row_chunk_size: Optional[int] = typer.Option(
        None, "--row-chunk-size", min=1, help="Rows sent per standardization call"
    ),
    mode: Optional[StandardizationMode] = typer.Option(
        None,
        "--mode",
        help="'row' standardizes one-to-one; 'voyage' lets the model pre-aggregate per voyage",
    ),
    scale: Optional[float] = typer.Option(None, "--scale", help="Page render scale"),
    jpeg_quality: Optional[int] = typer.Option(
        None, "--jpeg-quality", min=1, max=100, help="JPEG quality of rendered pages"
    ),
    tag_source: Optional[bool] = typer.Option(
        None, "--tag-source/--no-tag-source", help="Tag extracted rows with their source file"
    ),
    isolate_documents: Optional[bool] = typer.Option(
        None,
        "--isolate-documents/--no-isolate-documents",
        help="Skip unreadable PDFs instead of failing the run",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
):
    """
    Extract voyage manifests from PDFs and compile one row per voyage into Excel.
    """
    log_path = output.with_suffix(".log")
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_path),
        ],
    )
    logger = logging.getLogger(__name__)
    logger.info("Logging to %s", log_path)

    try:
        settings = Settings.from_env().override(
            model_name=model,
            api_key=api_key,
            page_chunk_size=page_chunk_size,
            row_chunk_size=row_chunk_size,
            mode=mode,
            render_scale=scale,
            jpeg_quality=jpeg_quality,
            tag_source=tag_source,
            isolate_document_failures=isolate_documents,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    orchestrator = ExtractionOrchestrator.from_settings(settings, on_progress=_echo_progress)
    typer.echo(f"Processing {len(files)} PDFs...")
    try:
        result = orchestrator.process(files)
    except CredentialError as exc:
        logger.error("Credential rejected: %s", exc)
        typer.echo(CredentialError.user_message, err=True)
        raise typer.Exit(code=1)
    except VoyageExtractionError as exc:
        logger.error("Run failed: %s", exc)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    orchestrator.to_excel(result.records, output)
    for doc in result.documents:
        typer.echo(f"{doc.document.name}: {doc.status} ({doc.error or f'{doc.rows} rows'})")
    if result.failed_chunks:
        typer.echo(f"{result.failed_chunks} chunks failed and were skipped")
    typer.echo(f"Compiled {len(result.records)} voyages from {result.standardized_rows} rows")
    typer.echo(f"Wrote results to {output}")


def main():
    app()


if __name__ == "__main__":
    main()
