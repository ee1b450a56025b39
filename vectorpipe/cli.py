# vectorpipe/cli.py

"""
Command-line entry point.

Reads one document from a file (or stdin), runs it through the pipeline
and prints a JSON summary as the last line of stdout. Configuration comes
from VECTOR_* environment variables.
"""

import json
from typing import Optional

import click
from pydantic import ValidationError

from vectorpipe.config import load_settings
from vectorpipe.models import ProcessingContext, ProcessingMode
from vectorpipe.observability.logger import setup_logging
from vectorpipe.workflow.pipeline import EmbeddingPipeline


_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.command()
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option("--document-id", default="document", show_default=True)
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in ProcessingMode], case_sensitive=False),
    default=ProcessingMode.AUTO.value,
    show_default=True,
)
@click.option("--max-latency-ms", type=click.IntRange(min=0), default=None)
@click.option("--priority", type=click.INT, default=None, help="Lower drains first.")
@click.option("--high-quality", is_flag=True, help="Skip indexing vectors that fail the quality check.")
@click.option("--flush", is_flag=True, help="Embed deferred chunks before exiting.")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    envvar="VECTOR_LOG_LEVEL",
    default=None,
)
def main(
    source,
    document_id: str,
    mode: str,
    max_latency_ms: Optional[int],
    priority: Optional[int],
    high_quality: bool,
    flush: bool,
    log_level: Optional[str],
) -> None:
    """Chunk and embed SOURCE (default: stdin)."""

    try:
        settings = load_settings()
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    setup_logging(log_level or settings.log_level, settings.log_file)

    context = ProcessingContext(
        requested_mode=ProcessingMode(mode.upper()),
        max_latency_ms=max_latency_ms,
        document_id=document_id,
        priority=priority,
        requires_high_quality=high_quality,
    )

    pipeline = EmbeddingPipeline(settings)

    result = pipeline.process_document(document_id, source.read(), context)

    flushed = pipeline.flush_deferred() if flush else []

    snapshot = pipeline.metrics.snapshot()

    click.echo(
        json.dumps(
            {
                "document_id": document_id,
                "chunks": len(result.chunks),
                "embedded": result.embedded_count,
                "deferred": result.deferred_count,
                "degraded": result.degraded_count,
                "rejected": result.rejected_count,
                "flushed": len(flushed),
                "pending": pipeline.batch_queue.size(),
                "total_cost_cents": snapshot.total_cost_cents,
            }
        )
    )


if __name__ == "__main__":
    main()
