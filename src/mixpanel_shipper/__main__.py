"""Main CLI entry point for the mixpanel-shipper.

This module provides a command-line interface using Typer. The `ship` command
runs the whole pipeline for a newline-delimited JSON file of events:
1.  Loading configuration and the line checkpoint.
2.  Parsing each line into an event model (mixpanel_shipper.models.events).
3.  Validating and planning Mixpanel requests (mixpanel_shipper.destination).
4.  Sending them, or recording them in dry-run mode (mixpanel_shipper.transport).
5.  Storing the new checkpoint upon completion.

The `validate` command only runs the pre-flight validation rules.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

import httpx
import typer
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

# Load .env file if present (before any config access)
env_file = find_dotenv(usecwd=True)
if env_file:
    load_dotenv(env_file)
    logging.debug("Loaded environment from %s", env_file)

from .checkpoint import load_checkpoint, store_checkpoint
from .config import get_settings
from .destination import MixpanelDestination
from .errors import ShipperError
from .models.events import parse_event
from .transport import DryRunTransport, MixpanelTransport

app = typer.Typer(help="Ship normalized analytics events to Mixpanel")
logger = logging.getLogger(__name__)


def _read_events(path: Path, start_after_line: int) -> Iterator[Tuple[int, Optional[dict[str, Any]]]]:
    """Yield (line_number, raw_event) pairs; unparseable lines yield None."""
    with path.open("r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if line_number <= start_after_line or not line.strip():
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Line %d is not valid JSON: %s", line_number, e)
                yield line_number, None
                continue
            yield line_number, raw if isinstance(raw, dict) else None


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """mixpanel-shipper CLI.

    Use a subcommand like 'ship' to run a process.
    """
    pass


@app.command(help="Send every event in a newline-delimited JSON file to Mixpanel.")
def ship(
    events_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="NDJSON events file"),
    start_after_line: Optional[int] = typer.Option(
        None, help="Skip lines up to and including this number (overrides checkpoint)"
    ),
    limit: Optional[int] = typer.Option(None, help="Maximum number of events to process"),
    dry_run: bool = typer.Option(
        False,
        "--dry-run/--no-dry-run",
        help="If true, plan requests without sending them. If not specified, uses DRY_RUN from config/env.",
    ),
    checkpoint_file: Optional[str] = typer.Option(
        None, help="Path to checkpoint file (defaults to settings.CHECKPOINT_FILE)"
    ),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    dry_run_explicit = "--dry-run" in sys.argv or "--no-dry-run" in sys.argv
    effective_dry_run = dry_run if dry_run_explicit else settings.DRY_RUN

    cp_path = checkpoint_file or settings.CHECKPOINT_FILE
    effective_start_after = start_after_line
    if effective_start_after is None:
        effective_start_after = load_checkpoint(cp_path) or 0
        if effective_start_after:
            logger.info("Loaded checkpoint line %s from %s", effective_start_after, cp_path)

    async def _run() -> Tuple[int, int, Optional[int]]:
        sent = failed = 0
        last_line: Optional[int] = None
        transport = DryRunTransport() if effective_dry_run else MixpanelTransport(
            host=settings.MIXPANEL_HOST, timeout=settings.HTTP_TIMEOUT
        )
        destination = MixpanelDestination(settings.destination_settings(), transport)
        try:
            for line_number, raw in _read_events(events_file, effective_start_after):
                if limit is not None and sent + failed >= limit:
                    break
                last_line = line_number
                if raw is None:
                    failed += 1
                    continue
                try:
                    event = parse_event(raw)
                    results = await destination.dispatch(event)
                except ValidationError as e:
                    failed += 1
                    logger.warning("Line %d is not a valid event: %s", line_number, e.errors()[:3])
                    continue
                except (ShipperError, httpx.HTTPError) as e:
                    failed += 1
                    logger.warning("Line %d (%s) failed: %s", line_number, raw.get("type"), e)
                    continue
                sent += 1
                logger.debug("Line %d shipped with %d call(s)", line_number, len(results))
        finally:
            if isinstance(transport, MixpanelTransport):
                await transport.aclose()
        return sent, failed, last_line

    sent, failed, last_line = asyncio.run(_run())
    if not effective_dry_run and last_line is not None:
        store_checkpoint(cp_path, last_line)
        logger.info("Stored checkpoint line %s to %s", last_line, cp_path)
    typer.echo(
        f"Processed {sent + failed} event(s): sent={sent} failed={failed} "
        f"dry_run={effective_dry_run} start_after={effective_start_after}"
    )


@app.command(help="Run pre-flight validation over a newline-delimited JSON events file.")
def validate(
    events_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="NDJSON events file"),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    destination = MixpanelDestination(settings.destination_settings(), DryRunTransport())
    valid = invalid = 0
    for line_number, raw in _read_events(events_file, 0):
        try:
            if raw is None:
                raise ValueError("not a JSON object")
            destination.validate(parse_event(raw))
        except (ValueError, ShipperError) as e:
            # pydantic.ValidationError is a ValueError subclass.
            invalid += 1
            typer.echo(f"line {line_number}: {e}", err=True)
            continue
        valid += 1
    typer.echo(f"valid={valid} invalid={invalid}")
    if invalid:
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover
    app()
