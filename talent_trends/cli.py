"""
Talent Trends — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (serve, one-off talent run, listing).
  5. Report result to stdout.

Install and run::

    pip install -e .
    talent-trends --help
    talent-trends validate-config
    talent-trends list-reference
    talent-trends talents --class Death_Knight --spec Unholy --encounter 3129 --region EU
    talent-trends serve --port 3000
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="talent-trends",
    help="Talent Trends — top-ranked talent builds from Warcraft Logs.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from talent_trends.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from talent_trends.utils.logging import configure_logging
    configure_logging(config.logging)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    from talent_trends.config import load_credentials

    config = _load_config_or_exit(config_path)
    credentials = load_credentials()

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  GraphQL endpoint: {config.warcraftlogs.graphql_url}")
    typer.echo(f"  Difficulty:       {config.warcraftlogs.difficulty}")
    typer.echo(f"  Max records:      {config.stream.max_records}")
    typer.echo(f"  Channel capacity: {config.stream.channel_capacity}")
    typer.echo(f"  Listen on:        {config.server.host}:{config.server.port}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Credentials set:  {credentials.is_complete}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("list-reference")
def list_reference() -> None:
    """Print the known classes with their specs, encounters and regions."""
    from talent_trends.reference import ENCOUNTERS, REGIONS, ClassSpecs, default_class_specs

    typer.echo("Classes:")
    for key, specs in default_class_specs().classes.items():
        typer.echo(f"  {ClassSpecs.display_name(key):<14} {', '.join(specs)}")
    typer.echo("")
    typer.echo("Encounters:")
    for enc in ENCOUNTERS:
        typer.echo(f"  {enc.id}  {enc.name}")
    typer.echo("")
    typer.echo("Regions:")
    for region in REGIONS:
        typer.echo(f"  {region.code:<4} {region.name}")


@app.command("talents")
def talents(
    class_name: str = typer.Option(..., "--class", help="Class key, e.g. Death_Knight."),
    spec: str = typer.Option(..., "--spec", help="Spec name, e.g. Unholy."),
    encounter: int = typer.Option(..., "--encounter", help="Encounter id, e.g. 3129."),
    region: Optional[str] = typer.Option(None, "--region", help="US, EU, KR, TW, CN or all."),
    as_json: bool = typer.Option(False, "--json", help="Print one JSON object per line."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run the talent pipeline once and print records as they arrive."""
    from talent_trends.reference import validate_query

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        params = validate_query(class_name, spec, encounter, region)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    failed = asyncio.run(_print_talents(config, params, as_json))
    if failed:
        raise typer.Exit(code=1)


async def _print_talents(config, params, as_json: bool) -> bool:
    """Stream one run to stdout. Returns ``True`` if the run surfaced an error."""
    import httpx

    from talent_trends.config import load_credentials
    from talent_trends.ingestion.token_cache import TokenCache
    from talent_trends.models.talent import ErrorRecord
    from talent_trends.pipeline.coordinator import StreamCoordinator

    failed = False
    async with httpx.AsyncClient() as http_client:
        token_cache = TokenCache(load_credentials(), config.warcraftlogs, http_client)
        coordinator = StreamCoordinator.from_config(config, token_cache, http_client)
        task, channel = coordinator.start(params)

        async for item in channel:
            if as_json:
                typer.echo(item.model_dump_json())
            elif isinstance(item, ErrorRecord):
                typer.echo(f"[ERROR] {item.kind}: {item.message}", err=True)
            else:
                typer.echo(f"#{item.rank:<2} {item.name}")
                typer.echo(f"    {item.talent_string}")
                typer.echo(f"    {item.log_url}")
            if isinstance(item, ErrorRecord):
                failed = True

        await task
    return failed


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Override bind host."),
    port: Optional[int] = typer.Option(None, "--port", help="Override bind port."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Start the HTTP service (SSE talent stream + reference data)."""
    import uvicorn

    from talent_trends.server import create_app

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    typer.echo(f"Server listening on http://{bind_host}:{bind_port}")
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_config=None)


if __name__ == "__main__":
    app()
