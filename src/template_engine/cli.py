"""CLI commands for the Prompt Template Engine."""

import asyncio
import json
import sys
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from .core.config import settings
from .core.database import check_database_health, init_database, close_database, db_manager
from .core.database_setup import drop_all_tables, list_tables, recreate_all_tables
from .core.exceptions import TemplateEngineError
from .core.logging import setup_logging
from .models.template import PromptTemplate
from .services.template_service import create_template_service
from .services.validation_service import get_template_validator

app = typer.Typer(
    name="template-engine",
    help="Prompt Template Engine CLI",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)


@app.callback()
def startup():
    """Prompt Template Engine CLI."""
    setup_logging()


@app.command()
def version():
    """Show application version."""
    console.print(f"Prompt Template Engine v{settings.app_version}")


@app.command()
def config():
    """Show current configuration."""
    table = Table(title="Prompt Template Engine Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.environment)
    table.add_row("Debug", str(settings.debug))
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Format", settings.log_format)

    table.add_row("Database URL", db_manager._mask_db_url())

    table.add_row("Scoring Weights File", settings.scoring_weights_file or "(defaults)")
    table.add_row("Search Max Candidates", str(settings.search_max_candidates))
    table.add_row("Default Page Size", str(settings.default_page_size))

    console.print(table)


@app.command()
def db_create():
    """Create all database tables."""
    async def _create():
        try:
            if not await init_database():
                console.print("❌ Failed to connect to database")
                sys.exit(1)
            console.print("✅ Database tables created successfully")
        finally:
            await close_database()

    asyncio.run(_create())


@app.command()
def db_drop():
    """Drop all database tables (WARNING: This will delete all data!)."""
    if not typer.confirm("⚠️  This will delete ALL data. Are you sure?"):
        console.print("Operation cancelled")
        return

    async def _drop():
        try:
            success = await db_manager.initialize()
            if success:
                await drop_all_tables(db_manager.engine)
                console.print("✅ Database tables dropped successfully")
            else:
                console.print("❌ Failed to connect to database")
                sys.exit(1)
        finally:
            await close_database()

    asyncio.run(_drop())


@app.command()
def db_recreate():
    """Drop and recreate all database tables (WARNING: This will delete all data!)."""
    if not typer.confirm("⚠️  This will delete ALL data and recreate tables. Are you sure?"):
        console.print("Operation cancelled")
        return

    async def _recreate():
        try:
            success = await db_manager.initialize()
            if success:
                await recreate_all_tables(db_manager.engine)
                console.print("✅ Database tables recreated successfully")
            else:
                console.print("❌ Failed to connect to database")
                sys.exit(1)
        finally:
            await close_database()

    asyncio.run(_recreate())


@app.command()
def db_status():
    """Check database connection and table status."""
    async def _status():
        try:
            success = await db_manager.initialize()
            if not success:
                console.print("❌ Failed to connect to database")
                sys.exit(1)

            health = await check_database_health()
            if health["status"] != "healthy":
                console.print(f"❌ Database unhealthy: {health.get('error')}")
                sys.exit(1)

            tables = await list_tables(db_manager.engine)

            table = Table(title="Database Status")
            table.add_column("Property", style="cyan")
            table.add_column("Value", style="green")

            table.add_row("Connection", "✅ Connected")
            table.add_row("Database Type", health["database_type"])
            table.add_row("Tables Found", str(len(tables)))
            table.add_row("Table Names", ", ".join(tables) if tables else "No tables found")

            console.print(table)
        finally:
            await close_database()

    asyncio.run(_status())


@app.command()
def validate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON template file"),
):
    """Validate and score a template file."""
    try:
        template = PromptTemplate.model_validate(json.loads(file.read_text(encoding="utf-8")))
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        console.print(f"❌ Could not read template: {e}")
        raise typer.Exit(code=1)

    result = get_template_validator().validate(template)

    status = "✅ Valid" if result.is_valid else "❌ Invalid"
    console.print(f"{status}: {template.name or '(unnamed)'}")

    scores = Table(title="Score")
    scores.add_column("Category", style="cyan")
    scores.add_column("Score", style="green")
    for category, value in result.score.categories.model_dump().items():
        scores.add_row(category, f"{value:.2f}")
    scores.add_row("overall", f"{result.score.overall:.2f}")
    console.print(scores)

    if result.errors:
        errors = Table(title="Errors")
        errors.add_column("Severity", style="red")
        errors.add_column("Field", style="cyan")
        errors.add_column("Message")
        for error in result.errors:
            errors.add_row(error.severity.value, error.field, error.message)
        console.print(errors)

    for warning in result.warnings:
        console.print(f"⚠️  {warning.field}: {warning.message}")
    for suggestion in result.suggestions:
        console.print(f"💡 {suggestion.description}")

    if not result.is_valid:
        raise typer.Exit(code=1)


def _run_with_service(action):
    """Run ``action(service)`` against the configured database."""
    async def _run():
        try:
            if not await init_database():
                console.print("❌ Failed to connect to database")
                sys.exit(1)
            return await action(create_template_service(db_manager))
        finally:
            await close_database()

    try:
        return asyncio.run(_run())
    except TemplateEngineError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


@app.command()
def history(template_id: str = typer.Argument(..., help="Template identifier")):
    """Show the version history of a template."""
    changes = _run_with_service(lambda service: service.versioning.get_version_history(template_id))

    table = Table(title=f"History of {template_id}")
    table.add_column("#", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Type")
    table.add_column("Actor")
    table.add_column("When")
    table.add_column("Rollback Point")
    table.add_column("Reason")
    for change in changes:
        table.add_row(
            str(change.sequence),
            change.version,
            change.change_type.value,
            change.actor,
            change.timestamp.isoformat(timespec="seconds"),
            "yes" if change.rollback_point else "",
            change.reason,
        )
    console.print(table)


@app.command()
def versions(template_id: str = typer.Argument(..., help="Template identifier")):
    """List all stored versions of a template."""
    records = _run_with_service(lambda service: service.versioning.get_all_versions(template_id))

    table = Table(title=f"Versions of {template_id}")
    table.add_column("Version", style="green")
    table.add_column("Latest")
    table.add_column("Status", style="cyan")
    table.add_column("Name")
    table.add_column("Restored From")
    table.add_column("Updated")
    for record in records:
        table.add_row(
            record.version,
            "✅" if record.is_latest else "",
            record.status.value,
            record.name,
            record.restored_from_version or "",
            record.updated_at.isoformat(timespec="seconds"),
        )
    console.print(table)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
