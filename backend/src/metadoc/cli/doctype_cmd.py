"""DocType CLI commands - sync, list, show, validate."""

from pathlib import Path

import click
import yaml

from metadoc.cli.common import open_database, resolve_paths
from metadoc.core.errors import InvalidIdentifierError, MetadocError
from metadoc.metadata.loader import DocTypeLoader
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.sync import SchemaSynchronizer, check_identifiers, definition_errors
from metadoc.metadata.types import DocTypeDefinition
from metadoc.metadata.validator import validate_doctype_dir, validate_doctype_file


def _load_definitions(path: Path) -> list[DocTypeDefinition]:
    """Definitions from one YAML file or a whole directory, children first."""
    if path.is_file():
        with path.open() as fh:
            return [DocTypeDefinition.from_dict(yaml.safe_load(fh) or {})]
    loader = DocTypeLoader(path)
    loader.load_all()
    return loader.sync_order()


@click.group()
def doctype():
    """DocType definition commands."""
    pass


@doctype.command()
@click.argument("path", required=False, type=click.Path(exists=True, path_type=Path))
def sync(path: Path | None):
    """Synchronise DocType YAML definitions into the registry and database.

    PATH may be a single YAML file or a directory (defaults to the
    metadata directory).
    """
    base_path, metadata_path, _ = resolve_paths()
    path = path or metadata_path
    if not path.exists():
        click.echo(f"Error: Metadata directory not found at {path}", err=True)
        raise SystemExit(1)

    try:
        definitions = _load_definitions(path)
    except (ValueError, MetadocError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    if not definitions:
        click.echo("No DocType definitions found.")
        return

    db = open_database(base_path)
    registry = SchemaRegistry(db)
    registry.create_tables()
    synchronizer = SchemaSynchronizer(db, registry)

    failed = 0
    try:
        for definition in definitions:
            try:
                stored = synchronizer.sync_doc_type(definition)
            except MetadocError as e:
                failed += 1
                click.echo(click.style(f"  ✗ {definition.name}: {e.message}", fg="red"))
                for error in getattr(e, "errors", []):
                    click.echo(click.style(f"      {error.field or '-'}: {error.message}", fg="red"))
                continue
            click.echo(f"  ✓ {stored.name} ({len(stored.fields)} fields)")
    finally:
        db.dispose()

    if failed:
        click.echo(click.style(f"\n{failed} DocType(s) failed to sync", fg="red", bold=True))
        raise SystemExit(1)

    click.echo(click.style(f"\nSynced {len(definitions)} DocType(s).", fg="green", bold=True))


@doctype.command("list")
def list_cmd():
    """List registered DocTypes."""
    base_path, _, _ = resolve_paths()
    db = open_database(base_path)
    try:
        registry = SchemaRegistry(db)
        registry.create_tables()
        definitions = registry.list_doc_types()
    finally:
        db.dispose()

    if not definitions:
        click.echo("No DocTypes registered.")
        return

    for definition in definitions:
        flags = []
        if definition.is_single:
            flags.append("single")
        if definition.is_child:
            flags.append("child")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(
            f"{definition.name} ({definition.module}, {len(definition.fields)} fields){suffix}"
        )


@doctype.command()
@click.argument("name")
def show(name: str):
    """Print a registered DocType definition as YAML."""
    base_path, _, _ = resolve_paths()
    db = open_database(base_path)
    try:
        registry = SchemaRegistry(db)
        registry.create_tables()
        definition = registry.get_doc_type(name)
    finally:
        db.dispose()

    if definition is None:
        click.echo(f"Error: DocType '{name}' not found", err=True)
        raise SystemExit(1)

    click.echo(yaml.safe_dump(definition.to_dict(), sort_keys=False), nl=False)


@doctype.command()
@click.argument("path", required=False, type=click.Path(exists=True, path_type=Path))
def validate(path: Path | None):
    """Check DocType YAML definitions without touching the database."""
    _, metadata_path, _ = resolve_paths()
    path = path or metadata_path
    if not path.exists():
        click.echo(f"Error: Metadata directory not found at {path}", err=True)
        raise SystemExit(1)

    # ── Schema (JSON Schema) validation ─────────────────────────────────────
    issues = validate_doctype_file(path) if path.is_file() else validate_doctype_dir(path)
    for issue in issues:
        click.echo(click.style(str(issue), fg="red"))
    if issues:
        click.echo(click.style(f"\n{len(issues)} schema error(s) found", fg="red", bold=True))
        raise SystemExit(1)

    # ── Semantic validation ─────────────────────────────────────────────────
    try:
        definitions = _load_definitions(path)
    except (ValueError, MetadocError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    problems: list[str] = []
    for definition in definitions:
        try:
            check_identifiers(definition)
        except InvalidIdentifierError as e:
            problems.append(f"{definition.name}: {e.message}")
        for error in definition_errors(definition):
            problems.append(f"{definition.name}: {error.message}")

    if path.is_dir():
        loader = DocTypeLoader(path)
        loader.load_all()
        for doc_type, field_name, options in loader.missing_child_doc_types():
            problems.append(
                f"{doc_type}: Table field '{field_name}' names '{options}', "
                "which is not a child DocType in this directory"
            )

    for problem in problems:
        click.echo(click.style(f"  ✗ {problem}", fg="red"))
    if problems:
        click.echo(click.style(f"\n{len(problems)} problem(s) found", fg="red", bold=True))
        raise SystemExit(1)

    for definition in definitions:
        click.echo(f"  ✓ {definition.name} ({len(definition.fields)} fields)")
    click.echo(click.style("\nAll DocType definitions are valid.", fg="green", bold=True))
