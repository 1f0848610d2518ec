"""
Command Line Interface

CLI for decoding, validating and describing FHIR data type documents.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress
from rich.table import Table

app = typer.Typer(
    name="fhir-datatypes",
    help="Schema-driven FHIR R4 data type records",
    add_completion=False,
)
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Schema-driven FHIR R4 data type records."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def _load_pipeline(config: Optional[Path], lenient: bool = False):
    from fhir_datatypes.pipeline import CodecConfig, Pipeline

    pipeline = Pipeline.from_config(config) if config else Pipeline(CodecConfig())
    if lenient:
        pipeline.config.decoding.strict_variants = False
        pipeline.config.decoding.strict_elements = False
    return pipeline


def _print_text(text: str) -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def decode(
    input_file: Path = typer.Argument(..., help="JSON or XML document"),
    type_name: Optional[str] = typer.Option(None, "--type", "-t", help="FHIR data type"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="json or xml"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
    lenient: bool = typer.Option(False, "--lenient", help="Keep unknown variants and elements"),
) -> None:
    """Decode a document and re-encode it in normalized form."""
    from fhir_datatypes.exceptions import FHIRModelError

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    pipeline = _load_pipeline(config, lenient)

    try:
        record = pipeline.decode_file(input_file, type_name)
        text = pipeline.encode(record, output_format)
    except FHIRModelError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if output:
        output.write_text(text)
        console.print(f"[green]Output saved to: {output}[/green]")
    else:
        _print_text(text)


@app.command()
def validate(
    input_file: Path = typer.Argument(..., help="JSON or XML document"),
    type_name: Optional[str] = typer.Option(None, "--type", "-t", help="FHIR data type"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
    lenient: bool = typer.Option(False, "--lenient", help="Keep unknown variants and elements"),
) -> None:
    """Validate a document against the schema registry."""
    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    pipeline = _load_pipeline(config, lenient)
    result = pipeline.process_file(input_file, type_name)

    if result.error is not None:
        console.print(f"[red]Invalid: {escape(str(result.error))}[/red]")
        raise typer.Exit(1)

    validation = result.validation or pipeline.validate(result.record)
    for warning in validation.warnings:
        console.print(f"[yellow]Warning: {escape(warning.path)}: {escape(warning.message)}[/yellow]")
    for error in validation.errors:
        console.print(f"[red]Error: {escape(error.path)}: {escape(error.message)}[/red]")

    if not validation.is_valid:
        console.print(f"[red]Invalid: {validation.error_count} error(s)[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Valid {result.record.fhir_type}[/green]")


@app.command()
def batch(
    input_dir: Path = typer.Argument(..., help="Directory containing documents"),
    output_dir: Path = typer.Argument(..., help="Output directory for normalized files"),
    type_name: Optional[str] = typer.Option(None, "--type", "-t", help="FHIR data type"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
    pattern: str = typer.Option("*.json", "--pattern", "-p", help="File pattern"),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="json or xml"),
) -> None:
    """Batch decode documents and write normalized output."""
    if not input_dir.exists():
        console.print(f"[red]Error: Directory not found: {input_dir}[/red]")
        raise typer.Exit(1)

    output_dir.mkdir(parents=True, exist_ok=True)

    # Find files
    files = sorted(input_dir.glob(pattern))
    if not files:
        console.print(f"[yellow]No files matching '{pattern}' in {input_dir}[/yellow]")
        raise typer.Exit(0)

    pipeline = _load_pipeline(config)
    output_format = output_format or pipeline.config.output.format

    console.print(f"Processing {len(files)} files...")

    success_count = 0
    error_count = 0

    with Progress(console=console) as progress:
        task = progress.add_task("Processing...", total=len(files))

        for document in files:
            result = pipeline.process_file(document, type_name)
            if result.success:
                output_file = output_dir / f"{document.stem}.{output_format}"
                pipeline.save(result.record, output_file, output_format)
                success_count += 1
            else:
                reason = result.error or f"{result.validation.error_count} validation error(s)"
                console.print(f"[red]Error processing {document.name}: {escape(str(reason))}[/red]")
                error_count += 1

            progress.update(task, advance=1)

    console.print(f"\n[green]Processed: {success_count}[/green]")
    if error_count:
        console.print(f"[red]Errors: {error_count}[/red]")
        raise typer.Exit(1)


@app.command()
def describe(
    type_name: str = typer.Argument(..., help="FHIR data type"),
    schema: Optional[Path] = typer.Option(None, "--schema", "-s", help="Schema YAML"),
) -> None:
    """Show the elements of a data type."""
    from fhir_datatypes.exceptions import UnknownTypeError
    from fhir_datatypes.schema import get_registry

    registry = get_registry(schema)
    try:
        type_def = registry.lookup(type_name)
    except UnknownTypeError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{type_def.name} ({type_def.path})")
    table.add_column("Element")
    table.add_column("Card.")
    table.add_column("Type(s)")
    table.add_column("Binding")

    for element in type_def.elements:
        name = f"{element.name}[x]" if element.choice else element.name
        binding = ""
        if element.binding:
            binding = element.binding.strength
            if element.binding.value_set:
                binding += f" {element.binding.value_set}"
        table.add_row(escape(name), element.cardinality, " | ".join(element.types), binding)

    console.print(table)

    if type_def.description:
        console.print(f"\n[dim]{escape(type_def.description)}[/dim]", highlight=False)


@app.command()
def types(
    include_backbone: bool = typer.Option(False, "--all", "-a", help="Include backbone types"),
    schema: Optional[Path] = typer.Option(None, "--schema", "-s", help="Schema YAML"),
) -> None:
    """List the data types in the registry."""
    from fhir_datatypes.schema import get_registry

    registry = get_registry(schema)

    console.print(f"[bold]FHIR {registry.fhir_version} data types:[/bold]\n")
    for name in registry.type_names(include_backbone):
        type_def = registry.lookup(name)
        choices = len(type_def.choice_elements)
        suffix = f", {choices} choice" if choices else ""
        console.print(f"  {name} [dim]({len(type_def.elements)} elements{suffix})[/dim]")


@app.command("generate-schema")
def generate_schema(
    source: Path = typer.Argument(..., help="StructureDefinition Bundle, file or directory"),
    output: Path = typer.Argument(..., help="Output schema YAML"),
    only: Optional[str] = typer.Option(None, "--types", help="Comma-separated type names"),
    value_sets: Optional[Path] = typer.Option(
        None, "--value-sets", help="ValueSet/CodeSystem Bundle, file or directory for binding codes"
    ),
    fhir_version: str = typer.Option("4.0.1", "--fhir-version", help="FHIR version"),
) -> None:
    """Generate the schema registry YAML from StructureDefinitions."""
    from fhir_datatypes.exceptions import SchemaError
    from fhir_datatypes.schema.generator import (
        generate_schema as build_schema,
        load_structure_definitions,
        write_schema,
    )

    if not source.exists():
        console.print(f"[red]Error: Source not found: {source}[/red]")
        raise typer.Exit(1)

    type_names = [name.strip() for name in only.split(",")] if only else None

    try:
        definitions = load_structure_definitions(source)
        if value_sets is not None:
            definitions.extend(load_structure_definitions(value_sets))
        schema = build_schema(definitions, type_names, fhir_version)
    except (SchemaError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    write_schema(schema, output)
    console.print(
        f"[green]Wrote {len(schema['types'])} types and "
        f"{len(schema['primitives'])} primitives to {output}[/green]"
    )


@app.command()
def version() -> None:
    """Show version information."""
    from fhir_datatypes import __version__

    console.print(f"fhir-datatypes version {__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
