import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from typespace.codegen.codegen import Codegen
from typespace.codegen.operations import OperationCollector
from typespace.codegen.registry import TypeRegistry
from typespace.codegen.schema import SchemaLoader, SchemaResolver
from typespace.config import get_config
from typespace.exceptions import TypespaceError

console = Console()
app = typer.Typer(
    name='typespace',
    help='Generate typed Python clients from OpenAPI documents',
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def generate(
    config: Annotated[
        str | None,
        typer.Option(
            '--config', '-c', help='Path to configuration file (YAML or JSON)'
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option('--verbose', '-v', help='Log registry and emission details')
    ] = False,
) -> None:
    """Generate client packages from configuration.

    If no config file is specified, will look for typespace.yaml or
    typespace.yml in the current directory, then [tool.typespace] in
    pyproject.toml.

    Examples:
        typespace generate
        typespace generate --config my-config.yaml
        typespace generate -c config.json -v
    """
    _configure_logging(verbose)

    try:
        settings = get_config(config)

        for document_config in settings.documents:
            with Progress(
                SpinnerColumn(),
                TextColumn('[progress.description]{task.description}'),
                console=console,
            ) as progress:
                task = progress.add_task(
                    f'Generating {document_config.get_package_name()} from {document_config.source}...',
                    total=None,
                )

                written = Codegen(document_config).generate()

                progress.update(task, description=f'Code generation completed for {document_config.source}!')

            console.print('[dim]Generated files:[/dim]')
            for path in written:
                console.print(f'  - {path}')

    except TypespaceError as e:
        console.print(f'[red]Error:[/red] {escape(str(e))}')
        raise typer.Exit(1)


@app.command()
def validate(
    source: Annotated[str, typer.Argument(help='Path or URL of the OpenAPI document')],
    verbose: Annotated[bool, typer.Option('--verbose', '-v')] = False,
) -> None:
    """Load and validate a document, then classify its schemas and operations."""
    _configure_logging(verbose)

    try:
        document = SchemaLoader().load(source)
        resolver = SchemaResolver(document)
        registry = TypeRegistry(resolver)
        for name in resolver.schemas:
            registry.select_component(name)
        operations = OperationCollector(resolver, registry).collect()
    except TypespaceError as e:
        console.print(f'[red]Error:[/red] {escape(str(e))}')
        raise typer.Exit(1)

    console.print(f'[green]Valid:[/green] {source}')
    console.print(f'  {len(resolver.schemas)} component schemas')
    console.print(f'  {len(operations)} operations')
    console.print(f'  {len(registry)} types')


@app.command()
def version() -> None:
    """Show the version of typespace."""
    from typespace import __version__

    console.print(f'typespace version: {__version__}')


if __name__ == '__main__':
    app()
