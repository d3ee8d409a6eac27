"""buildsmith CLI: detect platforms, generate and run build scripts, prepare SDKs.

Settings come from ``build.env`` in the source directory, then environment
variables, then the flags below (highest precedence).
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from buildsmith.buildpacks.registry import PLATFORM_NAMES, build_platforms
from buildsmith.compat import DefaultPlatformDetector
from buildsmith.core import (
    BuildScriptGenerator,
    create_context,
    prepare_environment,
    run_build,
    validate_build_options,
)
from buildsmith.errors import BuildError, InvalidUsageError
from buildsmith.options import BuildOptions, load_options, parse_properties

app = typer.Typer(add_completion=False, help="Detect platforms and build applications")
console = Console()

T = TypeVar("T")


def _guard(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except BuildError as exc:
        rprint(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=exc.exit_code) from exc


def _options(
    source: str,
    platform: str | None = None,
    platform_version: str | None = None,
    properties: list[str] | None = None,
    **fields,
) -> BuildOptions:
    overrides = {"PLATFORM_NAME": platform, "PLATFORM_VERSION": platform_version}
    return load_options(
        source,
        platforms=PLATFORM_NAMES,
        overrides=overrides,
        properties=parse_properties(properties),
        **fields,
    )


def _echo_out(line: str) -> None:
    typer.echo(line)


def _echo_err(line: str) -> None:
    typer.echo(line, err=True)


@app.command()
def detect(
    source: str = typer.Argument(".", help="Path to a source directory"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
) -> None:
    """List every platform detected in SOURCE (before compatibility filtering)."""

    def _run() -> None:
        options = _options(source)
        context = create_context(options)
        results = DefaultPlatformDetector(build_platforms(options)).detect_platforms(context)
        if as_json:
            print(json.dumps([r.model_dump() for r in results], indent=2))
            return
        if not results:
            rprint("[yellow]No platforms detected.[/yellow]")
            return
        table = Table(title="Detected platforms")
        table.add_column("Platform", style="cyan", no_wrap=True)
        table.add_column("Version")
        table.add_column("Properties")
        for r in results:
            props = ", ".join(f"{k}={v}" for k, v in r.additional_properties.items())
            table.add_row(r.platform, r.platform_version or "-", props)
        console.print(table)

    _guard(_run)


@app.command()
def platforms(
    source: str = typer.Option(".", "--source", help="Source directory (for build.env)"),
) -> None:
    """Show supported platforms and their versions."""

    def _run() -> None:
        options = _options(source)
        table = Table(title="Supported platforms")
        table.add_column("Platform", style="cyan", no_wrap=True)
        table.add_column("Default")
        table.add_column("Versions")
        for p in build_platforms(options):
            catalog = p.catalog()
            table.add_row(p.name, catalog.default_version or "-", ", ".join(catalog.versions))
        console.print(table)

    _guard(_run)


@app.command("build-script")
def build_script(
    source: str = typer.Argument(".", help="Path to a source directory"),
    platform: str | None = typer.Option(None, "--platform", help="Platform to build with"),
    platform_version: str | None = typer.Option(None, "--platform-version"),
    prop: list[str] | None = typer.Option(
        None, "--property", "-p", help="key=value build property", show_default=False
    ),
    output: str | None = typer.Option(None, "--output", help="Write to file instead of stdout"),
) -> None:
    """Generate the build script for SOURCE without running it."""

    def _run() -> None:
        options = _options(source, platform, platform_version, prop)
        validate_build_options(options)
        generated = BuildScriptGenerator(options).generate_script(create_context(options))
        for message in generated.checker_messages:
            rprint(f"[yellow]{message.level}:[/yellow] {message.content}")
        if output:
            Path(output).write_text(generated.script, encoding="utf-8")
            Path(output).chmod(0o755)
            rprint(f"[green]Script written:[/green] {output}")
        else:
            print(generated.script)

    _guard(_run)


@app.command()
def build(
    source: str = typer.Argument(".", help="Path to a source directory"),
    output: str | None = typer.Option(None, "--output", "-o", help="Destination directory"),
    intermediate_dir: str | None = typer.Option(None, "--intermediate-dir", "-i"),
    manifest_dir: str | None = typer.Option(None, "--manifest-dir"),
    platform: str | None = typer.Option(None, "--platform", help="Platform to build with"),
    platform_version: str | None = typer.Option(None, "--platform-version"),
    app_type: str | None = typer.Option(None, "--apptype", help="functions | static-sites"),
    prop: list[str] | None = typer.Option(
        None, "--property", "-p", help="key=value build property", show_default=False
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Clean the destination first"),
) -> None:
    """Generate the build script for SOURCE and run it."""

    def _run() -> None:
        options = load_options(
            source,
            platforms=PLATFORM_NAMES,
            overrides={
                "PLATFORM_NAME": platform,
                "PLATFORM_VERSION": platform_version,
                "APP_TYPE": app_type,
            },
            destination_dir=Path(output).resolve() if output else None,
            intermediate_dir=Path(intermediate_dir).resolve() if intermediate_dir else None,
            manifest_dir=Path(manifest_dir).resolve() if manifest_dir else None,
            properties=parse_properties(prop),
            force=force,
        )
        result = run_build(options, on_stdout=_echo_out, on_stderr=_echo_err)
        if result.exit_code != 0:
            rprint(f"[red]Build failed with exit code {result.exit_code}.[/red]")
            raise typer.Exit(code=result.exit_code)
        rprint(f"[green]Build succeeded.[/green] Manifest: {result.manifest_path}")

    _guard(_run)


@app.command()
def prep(
    source: str = typer.Argument(".", help="Path to a source directory"),
    platforms_and_versions: str | None = typer.Option(
        None, "--platforms-and-versions", help="e.g. dotnet=3.1.200,php=7.4.5,node"
    ),
    versions_file: str | None = typer.Option(
        None, "--platforms-and-versions-file", help="File with one name[=version] per line"
    ),
    skip_detection: bool = typer.Option(False, "--skip-detection"),
) -> None:
    """Install the SDKs SOURCE needs (or the listed ones) without building."""

    def _run() -> None:
        if platforms_and_versions and versions_file:
            raise InvalidUsageError(
                "Use either --platforms-and-versions or --platforms-and-versions-file, not both."
            )
        requested = platforms_and_versions
        if versions_file:
            requested = Path(versions_file).read_text(encoding="utf-8")
        code = prepare_environment(
            _options(source),
            platforms_and_versions=requested,
            skip_detection=skip_detection,
            on_stdout=_echo_out,
            on_stderr=_echo_err,
        )
        if code != 0:
            rprint(f"[red]Environment setup failed with exit code {code}.[/red]")
            raise typer.Exit(code=code)
        rprint("[green]Environment ready.[/green]")

    _guard(_run)


if __name__ == "__main__":
    app()
