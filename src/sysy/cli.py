"""SysY toolchain CLI."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from lsprotocol.types import Position

from sysy import __version__
from sysy.ast_nodes import Reference
from sysy.checker import analyze, parse_source
from sysy.commands import fix_array_sizes
from sysy.config import SysyConfig, config_for, load_config
from sysy.errors import CompileError, DiagnosticRenderer, Severity
from sysy.hover import node_at_offset, parent_map, render_hover
from sysy.linker import link
from sysy.source import TextDocument

SOURCE_SUFFIX = ".sy"


def _source_files(paths: tuple[str, ...]) -> list[Path]:
    """Expand directories to the .sy files under them; default to the cwd."""
    files: list[Path] = []
    for p in [Path(p) for p in paths] or [Path(".")]:
        if p.is_dir():
            files.extend(sorted(p.rglob(f"*{SOURCE_SUFFIX}")))
        else:
            files.append(p)
    return files


def _config(ctx: click.Context, path: Path) -> SysyConfig:
    explicit = ctx.obj.get("config")
    if explicit is not None:
        return load_config(Path(explicit))
    return config_for(path)


@click.group()
@click.version_option(__version__, prog_name="sysy")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Use this sysy.toml instead of searching for one.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """SysY semantic checker and language server."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option("--no-color", is_flag=True, help="Render diagnostics without ANSI colors.")
@click.pass_context
def check(ctx: click.Context, paths: tuple[str, ...], no_color: bool) -> None:
    """Check SysY source files for semantic errors."""
    files = _source_files(paths)
    if not files:
        click.echo(f"warning: no {SOURCE_SUFFIX} files found", err=True)
        return

    renderer = DiagnosticRenderer(color=not no_color)
    errors = 0
    warnings = 0
    for sy_file in files:
        config = _config(ctx, sy_file)
        analysis = analyze(sy_file.read_text(), str(sy_file), config.check)
        for diag in analysis.diagnostics:
            click.echo(renderer.render(diag), err=True)
            if diag.severity == Severity.ERROR:
                errors += 1
            elif diag.severity == Severity.WARNING:
                warnings += 1

    click.echo(f"checked {len(files)} file(s): {errors} error(s), {warnings} warning(s)")
    if errors:
        raise SystemExit(1)


@main.command(name="fix-arrays")
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option("--check", "check_only", is_flag=True,
              help="Report undersized arrays without modifying files.")
def fix_arrays(paths: tuple[str, ...], check_only: bool) -> None:
    """Grow array sizes that are smaller than their initializers."""
    files = _source_files(paths)
    if not files:
        click.echo(f"no {SOURCE_SUFFIX} files found", err=True)
        return

    needs_fixing = False
    for sy_file in files:
        source = sy_file.read_text()
        fixed, changes = fix_array_sizes(source)
        for name, old, new in changes:
            verb = "would resize" if check_only else "resized"
            click.echo(f"{sy_file}: {verb} {name}[{old}] -> {name}[{new}]")
        if changes:
            needs_fixing = True
            if not check_only:
                sy_file.write_text(fixed)

    if check_only and needs_fixing:
        raise SystemExit(1)


@main.command()
def lsp() -> None:
    """Start the SysY language server."""
    from sysy.lsp import main as lsp_main

    lsp_main()


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--at", "at", default=None, metavar="LINE:COL",
              help="Show hover information at a 1-indexed position instead of the AST.")
def view(file: str, at: str | None) -> None:
    """View the AST of a SysY source file, or the hover text at a position."""
    document = TextDocument.from_path(Path(file))
    source = document.text

    try:
        unit = parse_source(source, file)
    except CompileError as e:
        renderer = DiagnosticRenderer(color=True)
        for diag in e.diagnostics:
            click.echo(renderer.render(diag), err=True)
        raise SystemExit(1)
    link(unit)

    if at is None:
        _dump_ast(unit, 0)
        return

    try:
        line, col = (int(part) for part in at.split(":"))
    except ValueError:
        raise click.BadParameter("expected LINE:COL", param_hint="--at") from None

    offset = document.offset_at(Position(line=line - 1, character=col - 1))
    node = node_at_offset(unit, offset, document)
    text = render_hover(node, parent_map(unit)) if node is not None else None
    click.echo(text if text is not None else "no information")


def _dump_ast(node: object, depth: int) -> None:
    """Print a readable AST dump."""
    indent = "  " * depth
    name = type(node).__name__

    if isinstance(node, Reference):
        state = "resolved" if node.resolved else "unresolved"
        click.echo(f"{indent}{name} {node.text!r} ({state})")
    elif hasattr(node, "__dataclass_fields__"):
        fields = node.__dataclass_fields__  # type: ignore[union-attr]
        click.echo(f"{indent}{name}")
        for field_name in fields:
            if field_name.endswith("span"):
                continue
            value = getattr(node, field_name)
            if isinstance(value, list):
                if value:
                    click.echo(f"{indent}  {field_name}:")
                    for item in value:
                        _dump_ast(item, depth + 2)
                else:
                    click.echo(f"{indent}  {field_name}: []")
            elif hasattr(value, "__dataclass_fields__"):
                click.echo(f"{indent}  {field_name}:")
                _dump_ast(value, depth + 2)
            elif value is not None:
                click.echo(f"{indent}  {field_name}: {value!r}")
    else:
        click.echo(f"{indent}{name}: {node!r}")
