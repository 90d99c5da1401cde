"""Command-line interface for radixpack schemas."""

from __future__ import annotations

import json
import logging.config
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import click
import structlog
from lark.exceptions import LarkError
from rich.console import Console
from rich.table import Table

from radixpack.packing import PackingError, build_descriptor
from radixpack.schema import parse, python
from radixpack.schema.parser import ValidationError
from radixpack.schema.shapes import SchemaShapeInfo, calculate_shapes, resolve_shapes
from radixpack.schema.types import max_width_option

Schema = tuple[list, list, list, list]


def configure_logging(verbose: bool) -> None:
    """Route structlog events through stdlib logging to stderr."""
    level = "DEBUG" if verbose else "WARNING"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": structlog.dev.ConsoleRenderer(colors=False),
                    "foreign_pre_chain": [structlog.stdlib.add_log_level],
                },
            },
            "handlers": {
                "stderr": {
                    "level": level,
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "": {"handlers": ["stderr"], "level": level},
            },
        }
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn schema and packing failures into a clean exit with status 1."""
    try:
        yield
    except (PackingError, ValidationError, LarkError, OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e


def _load(input_file: str) -> Schema:
    with open(input_file, encoding="utf-8") as f:
        return parse(f.read())


def _descriptor(schema: Schema, type_name: str, max_width: int | None) -> Any:
    enums, structs, unions, options = schema
    shapes = resolve_shapes(enums, structs, unions)
    if type_name not in shapes:
        raise click.ClickException(f"Unknown type: {type_name}")
    limit = max_width if max_width is not None else max_width_option(options)
    return build_descriptor(shapes[type_name], max_width=limit)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug events to stderr")
def cli(verbose: bool) -> None:
    """Radixpack schema tools."""
    configure_logging(verbose)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--output", "-o", "output_file", required=True, help="Output file")
@click.option(
    "--runtime-import",
    "runtime_import",
    default="radixpack.packing",
    show_default=True,
    help="Module the generated code imports the runtime from",
)
def gen(input_file: str, output_file: str, runtime_import: str) -> None:
    """Generate Python code from a schema file."""
    with _reported_errors():
        generated_file = python.render(*_load(input_file), runtime_import=runtime_import)
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(generated_file)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--max-width", type=int, default=None, help="Flag types wider than this many bits")
def info(input_file: str, output_json: bool, max_width: int | None) -> None:
    """Display possibilities and packed widths of every declaration."""
    with _reported_errors():
        shape_info = calculate_shapes(*_load(input_file), max_width=max_width)

    if output_json:
        _output_json(shape_info)
    else:
        _output_plain(shape_info)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--type", "-t", "type_name", required=True, help="Declared type to pack")
@click.option("--max-width", type=int, default=None, help="Refuse types wider than this many bits")
@click.argument("value")
def pack(input_file: str, type_name: str, max_width: int | None, value: str) -> None:
    """Pack a JSON value and print its code."""
    with _reported_errors():
        descriptor = _descriptor(_load(input_file), type_name, max_width)
        code = descriptor.pack(descriptor.json_to_value(json.loads(value)))
    click.echo(f"{code} 0x{code:x}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input schema file")
@click.option("--type", "-t", "type_name", required=True, help="Declared type to unpack")
@click.option("--max-width", type=int, default=None, help="Refuse types wider than this many bits")
@click.argument("code")
def unpack(input_file: str, type_name: str, max_width: int | None, code: str) -> None:
    """Unpack a code (decimal or 0x hex) and print its JSON value."""
    with _reported_errors():
        descriptor = _descriptor(_load(input_file), type_name, max_width)
        value = descriptor.unpack(int(code, 0))
        click.echo(json.dumps(descriptor.value_to_json(value)))


def _output_json(shape_info: SchemaShapeInfo) -> None:
    """Output schema info as JSON."""
    data: dict = {"max_width": shape_info.max_width, "types": {}}

    for name, info_ in shape_info.declarations.items():
        data["types"][name] = {
            "kind": info_.kind.value,
            # possibilities can exceed what JSON readers handle as numbers
            "possibilities": str(info_.possibilities),
            "packed_width": info_.packed_width,
            "aligned_size": info_.aligned_size,
            "fits": name not in shape_info.overflowing,
        }

    click.echo(json.dumps(data, indent=2))


def _output_plain(shape_info: SchemaShapeInfo) -> None:
    """Output schema info using rich text formatting."""
    console = Console()

    console.print("[bold cyan]Types[/bold cyan]")
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("Name", style="white")
    table.add_column("Kind", style="dim")
    table.add_column("Possibilities", style="white", justify="right")
    table.add_column("Packed", style="yellow", justify="right")
    table.add_column("Aligned", style="dim", justify="right")
    table.add_column("Saved", style="green", justify="right")

    overflowing = set(shape_info.overflowing)
    for name, info_ in shape_info.declarations.items():
        packed = f"{info_.packed_width} bits"
        if name in overflowing:
            packed = f"[red]{packed}[/red]"
        table.add_row(
            name,
            info_.kind.value,
            str(info_.possibilities),
            packed,
            f"{info_.aligned_width} bits",
            f"{info_.saved_bits} bits",
        )

    console.print(table)

    if shape_info.max_width is not None:
        console.print()
        if overflowing:
            console.print(
                f"[red]{len(overflowing)} type(s) exceed the {shape_info.max_width} bit limit[/red]"
            )
        else:
            console.print(f"All types fit in {shape_info.max_width} bits")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
