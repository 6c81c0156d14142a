"""Command line host for resource executables.

Usage:
    converge get    -r Converge.FileSystem/File -i '{"path": "/tmp/x"}'
    converge set    -r Converge.FileSystem/File -i '{"path": "/tmp/x", "content": "hi"}'
    converge test   -r Converge.FileSystem/File --file desired.json
    converge delete -r Converge.FileSystem/File < desired.json
    converge export -r Converge.FileSystem/Directory -i '{"path": "/srv"}'
    converge schema -r Converge.FileSystem/File
    converge manifest [--save]

Each invocation performs exactly one operation. Results are written to stdout
as single-line JSON documents, diagnostics to stderr, and failures are
reported through the resource type's exit code table.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click

from .config import Config, ConfigurationError
from .engine import ConvergenceEngine
from .errors import InvalidArgumentError
from .exit_codes import DEFAULT_EXIT_CODES, FALLBACK_EXIT_CODE, ExitCodeTable
from .manifest import (
    MultiResourceManifest,
    build_manifest,
    manifest_filename,
    multi_manifest_filename,
    save_manifest,
)
from .payload import parse_filter, parse_instance, read_payload_file
from .registry import ResourceRegistry
from .resource import Resource, SetReturn, TestReturn
from .schema import describe
from .tracing import ErrorCounter, setup_logging

logger = logging.getLogger(__name__)

# CLI constants
CLI_VERSION = "0.1.0"
DEFAULT_EXECUTABLE = "converge"


@dataclass
class Invocation:
    """Per-process state shared by the commands (click's ctx.obj)."""

    registry: ResourceRegistry
    config: Config
    errors: ErrorCounter
    executable: str


def _emit(document: object) -> None:
    """Write one compact JSON line to stdout."""
    click.echo(json.dumps(document, separators=(",", ":")))


def read_input(
    input_text: str | None,
    input_file: Path | None,
    config: Config,
    *,
    required: bool = True,
) -> str | None:
    """Collect the payload from --input, --file or stdin.

    Raises:
        InvalidArgumentError: If both options are given, or no input is
            available and one is required.
    """
    if input_text is not None and input_file is not None:
        raise InvalidArgumentError("Use either --input or --file, not both")
    if input_text is not None:
        return input_text
    if input_file is not None:
        return read_payload_file(input_file, config.max_input_bytes)

    stdin = click.get_text_stream("stdin")
    if stdin.isatty():
        if required:
            raise InvalidArgumentError("Input is required: pass --input, --file or pipe it on stdin")
        return None

    text = stdin.read()
    if not required and not text.strip():
        return None
    return text


def report_failure(ctx: click.Context, table: ExitCodeTable, error: Exception) -> NoReturn:
    """Write one error line and exit with the code the table maps the error to."""
    entry = table.resolve(error)
    logger.error(str(error) or type(error).__name__)
    logger.debug("Operation failed", exc_info=error)
    ctx.exit(entry.code)


def run_operation(
    ctx: click.Context,
    type_name: str | None,
    operation: Callable[[type[Resource], Invocation], None],
) -> None:
    """Run one operation and translate its outcome into the exit code.

    Any exception is reported as a single error line and mapped through the
    resolved resource's exit code table (the default table when resolution
    itself failed). An operation that logged an error but returned normally
    exits with the table's generic code, never 0.
    """
    invocation: Invocation = ctx.obj
    table: ExitCodeTable = DEFAULT_EXIT_CODES

    try:
        resource_cls = invocation.registry.resolve(type_name)
        table = resource_cls.exit_codes
        operation(resource_cls, invocation)
    except Exception as e:
        report_failure(ctx, table, e)

    if invocation.errors.tripped:
        ctx.exit(table.generic.code)


def resource_option(func: Callable) -> Callable:
    return click.option(
        "--resource",
        "-r",
        "type_name",
        help="Resource type name (required when the executable serves several types).",
    )(func)


def input_options(func: Callable) -> Callable:
    func = click.option(
        "--file",
        "-f",
        "input_file",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Read the JSON instance from a file.",
    )(func)
    return click.option("--input", "-i", "input_text", help="The JSON instance.")(func)


def build_cli(registry: ResourceRegistry, executable: str | None = None) -> click.Group:
    """Build the command group serving the registered resource types.

    Args:
        registry: Resource types this executable serves.
        executable: Executable name published in manifests (default: argv[0]).
    """

    @click.group()
    @click.version_option(version=CLI_VERSION, prog_name=executable or DEFAULT_EXECUTABLE)
    @click.pass_context
    def cli(ctx: click.Context) -> None:
        """Get, set, test, delete and export resource instances."""
        try:
            config = Config.from_env()
        except ConfigurationError as e:
            click.echo(json.dumps({"error": str(e)}), err=True)
            ctx.exit(FALLBACK_EXIT_CODE)

        ctx.obj = Invocation(
            registry=registry,
            config=config,
            errors=setup_logging(config),
            executable=executable or Path(sys.argv[0]).name or DEFAULT_EXECUTABLE,
        )

    @cli.command()
    @resource_option
    @input_options
    @click.pass_context
    def get(
        ctx: click.Context, type_name: str | None, input_text: str | None, input_file: Path | None
    ) -> None:
        """Get the actual state of an instance."""

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            text = read_input(input_text, input_file, invocation.config)
            desired = parse_instance(
                resource_cls.instance_model, text, invocation.config.max_input_bytes
            )
            actual = ConvergenceEngine(resource_cls()).get(desired)
            click.echo(actual.to_json())

        run_operation(ctx, type_name, operation)

    @cli.command("set")
    @resource_option
    @input_options
    @click.option("--what-if", "-w", is_flag=True, help="Report the change without applying it.")
    @click.pass_context
    def set_(
        ctx: click.Context,
        type_name: str | None,
        input_text: str | None,
        input_file: Path | None,
        what_if: bool,
    ) -> None:
        """Converge an instance to the desired state."""

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            text = read_input(input_text, input_file, invocation.config)
            desired = parse_instance(
                resource_cls.instance_model, text, invocation.config.max_input_bytes
            )
            result = ConvergenceEngine(resource_cls()).set(desired, what_if=what_if)
            if result is None or resource_cls.set_return is SetReturn.NONE:
                return
            click.echo(result.after.to_json())
            if resource_cls.set_return is SetReturn.STATE_AND_DIFF:
                _emit(result.changed_properties)

        run_operation(ctx, type_name, operation)

    @cli.command()
    @resource_option
    @input_options
    @click.pass_context
    def test(
        ctx: click.Context, type_name: str | None, input_text: str | None, input_file: Path | None
    ) -> None:
        """Test whether an instance is in the desired state."""

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            text = read_input(input_text, input_file, invocation.config)
            desired = parse_instance(
                resource_cls.instance_model, text, invocation.config.max_input_bytes
            )
            result = ConvergenceEngine(resource_cls()).test(desired)
            click.echo(result.actual.to_json())
            if resource_cls.test_return is TestReturn.STATE_AND_DIFF:
                _emit(result.changed_properties)

        run_operation(ctx, type_name, operation)

    @cli.command()
    @resource_option
    @input_options
    @click.pass_context
    def delete(
        ctx: click.Context, type_name: str | None, input_text: str | None, input_file: Path | None
    ) -> None:
        """Delete an instance."""

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            text = read_input(input_text, input_file, invocation.config)
            desired = parse_instance(
                resource_cls.instance_model, text, invocation.config.max_input_bytes
            )
            ConvergenceEngine(resource_cls()).delete(desired)

        run_operation(ctx, type_name, operation)

    @cli.command()
    @resource_option
    @input_options
    @click.pass_context
    def export(
        ctx: click.Context, type_name: str | None, input_text: str | None, input_file: Path | None
    ) -> None:
        """Export every instance, optionally filtered."""

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            text = read_input(input_text, input_file, invocation.config, required=False)
            criteria = None
            if text is not None:
                criteria = parse_filter(
                    resource_cls.instance_model, text, invocation.config.max_input_bytes
                )
            for instance in ConvergenceEngine(resource_cls()).export(criteria):
                click.echo(instance.to_json())

        run_operation(ctx, type_name, operation)

    @cli.command()
    @resource_option
    @click.pass_context
    def schema(ctx: click.Context, type_name: str | None) -> None:
        """Print the JSON schema of a resource type's instances."""

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            _emit(describe(resource_cls.instance_model))

        run_operation(ctx, type_name, operation)

    @cli.command()
    @resource_option
    @click.option("--save", is_flag=True, help="Write the manifest to the manifest directory.")
    @click.pass_context
    def manifest(ctx: click.Context, type_name: str | None, save: bool) -> None:
        """Print (or save) the resource manifest."""
        invocation: Invocation = ctx.obj

        if invocation.registry.multi and type_name is None:
            try:
                wrapper = MultiResourceManifest(
                    resources=[
                        build_manifest(resource_cls, invocation.executable, multi=True)
                        for resource_cls in invocation.registry
                    ]
                )
                document = wrapper.to_document()
                if save:
                    save_manifest(
                        document,
                        invocation.config.manifest_dir,
                        multi_manifest_filename(invocation.executable),
                    )
                else:
                    _emit(document)
            except Exception as e:
                report_failure(ctx, DEFAULT_EXIT_CODES, e)
            return

        def operation(resource_cls: type[Resource], invocation: Invocation) -> None:
            document = build_manifest(
                resource_cls, invocation.executable, multi=invocation.registry.multi
            ).to_document()
            if save:
                save_manifest(
                    document,
                    invocation.config.manifest_dir,
                    manifest_filename(resource_cls.type_name),
                )
            else:
                _emit(document)

        run_operation(ctx, type_name, operation)

    return cli


def default_registry() -> ResourceRegistry:
    """Registry of the built-in reference resources."""
    from .resources.directory import DirectoryResource
    from .resources.file import FileResource
    from .resources.json_value import JsonValueResource
    from .resources.xml_element import XmlElementResource

    return ResourceRegistry([FileResource, DirectoryResource, JsonValueResource, XmlElementResource])


def main() -> None:
    """Entry point of the `converge` executable."""
    build_cli(default_registry(), executable=DEFAULT_EXECUTABLE)()


if __name__ == "__main__":
    main()
