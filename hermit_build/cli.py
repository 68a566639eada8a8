"""Thin CLI wrapper for hermit_build.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.

`hermit-build run` is what a crate's build script invokes. Its stdout carries
Cargo directives only; messages and logs go to stderr.
"""

import json
import logging
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from hermit_build import __version__
from hermit_build.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="hermit-build",
    help="Hermit kernel build orchestrator - build the kernel from a Cargo build script",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"hermit-build version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _effective_settings(offline: bool | None) -> Settings:
    settings = get_settings()
    if offline is not None:
        settings = settings.model_copy(update={"offline": offline})
    return settings


OfflineOption = Annotated[
    bool | None,
    typer.Option(
        "--offline/--online",
        help="Never download kernel sources (overrides HERMIT_BUILD_OFFLINE)",
    ),
]


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Hermit kernel build orchestrator - build the kernel from a Cargo build script."""


@app.command()
def run(offline: OfflineOption = None) -> None:
    """Build the kernel and print Cargo directives (build-script entry point)."""
    from hermit_build import orchestrator
    from hermit_build.context import load_build_context
    from hermit_build.errors import KernelBuildError

    settings = _effective_settings(offline)
    configure_logging(settings.log_level)
    context = load_build_context()

    try:
        orchestrator.run(context, settings)
    except KernelBuildError as e:
        err_console.print(f"[red]Kernel build failed ({e.code}):[/red] {e}")
        raise typer.Exit(code=1) from None


@app.command()
def plan(
    offline: OfflineOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show what `run` would do for the current environment, without building."""
    from hermit_build.builds.backend import CargoBackend, build_request
    from hermit_build.context import load_build_context
    from hermit_build.errors import KernelBuildError
    from hermit_build.features import (
        extra_build_flags,
        translate_features,
        translate_profile,
    )
    from hermit_build.orchestrator import should_skip
    from hermit_build.source.fetch import build_kernel_archive_url
    from hermit_build.source.locator import find_local_kernel_source

    settings = _effective_settings(offline)
    context = load_build_context()
    features = translate_features(context.enabled_flags)
    extra_flags = extra_build_flags(context.enabled_flags)

    output: dict[str, Any] = {
        "context": context.model_dump(mode="json", exclude={"environ"}),
        "skip_reason": should_skip(context, settings),
        "profile": translate_profile(context.profile),
        "features": list(features),
        "extra_flags": extra_flags,
        "source": None,
        "download_url": None,
        "command": None,
        "error": None,
    }

    try:
        source = find_local_kernel_source(context, settings)
        if source is None:
            if not settings.offline:
                output["download_url"] = build_kernel_archive_url(
                    settings.kernel_version, settings.download_base_url
                )
        else:
            output["source"] = str(source.root)
            context.require_build_inputs()
            backend = CargoBackend.from_context(context, settings)
            request = build_request(source, context, features, extra_flags)
            output["command"] = backend.describe(request)
    except KernelBuildError as e:
        output["error"] = {"code": e.code, "message": str(e)}

    if json_output:
        typer.echo(json.dumps(output, indent=2))
        return

    console.print("[bold]Kernel build plan:[/bold]")
    console.print()
    console.print(f"  Target OS:        {context.target_os or '(unset)'}")
    console.print(f"  Architecture:     {context.target_arch or '(unset)'}")
    console.print(f"  Profile:          {context.profile or '(unset)'} -> {output['profile']}")
    console.print(f"  Features:         {' '.join(features) or '(none)'}")
    console.print(f"  Extra flags:      {' '.join(extra_flags) or '(none)'}")
    if output["skip_reason"]:
        console.print(f"  [yellow]Skipped:[/yellow]          {output['skip_reason']}")
    if output["source"]:
        console.print(f"  Kernel source:    {output['source']}")
    elif output["download_url"]:
        console.print(f"  Kernel source:    download {output['download_url']}")
    else:
        console.print("  Kernel source:    [red]not found[/red]")
    if output["command"]:
        console.print(f"  Command:          {output['command']}")
    if output["error"]:
        console.print(
            f"  [red]Error ({output['error']['code']}):[/red] {output['error']['message']}"
        )


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
    else:
        src_dir_display = (
            str(settings.kernel_src_dir) if settings.kernel_src_dir else "(not set)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Kernel source:[/bold]")
        console.print(f"  Kernel version:      {settings.kernel_version}")
        console.print(f"  Download base URL:   {settings.download_base_url}")
        console.print(f"  Sibling directory:   {settings.kernel_dir_name}")
        console.print(f"  Kernel source dir:   {src_dir_display}")
        console.print(
            f"  Archive SHA-256:     {settings.kernel_archive_sha256 or '(not pinned)'}"
        )
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Offline mode:        {settings.offline}")
        console.print(f"  Supported target OS: {settings.supported_target_os}")
        console.print(f"  Library name:        {settings.lib_name}")
        console.print(f"  Dependency listing:  {settings.dependency_listing}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Download timeout:    {settings.download_timeout}")


if __name__ == "__main__":
    app()
