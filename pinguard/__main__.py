import logging
import os
import sys

import click
from rich.console import Console
from rich.markup import escape

from pinguard.__version__ import __version__
from pinguard.core.audit import audit_project
from pinguard.core.config import load_policy
from pinguard.core.errors import ConfigurationError, PolicyViolation, ResolutionFailure
from pinguard.core.files import RequireFilesDontExist, RequireFilesExist
from pinguard.managers import detect_manager

EXIT_VIOLATIONS = 1
EXIT_FAILURE = 2

POLICY_FLAGS = [
    "allow-snapshots",
    "allow-latest",
    "allow-release",
    "allow-ranges",
    "allow-ranges-with-identical-bounds",
    "exclude-optionals",
]


def policy_options(func):
    for flag in reversed(POLICY_FLAGS):
        func = click.option(f"--{flag}/--no-{flag}", default=None,
                            help=f"Override '{flag}' from the policy file.")(func)
    func = click.option("--exclude-scope", "excluded_scopes", multiple=True,
                        help="Scope excluded from the check (repeatable).")(func)
    func = click.option("--ignore", "ignores", multiple=True,
                        help="Artifact pattern group[:artifact[:version[:type[:scope[:classifier]]]]] (repeatable).")(func)
    return func


def _overrides(flags: dict) -> dict:
    overrides = {}
    for flag in POLICY_FLAGS:
        value = flags.get(flag.replace("-", "_"))
        if value is not None:
            overrides[flag] = value
    if flags.get("excluded_scopes"):
        overrides["excluded-scopes"] = list(flags["excluded_scopes"])
    if flags.get("ignores"):
        overrides["ignores"] = list(flags["ignores"])
    return overrides


def _report_failure(console: Console, error: Exception) -> None:
    console.print(f"[bold red]Error:[/] {escape(str(error))}")
    if error.__cause__ is not None:
        console.print(f"[dim]Caused by: {escape(str(error.__cause__))}[/]")


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pinguard")
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".",
              help="Project directory.")
@click.pass_context
def main(ctx: click.Context, project: str) -> None:
    """Pinguard - bans dynamic dependency versions."""
    if project != ".":
        os.chdir(project)

    if ctx.invoked_subcommand is None:
        # Entrypoint when is installed via pip
        from pinguard.app import PinguardApp
        PinguardApp().run()


@main.command()
@policy_options
@click.option("--verbose", "-v", is_flag=True, help="Debug output.")
def check(verbose: bool, **flags) -> None:
    """Audit the dependency tree without the UI, for CI builds."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s: %(message)s")
    console = Console(highlight=False, soft_wrap=True)

    try:
        policy = load_policy(".", _overrides(flags))

        manager = detect_manager()
        if not manager:
            raise ResolutionFailure("No supported project found.")

        report = audit_project(manager, policy)
        report.raise_for_violations()

    except PolicyViolation as e:
        console.print("[bold red]Rule failed with message:[/]")
        console.print(escape(str(e)))
        sys.exit(EXIT_VIOLATIONS)
    except (ConfigurationError, ResolutionFailure) as e:
        _report_failure(console, e)
        sys.exit(EXIT_FAILURE)

    console.print(f"[green]No dynamic versions found[/] ({escape(manager.name)}, policy {policy.cache_id()})")


@main.command()
@click.option("--exist", "mode", flag_value="exist", default=True, help="Every file must exist (default).")
@click.option("--absent", "mode", flag_value="absent", help="No file may exist.")
@click.option("--satisfy-any", is_flag=True, help="A single passing file is enough.")
@click.option("--allow-nulls", is_flag=True, help="Accept an empty file list.")
@click.option("--ignore-case", is_flag=True, help="Compare file names without case.")
@click.option("--message", "-m", default=None, help="Custom message printed on failure.")
@click.argument("paths", nargs=-1)
def files(mode: str, satisfy_any: bool, allow_nulls: bool, ignore_case: bool, message, paths) -> None:
    """Require files to exist, or not to exist."""
    console = Console(highlight=False, soft_wrap=True)
    rule_class = RequireFilesExist if mode == "exist" else RequireFilesDontExist
    rule = rule_class(list(paths), allow_nulls=allow_nulls, satisfy_any=satisfy_any,
                      case_sensitive=not ignore_case, message=message)

    try:
        rule.execute()
    except PolicyViolation as e:
        console.print("[bold red]Rule failed with message:[/]")
        console.print(escape(str(e)))
        sys.exit(EXIT_VIOLATIONS)
    except ConfigurationError as e:
        _report_failure(console, e)
        sys.exit(EXIT_FAILURE)

    console.print(f"[green]{type(rule).__name__} passed[/] ({len(paths)} files)")


# Development mode
if __name__ == "__main__":
    main()
