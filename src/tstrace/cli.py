import asyncio
import json
import os
from typing import Optional, Tuple

import click
from pydantic_settings import SettingsConfigDict

from tstrace import settings
from tstrace.errors import TraceError
from tstrace.logger import logger, setup_logging
from tstrace.project import get_project_index
from tstrace.tools import EnumMembersTool, UnicodeIdentifiersTool
from tstrace.trace import DeadCodeParams, TraceSymbolParams, find_dead_code, trace_symbol


def load_settings(
    cli: bool = False,
    env_prefix: Optional[str] = None,
    env_file: Optional[str] = None,
    toml_file: Optional[str] = None,
    json_file: Optional[str] = None,
    **kwargs,
) -> settings.ProjectSettings:
    config_dict = SettingsConfigDict(
        cli_parse_args=cli,
        env_prefix=env_prefix or "",
        env_file=env_file,
        toml_file=toml_file,
        json_file=json_file,
    )

    class Settings(settings.ProjectSettings):
        model_config = config_dict

    return Settings(**kwargs)


def _echo_json(payload) -> None:
    if hasattr(payload, "to_dict"):
        payload = payload.to_dict()
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


root_option = click.option(
    "--root",
    "root",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, readable=True),
    default=".",
    show_default=True,
    help="Project root directory.",
)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--debug/--no-debug", default=False, help="Enable debug logging.")
@click.option("--log-json/--no-log-json", default=False, help="Render log lines as JSON.")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Read TSTRACE_* settings from this dotenv file.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, log_json: bool, env_file: Optional[str]) -> None:
    """
    Symbol resolution, call graph and type flow analysis for TypeScript projects.
    """
    setup_logging(debug, json_output=log_json)
    ctx.obj = load_settings(env_prefix="TSTRACE_", env_file=env_file)


@cli.command("trace")
@click.argument("symbol")
@root_option
@click.option("--file", "file", default=None, help="File containing the symbol, relative to --root.")
@click.option("--line", type=int, default=None, help="1-indexed line of the declaration.")
@click.option("--depth", type=int, default=None, help="Call hierarchy depth, -1 for unlimited.")
@click.option("--include", "include_patterns", multiple=True, help="Only analyze files matching this glob.")
@click.option("--exclude", "exclude_patterns", multiple=True, help="Skip files matching this glob.")
@click.option(
    "--only",
    "sections",
    multiple=True,
    type=click.Choice(["definitions", "references", "reexports", "calls", "type-flows", "hierarchy"]),
    help="Compute only these sections (repeatable).",
)
@click.option("--max-references", type=int, default=None, help="Cap on returned references.")
@click.option("--impact/--no-impact", default=False, help="Add blast-radius analysis.")
@click.pass_obj
def trace_cmd(
    project_settings: settings.ProjectSettings,
    symbol: str,
    root: str,
    file: Optional[str],
    line: Optional[int],
    depth: Optional[int],
    include_patterns: Tuple[str, ...],
    exclude_patterns: Tuple[str, ...],
    sections: Tuple[str, ...],
    max_references: Optional[int],
    impact: bool,
) -> None:
    """Trace SYMBOL: definition, references, calls, type flows and hierarchy."""
    params = TraceSymbolParams(
        root_dir=os.path.abspath(root),
        symbol=symbol,
        file=file,
        line=line,
        depth=depth,
        include=list(sections) or None,
        max_references=max_references,
        include_patterns=list(include_patterns) or None,
        exclude_patterns=list(exclude_patterns) or None,
        include_impact=impact,
    )
    result = trace_symbol(params, project_settings)
    _echo_json(result)
    if result.not_found_reason is not None:
        raise SystemExit(1)


@cli.command("dead-code")
@root_option
@click.option("--all", "check_all", is_flag=True, default=False, help="Also check non-exported declarations.")
@click.option("--include-tests", is_flag=True, default=False, help="Scan test and spec files too.")
@click.option("--limit", type=int, default=None, help="Maximum number of items to report.")
@click.option("--kind", "kinds", multiple=True, help="Declaration kind to consider (repeatable).")
@click.pass_obj
def dead_code_cmd(
    project_settings: settings.ProjectSettings,
    root: str,
    check_all: bool,
    include_tests: bool,
    limit: Optional[int],
    kinds: Tuple[str, ...],
) -> None:
    """List declarations nothing else references."""
    params = DeadCodeParams(
        root_dir=os.path.abspath(root),
        exported_only=False if check_all else None,
        exclude_tests=False if include_tests else None,
        limit=limit,
        kinds=list(kinds) or None,
    )
    result = find_dead_code(params, project_settings)
    _echo_json(result)
    if result.error_message is not None:
        raise SystemExit(1)


@cli.command("unicode")
@click.argument("file")
@root_option
@click.pass_obj
def unicode_cmd(project_settings: settings.ProjectSettings, file: str, root: str) -> None:
    """Report non-ASCII identifiers declared in FILE."""
    tool = UnicodeIdentifiersTool(project_settings)
    try:
        out = asyncio.run(tool.execute({"root_dir": os.path.abspath(root), "file": file}))
    except (TraceError, ValueError) as ex:
        raise click.ClickException(str(ex)) from ex
    _echo_json(json.loads(out))


@cli.command("enum")
@click.argument("name")
@root_option
@click.option("--file", "file", default=None, help="File declaring the enum, relative to --root.")
@click.pass_obj
def enum_cmd(project_settings: settings.ProjectSettings, name: str, root: str, file: Optional[str]) -> None:
    """List members and values of enum NAME."""
    tool = EnumMembersTool(project_settings)
    try:
        out = asyncio.run(tool.execute({"root_dir": os.path.abspath(root), "symbol": name, "file": file}))
    except TraceError as ex:
        raise click.ClickException(str(ex)) from ex
    _echo_json(json.loads(out))


@cli.command("debug")
@root_option
@click.pass_obj
def debug_cmd(project_settings: settings.ProjectSettings, root: str) -> None:
    """Print how the project index sees the root: tsconfig, resolution mode and file counts."""
    index = get_project_index(os.path.abspath(root), project_settings)
    files = index.source_files
    logger.debug("Debug summary requested", root=index.root_dir, files=len(files))
    _echo_json(
        {
            "rootDir": index.root_dir,
            "tsconfig": index.tsconfig.path,
            "moduleResolution": index.tsconfig.module_resolution,
            "baseUrl": index.tsconfig.base_url,
            "paths": index.tsconfig.paths,
            "sourceFileCount": len(files),
            "userFileCount": sum(1 for sf in files if sf.is_user_file),
            "declarationFileCount": sum(1 for sf in files if sf.is_declaration_file),
            "sampleFiles": [sf.rel_path for sf in files[:10]],
            "settings": project_settings.model_dump(mode="json"),
        }
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
