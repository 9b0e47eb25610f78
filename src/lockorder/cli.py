from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from lockorder.analysis.lock_order_audit import (
    AnalysisResult,
    analyze_paths,
    render_json,
    render_sites,
    render_text,
)
from lockorder.config import AnalysisConfig, build_config, lockorder_defaults, merge_payload
from lockorder.exceptions import LockOrderError

app = typer.Typer(add_completion=False, help="Detect inconsistent lock acquisition order.")
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFLICTS = 2

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class CheckOutputFlags:
    emit_json: bool
    fail_on_conflicts: bool


class _EchoHandler(logging.Handler):
    """Route package log records to stderr through ``typer.echo``."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            typer.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("lockorder")
    for handler in list(package_logger.handlers):
        if isinstance(handler, _EchoHandler):
            package_logger.removeHandler(handler)
    handler = _EchoHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _optional_list(values: Optional[List[str]]) -> Optional[List[str]]:
    if not values:
        return None
    return list(values)


def resolve_config(
    *,
    root: Path,
    config: Optional[Path],
    lock_functions: Optional[List[str]] = None,
    resource_arg: Optional[int] = None,
    resource_keyword: Optional[str] = None,
    exclude: Optional[List[str]] = None,
    report_reentrant: Optional[bool] = None,
    fail_on_conflicts: Optional[bool] = None,
    jobs: Optional[int] = None,
) -> AnalysisConfig:
    defaults = lockorder_defaults(root=root, config_path=config)
    payload = {
        "lock_functions": _optional_list(lock_functions),
        "resource_arg": resource_arg,
        "resource_keyword": resource_keyword,
        "exclude": _optional_list(exclude),
        "report_reentrant": report_reentrant,
        "fail_on_conflicts": fail_on_conflicts,
        "jobs": jobs,
    }
    return build_config(merge_payload(payload, defaults), project_root=root)


def _run_analysis(paths: List[Path], config: AnalysisConfig) -> AnalysisResult:
    try:
        return analyze_paths(paths, config=config)
    except LockOrderError as exc:
        typer.echo(f"error: {exc}", err=True)
        logger.debug("analysis aborted: %s", exc.payload)
        raise typer.Exit(code=EXIT_ERROR)


def _check_exit_code(result: AnalysisResult, flags: CheckOutputFlags) -> int:
    if flags.fail_on_conflicts and result.conflicts:
        return EXIT_CONFLICTS
    return EXIT_OK


@app.command("check")
def check(
    paths: List[Path] = typer.Argument(..., help="Files or directories to analyze."),
    root: Path = typer.Option(Path("."), "--root", help="Project root for relative positions."),
    config: Optional[Path] = typer.Option(None, "--config"),
    lock_function: Optional[List[str]] = typer.Option(
        None, "--lock-function", help="Dotted lock function name (repeatable)."
    ),
    resource_arg: Optional[int] = typer.Option(None, "--resource-arg"),
    resource_keyword: Optional[str] = typer.Option(None, "--resource-keyword"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude"),
    reentrant: Optional[bool] = typer.Option(
        None, "--reentrant/--no-reentrant", help="Also report resources locked twice in one function."
    ),
    fail_on_conflicts: Optional[bool] = typer.Option(
        None, "--fail-on-conflicts/--no-fail-on-conflicts"
    ),
    emit_json: bool = typer.Option(False, "--json", help="Emit the report as JSON."),
    jobs: Optional[int] = typer.Option(None, "--jobs", min=1),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Report lock pairs acquired in both orders."""
    _configure_logging(verbose)
    analysis_config = resolve_config(
        root=root,
        config=config,
        lock_functions=lock_function,
        resource_arg=resource_arg,
        resource_keyword=resource_keyword,
        exclude=exclude,
        report_reentrant=reentrant,
        fail_on_conflicts=fail_on_conflicts,
        jobs=jobs,
    )
    flags = CheckOutputFlags(
        emit_json=emit_json,
        fail_on_conflicts=analysis_config.fail_on_conflicts,
    )
    result = _run_analysis(paths, analysis_config)
    logger.debug("stats: %s", result.stats)
    output = render_json(result) if flags.emit_json else render_text(result)
    if output:
        typer.echo(output, nl=False)
    raise typer.Exit(code=_check_exit_code(result, flags))


@app.command("sites")
def sites(
    paths: List[Path] = typer.Argument(..., help="Files or directories to analyze."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    lock_function: Optional[List[str]] = typer.Option(None, "--lock-function"),
    resource_arg: Optional[int] = typer.Option(None, "--resource-arg"),
    resource_keyword: Optional[str] = typer.Option(None, "--resource-keyword"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List discovered lock acquisitions grouped by enclosing function."""
    _configure_logging(verbose)
    analysis_config = resolve_config(
        root=root,
        config=config,
        lock_functions=lock_function,
        resource_arg=resource_arg,
        resource_keyword=resource_keyword,
        exclude=exclude,
    )
    result = _run_analysis(paths, analysis_config)
    output = render_sites(result.registry)
    if output:
        typer.echo(output, nl=False)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
