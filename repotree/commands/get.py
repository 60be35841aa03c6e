"""
Handles the 'get' command: clone or update repositories under the root.

Each reference lands in root/host/owner/name. Missing repositories are
cloned, existing ones are fast-forwarded from their upstream.

Output follows the usual conventions:
- Default output is JSONL, one outcome per reference, in input order
- --table (the default in a terminal) renders a rich table instead
- Progress, parse errors and failures go to stderr
"""

import sys
from typing import Dict, List, Optional, Tuple

import click

from ..cli_utils import standard_command, add_common_options
from ..config import load_config, configure_logging, get_settings
from ..domain.ref import RepoRef
from ..errors import ParseError
from ..exit_codes import CommandError, ConfigError, PartialSuccessError, GENERAL_ERROR, USAGE_ERROR
from ..format_utils import format_output, get_format_from_env
from ..parser import parse_dump, parse_many
from ..render import render_sync_table
from ..services.sync_service import SyncOptions, SyncService, interrupt


def collect_inputs(repos: Tuple[str, ...], dump) -> List[Tuple[str, Optional[str]]]:
    """
    Gather (reference, branch) pairs from arguments and the dump file.

    Arguments come first, then dump lines in file order.
    """
    inputs = [(text, None) for text in repos]
    if dump is not None:
        inputs.extend((entry.reference, entry.branch) for entry in parse_dump(dump))
    return inputs


def parse_inputs(inputs: List[Tuple[str, Optional[str]]], default_host: str,
                 progress) -> Tuple[List[RepoRef], Dict[RepoRef, str], int]:
    """
    Parse every input, reporting bad references on stderr.

    Returns:
        (refs, per-ref branches, number of parse errors)
    """
    refs = []
    branches = {}
    errors = 0
    texts = [text for text, _ in inputs]
    for (text, result), (_, branch) in zip(parse_many(texts, default_host), inputs):
        if isinstance(result, ParseError):
            errors += 1
            progress.error(f"{text}: {result.kind}: {result}")
            continue
        refs.append(result)
        if branch and result not in branches:
            branches[result] = branch
    return refs, branches, errors


@click.command("get")
@click.argument("repos", nargs=-1)
@click.option("-d", "--dump", type=click.File("r"),
              help="File with one 'REPO [BRANCH]' per line ('-' for stdin)")
@click.option("-b", "--branch", help="Branch to check out when cloning")
@add_common_options('root')
@click.option("-t", "--host", help="Host for owner/name references (default: general.default_host)")
@click.option("-c", "--scheme", type=click.Choice(["ssh", "https"]),
              help="Clone URL scheme for references without one (default: general.default_scheme)")
@click.option("-j", "--jobs", type=click.IntRange(min=1),
              help="Parallel git processes (default: general.concurrency_limit or CPU count)")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True),
              help="Seconds allowed per clone or update (default: no limit)")
@click.option("--table/--no-table", default=None,
              help="Render a table instead of JSONL (default: table in a terminal)")
@add_common_options('dry_run', 'format', 'fields', 'verbose', 'quiet')
@standard_command()
def get_handler(repos, dump, branch, root, host, scheme, jobs, timeout, table,
                dry_run, format, fields, verbose, quiet, progress):
    """
    Clone or update repositories into ROOT/HOST/OWNER/NAME.

    REPO may be a URL (https://github.com/grdl/git-get), an scp-like
    address (git@github.com:grdl/git-get.git), a host path
    (github.com/grdl/git-get) or owner/name (grdl/git-get).

    \b
    Examples:
        repotree get grdl/git-get
        repotree get https://gitlab.com/owner/project --branch develop
        repotree list --output dump > repos.dump
        repotree get --dump repos.dump -j 8

    Exit status is 0 when every repository succeeded, 71 when some failed,
    1 when all failed and 66 when the root cannot be used.
    """
    config = load_config()
    configure_logging(config, verbose)

    try:
        settings = get_settings(
            config,
            root=root,
            default_host=host,
            default_scheme=scheme,
            concurrency_limit=jobs,
            task_timeout=timeout,
        )
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    inputs = collect_inputs(repos, dump)
    if not inputs:
        raise CommandError("No repositories given (pass REPO arguments or --dump FILE)", USAGE_ERROR)

    refs, branches, parse_errors = parse_inputs(inputs, settings.default_host, progress)
    if not refs:
        raise CommandError(f"No valid repository references ({parse_errors} invalid)", GENERAL_ERROR)

    service = SyncService(settings)
    options = SyncOptions(branch=branch, branches=branches, dry_run=dry_run)

    run = service.sync_repos(refs, options)
    try:
        for message in run:
            progress(message)
    except KeyboardInterrupt:
        interrupt(run)
        # Show what finished before the interrupt, then let it propagate
        if service.last_report is not None and not quiet:
            _emit(service.last_report, False, format, fields)
        raise

    report = service.last_report
    if not quiet:
        use_table = table if table is not None else (sys.stdout.isatty() and format is None)
        _emit(report, use_table, format, fields)

    for outcome in report.failures:
        progress.error(f"{outcome.ref}: {outcome.error_kind}: {(outcome.reason or '').strip()}")

    failed = report.failed + parse_errors
    if not failed and not report.dry_run:
        progress.success(f"{report.cloned} cloned, {report.updated} updated")
    if failed and report.succeeded == 0:
        raise CommandError(f"All {failed} repositories failed", GENERAL_ERROR)
    if failed:
        raise PartialSuccessError(
            f"{failed} of {report.total + parse_errors} repositories failed",
            succeeded=report.succeeded,
            failed=failed,
        )


def _emit(report, use_table: bool, output_format: Optional[str], fields: Optional[str]) -> None:
    """Write outcomes to stdout as a table or in the chosen data format."""
    if use_table:
        render_sync_table(report)
        return
    output_format = output_format or get_format_from_env('jsonl')
    field_list = fields.split(',') if fields else None
    for line in format_output((o.to_dict() for o in report.outcomes), output_format, field_list):
        print(line, flush=True)
