"""
Handles the 'list' command: show the repositories under the root.

Repositories are listed in walk order (sorted host, owner, name). The
default output is one canonical reference per line; --format switches to
structured records for scripting.
"""

import click

from ..cli_utils import standard_command, add_common_options
from ..config import load_config, configure_logging, get_settings
from ..exit_codes import ConfigError
from ..render import render_tree
from ..services.lister import RepositoryLister

OUTPUTS = ('refs', 'paths', 'tree', 'dump')


def format_line(entry, output: str) -> str:
    """One line of text output for an entry."""
    if output == 'dump':
        # Same shape get --dump reads: a clone URL and an optional branch
        url = entry.remote_url or str(entry.ref)
        branch = entry.status.branch if entry.status and entry.status.branch != "HEAD" else ""
        return f"{url} {branch}".rstrip()

    text = entry.path if output == 'paths' else str(entry.ref)
    if entry.status is not None:
        text += f" {entry.status.branch} {entry.status.label}"
    return text


@click.command("list")
@add_common_options('root')
@click.option("-o", "--output", type=click.Choice(OUTPUTS), default='refs',
              help="Text output: refs (default), paths, tree, or dump for 'get --dump'")
@click.option("--status", is_flag=True, help="Include branch and working tree status (runs git)")
@add_common_options('format', 'fields', 'verbose')
@standard_command(streaming=True)
def list_handler(root, output, status, format, fields, verbose, progress):
    """
    List repositories under ROOT as host/owner/name.

    Directories that are not repositories are skipped.

    \b
    Examples:
        repotree list
        repotree list --output tree --status
        repotree list --format csv --status
        repotree list --output dump > repos.dump
    """
    config = load_config()
    configure_logging(config, verbose)

    try:
        settings = get_settings(config, root=root)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    lister = RepositoryLister(settings.root)
    with_remote = output == 'dump' or format is not None
    with_status = status or output == 'dump'
    entries = lister.entries(with_status=with_status, with_remote=with_remote)

    if format is not None:
        return _records(entries, progress, settings.root)

    if output == 'tree':
        entries = list(entries)
        if not entries:
            progress.warning(f"No repositories found under {settings.root}")
        render_tree(entries, str(settings.root))
        return None

    count = 0
    for entry in entries:
        count += 1
        print(format_line(entry, output), flush=True)
    if count == 0:
        progress.warning(f"No repositories found under {settings.root}")
    return None


def _records(entries, progress, root):
    count = 0
    for entry in entries:
        count += 1
        yield entry.to_dict()
    if count == 0:
        progress.warning(f"No repositories found under {root}")
