#!/usr/bin/env python3

import click
from repotree import __version__

from repotree.commands.get import get_handler
from repotree.commands.list import list_handler
from repotree.commands.config import config_cmd


@click.group()
@click.version_option(version=__version__, prog_name="repotree")
def cli():
    """repotree - Keep git repositories organized as ROOT/HOST/OWNER/NAME.

    `get` clones or updates repositories into that layout,
    `list` shows what is already there.
    """
    pass


cli.add_command(get_handler, name='get')
cli.add_command(list_handler, name='list')
cli.add_command(config_cmd)


def git_get_main():
    """Entry point for the standalone git-get command."""
    get_handler(prog_name='git-get')


def git_list_main():
    """Entry point for the standalone git-list command."""
    list_handler(prog_name='git-list')


def main():
    cli()

if __name__ == "__main__":
    main()
