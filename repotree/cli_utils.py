"""
Common CLI utilities and decorators for consistent command behavior.
"""

import sys
import click
from functools import wraps
from typing import Generator
from .progress import get_progress
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .format_utils import FORMATS, format_output, get_format_from_env


def standard_command(streaming: bool = False):
    """
    Decorator that provides standard CLI behavior:
    - Progress reporting on stderr
    - Clean data output on stdout
    - Automatic --verbose/-v flag handling
    - Automatic --quiet/-q flag to suppress data output
    - Consistent error handling and exit codes

    Errors are reported on stderr only, so stdout never carries anything
    but data.

    Args:
        streaming: If True, output JSONL as items are processed.
                  If False, collect results and output at end.
    """
    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            verbose = kwargs.get('verbose', False)
            quiet = kwargs.get('quiet', False)
            output_format = kwargs.get('format', None)
            fields_str = kwargs.get('fields', None)
            fields = fields_str.split(',') if fields_str else None

            if output_format is None:
                output_format = get_format_from_env('jsonl')
            # Only JSONL can be written before the whole result is known
            stream = streaming and output_format == 'jsonl'

            progress = get_progress(enabled=verbose or None)
            kwargs['progress'] = progress

            try:
                result = func(*args, **kwargs)

                if quiet:
                    # In quiet mode, consume the generator but don't output
                    if isinstance(result, Generator):
                        for _ in result:
                            pass
                elif result is None:
                    # Command handles its own output
                    pass
                elif isinstance(result, Generator) and stream:
                    for line in format_output(result, 'jsonl', fields):
                        print(line, flush=True)
                elif isinstance(result, Generator):
                    for line in format_output(result, output_format, fields):
                        print(line, flush=True)
                elif isinstance(result, (list, tuple)):
                    for line in format_output(iter(result), output_format, fields):
                        print(line, flush=True)
                elif isinstance(result, dict):
                    for line in format_output(iter([result]), output_format, fields):
                        print(line, flush=True)
                else:
                    print(result, flush=True)

                sys.exit(SUCCESS)

            except KeyboardInterrupt:
                progress.error("Interrupted by user")
                sys.exit(INTERRUPTED)
            except click.ClickException:
                # Click exceptions already have their exit code
                raise
            except CommandError as e:
                progress.error(str(e))
                sys.exit(e.exit_code)
            except Exception as e:
                progress.error(f"Command failed: {e}")
                sys.exit(get_exit_code_for_exception(e))

        return wrapper
    return decorator


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                           help='Force progress output and debug logging'),
    'quiet': click.option('-q', '--quiet', is_flag=True,
                         help='Suppress data output, show only progress'),
    'dry_run': click.option('--dry-run', is_flag=True,
                           help='Show what would be cloned or updated without touching disk'),
    'root': click.option('-r', '--root', type=click.Path(),
                        help='Repository root (default: general.root, GIT_PATH or ~/repositories)'),
    'format': click.option('-f', '--format',
                         type=click.Choice(list(FORMATS)),
                         help='Output format (default: jsonl, or from REPOTREE_FORMAT env)'),
    'fields': click.option('--fields',
                         help='Comma-separated list of fields to include (for CSV/TSV)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'dry_run')
        def my_command(verbose, dry_run):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
