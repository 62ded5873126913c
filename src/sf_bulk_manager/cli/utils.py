# -*- coding: utf-8 -*-

import sys
import logging
import functools

import click

from ..core.bulk.manager import BulkApi
from ..core.utils.errors import BulkApiError


def setup_logging(verbose=False, quiet=False):
    """Configure logging for CLI execution."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    # Logs go to stderr so query results can be piped from stdout
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True  # Override any existing configuration
    )

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if verbose:
        logger = logging.getLogger(__name__)
        logger.debug("CLI logging setup completed")


def _validate_positive_number_callback(ctx, param, value):
    """Validate that the provided value is a positive number."""
    if value is not None and value <= 0:
        raise click.BadParameter("Value must be a positive number.")
    return value


def _handle_bulk_errors(func):
    """Log Bulk API errors and exit with status 1 instead of printing a traceback."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BulkApiError as e:
            logging.error(f"{type(e).__name__}: {e}")
            raise SystemExit(1)
        except TimeoutError as e:
            logging.error(str(e))
            raise SystemExit(1)
    return wrapper


def _make_api(ctx, **job_options) -> BulkApi:
    """Build a BulkApi from the resolved configuration in the click context."""
    return BulkApi(
        ctx.obj['config'],
        http_client=ctx.obj.get('http_client'),
        **job_options
    )


def _write_stream(chunks, output):
    """Write a byte stream to a file path, or to stdout when output is None."""
    if output is None:
        out = click.get_binary_stream('stdout')
        for chunk in chunks:
            out.write(chunk)
        out.flush()
        return
    with open(output, 'wb') as f:
        for chunk in chunks:
            f.write(chunk)
    logging.info(f"Saved to {output}")
