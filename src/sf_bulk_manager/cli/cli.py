# -*- coding: utf-8 -*-

import logging

import click

from ..core.utils.config import BulkApiConfig, save_profile
from ..core.utils.environment import setup_environment
from ..core.utils.errors import BulkApiError
from .utils import (
    setup_logging,
    _validate_positive_number_callback,
    _handle_bulk_errors,
    _make_api,
    _write_stream,
)


OPERATION_CHOICES = ['insert', 'upsert', 'update', 'delete', 'hardDelete']


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose (DEBUG) logging')
@click.option('-q', '--quiet', is_flag=True, help='Only show warnings and errors')
@click.option('--profile', type=str, default=None,
              help='Name of a saved connection profile.')
@click.option('--profiles-file', type=click.Path(dir_okay=False), default=None,
              help='Profiles YAML file (default: user config directory).')
@click.option('--env-file', type=click.Path(dir_okay=False), default=None,
              help='Load environment variables from this .env file.')
@click.option('--url', type=str, default=None,
              help='Login URL, e.g. https://login.salesforce.com (or SF_LOGIN_URL).')
@click.option('--username', type=str, default=None,
              help='Salesforce username (or SF_USERNAME).')
@click.option('--api-version', type=str, default=None,
              help='API version, e.g. 59.0 (or SF_API_VERSION).')
@click.pass_context
def cli(ctx, verbose, quiet, profile, profiles_file, env_file, url, username, api_version):
    """
    SF Bulk Manager CLI - run Salesforce Bulk API jobs and fetch their results.

    \b
    Credentials are read from the environment (or a .env file):
    - SF_LOGIN_URL, SF_USERNAME, SF_PASSWORD, SF_SECURITY_TOKEN, SF_API_VERSION
    """
    setup_logging(verbose=verbose, quiet=quiet)
    if env_file:
        setup_environment(verbose=verbose, env_file=env_file)

    ctx.ensure_object(dict)
    if 'config' not in ctx.obj:
        try:
            ctx.obj['config'] = BulkApiConfig.resolve(
                profile=profile,
                profiles_path=profiles_file,
                url=url,
                username=username,
                api_version=api_version,
            )
        except BulkApiError as e:
            logging.error(str(e))
            raise SystemExit(1)
    ctx.obj['profiles_file'] = profiles_file


#=======================================================================
# Jobs
#=======================================================================

@cli.command()
@click.argument('soql')
@click.option('-o', '--object', 'object_name', required=True, help='sObject to query.')
@click.option('--all', 'query_all', is_flag=True, help='Include deleted and archived records (queryAll).')
@click.option('--pk-chunking', is_flag=True, help='Split the query into primary key chunks.')
@click.option('--output', type=click.Path(dir_okay=False), default=None,
              help='CSV file to write. Defaults to stdout.')
@click.option('--check-interval', type=float, default=5.0,
              callback=_validate_positive_number_callback,
              help='Seconds between status checks.')
@click.option('--timeout', type=float, default=None,
              callback=_validate_positive_number_callback,
              help='Give up after this many seconds.')
@click.pass_context
@_handle_bulk_errors
def query(ctx, soql, object_name, query_all, pk_chunking, output, check_interval, timeout):
    """
    Run a SOQL query as a bulk job and write the merged CSV results.

    \b
    Example:
        sfbulk query "select Id, Name from Contact" -o Contact --pk-chunking --output contacts.csv
    """
    with _make_api(ctx, operation='queryAll' if query_all else 'query',
                   object_name=object_name, pk_chunking=pk_chunking) as api:
        api.add_batch(soql)
        api.wait_for_completion(check_interval=check_interval, timeout=timeout,
                                show_progress=output is not None)
        if output:
            api.download_query_results(output)
        else:
            _write_stream(api.get_query_results(), None)


@cli.command()
@click.argument('operation', type=click.Choice(OPERATION_CHOICES))
@click.argument('object_name')
@click.argument('csv_files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--external-id-field', type=str, default=None,
              help='External id field (required for upsert).')
@click.option('--serial', is_flag=True, help='Use Serial concurrency mode.')
@click.option('--check-interval', type=float, default=5.0,
              callback=_validate_positive_number_callback,
              help='Seconds between status checks.')
@click.option('--timeout', type=float, default=None,
              callback=_validate_positive_number_callback,
              help='Give up after this many seconds.')
@click.pass_context
@_handle_bulk_errors
def load(ctx, operation, object_name, csv_files, external_id_field, serial, check_interval, timeout):
    """
    Load CSV files into an object, one batch per file.

    \b
    Example:
        sfbulk load upsert Contact part1.csv part2.csv --external-id-field Email__c
    """
    with _make_api(ctx, operation=operation, object_name=object_name,
                   external_id_field_name=external_id_field,
                   concurrency_mode='Serial' if serial else 'Parallel') as api:
        for csv_file in csv_files:
            with open(csv_file, 'rb') as f:
                api.add_batch(f.read())
        info = api.wait_for_completion(check_interval=check_interval, timeout=timeout)
        click.echo(info.summary())


@cli.command()
@click.argument('job_id')
@click.pass_context
@_handle_bulk_errors
def status(ctx, job_id):
    """Show a job's state and counters."""
    with _make_api(ctx) as api:
        click.echo(api.get_job_info(job_id).summary())


@cli.command()
@click.argument('job_id')
@click.pass_context
@_handle_bulk_errors
def batches(ctx, job_id):
    """List a job's batches (the PK chunking placeholder batch is omitted)."""
    with _make_api(ctx) as api:
        for batch in api.get_batch_info_list(job_id):
            line = (f"{batch.id}  {batch.state:<11} "
                    f"{batch.number_records_processed} processed, "
                    f"{batch.number_records_failed} failed")
            if batch.state_message:
                line += f"  ({batch.state_message})"
            click.echo(line)


@cli.command()
@click.argument('job_id')
@click.pass_context
@_handle_bulk_errors
def close(ctx, job_id):
    """Close a job."""
    with _make_api(ctx) as api:
        click.echo(api.close_job(job_id).summary())


@cli.command()
@click.argument('job_id')
@click.pass_context
@_handle_bulk_errors
def abort(ctx, job_id):
    """Abort a job."""
    with _make_api(ctx) as api:
        click.echo(api.abort_job(job_id).summary())


#=======================================================================
# Results
#=======================================================================

@cli.command()
@click.argument('job_id')
@click.option('--output', type=click.Path(dir_okay=False), default=None,
              help='CSV file to write. Defaults to stdout.')
@click.pass_context
@_handle_bulk_errors
def results(ctx, job_id, output):
    """Write the merged CSV results of a finished query job."""
    with _make_api(ctx) as api:
        api.attach(job_id)
        if output:
            api.download_query_results(output)
        else:
            _write_stream(api.get_query_results(), None)


@cli.command()
@click.argument('job_id')
@click.argument('batch_id')
@click.option('--output', type=click.Path(dir_okay=False), default=None,
              help='File to write. Defaults to stdout.')
@click.pass_context
@_handle_bulk_errors
def request(ctx, job_id, batch_id, output):
    """Fetch the CSV originally submitted for a batch."""
    with _make_api(ctx) as api:
        _write_stream(api.get_batch_request(batch_id, job_id), output)


#=======================================================================
# Configuration
#=======================================================================

@cli.command('save-profile')
@click.argument('name')
@click.option('--timeout', type=float, default=None,
              callback=_validate_positive_number_callback,
              help='HTTP timeout in seconds.')
@click.pass_context
def save_profile_command(ctx, name, timeout):
    """
    Save the current URL, username and API version as a named profile.

    Passwords and security tokens are never written; keep them in the
    environment.

    \b
    Example:
        sfbulk --url https://test.salesforce.com --username me@example.com \\
               --api-version 59.0 save-profile sandbox
    """
    config = ctx.obj['config']
    if timeout is not None:
        config = config.merged_with(timeout=timeout)
    path = save_profile(name, config, ctx.obj.get('profiles_file'))
    click.echo(f"Profile '{name}' saved to {path}")
