"""
SF Bulk Manager - Salesforce Bulk API jobs and query results

A client for the Salesforce Bulk API (the asynchronous, job/batch oriented
API). It submits queries and CSV loads as jobs, lets the caller poll them
to completion, and reassembles the result segments of every batch into a
single CSV stream with one header line.

Package Structure:
    bulk:  Job lifecycle, batches, result assembly
    utils: Configuration, errors, HTTP client helpers

Example Usage:

    Query:
        import sf_bulk_manager as sfb

        config = sfb.BulkApiConfig.from_env()
        with sfb.BulkApi(config, operation='query', object_name='Contact',
                         pk_chunking=True) as api:
            api.add_batch('select Id, Name from Contact')
            api.wait_for_completion(check_interval=5)
            with api.get_query_results() as results:
                for line in results:
                    ...

    CLI Usage:
        $ sfbulk query "select Id, Name from Contact" -o Contact --pk-chunking --output contacts.csv
        $ sfbulk status 750xx000000001
        $ sfbulk results 750xx000000001 --output contacts.csv

Environment Setup:
    SF_LOGIN_URL, SF_USERNAME, SF_PASSWORD, SF_SECURITY_TOKEN, SF_API_VERSION

    These can be set via .env files in:
    - Current working directory (.env, .env.local)
    - Project root directory
"""

__version__ = "0.1.0"

# Load environment on package import
from .core.utils.environment import setup_environment
setup_environment()

from . import core
bulk = core.bulk
utils = core.utils
BulkApi = core.BulkApi
BulkApiConfig = core.utils.config.BulkApiConfig
JobSpec = core.bulk.jobs.JobSpec

from .core.utils.errors import (
    BulkApiError,
    ConfigurationError,
    AuthenticationError,
    RemoteStateError,
    TransportError,
    ResponseParseError,
)

__all__ = [
    '__version__',
    'bulk',                 # sfb.bulk.*
    'utils',                # sfb.utils.*
    'BulkApi',
    'BulkApiConfig',
    'JobSpec',
    'BulkApiError',
    'ConfigurationError',
    'AuthenticationError',
    'RemoteStateError',
    'TransportError',
    'ResponseParseError',
]

del setup_environment, core
