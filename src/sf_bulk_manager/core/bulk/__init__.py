"""
Bulk API job and result operations for SF Bulk Manager.

Submodules:
    session:  Login exchange and the authenticated SessionContext
    jobs:     Job lifecycle (create, status, close, abort) and polling
    batches:  Batch submission, enumeration and result segment location
    results:  Merging result segments into a single CSV stream
    parse:    XML response parsing
    transport: Request and streaming helpers
    manager:  BulkApi, the one-job-per-instance facade

Example Usage:
    import sf_bulk_manager as sfb

    config = sfb.BulkApiConfig.from_env()
    with sfb.BulkApi(config, operation='query', object_name='Account') as api:
        api.add_batch('select Id, Name from Account')
        api.wait_for_completion()
        api.download_query_results('./accounts.csv')
"""

from . import session
from . import jobs
from . import batches
from . import results
from . import parse
from . import transport
from . import manager

__all__ = [
    'session',    # sfb.bulk.session.*
    'jobs',       # sfb.bulk.jobs.*
    'batches',    # sfb.bulk.batches.*
    'results',    # sfb.bulk.results.*
    'parse',      # sfb.bulk.parse.*
    'transport',  # sfb.bulk.transport.*
    'manager',    # sfb.bulk.manager.*
]
