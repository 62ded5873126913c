# -*- coding: utf-8 -*-

import logging
from pathlib import Path
from typing import Iterator, List

import httpx

from ..utils.clients import create_http_client
from ..utils.config import BulkApiConfig
from .batches import BatchEnumerator, BatchInfo, BatchSubmitter, ResultLocator, ResultSegment
from .jobs import Job, JobController, JobInfo, JobSpec, wait_for_job
from .results import MergedResultStream, ResultStreamAssembler
from .session import LoginSession, SessionContext


class BulkApi:
    """
    A client for one Bulk API job.

    Each instance works with a single job, created on the first add_batch()
    or bound with attach(). To work with a different job, create a new
    instance.

    Example:
        with BulkApi(BulkApiConfig.from_env(), operation='query',
                     object_name='Contact', pk_chunking=True) as api:
            api.add_batch('select Id, Name from Contact')
            api.wait_for_completion()
            api.get_query_results().save('contacts.csv')
    """

    def __init__(
        self,
        config: BulkApiConfig = None,
        operation: str = None,
        object_name: str = None,
        external_id_field_name: str = None,
        concurrency_mode: str = 'Parallel',
        pk_chunking: bool = False,
        http_client: httpx.Client = None,
        **config_overrides
    ):
        config = (config or BulkApiConfig()).merged_with(**config_overrides)
        self.config = config.validate()
        self.spec = JobSpec(
            operation=operation,
            object_name=object_name,
            external_id_field_name=external_id_field_name,
            concurrency_mode=concurrency_mode or 'Parallel',
            pk_chunking=bool(pk_chunking),
        )

        self._owns_http_client = http_client is None
        self.http_client = http_client or create_http_client(timeout=self.config.timeout)

        self.session = LoginSession(self.config, self.http_client)
        self.controller = JobController(self.session, self.spec)
        self.submitter = BatchSubmitter(self.controller)
        self.enumerator = BatchEnumerator(self.controller)
        self.locator = ResultLocator(self.controller)
        self.assembler = ResultStreamAssembler(self.enumerator, self.locator)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            self.http_client.close()

    #--------------------------------------------------------------------------
    # Session and job
    #--------------------------------------------------------------------------

    @property
    def job(self) -> Job | None:
        return self.controller.job

    @property
    def job_id(self) -> str | None:
        return self.controller.job_id

    @property
    def job_info(self) -> JobInfo | None:
        return self.job.info if self.job else None

    def login(self) -> SessionContext:
        return self.session.login()

    def attach(self, job_id: str):
        """Bind this instance to an existing job."""
        self.controller.attach(job_id)
        logging.info(f"Working with existing job {job_id}")
        return self

    def create_job(self) -> Job:
        return self.controller.create_job()

    def get_job_info(self, job_id: str = None) -> JobInfo:
        return self.controller.get_job_info(job_id).info

    def close_job(self, job_id: str = None) -> JobInfo:
        return self.controller.close_job(job_id).info

    def abort_job(self, job_id: str = None) -> JobInfo:
        return self.controller.abort_job(job_id).info

    def wait_for_completion(self, check_interval: float = 2.0, timeout: float = None,
                            show_progress: bool = True) -> JobInfo:
        """Poll until the job finishes; close it on success, abort and raise on failure."""
        return wait_for_job(
            self.controller,
            check_interval=check_interval,
            timeout=timeout,
            show_progress=show_progress,
        )

    #--------------------------------------------------------------------------
    # Batches
    #--------------------------------------------------------------------------

    def add_batch(self, data, job_id: str = None) -> BatchInfo:
        return self.submitter.add_batch(data, job_id)

    def get_batch_info_list(self, job_id: str = None) -> List[BatchInfo]:
        """Eligible batches of the job (the PK chunking placeholder is excluded)."""
        return self.enumerator.list_batches(job_id)

    def get_batch_info(self, batch_id: str, job_id: str = None) -> BatchInfo:
        return self.enumerator.get_batch_info(batch_id, job_id)

    def get_batch_request(self, batch_id: str, job_id: str = None) -> Iterator[bytes]:
        return self.locator.get_batch_request(batch_id, job_id)

    #--------------------------------------------------------------------------
    # Query results
    #--------------------------------------------------------------------------

    def get_batch_query_results(self, batch_id: str, job_id: str = None) -> List[ResultSegment]:
        return self.locator.resolve_segments(batch_id, job_id)

    def get_batch_query_result(self, result_id: str, batch_id: str, job_id: str = None) -> Iterator[bytes]:
        return self.locator.fetch_segment(result_id, batch_id, job_id)

    def add_junk_pattern(self, pattern):
        self.assembler.add_junk_pattern(pattern)

    def get_query_results(self, job_id: str = None) -> MergedResultStream:
        """
        Return the results of a finished query job as one CSV stream.

        The job should already have completed successfully (see
        wait_for_completion()).
        """
        return self.assembler.assemble(job_id)

    def download_query_results(self, output_path: str | Path, job_id: str = None,
                               show_progress: bool = True) -> int:
        """Save the merged query results to a CSV file. Returns bytes written."""
        return self.get_query_results(job_id).save(output_path, show_progress=show_progress)
