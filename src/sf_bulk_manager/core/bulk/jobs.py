# -*- coding: utf-8 -*-
"""
This module manages the lifecycle of a single Bulk API job: creating it,
fetching its status, and closing or aborting it. It also provides the
success/failure predicates and the caller-driven polling loop that uses
them to decide between close and abort.

A JobController owns exactly one job for its lifetime. To work with a
different job, create a new controller.
"""

import time
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from tqdm.auto import tqdm

from ..utils.errors import ConfigurationError, RemoteStateError
from ..utils.misc import to_int
from .parse import parse_job_info
from .session import LoginSession, XML_CONTENT_TYPE
from .transport import send_request


OPERATIONS = ('insert', 'upsert', 'update', 'delete', 'hardDelete', 'query', 'queryAll')
QUERY_OPERATIONS = ('query', 'queryAll')
CONCURRENCY_MODES = ('Parallel', 'Serial')

JOB_STATE_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<jobInfo
   xmlns="http://www.force.com/2009/06/asyncapi/dataload">
 <state>{state}</state>
</jobInfo>"""


#=============================================================================
# Job Values
#=============================================================================

@dataclass(frozen=True)
class JobSpec:
    """Options sent when creating a job."""

    operation: Optional[str] = None
    object_name: Optional[str] = None
    external_id_field_name: Optional[str] = None
    concurrency_mode: str = 'Parallel'
    pk_chunking: bool = False

    @property
    def is_query(self) -> bool:
        return self.operation in QUERY_OPERATIONS

    def validate(self):
        """
        Check the options are complete enough to create a job.

        Raises:
            ConfigurationError: On a missing or unknown option.
        """
        if not self.operation:
            raise ConfigurationError("operation is required to create a job")
        if self.operation not in OPERATIONS:
            raise ConfigurationError(
                f"Unknown operation '{self.operation}'. Expected one of: {', '.join(OPERATIONS)}"
            )
        if not self.object_name:
            raise ConfigurationError("object is required to create a job")
        if self.concurrency_mode not in CONCURRENCY_MODES:
            raise ConfigurationError(
                f"Unknown concurrency mode '{self.concurrency_mode}'. "
                f"Expected one of: {', '.join(CONCURRENCY_MODES)}"
            )
        if self.operation == 'upsert' and not self.external_id_field_name:
            raise ConfigurationError("externalIdFieldName is required for upsert jobs")
        return self

    def to_xml(self) -> str:
        """Render the <jobInfo> creation body. Element order matters to the service."""
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<jobInfo xmlns="http://www.force.com/2009/06/asyncapi/dataload">',
            f'  <operation>{self.operation}</operation>',
            f'  <object>{self.object_name}</object>',
        ]
        if self.external_id_field_name:
            lines.append(f'  <externalIdFieldName>{self.external_id_field_name}</externalIdFieldName>')
        if self.concurrency_mode:
            lines.append(f'  <concurrencyMode>{self.concurrency_mode}</concurrencyMode>')
        lines.append('  <contentType>CSV</contentType>')
        lines.append('</jobInfo>')
        return '\n'.join(lines)


@dataclass(frozen=True)
class JobInfo:
    """Status snapshot of a job as reported by the service."""

    id: str
    state: str
    operation: Optional[str] = None
    object_name: Optional[str] = None
    concurrency_mode: Optional[str] = None
    content_type: Optional[str] = None
    external_id_field_name: Optional[str] = None
    created_date: Optional[str] = None
    number_batches_queued: int = 0
    number_batches_in_progress: int = 0
    number_batches_completed: int = 0
    number_batches_failed: int = 0
    number_batches_total: int = 0
    number_records_processed: int = 0
    number_records_failed: int = 0
    number_retries: int = 0
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=data.get('id', ''),
            state=data.get('state', ''),
            operation=data.get('operation'),
            object_name=data.get('object'),
            concurrency_mode=data.get('concurrencyMode'),
            content_type=data.get('contentType'),
            external_id_field_name=data.get('externalIdFieldName'),
            created_date=data.get('createdDate'),
            number_batches_queued=to_int(data.get('numberBatchesQueued')),
            number_batches_in_progress=to_int(data.get('numberBatchesInProgress')),
            number_batches_completed=to_int(data.get('numberBatchesCompleted')),
            number_batches_failed=to_int(data.get('numberBatchesFailed')),
            number_batches_total=to_int(data.get('numberBatchesTotal')),
            number_records_processed=to_int(data.get('numberRecordsProcessed')),
            number_records_failed=to_int(data.get('numberRecordsFailed')),
            number_retries=to_int(data.get('numberRetries')),
            raw=dict(data),
        )

    def summary(self) -> str:
        return (
            f"Job {self.id} [{self.state}]: "
            f"{self.number_batches_completed}/{self.number_batches_total} batches completed, "
            f"{self.number_batches_failed} failed, "
            f"{self.number_records_processed} records processed, "
            f"{self.number_records_failed} failed"
        )


@dataclass(frozen=True)
class Job:
    """A job's identity and options, plus its latest status snapshot."""

    id: str
    spec: Optional[JobSpec]
    info: JobInfo

    @property
    def state(self) -> str:
        return self.info.state

    def with_info(self, info: JobInfo):
        """Return the job updated with a newer status snapshot of the same job."""
        if info.id and info.id != self.id:
            raise ValueError(f"Status for job {info.id} cannot update job {self.id}")
        return replace(self, info=info)


def job_succeeded(info: JobInfo) -> bool:
    """Every batch completed with no failed batches or records."""
    return (info.number_batches_completed == info.number_batches_total
            and info.number_batches_failed == 0
            and info.number_records_failed == 0)


def job_failed(info: JobInfo) -> bool:
    return info.number_batches_failed > 0 or info.number_records_failed > 0


#=============================================================================
# Job Controller
#=============================================================================

class JobController:
    """Creates, inspects, closes and aborts one job."""

    def __init__(self, session: LoginSession, spec: JobSpec = None, job_id: str = None):
        self.session = session
        self.spec = spec or JobSpec()
        self._job_id = job_id
        self._job = None

    @property
    def http_client(self):
        return self.session.http_client

    @property
    def job(self) -> Optional[Job]:
        return self._job

    @property
    def job_id(self) -> Optional[str]:
        return self._job_id

    def attach(self, job_id: str):
        """
        Bind the controller to an existing job.

        Raises:
            ConfigurationError: If the controller already owns a different job.
        """
        if self._job_id is None:
            self._job_id = job_id
            logging.debug(f"Controller attached to job {job_id}")
        elif job_id != self._job_id:
            raise ConfigurationError(
                f"This controller is bound to job {self._job_id}; "
                f"use a new instance to work with job {job_id}"
            )
        return self._job_id

    def resolve_job_id(self, job_id: str = None) -> str:
        if job_id:
            return self.attach(job_id)
        if self._job_id is None:
            raise ConfigurationError("No job has been created or attached yet")
        return self._job_id

    def _apply(self, info: JobInfo) -> Job:
        if self._job is None:
            self._job = Job(id=info.id or self._job_id, spec=self.spec, info=info)
        else:
            self._job = self._job.with_info(info)
        return self._job

    def job_url(self, job_id: str = None) -> str:
        job_id = self.resolve_job_id(job_id)
        return f"{self.session.login().job_url}/{job_id}"

    def create_job(self) -> Job:
        """
        Create the job, or return it if this controller already has one.

        Batch retry is always disabled, since retried batches corrupt the
        result files. PK chunking is requested when the job options enable it.

        Returns:
            Job: The created (or cached) job.
        """
        if self._job is not None:
            return self._job
        if self._job_id is not None:
            return self.get_job_info()

        self.spec.validate()
        context = self.session.login()
        headers = context.headers(XML_CONTENT_TYPE)
        headers['Sforce-Disable-Batch-Retry'] = 'true'
        if self.spec.pk_chunking:
            headers['Sforce-Enable-PKChunking'] = 'true'

        logging.info(f"Creating {self.spec.operation} job on {self.spec.object_name}...")
        response = send_request(
            self.http_client, 'POST', context.job_url,
            content=self.spec.to_xml().encode('utf-8'),
            headers=headers,
        )
        info = JobInfo.from_dict(parse_job_info(response.text))
        self._job_id = info.id
        job = self._apply(info)
        logging.info(f"Job created with ID: {job.id}")
        return job

    def get_job_info(self, job_id: str = None) -> Job:
        """Fetch the job's current state and counters. Always hits the service."""
        url = self.job_url(job_id)
        context = self.session.login()
        response = send_request(
            self.http_client, 'GET', url,
            headers=context.headers(XML_CONTENT_TYPE),
        )
        job = self._apply(JobInfo.from_dict(parse_job_info(response.text)))
        logging.debug(job.info.summary())
        return job

    def _set_state(self, state: str, job_id: str = None) -> Job:
        url = self.job_url(job_id)
        context = self.session.login()
        response = send_request(
            self.http_client, 'POST', url,
            content=JOB_STATE_TEMPLATE.format(state=state).encode('utf-8'),
            headers=context.headers(XML_CONTENT_TYPE),
        )
        return self._apply(JobInfo.from_dict(parse_job_info(response.text)))

    def close_job(self, job_id: str = None) -> Job:
        """Tell the service no more batches are coming."""
        logging.info(f"Closing job {self.resolve_job_id(job_id)}...")
        job = self._set_state('Closed', job_id)
        logging.info(f"Job {job.id} is {job.state}.")
        return job

    def abort_job(self, job_id: str = None) -> Job:
        """Abort the job; unprocessed batches are discarded."""
        logging.info(f"Aborting job {self.resolve_job_id(job_id)}...")
        job = self._set_state('Aborted', job_id)
        logging.warning(f"Job {job.id} is {job.state}.")
        return job


#==============================================================================
# Job Tracking
#==============================================================================

def wait_for_job(
        controller: JobController,
        check_interval: float = 2.0,
        timeout: float | None = None,
        show_progress: bool = True,
        sleep=time.sleep
    ) -> JobInfo:
    """
    Poll a job until it succeeds or fails, then close or abort it.

    Args:
        controller (JobController): Controller owning the job.
        check_interval (float): Seconds to wait between status checks.
        timeout (float, optional): Give up after this many seconds.
        show_progress (bool): Show a batches-completed progress bar.
        sleep: Function used to wait between checks.

    Returns:
        JobInfo: The job status after closing it.

    Raises:
        RemoteStateError: If the job reports failed batches or records. The
            job is aborted first and is never closed.
        TimeoutError: If timeout elapses before the job finishes.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    progress = tqdm(desc="Batches completed", unit="batch", disable=not show_progress)
    try:
        while True:
            info = controller.get_job_info().info
            progress.total = info.number_batches_total
            progress.n = info.number_batches_completed
            progress.refresh()

            if job_succeeded(info):
                logging.info(f"Job {info.id} finished successfully.")
                return controller.close_job().info
            if job_failed(info):
                logging.error(f"Job {info.id} failed: {info.summary()}")
                controller.abort_job()
                raise RemoteStateError(f"Job failed. {info.summary()}", job_info=info)

            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"Job {info.id} did not finish within {timeout} seconds")
            logging.info(f"{info.summary()}. Waiting {check_interval} seconds before checking again...")
            sleep(check_interval)
    finally:
        progress.close()
