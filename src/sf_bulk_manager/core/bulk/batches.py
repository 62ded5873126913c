# -*- coding: utf-8 -*-
"""
This module adds batches to a job, enumerates a job's batches, and
locates the result segments of each batch.

For PK chunked queries the service creates one extra batch that stays in
NotProcessed state forever. It is not a work unit, so enumeration never
returns it.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from ..utils.misc import to_int
from .jobs import JobController
from .parse import parse_batch_info, parse_batch_info_list, parse_result_list
from .session import CSV_CONTENT_TYPE, XML_CONTENT_TYPE
from .transport import send_request, stream_bytes


NOT_PROCESSED = 'NotProcessed'
BATCH_STATES = ('Queued', 'InProgress', 'Completed', 'Failed', NOT_PROCESSED)


@dataclass(frozen=True)
class BatchInfo:
    """Status of one batch as reported by the service."""

    id: str
    job_id: str
    state: str
    state_message: Optional[str] = None
    created_date: Optional[str] = None
    number_records_processed: int = 0
    number_records_failed: int = 0
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_eligible(self) -> bool:
        return self.state != NOT_PROCESSED

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=data.get('id', ''),
            job_id=data.get('jobId', ''),
            state=data.get('state', ''),
            state_message=data.get('stateMessage') or None,
            created_date=data.get('createdDate'),
            number_records_processed=to_int(data.get('numberRecordsProcessed')),
            number_records_failed=to_int(data.get('numberRecordsFailed')),
            raw=dict(data),
        )


@dataclass(frozen=True)
class ResultSegment:
    """One size-capped chunk of a batch's result data."""

    id: str
    batch_id: str
    job_id: str


def eligible_batches(batch_infos) -> List[BatchInfo]:
    """Drop every NotProcessed batch, keeping the order of the rest."""
    return [info for info in batch_infos if info.is_eligible]


def _encode_payload(payload):
    """Turn a SOQL string, CSV string, bytes or stream into something httpx can send."""
    if isinstance(payload, str):
        return payload.encode('utf-8')
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, io.TextIOBase):
        return (line.encode('utf-8') for line in payload)
    return payload


#=============================================================================
# Batch Submission
#=============================================================================

class BatchSubmitter:
    """Adds batches to a job, creating the job on first use."""

    def __init__(self, controller: JobController):
        self.controller = controller

    def add_batch(self, payload, job_id: str = None) -> BatchInfo:
        """
        Add a batch to a job.

        For query jobs the payload is the SOQL text and only one batch makes
        sense. For insert/update/delete jobs the payload is CSV (a string,
        bytes, or a stream) and this may be called many times before the
        job is closed.

        Args:
            payload: SOQL query or CSV content.
            job_id (str, optional): Existing job to add to. If omitted the
                controller's job is created first (if it does not exist yet).

        Returns:
            BatchInfo: The batch as created by the service.
        """
        if job_id:
            self.controller.attach(job_id)
            self.controller.session.login()
        else:
            self.controller.create_job()
        url = f"{self.controller.job_url()}/batch"
        context = self.controller.session.login()

        logging.info(f"Adding batch to job {self.controller.job_id}...")
        response = send_request(
            self.controller.http_client, 'POST', url,
            content=_encode_payload(payload),
            headers=context.headers(CSV_CONTENT_TYPE),
        )
        batch = BatchInfo.from_dict(parse_batch_info(response.text))
        logging.info(f"Batch {batch.id} added, state {batch.state}.")
        return batch


#=============================================================================
# Batch Enumeration
#=============================================================================

class BatchEnumerator:
    """Lists a job's batches."""

    def __init__(self, controller: JobController):
        self.controller = controller

    def fetch_batch_infos(self, job_id: str = None) -> List[BatchInfo]:
        """Fetch every batch of the job, NotProcessed ones included."""
        url = f"{self.controller.job_url(job_id)}/batch"
        context = self.controller.session.login()
        response = send_request(
            self.controller.http_client, 'GET', url,
            headers=context.headers(XML_CONTENT_TYPE),
        )
        return [BatchInfo.from_dict(data) for data in parse_batch_info_list(response.text)]

    def list_batches(self, job_id: str = None) -> List[BatchInfo]:
        """
        Fetch the job's batches, excluding any in NotProcessed state.

        Returns:
            list[BatchInfo]: Eligible batches in the order the service listed them.
        """
        batch_infos = self.fetch_batch_infos(job_id)
        eligible = eligible_batches(batch_infos)
        skipped = len(batch_infos) - len(eligible)
        logging.info(
            f"Job {self.controller.job_id} has {len(batch_infos)} batches"
            + (f" ({skipped} NotProcessed skipped)." if skipped else ".")
        )
        return eligible

    def get_batch_info(self, batch_id: str, job_id: str = None) -> BatchInfo:
        """Fetch a single batch."""
        url = f"{self.controller.job_url(job_id)}/batch/{batch_id}"
        context = self.controller.session.login()
        response = send_request(
            self.controller.http_client, 'GET', url,
            headers=context.headers(XML_CONTENT_TYPE),
        )
        return BatchInfo.from_dict(parse_batch_info(response.text))


#=============================================================================
# Result Location
#=============================================================================

class ResultLocator:
    """Resolves and fetches the result segments of a batch."""

    def __init__(self, controller: JobController):
        self.controller = controller

    def _batch_url(self, batch_id: str, job_id: str = None) -> str:
        return f"{self.controller.job_url(job_id)}/batch/{batch_id}"

    def resolve_segments(self, batch_id: str, job_id: str = None) -> List[ResultSegment]:
        """
        List the result segments of a batch, in the order the service gives them.

        A batch whose results exceed the service's size cap is split into
        several segments. A batch with no results has none.
        """
        job_id = self.controller.resolve_job_id(job_id)
        context = self.controller.session.login()
        response = send_request(
            self.controller.http_client, 'GET',
            f"{self._batch_url(batch_id, job_id)}/result",
            headers=context.headers(),
        )
        segments = [
            ResultSegment(id=result_id, batch_id=batch_id, job_id=job_id)
            for result_id in parse_result_list(response.text)
        ]
        logging.info(f"Batch {batch_id} has {len(segments)} result segment(s).")
        return segments

    def fetch_segment(self, segment_id: str, batch_id: str, job_id: str = None) -> Iterator[bytes]:
        """
        Stream the raw CSV bytes of one result segment.

        The connection is opened when iteration starts and closed when the
        stream is exhausted or closed.
        """
        url = f"{self._batch_url(batch_id, job_id)}/result/{segment_id}"
        context = self.controller.session.login()
        logging.info(f"Fetching result segment {segment_id} of batch {batch_id}...")
        return stream_bytes(self.controller.http_client, url, headers=context.headers())

    def get_batch_request(self, batch_id: str, job_id: str = None) -> Iterator[bytes]:
        """Stream back the CSV originally submitted for an insert/update/delete batch."""
        url = f"{self._batch_url(batch_id, job_id)}/request"
        context = self.controller.session.login()
        return stream_bytes(self.controller.http_client, url, headers=context.headers())
