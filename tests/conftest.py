"""
Shared fixtures: a fake Bulk API service behind httpx.MockTransport.

The fake records every request so tests can assert on URLs, headers and
bodies, and serves job, batch and result documents from plain attributes
that each test sets up.
"""

import re

import httpx
import pytest

from sf_bulk_manager import BulkApi, BulkApiConfig


LOGIN_URL = "https://login.example.com"
INSTANCE_URL = "https://na1.example.my.salesforce.com"
API_VERSION = "59.0"
SESSION_ID = "00Dxx0000000001!AQ4AQFakeSessionToken"
JOB_ID = "750xx0000000001AAA"
NS = "http://www.force.com/2009/06/asyncapi/dataload"


def login_response(session_id=SESSION_ID):
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"
  xmlns="urn:partner.soap.sforce.com">
 <soapenv:Body>
  <loginResponse>
   <result>
    <metadataServerUrl>{INSTANCE_URL}/services/Soap/m/{API_VERSION}/00Dxx</metadataServerUrl>
    <passwordExpired>false</passwordExpired>
    <sandbox>true</sandbox>
    <serverUrl>{INSTANCE_URL}/services/Soap/u/{API_VERSION}/00Dxx</serverUrl>
    <sessionId>{session_id}</sessionId>
    <userId>005xx000001</userId>
    <userInfo>
     <sessionSecondsValid>7200</sessionSecondsValid>
     <userName>user@example.com</userName>
    </userInfo>
   </result>
  </loginResponse>
 </soapenv:Body>
</soapenv:Envelope>"""


LOGIN_FAULT = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"
  xmlns:sf="urn:fault.partner.soap.sforce.com">
 <soapenv:Body>
  <soapenv:Fault>
   <faultcode>INVALID_LOGIN</faultcode>
   <faultstring>INVALID_LOGIN: Invalid username, password, security token; or user locked out.</faultstring>
  </soapenv:Fault>
 </soapenv:Body>
</soapenv:Envelope>"""


def job_info_xml(job_id=JOB_ID, state="Open", operation="query", object_name="Contact", **counters):
    values = {
        'numberBatchesQueued': 0,
        'numberBatchesInProgress': 0,
        'numberBatchesCompleted': 0,
        'numberBatchesFailed': 0,
        'numberBatchesTotal': 0,
        'numberRecordsProcessed': 0,
        'numberRetries': 0,
        'numberRecordsFailed': 0,
    }
    values.update(counters)
    counter_xml = "\n".join(f" <{k}>{v}</{k}>" for k, v in values.items())
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<jobInfo xmlns="{NS}">
 <id>{job_id}</id>
 <operation>{operation}</operation>
 <object>{object_name}</object>
 <createdById>005xx000001</createdById>
 <createdDate>2024-01-01T00:00:00.000Z</createdDate>
 <state>{state}</state>
 <concurrencyMode>Parallel</concurrencyMode>
 <contentType>CSV</contentType>
{counter_xml}
 <apiVersion>{API_VERSION}</apiVersion>
</jobInfo>"""


def batch_info_body(batch):
    return (
        f" <id>{batch['id']}</id>\n"
        f" <jobId>{batch.get('jobId', JOB_ID)}</jobId>\n"
        f" <state>{batch['state']}</state>\n"
        f" <numberRecordsProcessed>{batch.get('processed', 0)}</numberRecordsProcessed>\n"
        f" <numberRecordsFailed>{batch.get('failed', 0)}</numberRecordsFailed>\n"
    )


def batch_info_xml(batch):
    return f'<?xml version="1.0" encoding="UTF-8"?>\n<batchInfo xmlns="{NS}">\n{batch_info_body(batch)}</batchInfo>'


def batch_info_list_xml(batches):
    items = "".join(f" <batchInfo>\n{batch_info_body(b)} </batchInfo>\n" for b in batches)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n<batchInfoList xmlns="{NS}">\n{items}</batchInfoList>'


def result_list_xml(result_ids):
    items = "".join(f" <result>{r}</result>\n" for r in result_ids)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n<result-list xmlns="{NS}">\n{items}</result-list>'


def error_xml(code, message):
    return (f'<?xml version="1.0" encoding="UTF-8"?>\n<error xmlns="{NS}">\n'
            f' <exceptionCode>{code}</exceptionCode>\n'
            f' <exceptionMessage>{message}</exceptionMessage>\n</error>')


class FakeBulkService:
    """In-memory stand-in for the login endpoint and the async job API."""

    def __init__(self):
        self.requests = []
        self.login_fault = False
        self.job_id = JOB_ID
        self.job_state = "Open"
        self.status_sequence = []  # counters dicts served by successive status GETs
        self.batches = []          # [{'id': ..., 'state': ...}]
        self.segments = {}         # batch id -> [result ids]
        self.segment_bodies = {}   # result id -> bytes or list of byte chunks
        self.batch_requests = {}   # batch id -> bytes
        self.errors = {}           # path -> (status, code, message)
        self.added_batches = []
        self._last_counters = {}

    def requests_matching(self, method, pattern):
        return [r for r in self.requests
                if r.method == method and re.search(pattern, r.url.path)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        path = request.url.path
        method = request.method

        if path in self.errors:
            status, code, message = self.errors[path]
            return httpx.Response(status, text=error_xml(code, message))

        if path == f"/services/Soap/u/{API_VERSION}":
            if self.login_fault:
                return httpx.Response(500, text=LOGIN_FAULT)
            return httpx.Response(200, text=login_response())

        prefix = f"/services/async/{API_VERSION}/job"
        if not path.startswith(prefix):
            return httpx.Response(404, text="Not Found")
        rest = path[len(prefix):].strip('/')
        parts = rest.split('/') if rest else []

        if not parts and method == 'POST':
            return httpx.Response(201, text=job_info_xml(self.job_id, state=self.job_state))

        if len(parts) == 1:
            if method == 'GET':
                if self.status_sequence:
                    self._last_counters = self.status_sequence.pop(0)
                return httpx.Response(200, text=job_info_xml(
                    parts[0], state=self.job_state, **self._last_counters))
            match = re.search(rb'<state>(\w+)</state>', request.content)
            self.job_state = match.group(1).decode()
            return httpx.Response(200, text=job_info_xml(
                parts[0], state=self.job_state, **self._last_counters))

        if len(parts) == 2 and parts[1] == 'batch':
            if method == 'POST':
                batch_id = f"751xx00000000{len(self.added_batches) + 1:02d}"
                self.added_batches.append(request.content)
                return httpx.Response(201, text=batch_info_xml({'id': batch_id, 'state': 'Queued'}))
            return httpx.Response(200, text=batch_info_list_xml(self.batches))

        if len(parts) == 3:
            batch = next(b for b in self.batches if b['id'] == parts[2])
            return httpx.Response(200, text=batch_info_xml(batch))

        batch_id = parts[2]
        if len(parts) == 4 and parts[3] == 'result':
            return httpx.Response(200, text=result_list_xml(self.segments.get(batch_id, [])))
        if len(parts) == 4 and parts[3] == 'request':
            return httpx.Response(200, content=self.batch_requests[batch_id])
        if len(parts) == 5 and parts[3] == 'result':
            body = self.segment_bodies[parts[4]]
            if isinstance(body, list):
                return httpx.Response(200, content=iter(body))
            return httpx.Response(200, content=body)

        return httpx.Response(404, text="Not Found")


@pytest.fixture
def service():
    return FakeBulkService()


@pytest.fixture
def http_client(service):
    client = httpx.Client(transport=httpx.MockTransport(service.handle))
    yield client
    client.close()


@pytest.fixture
def config():
    return BulkApiConfig(
        url=LOGIN_URL,
        username="user@example.com",
        password="p&ss<word>",
        token="TOKEN'\"",
        api_version=API_VERSION,
    )


@pytest.fixture
def make_api(config, http_client):
    """Factory fixture: BulkApi wired to the fake service."""
    def _make(**job_options):
        return BulkApi(config, http_client=http_client, **job_options)
    return _make
