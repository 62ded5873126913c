# -*- coding: utf-8 -*-
"""
XML parsing for Bulk API responses.

The service answers in XML under the async dataload namespace (and the
partner SOAP namespace for login). Elements are matched by local name so
namespaces never leak into callers. Repeatable elements (batchInfo,
result) always come back as lists, even when the response holds a single
element, so the rest of the package never has to tell one from many.
"""

import logging
import xml.etree.ElementTree as ET

from ..utils.errors import AuthenticationError, ResponseParseError


ASYNC_NAMESPACE = "http://www.force.com/2009/06/asyncapi/dataload"


def local_name(tag: str) -> str:
    """Strip the '{namespace}' prefix from an element tag."""
    return tag.rsplit('}', 1)[-1]


def parse_xml(text, what: str = "response") -> ET.Element:
    """
    Parse an XML document.

    Raises:
        ResponseParseError: If the text is not well-formed XML.
    """
    if isinstance(text, bytes):
        text = text.decode('utf-8')
    try:
        return ET.fromstring(text)
    except ET.ParseError as e:
        raise ResponseParseError(f"Could not parse {what} as XML: {e}") from e


def find_first(root: ET.Element, name: str):
    """Depth-first search for the first element with the given local name."""
    for elem in root.iter():
        if local_name(elem.tag) == name:
            return elem
    return None


def children_by_name(root: ET.Element, name: str) -> list:
    """Return the direct children with the given local name, in document order."""
    return [child for child in root if local_name(child.tag) == name]


def element_to_dict(elem: ET.Element) -> dict:
    """Flatten an element's direct children into a {local_name: text} dict."""
    return {local_name(child.tag): (child.text or '').strip() for child in elem}


#==============================================================================
# Login
#==============================================================================

def parse_login_response(text) -> dict:
    """
    Extract server URL, session id and session lifetime from a SOAP login response.

    Returns:
        dict: Keys 'server_url', 'session_id' and 'session_seconds_valid'
            (int or None).

    Raises:
        AuthenticationError: If the response is a SOAP fault or lacks the
            expected elements.
    """
    try:
        root = parse_xml(text, what="login response")
    except ResponseParseError as e:
        raise AuthenticationError(str(e)) from e

    fault = find_first(root, 'Fault')
    if fault is not None:
        code = find_first(fault, 'faultcode')
        message = find_first(fault, 'faultstring')
        raise AuthenticationError(
            f"Login rejected: {(message.text if message is not None else '').strip()} "
            f"({(code.text if code is not None else 'unknown fault').strip()})"
        )

    server_url = find_first(root, 'serverUrl')
    session_id = find_first(root, 'sessionId')
    if server_url is None or session_id is None or not server_url.text or not session_id.text:
        raise AuthenticationError("Malformed login response: serverUrl or sessionId missing")

    seconds = find_first(root, 'sessionSecondsValid')
    seconds_valid = None
    if seconds is not None and seconds.text and seconds.text.strip().isdigit():
        seconds_valid = int(seconds.text.strip())

    return {
        'server_url': server_url.text.strip(),
        'session_id': session_id.text.strip(),
        'session_seconds_valid': seconds_valid,
    }


#==============================================================================
# Jobs and Batches
#==============================================================================

def parse_job_info(text) -> dict:
    """Parse a <jobInfo> document into a flat dict of strings."""
    root = parse_xml(text, what="job info")
    if local_name(root.tag) != 'jobInfo':
        raise ResponseParseError(f"Expected <jobInfo>, got <{local_name(root.tag)}>")
    return element_to_dict(root)


def parse_batch_info(text) -> dict:
    """Parse a single <batchInfo> document into a flat dict of strings."""
    root = parse_xml(text, what="batch info")
    if local_name(root.tag) != 'batchInfo':
        raise ResponseParseError(f"Expected <batchInfo>, got <{local_name(root.tag)}>")
    return element_to_dict(root)


def parse_batch_info_list(text) -> list:
    """
    Parse a <batchInfoList> document.

    Returns:
        list[dict]: One dict per <batchInfo>, in document order. Empty when
            the job has no batches.
    """
    root = parse_xml(text, what="batch info list")
    if local_name(root.tag) != 'batchInfoList':
        raise ResponseParseError(f"Expected <batchInfoList>, got <{local_name(root.tag)}>")
    batch_infos = [element_to_dict(elem) for elem in children_by_name(root, 'batchInfo')]
    logging.debug(f"Parsed {len(batch_infos)} batchInfo elements")
    return batch_infos


def parse_result_list(text) -> list:
    """
    Parse a <result-list> document into the ordered list of result ids.

    A batch whose query matched nothing may return an empty list.
    """
    root = parse_xml(text, what="result list")
    if local_name(root.tag) != 'result-list':
        raise ResponseParseError(f"Expected <result-list>, got <{local_name(root.tag)}>")
    return [
        elem.text.strip()
        for elem in children_by_name(root, 'result')
        if elem.text and elem.text.strip()
    ]


#==============================================================================
# Errors
#==============================================================================

def parse_error(text):
    """
    Extract (exceptionCode, exceptionMessage) from an <error> body.

    Returns (None, None) when the body is not an error document; this is
    used on responses that already failed, so it never raises.
    """
    if not text or not text.lstrip().startswith('<'):
        return None, None
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return None, None
    code = find_first(root, 'exceptionCode')
    message = find_first(root, 'exceptionMessage')
    if message is None:
        message = find_first(root, 'faultstring')
    return (
        code.text.strip() if code is not None and code.text else None,
        message.text.strip() if message is not None and message.text else None,
    )
