# -*- coding: utf-8 -*-

import logging
from pathlib import Path

import yaml


#=======================================================================
# XML Utilities
#=======================================================================

_XML_ESCAPES = (
    ('&', '&amp;'),
    ('<', '&lt;'),
    ('>', '&gt;'),
    ('"', '&quot;'),
    ("'", '&apos;'),
)


def xml_safe(value: str) -> str:
    """
    Escape the five XML special characters in a string.

    The ampersand goes first so already escaped entities are not re-escaped
    by the later replacements.
    """
    for char, entity in _XML_ESCAPES:
        value = value.replace(char, entity)
    return value


#=======================================================================
# YAML Utilities
#=======================================================================

def read_yaml(path):
    """
    Read a YAML file.

    Args:
        path (str | Path): Path to the YAML file.

    Returns:
        dict or None: Parsed YAML content (None for an empty file).
    """
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def write_yaml(data, path):
    """
    Write data to a YAML file, creating parent folders as needed.

    Args:
        data (dict): Data to write.
        path (str | Path): Destination file path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    logging.debug(f"Wrote YAML file {path}")


#=======================================================================
# Logging Utilities
#=======================================================================

def mask_secret(value, visible=4):
    """
    Masks a secret (session id, token) for logging.

    Args:
        value (str): The secret to mask.
        visible (int): Number of leading characters to keep.

    Returns:
        str: The masked value.
    """
    if not value:
        return '<none>'
    if len(value) <= visible:
        return '*' * len(value)
    return value[:visible] + '*' * 8


#=======================================================================
# Parsing Utilities
#=======================================================================

def to_int(value, default=0):
    """Convert a numeric string from an XML response to int."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default
