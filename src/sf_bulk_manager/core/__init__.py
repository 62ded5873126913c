"""
Core functionality for SF Bulk Manager.

Architecture:
    bulk/       - Bulk API operations
      ├── session/  - Login and session context
      ├── jobs/     - Job lifecycle and polling
      ├── batches/  - Batch submission, enumeration, result location
      ├── results/  - Result stream assembly
      ├── parse/    - XML response parsing
      ├── transport/ - Request and streaming helpers
      └── manager/  - BulkApi facade

    utils/      - Shared utilities and infrastructure
      ├── errors/      - Exception hierarchy
      ├── config/      - Connection configuration
      ├── clients/     - HTTP client creation
      ├── misc/        - General utilities (internal)
      └── environment/ - Environment setup (internal)
"""

from . import utils
from . import bulk

from .bulk.manager import BulkApi

__all__ = [
    'bulk',     # Bulk API operations
    'utils',    # Shared utilities
    'BulkApi',  # One-job-per-instance facade
]
