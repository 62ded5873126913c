"""
Shared utilities for SF Bulk Manager.

Submodules:
    errors:      Exception hierarchy
    config:      Connection configuration (arguments, environment, profiles)
    clients:     HTTP client creation
    misc:        Internal utilities (internal)
    environment: .env loading (internal)
"""

from . import errors
from . import config
from . import clients

__all__ = [
    'errors',   # sfb.utils.errors.*
    'config',   # sfb.utils.config.*
    'clients',  # sfb.utils.clients.*
]

# Internal modules not exported:
# - misc (internal utilities)
# - environment (internal environment setup)
