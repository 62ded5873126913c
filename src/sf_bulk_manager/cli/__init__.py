"""
Command-line interface for SF Bulk Manager.

Command Categories:
    Jobs:
        - query: Run a SOQL query job and write the merged CSV
        - load: Insert/update/upsert/delete CSV files
        - status: Show job counters
        - batches: List a job's batches
        - close / abort: End a job

    Results:
        - results: Merged CSV of a finished query job
        - request: Original CSV submitted for a batch

    Configuration:
        - save-profile: Store URL, username and API version

Environment Requirements:
    - SF_LOGIN_URL, SF_USERNAME, SF_PASSWORD, SF_SECURITY_TOKEN, SF_API_VERSION

Example Workflow:
    $ sfbulk query "select Id, Name from Contact" -o Contact --pk-chunking --output contacts.csv
    $ sfbulk status 750xx000000001
    $ sfbulk results 750xx000000001 > contacts.csv
"""

from .cli import cli

__all__ = [
    'cli',  # Main CLI interface (Click command group)
]
