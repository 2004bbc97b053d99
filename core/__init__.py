"""Core module - configuration, audit, observability and security.

Shared infrastructure for the API, the Temporal activities and the worker.
The reconciliation engine itself lives in /reconciliation/ and does not
depend on anything here.
"""

__version__ = "1.0.0"
