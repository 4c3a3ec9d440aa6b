"""Infrastructure layer components.

Shared HTTP connections, the Facebook Graph API client and external
process execution.
"""

from app.infrastructure.facebook_graph import FacebookGraphAPI, classify_graph_error
from app.infrastructure.http_client import HTTPClient
from app.infrastructure.process_runner import AsyncProcessRunner, ProcessResult, ProcessRunner

__all__ = [
    "AsyncProcessRunner",
    "FacebookGraphAPI",
    "HTTPClient",
    "ProcessResult",
    "ProcessRunner",
    "classify_graph_error",
]
