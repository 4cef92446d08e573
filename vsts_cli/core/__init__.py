"""
Core layer - Session, addressing and HTTP client.

This layer provides:
- The immutable Session and Basic authorization
- URI building and the endpoint invoker with error handling
- The condition poller for eventually consistent changes
- Typed dataclasses for API responses
"""

from vsts_cli.core.client import (
    AuthenticationError,
    EndpointInvoker,
    HttpError,
    NotFound,
    ResponseError,
    TimeoutExceeded,
    TransportError,
    ValidationError,
    VSTSError,
    authorize,
    build_uri,
    invoke,
)
from vsts_cli.core.poller import PollState, wait_for
from vsts_cli.core.session import Scheme, Session
from vsts_cli.core.types import (
    BuildDefinition,
    Policy,
    Process,
    Project,
    Repository,
    WorkItem,
    WorkItemQuery,
)

__all__ = [
    "AuthenticationError",
    "BuildDefinition",
    "EndpointInvoker",
    "HttpError",
    "NotFound",
    "Policy",
    "PollState",
    "Process",
    "Project",
    "Repository",
    "ResponseError",
    "Scheme",
    "Session",
    "TimeoutExceeded",
    "TransportError",
    "VSTSError",
    "ValidationError",
    "WorkItem",
    "WorkItemQuery",
    "authorize",
    "build_uri",
    "invoke",
    "wait_for",
]
