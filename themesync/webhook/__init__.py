"""GitHub webhook boundary: typed events, routing and the HTTP app."""

from .events import (
    PullRequest,
    PullRequestClosed,
    PullRequestLabeled,
    PullRequestSynchronized,
    PushEvent,
    WebhookEvent,
    parse_event,
)

__all__ = [
    "PullRequest",
    "PullRequestClosed",
    "PullRequestLabeled",
    "PullRequestSynchronized",
    "PushEvent",
    "WebhookEvent",
    "parse_event",
]
