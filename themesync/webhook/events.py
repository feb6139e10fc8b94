"""Typed GitHub webhook payloads.

Only the fields the router reads are modelled; everything else in the
payload is ignored.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from themesync.errors import EventParseError


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Owner(_Payload):
    login: str


class Repository(_Payload):
    name: str
    owner: Owner
    full_name: str | None = None
    homepage: str | None = None

    @property
    def slug(self) -> str:
        return self.full_name or f"{self.owner.login}/{self.name}"


class Installation(_Payload):
    id: int


class HeadCommit(_Payload):
    id: str | None = None
    message: str = ""


class PushEvent(_Payload):
    ref: str
    deleted: bool = False
    head_commit: HeadCommit | None = None
    repository: Repository
    installation: Installation | None = None

    @property
    def branch(self) -> str | None:
        prefix = "refs/heads/"
        return self.ref[len(prefix):] if self.ref.startswith(prefix) else None


class Label(_Payload):
    name: str = ""


class GitRef(_Payload):
    ref: str = ""
    sha: str | None = None


class PullRequest(_Payload):
    number: int
    body: str | None = None
    merged: bool = False
    labels: list[Label] = Field(default_factory=list)
    head: GitRef = Field(default_factory=GitRef)
    base: GitRef = Field(default_factory=GitRef)

    def has_label(self, name: str) -> bool:
        wanted = name.lower()
        return any(label.name.lower() == wanted for label in self.labels)


class _PullRequestEvent(_Payload):
    pull_request: PullRequest
    repository: Repository
    installation: Installation | None = None


class PullRequestLabeled(_PullRequestEvent):
    action: Literal["labeled"]
    label: Label | None = None


class PullRequestSynchronized(_PullRequestEvent):
    action: Literal["synchronize"]


class PullRequestClosed(_PullRequestEvent):
    action: Literal["closed"]


PullRequestEvent = Annotated[
    Union[PullRequestLabeled, PullRequestSynchronized, PullRequestClosed],
    Field(discriminator="action"),
]

WebhookEvent = Union[PushEvent, PullRequestLabeled, PullRequestSynchronized, PullRequestClosed]

_pull_request_adapter: TypeAdapter[PullRequestEvent] = TypeAdapter(PullRequestEvent)

HANDLED_PR_ACTIONS = ("labeled", "synchronize", "closed")


def parse_event(name: str, payload: dict) -> WebhookEvent | None:
    """Validate *payload* for event *name*.

    Returns None for events and actions the router does not handle.

    Raises:
        EventParseError: if a handled event is malformed.
    """
    try:
        if name == "push":
            return PushEvent.model_validate(payload)
        if name == "pull_request":
            if payload.get("action") not in HANDLED_PR_ACTIONS:
                return None
            return _pull_request_adapter.validate_python(payload)
    except ValidationError as e:
        raise EventParseError(f"Invalid {name} payload: {e}") from e
    return None
