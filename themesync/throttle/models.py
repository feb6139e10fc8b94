"""Pydantic policies for request retries and batch spacing."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RetryPolicy(BaseModel):
    """Retry/backoff settings for one outbound API call.

    Delays are in seconds.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=5, ge=0)
    base_delay: float = Field(default=1.0, gt=0)
    max_delay: float = Field(default=60.0, gt=0)
    secondary_min_wait: float = Field(default=60.0, ge=0)
    spacing: float = Field(default=0.05, ge=0)


class BatchPolicy(BaseModel):
    """Sequential batching for content-creating requests."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=10, gt=0)
    delay_between_batches: float = Field(default=0.5, ge=0)
    delay_between_items: float = Field(default=0.075, ge=0)


class RateLimitKind(str, Enum):
    primary = "primary"
    secondary = "secondary"
