"""Per-provider rate window model."""

from pydantic import BaseModel, Field

WINDOW_SECONDS = 60.0


class RateWindow(BaseModel):
    """Request count for the current one-minute window of a provider"""

    provider_id: str
    limit: int = Field(..., ge=1)
    request_count: int = Field(0, ge=0)
    window_reset_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now > self.window_reset_at

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.request_count)
