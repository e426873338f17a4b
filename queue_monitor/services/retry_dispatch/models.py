"""Retry dispatch models."""

from pydantic import BaseModel


class DispatchResult(BaseModel):
    """Outcome of re-enqueueing a job."""

    job_uuid: str
    dispatcher: str
    exit_code: int  # 0 on success
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
