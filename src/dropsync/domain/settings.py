"""
Settings domain model.

Every recognized option of the sync and cleanup jobs lives here,
validated by pydantic. Durations are configured in seconds and exposed
as timedelta properties for the state machine.
"""

from __future__ import annotations

import re
from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


class SheetNames(BaseModel):
    """Workbook tab names."""

    source: str = Field(default="Source", description="Tab holding rows to transfer")
    destination_a: str = Field(default="Transferred", description="General destination tab")
    destination_b: str = Field(default="Relo App", description="Destination tab for the route-B type")


class HeaderNames(BaseModel):
    """Header labels of the fields the classifier reads."""

    key: str = Field(default="ID")
    status: str = Field(default="Status")
    type: str = Field(default="Type")
    review: str = Field(default="Review")


class ClassifierSettings(BaseModel):
    """Business-rule literals."""

    target_status: str = Field(default="Dropped", description="Status value selecting rows to transfer")
    route_b_type: str = Field(default="Relo App", description="Type literal routed to destination B")
    review_block_literal: str = Field(default="NED", description="Review value that always rejects")
    payment_header_pattern: str = Field(
        default=r"payment\s*set",
        description="Regex matching payment-set headers (case-insensitive)",
    )
    destination_defaults: dict[str, str] = Field(
        default_factory=lambda: {"Transferred On": "{today}"},
        description="Header -> value written into blank cells of appended rows",
    )

    @field_validator("payment_header_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Reject patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid payment_header_pattern: {e}") from e
        return v


class CleanupSettings(BaseModel):
    """Chunking and time-budget parameters of the cleanup state machine."""

    chunk_size: int = Field(default=500, ge=1, le=100_000)
    pass_time_budget_seconds: float = Field(
        default=300,
        gt=0,
        description="Per-pass runtime budget; the chunk loop stops once elapsed",
    )
    max_passes: int = Field(default=5, ge=1, le=1000)
    edit_protection_window_seconds: float = Field(
        default=60,
        ge=0,
        description="Keys edited more recently than this are not deleted",
    )
    recent_edit_ttl_seconds: float = Field(
        default=86_400,
        gt=0,
        description="Recent-edit entries older than this are pruned",
    )
    notes_cap: int = Field(default=50, ge=1, description="Maximum notes/list entries per report")

    @model_validator(mode="after")
    def check_window_against_ttl(self) -> CleanupSettings:
        """The protection window must be shorter than the TTL."""
        if self.edit_protection_window_seconds >= self.recent_edit_ttl_seconds:
            raise ValueError(
                "edit_protection_window_seconds must be shorter than recent_edit_ttl_seconds"
            )
        return self

    @property
    def pass_time_budget(self) -> timedelta:
        return timedelta(seconds=self.pass_time_budget_seconds)

    @property
    def edit_protection_window(self) -> timedelta:
        return timedelta(seconds=self.edit_protection_window_seconds)

    @property
    def recent_edit_ttl(self) -> timedelta:
        return timedelta(seconds=self.recent_edit_ttl_seconds)


class LockSettings(BaseModel):
    """Best-effort mutual exclusion parameters."""

    wait_seconds: float = Field(default=30, ge=0, description="Total polling budget")
    poll_interval_seconds: float = Field(default=0.5, gt=0)
    lease_seconds: int = Field(
        default=3600,
        ge=1,
        description="Lock expires after this long so a crashed holder self-heals",
    )


class NotificationSettings(BaseModel):
    """Report recipients and SMTP transport."""

    recipients: list[str] = Field(default_factory=list)
    from_address: str = Field(default="dropsync@localhost")
    smtp_host: str | None = Field(default=None, description="No host = log reports only")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: str | None = None
    smtp_password: str | None = None
    use_tls: bool = True


class DropSyncSettings(BaseModel):
    """
    Complete configuration of the sync and cleanup jobs.

    Loaded from JSON by ConfigLoader; every section has defaults so a
    minimal config only names the workbook.
    """

    workbook_path: Path = Field(default=Path("data/records.xlsx"))
    state_db_path: Path = Field(default=Path("output/dropsync_state.db"))
    sheets: SheetNames = SheetNames()
    headers: HeaderNames = HeaderNames()
    classifier: ClassifierSettings = ClassifierSettings()
    cleanup: CleanupSettings = CleanupSettings()
    lock: LockSettings = LockSettings()
    notifications: NotificationSettings = NotificationSettings()
