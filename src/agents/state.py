"""Data models shared across the apply pipeline."""

from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ApplicationStatus(str, Enum):
    """Lifecycle of an application record."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ApplicationStatus.COMPLETED, ApplicationStatus.FAILED)


class Platform(str, Enum):
    """Closed set of page classifications."""

    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    WORKDAY = "workday"
    LINKEDIN = "linkedin"
    GENERIC = "generic"


FIELD_PURPOSES = (
    "firstName",
    "lastName",
    "email",
    "phone",
    "resume",
    "coverLetter",
    "customQuestion",
    "unknown",
)


class CvSnapshot(BaseModel):
    """Structured CV data captured when the application was requested."""

    model_config = ConfigDict(extra="allow")

    full_name: str = Field(
        validation_alias=AliasChoices("full_name", "fullName", "name"),
        description="Candidate full name",
    )
    email: str = Field(description="Contact email")
    phone: str = Field(default="", description="Contact phone")
    summary: str = Field(default="", description="Professional summary")
    skills: List[str] = Field(default_factory=list)
    experience: List[Dict[str, Any]] = Field(default_factory=list)
    education: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("skills", mode="before")
    @classmethod
    def _flatten_skills(cls, value: Any) -> Any:
        # CV extraction sometimes groups skills, e.g. {"technical": [...], "soft": [...]}
        if isinstance(value, dict):
            flattened: List[str] = []
            for group in value.values():
                if isinstance(group, (list, tuple)):
                    flattened.extend(str(item) for item in group)
                elif group:
                    flattened.append(str(group))
            return flattened
        return value

    @field_validator("phone", mode="before")
    @classmethod
    def _none_phone(cls, value: Any) -> Any:
        return value or ""

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join(self.full_name.split()[1:])


class JobPosting(BaseModel):
    """Job posting details needed to apply."""

    model_config = ConfigDict(extra="allow")

    title: str = Field(default="", validation_alias=AliasChoices("title", "job_title"))
    company: str = Field(default="", validation_alias=AliasChoices("company", "company_name"))
    description: str = Field(default="", validation_alias=AliasChoices("description", "job_description"))
    application_url: str = Field(
        validation_alias=AliasChoices("application_url", "applicationUrl", "job_url", "url"),
        description="URL of the application form",
    )

    @field_validator("application_url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        value = (value or "").strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("application_url must be an http(s) URL")
        return value


class ApplicationJob(BaseModel):
    """Immutable queue payload for one application attempt."""

    model_config = ConfigDict(frozen=True)

    application_id: str
    user_id: str
    job_id: str
    cv_snapshot: CvSnapshot
    job_posting: JobPosting
    resume_asset_ref: str = ""

    @staticmethod
    def idempotency_key_for(user_id: str, job_id: str) -> str:
        # Length prefix keeps ("a-b", "c") and ("a", "b-c") apart.
        return f"app-{len(user_id)}:{user_id}-{job_id}"

    @property
    def idempotency_key(self) -> str:
        return self.idempotency_key_for(self.user_id, self.job_id)


class FormField(BaseModel):
    """One field of an unknown form, as interpreted by the field mapper."""

    selector: str = Field(validation_alias=AliasChoices("selector", "fieldName", "field_name"))
    label: str = Field(default="")
    type: str = Field(default="text")
    purpose: str = Field(default="unknown")
    required: bool = Field(default=False)

    @field_validator("label", "type", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("purpose", mode="before")
    @classmethod
    def _known_purpose(cls, value: Any) -> str:
        return value if value in FIELD_PURPOSES else "unknown"


class ApplicationResult(BaseModel):
    """Outcome of one automation attempt, produced by the orchestrator."""

    success: bool
    message: str = ""
    error: str = ""
    confirmation_url: Optional[str] = None
    screenshot_path: Optional[str] = None
    platform: Optional[Platform] = None
    fields_processed: int = 0

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "ApplicationResult":
        return cls(success=False, error=error, **kwargs)


class ApplyState(TypedDict, total=False):
    """State object passed between orchestrator graph nodes."""

    # Inputs
    job_url: str
    cv: CvSnapshot
    job: JobPosting
    resume_path: str
    application_id: str

    # Runtime handles
    page: Any

    # Progress
    stage: str  # initializing, navigated, classified, filling, captured, done
    platform: Optional[Platform]
    result: Optional[ApplicationResult]
    screenshot_path: Optional[str]
    error_message: str
