"""
OSV (Open Source Vulnerabilities) API models.

See https://google.github.io/osv.dev/api/
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OsvSeverity(BaseModel):
    """CVSS severity information from OSV."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    score: Optional[str] = None


class OsvVulnerability(BaseModel):
    """Individual vulnerability record from OSV."""

    model_config = ConfigDict(extra="ignore")

    id: str
    summary: Optional[str] = None
    details: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)
    modified: Optional[str] = None
    published: Optional[str] = None
    severity: List[OsvSeverity] = Field(default_factory=list)
    database_specific: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("aliases", "severity", mode="before")
    @classmethod
    def _null_to_list(cls, v: Any) -> Any:
        return v if v is not None else []

    @field_validator("database_specific", mode="before")
    @classmethod
    def _null_to_dict(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @property
    def database_severity(self) -> Optional[str]:
        value = self.database_specific.get("severity")
        return value if isinstance(value, str) else None


class OsvQueryResponse(BaseModel):
    """Response of /v1/query and one entry of a /v1/querybatch response."""

    model_config = ConfigDict(extra="ignore")

    vulns: List[OsvVulnerability] = Field(default_factory=list)
    next_page_token: Optional[str] = None

    @field_validator("vulns", mode="before")
    @classmethod
    def _null_to_list(cls, v: Any) -> Any:
        return v if v is not None else []


class OsvBatchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: List[OsvQueryResponse] = Field(default_factory=list)
