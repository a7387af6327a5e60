"""
npm registry document (packument) models.

Registry JSON is validated into these models at the client boundary. The
validators are lenient: fields with an unexpected shape are normalized to
an empty value instead of failing the whole document, since old packages
carry a wide variety of malformed manifests.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)}


class Dist(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    unpacked_size: Optional[int] = Field(None, alias="unpackedSize")
    tarball: Optional[str] = None

    @field_validator("unpacked_size", mode="before")
    @classmethod
    def _non_negative_size(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v < 0:
            return None
        return int(v)


class PackumentVersion(BaseModel):
    """Manifest of a single published version."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: Dict[str, str] = Field(default_factory=dict)
    optional_dependencies: Dict[str, str] = Field(
        default_factory=dict, alias="optionalDependencies"
    )
    os: List[str] = Field(default_factory=list)
    cpu: List[str] = Field(default_factory=list)
    libc: List[str] = Field(default_factory=list)
    dist: Dist = Field(default_factory=Dist)
    deprecated: Optional[str] = None

    @field_validator("dependencies", "optional_dependencies", mode="before")
    @classmethod
    def _dependency_map(cls, v: Any) -> Dict[str, str]:
        return _string_map(v)

    @field_validator("os", "cpu", "libc", mode="before")
    @classmethod
    def _constraint_list(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [v]
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, str)]

    @field_validator("dist", mode="before")
    @classmethod
    def _dist(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @field_validator("deprecated", mode="before")
    @classmethod
    def _deprecation_message(cls, v: Any) -> Optional[str]:
        # Some manifests carry `deprecated: false` or an empty string
        if isinstance(v, str) and v:
            return v
        return None

    @property
    def unpacked_size(self) -> int:
        return self.dist.unpacked_size or 0


class Packument(BaseModel):
    """Full registry document for a package."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    dist_tags: Dict[str, str] = Field(default_factory=dict, alias="dist-tags")
    versions: Dict[str, PackumentVersion] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _drop_malformed_versions(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        versions = data.get("versions")
        data["versions"] = (
            {k: v for k, v in versions.items() if isinstance(v, dict)}
            if isinstance(versions, dict)
            else {}
        )
        tags = data.pop("dist-tags", data.pop("dist_tags", None))
        data["dist-tags"] = _string_map(tags)
        return data

    @property
    def latest_version(self) -> Optional[str]:
        return self.dist_tags.get("latest")

    def to_cache(self) -> Dict[str, Any]:
        """Slim JSON form holding only the fields the resolver reads."""
        return self.model_dump(by_alias=True, exclude_none=True)
