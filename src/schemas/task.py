"""Schemas describing an archive split task."""

from pydantic import Field, field_validator

from src.schemas.base import BaseSchema
from src.schemas.types import ExtraRootDirEnum


class SourceLocation(BaseSchema):
    """The gzip-compressed tar archive to read."""

    bucket: str = Field(min_length=1)
    region: str
    key: str = Field(min_length=1)


class TargetLocation(BaseSchema):
    """Where the archive entries are written."""

    bucket: str = Field(min_length=1)
    region: str
    prefix: str = ""


class TaskConfiguration(BaseSchema):
    """Immutable input of a single task.

    `extra_root_dir` is matched case-insensitively: any value containing ``dirname``
    appends the source key's directory to the target prefix, any value containing
    ``basename`` appends the archive name without its extension. Both may be combined,
    e.g. ``"dirname,basename"``.
    """

    source: SourceLocation
    target: TargetLocation
    extra_root_dir: str = ""
    max_try_time: int = Field(default=3, ge=1)

    @field_validator("extra_root_dir", mode="before")
    @classmethod
    def normalize_extra_root_dir(cls, v: str | None) -> str:
        """Lower-case the flag; None means no extra directory."""
        return (v or "").lower()

    @property
    def include_dirname(self) -> bool:
        return ExtraRootDirEnum.DIRNAME.value in self.extra_root_dir

    @property
    def include_basename(self) -> bool:
        return ExtraRootDirEnum.BASENAME.value in self.extra_root_dir
