"""Configuration schema for linguasync.

Defines all configuration options with types, defaults, and validation.
Uses Pydantic for schema enforcement and clear error messages.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .file_sets import FileType, UpdateOption, compile_export_pattern


def _format_path(value: Optional[str]) -> Optional[str]:
    """Convert backslashes to slashes and drop leading/trailing slashes."""
    if value is None:
        return None
    return value.replace("\\", "/").strip().strip("/")


class ProjectConfig(BaseModel):
    """Remote project identity and local layout."""

    identifier: str = Field(
        default="",
        description="Remote project identifier used to build API URLs",
    )
    name: str = Field(
        default="",
        description="Expected remote project name; push aborts on mismatch (empty = no check)",
    )
    root_branch: str = Field(
        default="master",
        description="VCS branch that maps to the unbranched namespace root",
    )
    branch: str = Field(
        default="",
        description="Branch override (empty = detect from git)",
    )
    base_dir: str = Field(
        default="",
        description="Base directory relative paths resolve against (empty = config location)",
    )
    download_folder: str = Field(
        default="build/linguasync",
        description="Staging directory the translation archive is unpacked into",
    )


class ApiConfig(BaseModel):
    """Remote service endpoint settings."""

    url: str = Field(
        default="https://api.crowdin.com/api/project/",
        description="Base URL of the project API",
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Request timeout in seconds",
    )


class PushConfig(BaseModel):
    """Defaults for push, overridable per file set."""

    confirm: bool = Field(
        default=False,
        description="Treat pushes as confirmed without --yes",
    )
    escape_quotes: int = Field(
        default=0,
        ge=0,
        le=3,
        description="Quote escaping for property-style files (0-3)",
    )
    update_option: UpdateOption = Field(
        default=UpdateOption.delete_translations,
        description="Conflict policy applied when updating existing files",
    )


class BuildConfig(BaseModel):
    """Server-side export ("build") settings used by fetch and pull."""

    enabled: bool = Field(
        default=True,
        description="Ask the service to build translations before downloading",
    )
    skip_untranslated_strings: bool = Field(default=True)
    skip_untranslated_files: bool = Field(default=False)
    export_approved_only: bool = Field(default=False)
    poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Seconds between build status polls",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for an in-progress build",
    )

    @model_validator(mode="after")
    def check_skip_flags(self) -> "BuildConfig":
        if self.skip_untranslated_files and self.skip_untranslated_strings:
            raise ValueError(
                "Both 'skip_untranslated_files' and 'skip_untranslated_strings' cannot be true"
            )
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    dir: str = Field(
        default="",
        description="Log directory (empty = ~/.linguasync/logs)",
    )
    max_bytes: int = Field(
        default=10485760,  # 10MB
        ge=0,
        description="Maximum log file size in bytes",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of backup log files to keep",
    )
    disable_file: bool = Field(
        default=False,
        description="Disable file logging (stderr only)",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("dir")
    @classmethod
    def validate_log_dir(cls, v: str) -> str:
        """Warn if log path exists but is not a directory."""
        if v:
            path = Path(v).expanduser()
            if path.exists() and not path.is_dir():
                warnings.warn(
                    f"Log path exists but is not a directory: {v}",
                    UserWarning,
                )
        return v


class Conversion(BaseModel):
    """Replaces a placeholder value (e.g. a language code) during deploy."""

    from_: str = Field(alias="from", min_length=1)
    to: str

    model_config = {"populate_by_name": True}


class FileSetConfig(BaseModel):
    """One configured translation file set (the FileSetDescriptor)."""

    language_files_folder: str = Field(description="Local folder holding the base file")
    base_file_name: str = Field(description="Source file name, may contain sub folders")
    remote_path: Optional[str] = Field(
        default=None,
        description="Optional remote folder prefix for the pushed file",
    )
    title: Optional[str] = None
    export_pattern: str = Field(description="Name pattern for exported translations")
    type: Optional[FileType] = None
    escape_quotes: Optional[int] = Field(default=None, ge=0, le=3)
    escape_special_characters: Optional[int] = Field(default=None, ge=0, le=1)
    update_option: Optional[UpdateOption] = None
    target_file_name: Optional[str] = None
    includes: List[str] = Field(default_factory=list)
    excludes: List[str] = Field(default_factory=list)
    conversions: List[Conversion] = Field(default_factory=list)

    @field_validator("base_file_name", "remote_path", "target_file_name")
    @classmethod
    def normalize_paths(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _format_path(v) or None

    @model_validator(mode="after")
    def check_file_set(self) -> "FileSetConfig":
        if not self.base_file_name:
            raise ValueError("'base_file_name' isn't defined for translation file set")
        if not self.title or not self.title.strip():
            self.title = self.base_file_name
        if not self.language_files_folder or not self.language_files_folder.strip():
            raise ValueError(f"'language_files_folder' isn't defined for file set \"{self.title}\"")
        if not self.export_pattern or not self.export_pattern.strip():
            raise ValueError(f"'export_pattern' isn't defined for file set \"{self.title}\"")
        try:
            compile_export_pattern("", self.export_pattern)
        except ValueError as exc:
            raise ValueError(f"Invalid 'export_pattern' for file set \"{self.title}\": {exc}") from exc
        if self.type is None:
            self.type = FileType.detect(self.base_file_name)
        if self.escape_quotes is not None and not self.type.is_property_style:
            raise ValueError(
                f"Invalid configuration in file set \"{self.title}\": "
                "'escape_quotes' is only valid for .properties files"
            )
        if self.escape_special_characters is not None and not self.type.is_property_style:
            raise ValueError(
                f"Invalid configuration in file set \"{self.title}\": "
                "'escape_special_characters' is only valid for .properties files"
            )
        return self

    @property
    def file_type(self) -> FileType:
        return self.type or FileType.auto

    def convert(self, value: str) -> str:
        """Apply the first matching conversion to a placeholder value."""
        for conversion in self.conversions:
            if conversion.from_ == value:
                return conversion.to
        return value


class StatusFileConfig(BaseModel):
    """A translation status artifact written during deploy."""

    target_file: str = Field(min_length=1)
    language: Optional[str] = Field(
        default=None,
        description="Limit the status query to one language (empty = all)",
    )
    type: Literal["json"] = "json"
    conversions: List[Conversion] = Field(default_factory=list)

    @field_validator("target_file")
    @classmethod
    def normalize_target(cls, v: str) -> str:
        return v.replace("\\", "/").strip()

    def convert(self, value: str) -> str:
        for conversion in self.conversions:
            if conversion.from_ == value:
                return conversion.to
        return value


class LinguasyncConfig(BaseModel):
    """Root configuration model."""

    version: int = Field(
        default=1,
        ge=1,
        description="Config schema version",
    )

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    file_sets: List[FileSetConfig] = Field(default_factory=list)
    status_files: List[StatusFileConfig] = Field(default_factory=list)

    @classmethod
    def default(cls) -> "LinguasyncConfig":
        """Create config with all defaults."""
        return cls()

    def escape_quotes_for(self, file_set: FileSetConfig) -> int:
        return file_set.escape_quotes if file_set.escape_quotes is not None else self.push.escape_quotes

    def update_option_for(self, file_set: FileSetConfig) -> UpdateOption:
        return file_set.update_option or self.push.update_option
