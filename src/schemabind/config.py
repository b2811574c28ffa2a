from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemabind import log
from schemabind.producers.scanner import DEFAULT_TYPE_FILE_SUFFIXES


class BuildConfig(BaseModel):
    """Build inputs and options, as written in a ``schemabind.yaml`` file.

    Relative paths are resolved against the directory of the configuration file.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type_paths: list[Path] = Field(default_factory=list, alias="typePaths")
    sources: list[Path] = Field(default_factory=list)
    modules: list[str] = Field(default_factory=list)
    records: list[Path] = Field(default_factory=list)
    type_file_suffixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TYPE_FILE_SUFFIXES), alias="typeFileSuffixes"
    )
    sort_schema: bool = Field(False, alias="sortSchema")
    schema_file: Path | None = Field(None, alias="schemaFile")

    @field_validator("type_file_suffixes")
    @classmethod
    def validate_suffixes(cls, suffixes: list[str]) -> list[str]:
        for suffix in suffixes:
            if not suffix.endswith(".py"):
                raise ValueError(f"Type file suffix '{suffix}' must end with '.py'")
        return suffixes

    def resolve_paths(self, base_dir: Path) -> "BuildConfig":
        def resolve(path: Path) -> Path:
            return path if path.is_absolute() else base_dir / path

        return self.model_copy(
            update={
                "type_paths": [resolve(path) for path in self.type_paths],
                "sources": [resolve(path) for path in self.sources],
                "records": [resolve(path) for path in self.records],
                "schema_file": resolve(self.schema_file) if self.schema_file is not None else None,
            }
        )


def load_build_config(config_path: Path | None) -> BuildConfig:
    """
    Load and validate a build configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file, or None for the defaults.

    Returns:
        A validated BuildConfig with paths resolved against the file's directory.

    Raises:
        OSError: If the file cannot be read.
        yaml.YAMLError: If the file is not valid YAML.
        TypeError: If the YAML root is not a mapping.
        ValidationError: If validation against BuildConfig fails.
    """
    if config_path is None:
        log.debug("No build config provided")
        return BuildConfig()

    raw: Any
    with config_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    log.debug(f"Loaded build config from {config_path}")

    # Treat empty file or explicit YAML null as "defaults"
    if raw is None or raw == {}:
        return BuildConfig()

    if not isinstance(raw, dict):
        raise TypeError(f"Build config root must be a mapping (YAML object), got {type(raw).__name__}")

    config = BuildConfig.model_validate(cast(dict[str, Any], raw))
    return config.resolve_paths(config_path.parent)
