"""Configuration loading and validation for dependency inference."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import psutil
import yaml

from depinfer.errors import ConfigError

DEFAULT_CONFIG_FILE = "depinfer.yaml"

_PACKAGE_PREFIX_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


@dataclass
class InferConfig:
    """Complete depinfer configuration."""

    version: str = "1.0"
    manifest_file: str = "build.gradle"
    main_source_dir: str = "src/main"
    test_source_dir: str = "src/test"
    source_extensions: list[str] = field(default_factory=lambda: [".kt", ".java"])
    schema_extensions: list[str] = field(default_factory=lambda: [".proto"])
    schema_package_option: str = "java_package"
    # Always on the classpath of the host platform
    platform_prefixes: list[str] = field(default_factory=lambda: ["java"])
    # Language standard and extension libraries
    implicit_prefixes: list[str] = field(default_factory=lambda: ["kotlin", "kotlinx"])
    skip_dirs: list[str] = field(
        default_factory=lambda: [".git", ".gradle", ".idea", "build", "out", "node_modules"]
    )
    workers: Optional[int] = None
    max_file_size: int = 1048576  # 1MB

    @property
    def excluded_prefixes(self) -> tuple[str, ...]:
        return tuple(self.platform_prefixes) + tuple(self.implicit_prefixes)

    def with_extra_prefixes(self, prefixes: list[str]) -> "InferConfig":
        """Return a copy with additional implicitly-available prefixes."""
        if not prefixes:
            return self
        merged = list(self.implicit_prefixes)
        for prefix in prefixes:
            if prefix not in merged:
                merged.append(prefix)
        updated = replace(self, implicit_prefixes=merged)
        validate_config(updated)
        return updated

    def resolve_workers(self) -> int:
        """Number of extraction workers, defaulting to physical cores."""
        if self.workers:
            return self.workers
        return psutil.cpu_count(logical=False) or 1


def get_default_config() -> InferConfig:
    """Return the default configuration."""
    return InferConfig()


def is_excluded_package(package: str, prefixes: tuple[str, ...] | list[str]) -> bool:
    """Check whether a package lives under one of the given namespaces."""
    for prefix in prefixes:
        if package == prefix or package.startswith(prefix + "."):
            return True
    return False


def _validate_extensions(name: str, values: Any, config_file: Optional[str]) -> None:
    if not isinstance(values, list):
        raise ConfigError(f"'{name}' must be a list", file=config_file)
    for ext in values:
        if not isinstance(ext, str) or not ext.startswith(".") or len(ext) < 2:
            raise ConfigError(
                f"Invalid extension in '{name}': {ext!r} (must start with '.')",
                file=config_file,
            )


def _validate_prefixes(name: str, values: Any, config_file: Optional[str]) -> None:
    if not isinstance(values, list):
        raise ConfigError(f"'{name}' must be a list", file=config_file)
    for prefix in values:
        if not isinstance(prefix, str) or not _PACKAGE_PREFIX_RE.match(prefix):
            raise ConfigError(
                f"Invalid package prefix in '{name}': {prefix!r}",
                file=config_file,
            )


def validate_config(config: InferConfig, config_file: Optional[str] = None) -> None:
    """Validate configuration values.

    Raises:
        ConfigError: If configuration is invalid.
    """
    _validate_extensions("source_extensions", config.source_extensions, config_file)
    _validate_extensions("schema_extensions", config.schema_extensions, config_file)
    _validate_prefixes("platform_prefixes", config.platform_prefixes, config_file)
    _validate_prefixes("implicit_prefixes", config.implicit_prefixes, config_file)

    overlap = set(config.source_extensions) & set(config.schema_extensions)
    if overlap:
        raise ConfigError(
            f"Extensions listed as both source and schema: {sorted(overlap)}",
            file=config_file,
        )

    if not isinstance(config.manifest_file, str) or not config.manifest_file.strip():
        raise ConfigError("'manifest_file' must be a non-empty string", file=config_file)

    if config.workers is not None:
        if isinstance(config.workers, bool) or not isinstance(config.workers, int) or config.workers < 1:
            raise ConfigError(
                f"'workers' must be a positive integer, got {config.workers!r}",
                file=config_file,
            )

    if isinstance(config.max_file_size, bool) or not isinstance(config.max_file_size, int) or config.max_file_size < 1:
        raise ConfigError(
            f"'max_file_size' must be a positive integer, got {config.max_file_size!r}",
            file=config_file,
        )


def load_config(config_path: Path | str) -> InferConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the depinfer.yaml file.

    Returns:
        InferConfig with loaded values merged with defaults.

    Raises:
        ConfigError: If the file exists but contains invalid configuration.
    """
    config_path = Path(config_path)
    config_file = str(config_path)

    # Start with defaults
    defaults = get_default_config()

    if not config_path.exists():
        return defaults

    try:
        content = config_path.read_text()
        if not content.strip():
            return defaults

        data = yaml.safe_load(content)
        if not data:
            return defaults
        if not isinstance(data, dict):
            raise ConfigError(
                "Top-level depinfer config must be a mapping",
                file=config_file,
                error_type="config_invalid",
            )

    except yaml.YAMLError as e:
        line = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line = mark.line + 1
        raise ConfigError(
            f"Invalid YAML: {e}",
            file=config_file,
            line=line,
            error_type="config_invalid",
        )

    unknown = set(data) - set(InferConfig.__dataclass_fields__)
    if unknown:
        raise ConfigError(
            f"Unknown config keys: {', '.join(sorted(unknown))}",
            file=config_file,
            error_type="config_invalid",
        )

    # Build config from data, using defaults for missing values
    config = InferConfig(
        version=str(data.get("version", defaults.version)),
        manifest_file=data.get("manifest_file", defaults.manifest_file),
        main_source_dir=data.get("main_source_dir", defaults.main_source_dir),
        test_source_dir=data.get("test_source_dir", defaults.test_source_dir),
        source_extensions=data.get("source_extensions", defaults.source_extensions),
        schema_extensions=data.get("schema_extensions", defaults.schema_extensions),
        schema_package_option=data.get("schema_package_option", defaults.schema_package_option),
        platform_prefixes=data.get("platform_prefixes", defaults.platform_prefixes),
        implicit_prefixes=data.get("implicit_prefixes", defaults.implicit_prefixes),
        skip_dirs=data.get("skip_dirs", defaults.skip_dirs),
        workers=data.get("workers", defaults.workers),
        max_file_size=data.get("max_file_size", defaults.max_file_size),
    )

    # Validate the loaded config
    validate_config(config, config_file)

    return config
