"""Error types raised while inferring module dependencies."""

from __future__ import annotations

from typing import Any, Optional


class InferenceError(Exception):
    """Base error for dependency inference failures."""

    error_type = "inference_failed"

    def __init__(
        self,
        message: str,
        file: Optional[str] = None,
        line: Optional[int] = None,
        error_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line
        if error_type:
            self.error_type = error_type

    def to_json(self) -> dict[str, Any]:
        """Serialize error to JSON format for machine parsing."""
        result: dict[str, Any] = {
            "error": self.error_type,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line:
            result["line"] = self.line
        return result

    def __str__(self) -> str:
        parts = [self.message]
        if self.file:
            parts.append(f"file: {self.file}")
        if self.line:
            parts.append(f"line: {self.line}")
        return " | ".join(parts)


class MalformedDeclarationError(InferenceError):
    """A package or import line has an unrecognized shape."""

    error_type = "malformed_declaration"

    def __init__(
        self,
        message: str,
        source_line: str,
        file: Optional[str] = None,
        line: Optional[int] = None,
    ):
        super().__init__(message, file=file, line=line)
        self.source_line = source_line

    def to_json(self) -> dict[str, Any]:
        result = super().to_json()
        result["source_line"] = self.source_line
        return result


class SurfaceInferenceError(InferenceError):
    """Member types of a single declaration could not be inspected."""

    error_type = "surface_inference_failed"

    def __init__(self, message: str, declaration: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.declaration = declaration


class MissingModuleRootError(InferenceError):
    """The tree root does not exist or is not a readable directory."""

    error_type = "missing_root"


class ManifestWriteError(InferenceError):
    """A module's build manifest could not be rewritten."""

    error_type = "manifest_write_failed"

    def __init__(self, message: str, module_id: str, file: Optional[str] = None):
        super().__init__(message, file=file)
        self.module_id = module_id

    def to_json(self) -> dict[str, Any]:
        result = super().to_json()
        result["module"] = self.module_id
        return result


class ConfigError(InferenceError):
    """Error in depinfer configuration."""

    error_type = "config_invalid"
