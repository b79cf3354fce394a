"""Rewrite the generated dependencies block of a build.gradle file."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from depinfer.errors import ManifestWriteError
from depinfer.resolver import ResolvedDependencies

logger = logging.getLogger(__name__)

MARKER = "dependencies { // GENERATED"
CLOSING = "}"

_CONFIGURATIONS = (
    ("api", "api"),
    ("implementation", "implementation"),
    ("test", "testImplementation"),
)


def render_block(deps: ResolvedDependencies) -> list[str]:
    """Render the generated block for one module, marker lines included."""
    lines = [MARKER]
    for kind, configuration in _CONFIGURATIONS:
        for provider in deps.providers(kind):
            lines.append(f'  {configuration} project("{provider}")')
    lines.append(CLOSING)
    return lines


def patch_lines(lines: list[str], deps: ResolvedDependencies) -> list[str]:
    """Replace everything from the marker line onward with a fresh block.

    Content before the marker is kept as-is; without a marker the block
    is appended to the whole file.
    """
    try:
        kept = lines[: lines.index(MARKER)]
    except ValueError:
        kept = list(lines)
    return kept + render_block(deps)


def _atomic_write(filepath: Path, content: str) -> None:
    """Write text atomically using tempfile + rename.

    Writes to a temporary file in the same directory, then renames over
    the target so a failed write leaves the original untouched.
    """
    fd, tmp_path = tempfile.mkstemp(dir=str(filepath.parent), prefix=f".{filepath.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        if filepath.exists():
            os.chmod(tmp_path, filepath.stat().st_mode & 0o7777)
        os.replace(tmp_path, str(filepath))
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def patch_manifest(
    manifest_path: Path | str,
    deps: ResolvedDependencies,
    dry_run: bool = False,
) -> bool:
    """Rewrite one module's manifest with its generated block.

    Args:
        manifest_path: Path to the module's build.gradle.
        deps: Resolved dependencies of the module.
        dry_run: Compute the change without writing it.

    Returns:
        True if the file content changed (or would change).

    Raises:
        ManifestWriteError: If the file cannot be read or replaced.
    """
    manifest_path = Path(manifest_path)

    try:
        original = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestWriteError(
            f"Cannot read manifest: {e}",
            module_id=deps.module_id,
            file=str(manifest_path),
        ) from e

    # form feeds and Unicode separators are content, not line ends
    lines = original.split("\n")
    if lines[-1] == "":
        lines.pop()
    updated = "\n".join(patch_lines(lines, deps)) + "\n"
    if updated == original:
        logger.debug("Manifest unchanged: %s", manifest_path)
        return False

    if dry_run:
        return True

    try:
        _atomic_write(manifest_path, updated)
    except OSError as e:
        raise ManifestWriteError(
            f"Cannot write manifest: {e}",
            module_id=deps.module_id,
            file=str(manifest_path),
        ) from e

    logger.debug("Manifest updated: %s", manifest_path)
    return True
