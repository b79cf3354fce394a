"""Module discovery: locate module roots and list their source files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from depinfer.config import InferConfig
from depinfer.errors import MissingModuleRootError
from depinfer.extractor import GENERAL, SCHEMA, classify_file
from depinfer.model import module_id_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleDescriptor:
    """A discovered module root and the source files that belong to it."""

    id: str
    relative_path: str
    main_files: tuple[str, ...] = ()  # relative to the tree root
    test_files: tuple[str, ...] = ()

    def manifest_path(self, root: Path, config: InferConfig) -> Path:
        return root / self.relative_path / config.manifest_file


def check_root(root: Path | str) -> Path:
    """Validate the tree root.

    Raises:
        MissingModuleRootError: If the root is missing or unreadable.
    """
    root = Path(root)
    if not root.exists():
        raise MissingModuleRootError(f"Root directory does not exist: {root}", file=str(root))
    if not root.is_dir():
        raise MissingModuleRootError(f"Root is not a directory: {root}", file=str(root))
    if not os.access(root, os.R_OK | os.X_OK):
        raise MissingModuleRootError(f"Root directory is not readable: {root}", file=str(root))
    return root


def _list_sources(
    root: Path,
    source_dir: Path,
    config: InferConfig,
    kinds: tuple[str, ...],
) -> tuple[str, ...]:
    if not source_dir.is_dir():
        return ()

    files = []
    for dirpath, dirnames, filenames in os.walk(source_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in config.skip_dirs)
        for filename in filenames:
            if classify_file(filename, config) in kinds:
                files.append((Path(dirpath) / filename).relative_to(root).as_posix())
    return tuple(sorted(files))


def discover_modules(root: Path | str, config: InferConfig) -> list[ModuleDescriptor]:
    """Find every module root under the tree root.

    A directory is a module root when it contains the configured manifest
    file. The tree root itself counts. Nested modules are discovered too;
    their sources are never attributed to the enclosing module because
    sources are only collected from each module's own source dirs.

    Args:
        root: Tree root.
        config: Active configuration.

    Returns:
        Module descriptors sorted by module id.

    Raises:
        MissingModuleRootError: If the root is missing or unreadable.
    """
    root = check_root(root)

    modules = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in config.skip_dirs)
        if config.manifest_file not in filenames:
            continue

        module_dir = Path(dirpath)
        relative = module_dir.relative_to(root)
        descriptor = ModuleDescriptor(
            id=module_id_for(relative),
            relative_path=relative.as_posix(),
            main_files=_list_sources(root, module_dir / config.main_source_dir, config, (GENERAL, SCHEMA)),
            test_files=_list_sources(root, module_dir / config.test_source_dir, config, (GENERAL,)),
        )
        logger.debug(
            "Discovered module %s (%d main, %d test files)",
            descriptor.id,
            len(descriptor.main_files),
            len(descriptor.test_files),
        )
        modules.append(descriptor)

    return sorted(modules, key=lambda m: m.id)
