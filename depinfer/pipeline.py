"""End-to-end inference run: discover, extract, fold, resolve, patch."""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from depinfer.config import InferConfig
from depinfer.discovery import ModuleDescriptor, discover_modules
from depinfer.errors import InferenceError, ManifestWriteError
from depinfer.extractor import MAIN, TEST, SourceUnit, classify_file, extract_source_unit
from depinfer.manifest import patch_manifest
from depinfer.model import Module
from depinfer.ownership import OwnershipIndex
from depinfer.resolver import ResolvedDependencies, resolve_all

logger = logging.getLogger(__name__)


@dataclass
class Analysis:
    """Everything computed before any manifest is touched."""

    root: Path
    descriptors: list[ModuleDescriptor]
    modules: dict[str, Module]
    index: OwnershipIndex
    resolved: dict[str, ResolvedDependencies]
    file_errors: list[InferenceError] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)


@dataclass
class RunReport:
    """Outcome of a run, per module."""

    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: dict[str, ManifestWriteError] = field(default_factory=dict)
    file_errors: list[InferenceError] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    aborted: bool = False  # nothing written because of file errors

    @property
    def ok(self) -> bool:
        return not self.file_errors and not self.failed


def _read_source(path: Path, config: InferConfig) -> Optional[str]:
    """Read a source file, or None if it is over the size limit."""
    try:
        size = path.stat().st_size
        if size > config.max_file_size:
            logger.warning("Skipping %s: %d bytes exceeds max_file_size", path, size)
            return None
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise InferenceError(f"Cannot read source file: {e}", file=str(path), error_type="read_failed") from e


def _extract(root: Path, relative: str, origin: str, config: InferConfig) -> Optional[SourceUnit]:
    kind = classify_file(relative, config)
    if kind is None:
        return None
    text = _read_source(root / relative, config)
    if text is None:
        return None
    return extract_source_unit(relative, text, origin, kind, config)


def analyze(root: Path | str, config: InferConfig, workers: Optional[int] = None) -> Analysis:
    """Discover modules and resolve their dependency edges.

    Source files are extracted on a thread pool; each extraction yields an
    independent SourceUnit. Units are then folded per module.

    Raises:
        MissingModuleRootError: If the root is missing or unreadable.
    """
    root = Path(root)
    descriptors = discover_modules(root, config)

    jobs = []
    for descriptor in descriptors:
        jobs.extend((descriptor.id, path, MAIN) for path in descriptor.main_files)
        jobs.extend((descriptor.id, path, TEST) for path in descriptor.test_files)

    units: dict[str, list[SourceUnit]] = defaultdict(list)
    file_errors: list[InferenceError] = []
    skipped: list[str] = []

    max_workers = workers or config.resolve_workers()
    logger.debug("Extracting %d files with %d workers", len(jobs), max_workers)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(_extract, root, path, origin, config): (module_id, path)
            for module_id, path, origin in jobs
        }
        for future in as_completed(futures):
            module_id, path = futures[future]
            try:
                unit = future.result()
            except InferenceError as e:
                logger.error("%s", e)
                file_errors.append(e)
                continue
            except Exception as e:
                error = InferenceError(
                    f"Unexpected error analyzing source file: {e}",
                    file=path,
                    error_type="analysis_failed",
                )
                logger.error("%s", error)
                file_errors.append(error)
                continue
            if unit is None:
                skipped.append(path)
                continue
            units[module_id].append(unit)

    modules = {
        d.id: Module.fold(d.id, d.relative_path, sorted(units[d.id], key=lambda u: u.path))
        for d in descriptors
    }
    index = OwnershipIndex.build(modules.values())
    resolved = resolve_all(modules.values(), index)

    return Analysis(
        root=root,
        descriptors=descriptors,
        modules=modules,
        index=index,
        resolved=resolved,
        file_errors=sorted(file_errors, key=lambda e: (e.file or "", e.line or 0)),
        skipped_files=sorted(skipped),
    )


def write_manifests(analysis: Analysis, config: InferConfig, dry_run: bool = False) -> RunReport:
    """Patch every module's manifest independently.

    A failure for one module is recorded and does not stop the others.
    """
    report = RunReport(
        file_errors=list(analysis.file_errors),
        skipped_files=list(analysis.skipped_files),
    )
    for descriptor in analysis.descriptors:
        deps = analysis.resolved[descriptor.id]
        try:
            changed = patch_manifest(descriptor.manifest_path(analysis.root, config), deps, dry_run=dry_run)
        except ManifestWriteError as e:
            logger.error("%s", e)
            report.failed[descriptor.id] = e
            continue
        if changed:
            report.updated.append(descriptor.id)
        else:
            report.unchanged.append(descriptor.id)
    return report


def run(
    root: Path | str,
    config: InferConfig,
    dry_run: bool = False,
    keep_going: bool = False,
    workers: Optional[int] = None,
) -> RunReport:
    """Run the whole pipeline over a tree.

    Args:
        root: Tree root.
        config: Active configuration.
        dry_run: Report which manifests would change without writing.
        keep_going: Write manifests even if some source files failed to
            parse. Those files then contribute nothing.
        workers: Extraction thread count override.

    Raises:
        MissingModuleRootError: Before any manifest is touched.
    """
    analysis = analyze(root, config, workers=workers)

    if analysis.file_errors and not keep_going:
        logger.error(
            "%d source file(s) could not be parsed; no manifests were written",
            len(analysis.file_errors),
        )
        return RunReport(
            file_errors=list(analysis.file_errors),
            skipped_files=list(analysis.skipped_files),
            aborted=True,
        )

    return write_manifests(analysis, config, dry_run=dry_run)
