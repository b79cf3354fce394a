"""depinfer - Gradle module dependency inference.

This package infers inter-module dependencies for a multi-module Gradle
tree by statically scanning Kotlin, Java and protobuf sources:
- Extracting package, import and public-surface facts per source file
- Folding those facts into per-module package sets
- Mapping packages back to the modules that declare them
- Rewriting each build.gradle with a generated dependencies block

Usage:
    python -m depinfer generate [ROOT]   # Rewrite generated blocks
    python -m depinfer check [ROOT]      # Fail if any block is stale
    python -m depinfer graph [ROOT]      # Print the resolved graph as JSON
"""

__version__ = "0.1.0"
