"""Shared fixtures for depinfer tests."""

import pytest
from pathlib import Path

from depinfer.config import get_default_config


DEFAULT_MANIFEST = (
    "plugins {\n"
    "    id 'org.jetbrains.kotlin.jvm'\n"
    "}\n"
)


class GradleTree:
    """Builds a throwaway multi-module Gradle tree on disk."""

    default_manifest = DEFAULT_MANIFEST

    def __init__(self, root: Path):
        self.root = root

    def module(self, path: str, manifest: str = DEFAULT_MANIFEST) -> Path:
        module_dir = self.root / path if path else self.root
        module_dir.mkdir(parents=True, exist_ok=True)
        (module_dir / "build.gradle").write_text(manifest)
        return module_dir

    def source(self, module_path: str, relative: str, text: str) -> Path:
        module_dir = self.root / module_path if module_path else self.root
        file_path = module_dir / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text)
        return file_path

    def manifest(self, module_path: str) -> str:
        module_dir = self.root / module_path if module_path else self.root
        return (module_dir / "build.gradle").read_text()

    def manifest_bytes(self) -> dict[str, bytes]:
        return {
            str(p.relative_to(self.root)): p.read_bytes()
            for p in sorted(self.root.rglob("build.gradle"))
        }


@pytest.fixture
def config():
    """Default configuration."""
    return get_default_config()


@pytest.fixture
def gradle_tree(tmp_path):
    """An empty Gradle tree rooted at tmp_path."""
    return GradleTree(tmp_path)


@pytest.fixture
def layered_project(gradle_tree):
    """Three modules: :base <- :lib <- :app, with one test-only use.

    :lib exposes com.x.base through its supertype, :app imports
    com.x.lib from main code and com.x.base only from tests.
    """
    gradle_tree.module("base")
    gradle_tree.source(
        "base",
        "src/main/kotlin/com/x/base/Base.kt",
        "package com.x.base\n"
        "\n"
        "open class Base\n",
    )

    gradle_tree.module("lib")
    gradle_tree.source(
        "lib",
        "src/main/kotlin/com/x/lib/Lib.kt",
        "package com.x.lib\n"
        "\n"
        "import com.x.base.Base\n"
        "\n"
        "class Lib : Base()\n",
    )

    gradle_tree.module("app")
    gradle_tree.source(
        "app",
        "src/main/kotlin/com/x/app/App.kt",
        "package com.x.app\n"
        "\n"
        "import com.x.lib.Lib\n"
        "\n"
        "fun main() {\n"
        "    println(Lib())\n"
        "}\n",
    )
    gradle_tree.source(
        "app",
        "src/test/kotlin/com/x/app/AppTest.kt",
        "package com.x.app\n"
        "\n"
        "import com.x.base.Base\n"
        "import kotlin.test.Test\n"
        "\n"
        "class AppTest {\n"
        "    @Test\n"
        "    fun works() {}\n"
        "}\n",
    )
    return gradle_tree
