"""Tests for per-file fact extraction."""

import logging

import pytest

from depinfer.config import InferConfig
from depinfer.errors import MalformedDeclarationError
from depinfer.extractor import (
    GENERAL,
    MAIN,
    SCHEMA,
    TEST,
    classify_file,
    extract_source_unit,
    parse_import_line,
    parse_package_line,
)
from depinfer.surface import KOTLIN, Declaration


def _kotlin(text, config, origin=MAIN, path="src/main/kotlin/File.kt"):
    return extract_source_unit(path, text, origin, GENERAL, config)


class TestParseImportLine:
    """Tests for the recognized import shapes."""

    def test_plain_import(self):
        statement = parse_import_line("import com.x.lib.Lib;")
        assert statement.package == "com.x.lib"
        assert statement.symbol == "Lib"
        assert not statement.static

    def test_static_import_drops_member(self):
        """import static a.b.C.member resolves to package a.b."""
        statement = parse_import_line("import static com.x.Util.helper;")
        assert statement.qualified_name == "com.x.Util"
        assert statement.package == "com.x"
        assert statement.static

    def test_static_wildcard_import(self):
        statement = parse_import_line("import static com.x.Util.*;")
        assert statement.package == "com.x"

    def test_wildcard_import(self):
        statement = parse_import_line("import com.x.lib.*")
        assert statement.package == "com.x.lib"
        assert statement.wildcard

    def test_aliased_import(self):
        statement = parse_import_line("import com.x.lib.Thing as Other")
        assert statement.package == "com.x.lib"
        assert statement.symbol == "Thing"
        assert statement.alias == "Other"

    def test_trailing_comment(self):
        statement = parse_import_line("import com.x.lib.Lib; // used by tests")
        assert statement.package == "com.x.lib"

    @pytest.mark.parametrize(
        "line",
        ["import", "import a b c d", "import dynamic a.b.C", "import static Util"],
    )
    def test_malformed_import(self, line):
        with pytest.raises(MalformedDeclarationError) as exc_info:
            parse_import_line(line, path="A.kt", line_number=4)
        assert exc_info.value.file == "A.kt"
        assert exc_info.value.line == 4
        assert exc_info.value.source_line == line


class TestParsePackageLine:
    def test_kotlin_package(self):
        assert parse_package_line("package com.x.app") == "com.x.app"

    def test_java_package(self):
        assert parse_package_line("package com.x.app;") == "com.x.app"

    def test_missing_name(self):
        with pytest.raises(MalformedDeclarationError):
            parse_package_line("package ;")


class TestClassifyFile:
    def test_kinds(self, config):
        assert classify_file("A.kt", config) == GENERAL
        assert classify_file("B.java", config) == GENERAL
        assert classify_file("c.proto", config) == SCHEMA
        assert classify_file("README.md", config) is None


class TestExtractSourceUnit:
    """Tests for extract_source_unit."""

    def test_package_and_imports(self, config):
        unit = _kotlin(
            "package com.x.app\n"
            "\n"
            "import com.x.lib.Lib\n"
            "import com.x.model.*\n"
            "\n"
            "fun main() = Lib()\n",
            config,
        )
        assert unit.declared_package == "com.x.app"
        assert unit.imported_packages == {"com.x.lib", "com.x.model"}
        assert unit.exported_packages == set()
        assert unit.origin == MAIN

    def test_no_package_declaration(self, config):
        """A file without a package declaration still contributes imports."""
        unit = _kotlin("import com.x.lib.Lib\n\nval x = Lib()\n", config)
        assert unit.declared_package == ""
        assert unit.imported_packages == {"com.x.lib"}

    def test_first_package_line_wins(self, config):
        unit = _kotlin("package com.x.first\npackage com.x.second\n", config)
        assert unit.declared_package == "com.x.first"

    def test_supertype_exports_imported_package(self, config):
        unit = _kotlin(
            "package com.x.lib\n"
            "\n"
            "import com.x.base.Base\n"
            "\n"
            "class Lib : Base()\n",
            config,
        )
        assert unit.exported_packages == {"com.x.base"}

    def test_member_types_export_imported_packages(self, config):
        unit = _kotlin(
            "package com.x.lib\n"
            "\n"
            "import com.x.model.Widget\n"
            "import com.x.model.Gadget\n"
            "import com.x.io.Reader\n"
            "\n"
            "class Factory {\n"
            "    fun widget(): Widget = Widget()\n"
            "    val gadget: Gadget? = null\n"
            "    private fun reader(): Reader = Reader()\n"
            "}\n",
            config,
        )
        assert unit.exported_packages == {"com.x.model"}
        assert unit.imported_packages == {"com.x.model", "com.x.io"}

    def test_unresolvable_names_are_skipped(self, config):
        """Same-package types and primitives cannot be resolved and are ignored."""
        unit = _kotlin(
            "package com.x.lib\n"
            "\n"
            "class Lib : SamePackageBase() {\n"
            "    fun count(): Int = 0\n"
            "}\n",
            config,
        )
        assert unit.exported_packages == set()

    def test_alias_resolves_supertype(self, config):
        unit = _kotlin(
            "package com.x.lib\n"
            "\n"
            "import com.x.base.Base as Parent\n"
            "\n"
            "class Lib : Parent()\n",
            config,
        )
        assert unit.exported_packages == {"com.x.base"}

    def test_nested_type_resolves_through_outer(self, config):
        unit = _kotlin(
            "package com.x.lib\n"
            "\n"
            "import com.x.base.Outer\n"
            "\n"
            "class Lib : Outer.Inner\n",
            config,
        )
        assert unit.exported_packages == {"com.x.base"}

    def test_platform_and_language_packages_filtered(self, config):
        unit = _kotlin(
            "package com.x.lib\n"
            "\n"
            "import java.io.Serializable\n"
            "import kotlin.collections.List\n"
            "import kotlinx.coroutines.flow.Flow\n"
            "import javax.inject.Inject\n"
            "\n"
            "class Lib : Serializable {\n"
            "    fun items(): Flow<String> = TODO()\n"
            "}\n",
            config,
        )
        assert unit.imported_packages == {"javax.inject"}
        assert unit.exported_packages == set()

    def test_configured_prefixes_filtered(self):
        config = InferConfig(implicit_prefixes=["kotlin", "com.google"])
        unit = _kotlin(
            "import com.google.common.collect.ImmutableList\n"
            "import kotlinx.coroutines.Job\n",
            config,
        )
        assert unit.imported_packages == {"kotlinx.coroutines"}

    def test_failed_member_inspection_keeps_supertypes(self, config, caplog):
        """One bad member type degrades only that declaration's members."""
        with caplog.at_level(logging.WARNING, logger="depinfer.extractor"):
            unit = _kotlin(
                "package com.x.lib\n"
                "\n"
                "import com.x.base.Base\n"
                "import com.x.model.Widget\n"
                "import com.x.other.Thing\n"
                "\n"
                "class Broken : Base() {\n"
                "    fun widget(): Widget = Widget()\n"
                "    fun bad(): Map<String, Int = TODO()\n"
                "}\n"
                "\n"
                "class Fine {\n"
                "    fun thing(): Thing = Thing()\n"
                "}\n",
                config,
            )
        assert unit.exported_packages == {"com.x.base", "com.x.other"}
        assert "Broken" in caplog.text

    def test_malformed_import_reports_location(self, config):
        with pytest.raises(MalformedDeclarationError) as exc_info:
            _kotlin("package com.x\n\nimport a b c\n", config, path="src/main/kotlin/Bad.kt")
        assert exc_info.value.file == "src/main/kotlin/Bad.kt"
        assert exc_info.value.line == 3

    def test_java_source(self, config):
        unit = extract_source_unit(
            "src/main/java/com/x/lib/Lib.java",
            "package com.x.lib;\n"
            "\n"
            "import com.x.base.Base;\n"
            "import com.x.model.Widget;\n"
            "import static com.x.Util.helper;\n"
            "\n"
            "public class Lib extends Base {\n"
            "    public Widget widget() { return helper(); }\n"
            "}\n",
            MAIN,
            GENERAL,
            config,
        )
        assert unit.declared_package == "com.x.lib"
        assert unit.imported_packages == {"com.x.base", "com.x.model", "com.x"}
        assert unit.exported_packages == {"com.x.base", "com.x.model"}

    def test_test_origin(self, config):
        unit = _kotlin("import com.x.lib.Lib\n", config, origin=TEST)
        assert unit.origin == TEST
        assert unit.imported_packages == {"com.x.lib"}

    def test_custom_surface_parser(self, config):
        """Any callable producing declarations can replace the built-in parser."""
        def surface(text):
            return [Declaration(name="Stub", kind="class", language=KOTLIN, line=1, supertypes=["Base"])]

        unit = extract_source_unit(
            "Stub.kt",
            "import com.x.base.Base\n",
            MAIN,
            GENERAL,
            config,
            surface=surface,
        )
        assert unit.exported_packages == {"com.x.base"}


class TestSchemaFiles:
    """Tests for protobuf schema files."""

    def test_java_package_option(self, config):
        unit = extract_source_unit(
            "src/main/proto/events.proto",
            'syntax = "proto3";\n'
            "package events.v1;\n"
            'option java_package = "com.x.events";\n'
            'import "google/protobuf/timestamp.proto";\n',
            MAIN,
            SCHEMA,
            config,
        )
        assert unit.declared_package == "com.x.events"
        assert unit.imported_packages == set()
        assert unit.exported_packages == set()

    def test_missing_option(self, config):
        unit = extract_source_unit("a.proto", 'syntax = "proto3";\n', MAIN, SCHEMA, config)
        assert unit.declared_package == ""
