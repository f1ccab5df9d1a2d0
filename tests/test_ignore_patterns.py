# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for workspace ignore rules."""

from victor_index.codebase.ignore_patterns import (
    DEFAULT_IGNORE_FILE,
    IgnoreFilter,
    is_binary_path,
    normalize_relative_path,
)


class TestDefaultRules:
    """Built-in excludes apply without any project configuration."""

    def test_source_files_are_indexed(self):
        f = IgnoreFilter()
        assert f.should_index("src/main.ts")
        assert f.should_index("README.md")

    def test_dependency_and_build_folders_are_ignored(self):
        f = IgnoreFilter()
        assert f.is_ignored("node_modules/lodash/index.js")
        assert f.is_ignored("packages/app/node_modules/react/index.js")
        assert f.is_ignored("dist/bundle.js")
        assert f.is_ignored(".git/HEAD")
        assert f.is_ignored("src/__pycache__/mod.cpython-312.pyc")

    def test_lockfiles_and_minified_assets_are_ignored(self):
        f = IgnoreFilter()
        assert f.is_ignored("package-lock.json")
        assert f.is_ignored("web/yarn.lock")
        assert f.is_ignored("static/app.min.js")
        assert f.is_ignored("static/app.js.map")
        assert f.is_ignored("logs/server.log")

    def test_binary_extensions_are_ignored(self):
        f = IgnoreFilter()
        assert f.is_ignored("assets/logo.png")
        assert f.is_ignored("lib/native.so")
        assert f.is_ignored("docs/manual.PDF")

    def test_empty_path_is_ignored(self):
        assert IgnoreFilter().is_ignored("")


class TestProjectRules:
    """Project patterns use gitignore semantics."""

    def test_comments_and_blank_lines_are_skipped(self):
        f = IgnoreFilter(["# generated code", "", "   ", "generated/"])
        assert f.exclude_patterns[-1] == "generated/"
        assert f.is_ignored("generated/api.ts")
        assert f.should_index("src/api.ts")

    def test_later_include_readmits_excluded_path(self):
        f = IgnoreFilter(["*.json", "!config.json"])
        assert f.is_ignored("data/fixtures.json")
        assert f.should_index("config.json")
        assert f.include_patterns == ["config.json"]

    def test_later_exclude_overrides_earlier_include(self):
        f = IgnoreFilter(["!keep.txt", "*.txt"])
        assert f.is_ignored("keep.txt")

    def test_include_cannot_readmit_binary_files(self):
        f = IgnoreFilter(["!*.png"])
        assert f.is_ignored("logo.png")

    def test_load_reads_project_ignore_file(self, tmp_path):
        (tmp_path / DEFAULT_IGNORE_FILE).write_text("fixtures/\n!fixtures/keep.ts\n")
        f = IgnoreFilter.load(tmp_path)
        assert f.is_ignored("fixtures/big.ts")
        assert f.should_index("fixtures/keep.ts")

    def test_ignore_file_has_last_word_over_extra_patterns(self, tmp_path):
        (tmp_path / DEFAULT_IGNORE_FILE).write_text("!scripts/\n")
        f = IgnoreFilter.load(tmp_path, extra_patterns=["scripts/"])
        assert f.should_index("scripts/deploy.sh")

    def test_load_without_ignore_file_uses_defaults(self, tmp_path):
        f = IgnoreFilter.load(tmp_path)
        assert f.patterns == IgnoreFilter().patterns


class TestDirectoryPruning:
    """should_descend lets the scanner skip whole folders."""

    def test_excluded_folder_is_not_descended(self):
        f = IgnoreFilter()
        assert not f.should_descend("node_modules")
        assert not f.should_descend("packages/web/dist")
        assert f.should_descend("src")
        assert f.should_descend("")

    def test_include_rules_disable_pruning(self):
        f = IgnoreFilter(["!build/keep.ts"])
        assert f.should_descend("build")


class TestPathHelpers:
    def test_normalize_relative_path(self):
        assert normalize_relative_path("./src\\util.ts") == "src/util.ts"
        assert normalize_relative_path("/src/util.ts") == "src/util.ts"

    def test_is_binary_path(self):
        assert is_binary_path("a/b/c.wasm")
        assert not is_binary_path("a/b/c.ts")
