# SPDX-License-Identifier: MIT
"""Tests for buildgraph.rules.cc."""

from __future__ import annotations

import pytest

from buildgraph.core.context import BuildContext
from buildgraph.core.errors import GenerateError
from buildgraph.core.paths import Workspace
from buildgraph.generators.ninja import NinjaWriter
from buildgraph.rules.cc import Binary, Library, Toolchain, flatten_deps
from buildgraph.rules.cc import Test as CcTest

WS = Workspace("/src", "/out/build", working_dir="/out", config_hash="H")


def process(targets):
    ctx = BuildContext(WS, targets)
    ctx.process_targets()
    return ctx


class TestToolchain:
    def test_compile_rule_by_language(self):
        tc = Toolchain()
        assert tc.compile_rule(WS.source("a.c")).name == "gcc_cc"
        assert tc.compile_rule(WS.source("a.cc")).name == "gcc_cxx"

    def test_compile_rule_uses_depfile(self):
        rule = Toolchain(name="clang", cxx="clang++").compile_rule(WS.source("a.cc"))
        assert rule.name == "clang_cxx"
        assert rule.command.startswith("clang++ ")
        assert rule.depfile == "$out.d"
        assert rule.deps == "gcc"
        assert rule.compdb


class TestFlattenDeps:
    def test_dependents_before_dependencies(self):
        base = Library(name="base")
        mid = Library(name="mid", deps=[base])
        top = Library(name="top", deps=[mid, base])
        assert [lib.name for lib in flatten_deps([top])] == ["top", "mid", "base"]

    def test_diamond_visited_once(self):
        base = Library(name="base")
        left = Library(name="left", deps=[base])
        right = Library(name="right", deps=[base])
        names = [lib.name for lib in flatten_deps([left, right])]
        assert names.count("base") == 1
        assert names[-1] == "base"


class TestBinary:
    def test_links_libraries(self):
        util = Library(
            name="util",
            srcs=[WS.source("util/util.cc")],
            includes=[WS.source("util/include")],
        )
        app = Binary(name="app", srcs=[WS.source("app/main.cc")], deps=[util])
        ctx = process({"app/App": app})

        link = ctx.edge_for(WS.out("app/app"))
        assert link is not None
        assert link.ins == (WS.out("app/main.o"),)
        assert link.implicit == (WS.out("util/libutil.a"),)
        assert dict(link.variables)["libs"] == "/out/build-H/util/libutil.a"

        obj = ctx.edge_for(WS.out("app/main.o"))
        assert "-I/src/util/include" in dict(obj.variables)["flags"]

        assert ctx.frontier() == [WS.out("app/app")]
        assert ctx.compdb_rules() == ["gcc_cxx"]

    def test_shared_library_built_once(self):
        util = Library(name="util", srcs=[WS.source("util/util.cc")])
        targets = {
            "a/A": Binary(name="a", srcs=[WS.source("a/a.cc")], deps=[util]),
            "b/B": Binary(name="b", srcs=[WS.source("b/b.cc")], deps=[util]),
        }
        ctx = process(targets)
        archive = ctx.edge_for(WS.out("util/libutil.a"))
        assert archive.traces == ["top:a/A // lib:util/libutil.a"]
        # The B link still depends on the archive.
        assert WS.out("util/libutil.a") in ctx.edge_for(WS.out("b/b")).implicit

    def test_run_command(self):
        app = Binary(name="app", srcs=[WS.source("app/main.cc")])
        ctx = process({"app/App": app})
        assert ctx.target_rules[0].run_command == "/out/build-H/app/app"
        assert app.run(["a b"]) == "/out/build-H/app/app 'a b'"

    def test_run_before_build(self):
        with pytest.raises(GenerateError, match="was not built"):
            Binary(name="app").run([])

    def test_no_sources_uses_target_directory(self):
        app = Binary(name="tool")
        process({"tools/Tool": app})
        assert app.run([]) == "/out/build-H/tools/tool"

    def test_test_target(self):
        test = CcTest(name="util_test", srcs=[WS.source("util/test.cc")])
        ctx = process({"util/UtilTest": test})
        (rule,) = ctx.target_rules
        assert rule.test_command == "/out/build-H/util/util_test"
        assert rule.description == "C++ test util_test"

    def test_ninja_output(self):
        app = Binary(name="app", srcs=[WS.source("app/main.c")])
        text = NinjaWriter(process({"app/App": app})).render()
        assert "rule gcc_cc\n" in text
        assert "rule gcc_ld\n" in text
        assert "build /out/build-H/app/main.o: gcc_cc /src/app/main.c\n" in text
        assert "build app/App#run: " in text
