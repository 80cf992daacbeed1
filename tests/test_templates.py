# SPDX-License-Identifier: MIT
"""Tests for buildgraph.templates."""

import pytest

from buildgraph.core.errors import TemplateError
from buildgraph.templates import compile_template, compile_template_file


class TestCompileTemplate:
    def test_loop(self):
        text = "{% for src in srcs %}read {{ src }}\n{% endfor %}"
        assert compile_template(text, "t", {"srcs": ["a.v", "b.v"]}) == (
            "read a.v\nread b.v\n"
        )

    def test_has_suffix(self):
        text = "{% for f in files if has_suffix(f, '.v') %}{{ f }} {% endfor %}"
        assert compile_template(text, "t", {"files": ["a.v", "b.sv", "c.v"]}) == (
            "a.v c.v "
        )

    def test_has_suffix_filter(self):
        assert compile_template("{{ 'x.c' | has_suffix('.c') }}", "t", {}) == "True"

    def test_no_html_escaping(self):
        assert compile_template("{{ v }}", "t", {"v": "a < b & c"}) == "a < b & c"

    def test_undefined_variable(self):
        with pytest.raises(TemplateError, match="cannot render template 'synth.tcl'"):
            compile_template("{{ missing }}", "synth.tcl", {})

    def test_syntax_error(self):
        with pytest.raises(TemplateError):
            compile_template("{% for %}", "t", {})


class TestCompileTemplateFile:
    def test_render_file(self, tmp_path):
        path = tmp_path / "run.sh.j2"
        path.write_text("#!/bin/sh\nexec {{ tool }} \"$@\"\n")
        assert compile_template_file(path, {"tool": "yosys"}) == (
            '#!/bin/sh\nexec yosys "$@"\n'
        )

    def test_include(self, tmp_path):
        (tmp_path / "header.j2").write_text("# {{ name }}\n")
        (tmp_path / "main.j2").write_text("{% include 'header.j2' %}body\n")
        assert compile_template_file(tmp_path / "main.j2", {"name": "x"}) == (
            "# x\nbody\n"
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(TemplateError):
            compile_template_file(tmp_path / "missing.j2", {})
