# SPDX-License-Identifier: MIT
"""C/C++ rules: object files, static libraries and binaries.

All compiles of one toolchain share a named rule (``gcc_cxx``), with the
per-file flags passed as edge variables. Object files and libraries are
built at most once per output path, no matter how many targets reach them.

Example BUILD.py:

    from buildgraph.rules import cc

    util = cc.Library(name="util", srcs=[package.source("util.cc")],
                      includes=[package.source("include")])
    App = cc.Binary(name="app", srcs=[package.source("main.cc")], deps=[util])
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from buildgraph.core.errors import GenerateError
from buildgraph.core.step import BuildRule, BuildStepWithRule

if TYPE_CHECKING:
    from buildgraph.core.context import BuildContext
    from buildgraph.core.paths import OutPath, Path


def _quote_all(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in args)


@dataclass(frozen=True)
class Toolchain:
    """A GCC-compatible toolchain.

    Attributes:
        name: Prefix of the Ninja rule names.
        cc: C compiler.
        cxx: C++ compiler, also used for linking.
        ar: Archiver.
        compiler_flags: Flags for every compile.
        linker_flags: Flags for every link.
    """

    name: str = "gcc"
    cc: str = "gcc"
    cxx: str = "g++"
    ar: str = "ar"
    compiler_flags: tuple[str, ...] = ("-O2",)
    linker_flags: tuple[str, ...] = ()

    def compile_rule(self, src: Path) -> BuildRule:
        if src.relative().endswith(".c"):
            lang, compiler = "cc", self.cc
        else:
            lang, compiler = "cxx", self.cxx
        return BuildRule(
            name=f"{self.name}_{lang}",
            command=f"{compiler} $flags -MD -MF $out.d -c $in -o $out",
            description=f"{lang.upper()} $out",
            depfile="$out.d",
            deps="gcc",
            compdb=True,
        )

    def archive_rule(self) -> BuildRule:
        return BuildRule(
            name=f"{self.name}_ar",
            command=f"rm -f $out && {self.ar} rcs $out $in",
            description="AR $out",
        )

    def link_rule(self) -> BuildRule:
        return BuildRule(
            name=f"{self.name}_ld",
            command=f"{self.cxx} $flags -o $out $in $libs",
            description="LD $out",
        )


DEFAULT_TOOLCHAIN = Toolchain()


@dataclass
class ObjectFile:
    """Compiles a single source file."""

    src: Path
    includes: Sequence[Path] = ()
    flags: Sequence[str] = ()
    toolchain: Toolchain = DEFAULT_TOOLCHAIN

    def build(self, ctx: BuildContext) -> OutPath:
        out = ctx.out_path(self.src).with_ext("o")
        if ctx.built(out.absolute()):
            return out

        flags = [*self.toolchain.compiler_flags, *self.flags]
        flags += [f"-I{inc.absolute()}" for inc in self.includes]
        with ctx.traced(f"obj:{out.relative()}"):
            ctx.add_build_step(
                BuildStepWithRule(
                    rule=self.toolchain.compile_rule(self.src),
                    outs=[out],
                    ins=[self.src],
                    variables={"flags": _quote_all(flags)},
                )
            )
        return out


@dataclass(eq=False)
class Library:
    """A static library, linked into whatever depends on it."""

    name: str
    srcs: Sequence[Path] = ()
    includes: Sequence[Path] = ()
    compiler_flags: Sequence[str] = ()
    deps: Sequence[Library] = ()
    toolchain: Toolchain = DEFAULT_TOOLCHAIN

    def out(self, ctx: BuildContext) -> OutPath:
        filename = f"lib{self.name}.a"
        if self.srcs:
            return ctx.out_path(self.srcs[0]).with_filename(filename)
        return ctx.cwd().join(filename)

    def build(self, ctx: BuildContext) -> OutPath:
        out = self.out(ctx)
        if ctx.built(out.absolute()):
            return out

        with ctx.traced(f"lib:{out.relative()}"):
            objs = compile_sources(
                ctx,
                self.srcs,
                self.compiler_flags,
                flatten_deps([self]),
                self.toolchain,
            )
            ctx.add_build_step(
                BuildStepWithRule(rule=self.toolchain.archive_rule(), outs=[out], ins=objs)
            )
        return out


@dataclass(eq=False)
class Binary:
    """An executable. Running the target runs the binary."""

    name: str
    srcs: Sequence[Path] = ()
    compiler_flags: Sequence[str] = ()
    linker_flags: Sequence[str] = ()
    deps: Sequence[Library] = ()
    toolchain: Toolchain = DEFAULT_TOOLCHAIN
    _out: OutPath | None = field(default=None, init=False, repr=False)

    def build(self, ctx: BuildContext) -> None:
        deps = flatten_deps(self.deps)
        objs = compile_sources(
            ctx, self.srcs, self.compiler_flags, deps, self.toolchain
        )
        libs = [dep.build(ctx) for dep in deps]

        if self.srcs:
            out = ctx.out_path(self.srcs[0]).with_filename(self.name)
        else:
            out = ctx.cwd().join(self.name)
        flags = [*self.toolchain.linker_flags, *self.linker_flags]
        ctx.add_build_step(
            BuildStepWithRule(
                rule=self.toolchain.link_rule(),
                outs=[out],
                ins=objs,
                implicit=libs,
                variables={
                    "flags": _quote_all(flags),
                    "libs": _quote_all([lib.absolute() for lib in libs]),
                },
            )
        )
        self._out = out

    def description(self) -> str:
        return f"C++ binary {self.name}"

    def run(self, args: list[str]) -> str:
        if self._out is None:
            raise GenerateError(f"binary '{self.name}' was not built")
        return shlex.join([self._out.absolute(), *args])


@dataclass(eq=False)
class Test(Binary):
    """A test binary; testing the target runs it."""

    def description(self) -> str:
        return f"C++ test {self.name}"

    def test(self, args: list[str]) -> str:
        return self.run(args)


def flatten_deps(deps: Sequence[Library]) -> list[Library]:
    """Transitive dependencies, each before the libraries it depends on.

    This is the order a static linker needs.
    """
    seen: set[int] = set()
    result: list[Library] = []

    def visit(lib: Library) -> None:
        if id(lib) in seen:
            return
        seen.add(id(lib))
        for dep in lib.deps:
            visit(dep)
        result.append(lib)

    for dep in deps:
        visit(dep)
    result.reverse()
    return result


def compile_sources(
    ctx: BuildContext,
    srcs: Sequence[Path],
    flags: Sequence[str],
    deps: Sequence[Library],
    toolchain: Toolchain,
) -> list[OutPath]:
    """Compile ``srcs`` with the include paths of ``deps``."""
    includes: list[Path] = [ctx.workspace.source("")]
    for dep in deps:
        includes.extend(dep.includes)
    return [
        ObjectFile(src, includes=includes, flags=flags, toolchain=toolchain).build(ctx)
        for src in srcs
    ]


__all__ = [
    "Binary",
    "DEFAULT_TOOLCHAIN",
    "Library",
    "ObjectFile",
    "Test",
    "Toolchain",
    "compile_sources",
    "flatten_deps",
]
