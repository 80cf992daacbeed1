# SPDX-License-Identifier: MIT
"""Hello world: a library, a binary using it, a test and a generated file.

    buildgraph build examples/hello_c out/build . --ninja-file out/build.ninja greeting=Hi
    ninja -f out/build.ninja Hello#run
"""

from buildgraph.core.flags import StringFlag
from buildgraph.core.step import BuildStep
from buildgraph.core.target import TargetGroup
from buildgraph.rules import cc

GREETING = flags.register(  # noqa: F821
    StringFlag("greeting", "Text printed by hello", default="Hello")
)

greet = cc.Library(
    name="greet",
    srcs=[package.source("greet/greet.c")],  # noqa: F821
    compiler_flags=[f'-DGREETING="{GREETING.value()}"'],
)

Hello = cc.Binary(name="hello", srcs=[package.source("app/main.c")], deps=[greet])  # noqa: F821

GreetTest = cc.Test(
    name="greet_test", srcs=[package.source("greet/greet_test.c")], deps=[greet]  # noqa: F821
)


class Readme:
    """Writes a README next to the binary."""

    def build(self, ctx):
        ctx.add_build_step(
            BuildStep(
                out=ctx.cwd().join("README.txt"),
                data=f"Run ./app/hello to print '{GREETING.value()}'.\n",
                descr="README",
            )
        )


Docs = Readme()
All = TargetGroup(Hello, GreetTest, Docs)
