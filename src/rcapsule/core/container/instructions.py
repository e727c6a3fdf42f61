# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Dockerfile instruction model.

Each instruction renders itself to one Dockerfile line (or one logical
line with continuations). Exec-form arguments are JSON encoded, which is
the notation Docker expects for ``RUN [...]``, ``CMD [...]`` and friends.
"""

import json
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


def _exec_form(args) -> str:
    return json.dumps(list(args), ensure_ascii=False)


@dataclass(frozen=True)
class From:
    image: str
    tag: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "From":
        """Split ``name:tag``; a colon inside a registry host:port is not a tag."""
        name, sep, tag = text.rpartition(":")
        if not sep or "/" in tag:
            return cls(text)
        return cls(name, tag)

    def render(self) -> str:
        return f"FROM {self}"

    def __str__(self) -> str:
        return f"{self.image}:{self.tag}" if self.tag else self.image


@dataclass(frozen=True)
class Label:
    key: str
    value: str

    def render(self) -> str:
        return f"LABEL {self.key}={json.dumps(self.value, ensure_ascii=False)}"


def label_maintainer(maintainer: str) -> Label:
    return Label("maintainer", maintainer)


@dataclass(frozen=True)
class Env:
    key: str
    value: str

    def render(self) -> str:
        return f"ENV {self.key}={json.dumps(str(self.value), ensure_ascii=False)}"


@dataclass(frozen=True)
class Run:
    """
    A RUN step, either in exec form (``args``) or shell form (``shell``).
    Shell commands joined by ``&&`` are given as separate ``shell`` entries
    and rendered with line continuations.
    """
    args: Tuple[str, ...] = ()
    shell: Tuple[str, ...] = ()

    @classmethod
    def exec(cls, *args: str) -> "Run":
        return cls(args=tuple(args))

    @classmethod
    def commands(cls, *commands: str) -> "Run":
        return cls(shell=tuple(commands))

    def render(self) -> str:
        if self.args:
            return f"RUN {_exec_form(self.args)}"
        return "RUN " + " \\\n  && ".join(self.shell)


@dataclass(frozen=True)
class Workdir:
    path: str

    def render(self) -> str:
        return f"WORKDIR {self.path}"


@dataclass(frozen=True)
class Copy:
    src: str
    dest: str

    def render(self) -> str:
        return f"COPY {_exec_form([self.src, self.dest])}"


@dataclass(frozen=True)
class Cmd:
    args: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, command) -> "Cmd":
        if isinstance(command, str):
            return cls((command,))
        return cls(tuple(command))

    def render(self) -> str:
        return f"CMD {_exec_form(self.args)}"


@dataclass(frozen=True)
class Entrypoint:
    args: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, command) -> "Entrypoint":
        if isinstance(command, str):
            return cls((command,))
        return cls(tuple(command))

    def render(self) -> str:
        return f"ENTRYPOINT {_exec_form(self.args)}"


def cmd_rscript(path: str, vanilla: bool = True) -> Cmd:
    """CMD that runs an R script on container start."""
    args: List[str] = ["R"]
    if vanilla:
        args.append("--vanilla")
    return Cmd(tuple(args + ["-f", path]))


def cmd_render(path: str, output_format: str = "rmarkdown::html_document()", vanilla: bool = True) -> Cmd:
    """CMD that renders an R Markdown document on container start."""
    args: List[str] = ["R"]
    if vanilla:
        args.append("--vanilla")
    expression = f"rmarkdown::render(input = {json.dumps(path)}, output_format = {output_format})"
    return Cmd(tuple(args + ["-e", expression]))
