import getpass
import os
from dataclasses import dataclass, field
from importlib import metadata
from typing import Dict, List, Optional, Sequence, Tuple, Union

from rcapsule.core.errors import InvalidOptionError

from .instructions import Cmd, Copy, Entrypoint, Env, From, Label, Run, Workdir


def tool_version() -> str:
    try:
        return metadata.version("rcapsule")
    except metadata.PackageNotFoundError:
        return "unknown"


def current_user() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


@dataclass(frozen=True)
class CopySelector:
    """How files of the workspace are copied into the image."""
    mode: str = "none"
    paths: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: Union[None, str, os.PathLike, Sequence, "CopySelector"]) -> "CopySelector":
        """
        Accepts None, ``"script"``, ``"script_dir"``, a path, a list of paths
        or a CopySelector. A one-element list holding a mode is that mode.
        """
        if value is None:
            return cls("none")
        if isinstance(value, CopySelector):
            return value
        if isinstance(value, (str, os.PathLike)):
            value = [value]
        try:
            entries = [os.fspath(p) for p in value if p is not None]
        except TypeError as e:
            raise InvalidOptionError(
                f"Invalid argument given for 'copy': {value!r}, expected 'script', 'script_dir' or paths"
            ) from e
        if len(entries) == 1 and entries[0] in ("script", "script_dir"):
            return cls(entries[0])
        if not entries:
            return cls("none")
        return cls("paths", tuple(entries))


@dataclass(frozen=True)
class SaveImage:
    """Save selected R objects (all when ``objects`` is None) and copy them into the image."""
    objects: Optional[Tuple[str, ...]] = None
    filename: str = ".RData"


@dataclass
class DockerfileOptions:
    """All switches of a Dockerfile generation run."""
    image: Optional[str] = None
    maintainer: Optional[str] = field(default_factory=current_user)
    env: Dict[str, str] = field(default_factory=lambda: {"generator": f"rcapsule {tool_version()}"})
    soft: bool = False
    offline: bool = False
    add_self: bool = False
    add_loaded_only: bool = False
    versioned_libs: bool = False
    versioned_packages: bool = False
    filter_baseimage_pkgs: bool = False
    copy: Union[None, str, os.PathLike, Sequence, CopySelector] = None
    container_workdir: Optional[str] = "/payload/"
    cmd: Union[str, Sequence[str], Cmd] = "R"
    entrypoint: Optional[Entrypoint] = None
    save_image: Union[bool, SaveImage] = False
    silent: bool = False

    def copy_selector(self) -> CopySelector:
        return CopySelector.parse(self.copy)

    def command(self) -> Cmd:
        if isinstance(self.cmd, Cmd):
            return self.cmd
        if isinstance(self.cmd, str) or (isinstance(self.cmd, (list, tuple)) and self.cmd):
            return Cmd.of(self.cmd)
        raise InvalidOptionError(f"Unsupported parameter for 'cmd', expected a string or Cmd, given was: {self.cmd!r}")

    def workdir(self) -> Optional[Workdir]:
        if self.container_workdir is None:
            return None
        if not isinstance(self.container_workdir, str) or not self.container_workdir.endswith("/"):
            raise InvalidOptionError(
                f"Unsupported parameter for 'container_workdir': {self.container_workdir!r}, "
                "expected a path ending with '/' or None"
            )
        return Workdir(self.container_workdir)

    def save_target(self) -> Optional[SaveImage]:
        if self.save_image is True:
            return SaveImage()
        if isinstance(self.save_image, SaveImage):
            return self.save_image
        if self.save_image is False or self.save_image is None:
            return None
        raise InvalidOptionError(f"Unsupported parameter for 'save_image': {self.save_image!r}")

    def validate(self) -> None:
        if self.entrypoint is not None and not isinstance(self.entrypoint, Entrypoint):
            raise InvalidOptionError(
                f"Unsupported parameter for 'entrypoint', expected an Entrypoint, given was: {self.entrypoint!r}"
            )
        self.command()
        self.workdir()
        self.copy_selector()
        self.save_target()


@dataclass
class Dockerfile:
    """
    The build recipe under construction. ``instructions()`` always returns
    the fixed order: FROM, LABEL, ENV, RUN, WORKDIR, COPY, ENTRYPOINT, CMD.
    """
    image: From
    cmd: Cmd
    maintainer: Optional[Label] = None
    env: List[Env] = field(default_factory=list)
    install: List[Run] = field(default_factory=list)
    workdir: Optional[Workdir] = None
    copy: List[Copy] = field(default_factory=list)
    save_image: Optional[Copy] = None
    entrypoint: Optional[Entrypoint] = None

    def instructions(self) -> list:
        ordered: list = [self.image]
        if self.maintainer is not None:
            ordered.append(self.maintainer)
        ordered.extend(self.env)
        ordered.extend(self.install)
        if self.workdir is not None:
            ordered.append(self.workdir)
        ordered.extend(self.copy)
        if self.save_image is not None:
            ordered.append(self.save_image)
        if self.entrypoint is not None:
            ordered.append(self.entrypoint)
        ordered.append(self.cmd)
        return ordered

    def render(self) -> str:
        from .generator import render_dockerfile
        return render_dockerfile(self)

    def __str__(self) -> str:
        return self.render()
