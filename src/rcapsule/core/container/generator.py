# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

import os
from pathlib import Path
from typing import List, Optional, Union

from jinja2 import Environment, FileSystemLoader

from rcapsule.utils.path_helper import get_resource_path

from .instructions import Copy, Env, From, Label, Run, Workdir, label_maintainer
from .types import Dockerfile, DockerfileOptions

TEMPLATE_DIR = get_resource_path("container/templates")


def assemble(
    image: From,
    options: DockerfileOptions,
    install: Optional[List[Run]] = None,
    copy: Optional[List[Copy]] = None,
    save_image: Optional[Copy] = None,
    workdir: Optional[Workdir] = None,
) -> Dockerfile:
    """
    Merge the partial instruction lists into one Dockerfile.

    The order of the result is fixed by Dockerfile.instructions(), the
    caller only decides which parts are present.
    """
    maintainer: Optional[Label] = label_maintainer(options.maintainer) if options.maintainer else None
    env = [Env(key, value) for key, value in (options.env or {}).items()]
    return Dockerfile(
        image=image,
        cmd=options.command(),
        maintainer=maintainer,
        env=env,
        install=list(install or []),
        workdir=workdir,
        copy=list(copy or []),
        save_image=save_image,
        entrypoint=options.entrypoint,
    )


def render_dockerfile(dockerfile: Dockerfile) -> str:
    """Render Dockerfile content, one instruction per line."""
    env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), keep_trailing_newline=True)
    template = env.get_template("Dockerfile.j2")
    return template.render(instructions=dockerfile.instructions())


def write_dockerfile(dockerfile: Dockerfile, output: Union[str, Path]) -> Path:
    """
    Write the rendered Dockerfile.

    Args:
        dockerfile: Assembled Dockerfile
        output: Target file, or a directory to write ``Dockerfile`` into

    Returns:
        Path of the written file
    """
    output_path = Path(output)
    if output_path.is_dir():
        output_path = output_path / "Dockerfile"
    os.makedirs(output_path.parent, exist_ok=True)

    with open(output_path, "w", encoding="utf-8", newline="\n") as f:
        f.write(render_dockerfile(dockerfile))
    return output_path
