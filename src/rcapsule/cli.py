# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
rcapsule command line.

Usage:
    rcapsule analysis.R -o Dockerfile
    rcapsule path/to/DESCRIPTION --filter-baseimage-pkgs
    rcapsule project_dir --copy script_dir --cmd Rscript main.R
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from rcapsule.core.container.generator import render_dockerfile, write_dockerfile
from rcapsule.core.container.instructions import Cmd, Entrypoint
from rcapsule.core.container.registry import DockerHubRegistry
from rcapsule.core.container.sysreqs import SysreqsService
from rcapsule.core.container.types import DockerfileOptions, SaveImage, current_user
from rcapsule.core.detector.executor import RscriptSessionExecutor
from rcapsule.core.dispatcher import dockerfile
from rcapsule.core.errors import RCapsuleError
from rcapsule.utils.config import RCapsuleConfig
from rcapsule.utils.reporter import Reporter

logger = logging.getLogger("rcapsule")


def configure_logging(level=logging.INFO) -> None:
    root = logging.getLogger()
    if not root.hasHandlers():
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
    else:
        root.setLevel(level)


def _parse_env(values: Optional[List[str]]) -> Optional[Dict[str, str]]:
    if not values:
        return None
    env = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected KEY=VALUE for --env, got {item!r}")
        env[key] = value
    return env


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rcapsule",
        description="Generate a Dockerfile for an R session, script, document, DESCRIPTION or project directory",
    )
    parser.add_argument("source", nargs="?", help="File or directory to package (omit for an empty R image)")
    parser.add_argument("-o", "--output", help="Write the Dockerfile to this file or directory (default: stdout)")
    parser.add_argument("--config", help="Configuration file (default: ./rcapsule.json)")
    parser.add_argument("--context", help="Build context for COPY paths (default: current directory)")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug messages")
    verbosity.add_argument("-s", "--silent", action="store_true", help="Only show warnings and errors")

    image = parser.add_argument_group("image")
    image.add_argument("--image", help="Base image, e.g. rocker/r-ver:4.3.1 (default: derived from the R version)")
    image.add_argument("--maintainer", help="Maintainer label (default: current user)")
    image.add_argument("--no-maintainer", action="store_true", help="Do not add a maintainer label")
    image.add_argument("--env", action="append", metavar="KEY=VALUE", help="Environment variable, repeatable")

    packages = parser.add_argument_group("packages")
    packages.add_argument("--soft", action="store_true", help="Include soft system dependencies")
    packages.add_argument("--offline", action="store_true", help="Do not use online services")
    packages.add_argument("--add-self", action="store_true", help="Keep rcapsule itself in the package list")
    packages.add_argument("--add-loaded-only", action="store_true", help="Also install loaded but not attached packages")
    packages.add_argument("--versioned-libs", action="store_true", help="Pin system library versions")
    packages.add_argument("--versioned-packages", action="store_true", help="Install CRAN packages in their exact version")
    packages.add_argument("--filter-baseimage-pkgs", action="store_true",
                          help="Skip CRAN packages already installed in the base image")

    payload = parser.add_argument_group("payload")
    payload.add_argument("--copy", nargs="+", metavar="PATH",
                         help="'script', 'script_dir' or a list of paths to copy into the image")
    payload.add_argument("--workdir", help="Container working directory, must end with '/' (default: /payload/)")
    payload.add_argument("--no-workdir", action="store_true", help="Do not add a WORKDIR instruction")
    payload.add_argument("--cmd", nargs="+", help="CMD in exec form (default: R)")
    payload.add_argument("--entrypoint", nargs="+", help="ENTRYPOINT in exec form")
    payload.add_argument("--save-image", nargs="*", metavar="OBJECT",
                         help="Save the session (or the named objects) and copy it into the image")
    payload.add_argument("--save-image-file", default=".RData", help="File name for --save-image (default: .RData)")
    return parser


def options_from_args(args: argparse.Namespace, config: RCapsuleConfig) -> DockerfileOptions:
    maintainer = None if args.no_maintainer else (args.maintainer or current_user())
    options = DockerfileOptions(
        image=args.image,
        maintainer=maintainer,
        soft=args.soft,
        offline=args.offline,
        add_self=args.add_self,
        add_loaded_only=args.add_loaded_only,
        versioned_libs=args.versioned_libs,
        versioned_packages=args.versioned_packages,
        filter_baseimage_pkgs=args.filter_baseimage_pkgs,
        container_workdir=None if args.no_workdir else (args.workdir or config.container_workdir),
        silent=args.silent,
    )

    env = _parse_env(args.env)
    if env is not None:
        options.env = env
    if args.copy:
        options.copy = args.copy[0] if len(args.copy) == 1 and args.copy[0] in ("script", "script_dir") else args.copy
    if args.cmd:
        options.cmd = Cmd.of(args.cmd)
    if args.entrypoint:
        options.entrypoint = Entrypoint.of(args.entrypoint)
    if args.save_image is not None:
        objects = tuple(args.save_image) if args.save_image else None
        options.save_image = SaveImage(objects=objects, filename=args.save_image_file)
    return options


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        configure_logging(logging.DEBUG)
    elif args.silent:
        configure_logging(logging.WARNING)
    else:
        configure_logging(logging.INFO)

    try:
        config = RCapsuleConfig(config_path=args.config)
        options = options_from_args(args, config)
        executor = RscriptSessionExecutor(
            rscript=config.rscript,
            timeout=config.execution_timeout,
            echo=args.verbose,
            workdir=args.context,
        )
        sysreqs = SysreqsService(base_url=config.sysreqs_url)
        registry = None if args.offline else DockerHubRegistry(base_url=config.registry_url)

        result = dockerfile(
            args.source,
            options,
            executor=executor,
            sysreqs=sysreqs,
            registry=registry,
            config=config,
            reporter=Reporter(silent=args.silent),
            context=args.context,
        )
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except RCapsuleError as e:
        logger.error("%s", e)
        return 1

    if args.output:
        path = write_dockerfile(result, args.output)
        logger.info("Dockerfile written to %s", path)
    else:
        sys.stdout.write(render_dockerfile(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
