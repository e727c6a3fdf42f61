# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Install instruction builder.

Turns a package manifest into the RUN steps of the Dockerfile:
system libraries first, then CRAN, Bioconductor and GitHub packages.
"""

import json
from typing import Dict, List, Optional

from rcapsule.core.detector.types import Manifest, Provenance
from rcapsule.utils.reporter import Reporter

from .instructions import From, Run
from .manager import ImageCatalog
from .sysreqs import SystemRequirementsService
from .types import DockerfileOptions


def _unique_sorted(values) -> List[str]:
    return sorted(set(values))


def _r_vector(values: List[str]) -> str:
    return "c(" + ", ".join(json.dumps(v) for v in values) + ")"


def build_install_instructions(
    manifest: Manifest,
    image: From,
    catalog: ImageCatalog,
    options: DockerfileOptions,
    sysreqs: Optional[SystemRequirementsService],
    reporter: Reporter,
) -> List[Run]:
    """
    Build the ordered install RUN instructions for ``manifest`` on ``image``.

    Steps:
    1. Drop packages with unresolvable provenance
    2. Optionally drop CRAN packages that ship with the base image
    3. System dependencies (only for images with a known platform)
    4. CRAN, 5. Bioconductor, 6. GitHub packages
    """
    packages = [pkg for pkg in manifest if pkg.provenance is not Provenance.UNRESOLVABLE]

    if options.filter_baseimage_pkgs:
        packages, _ = catalog.subtract_pre_installed(packages, image, reporter)

    if not packages:
        reporter.debug("No packages to install")
        return []

    instructions: List[Run] = []

    system_step = _system_instruction(packages, image, catalog, options, sysreqs, reporter)
    if system_step is not None:
        instructions.append(system_step)

    cran = [pkg for pkg in packages if pkg.provenance is Provenance.CRAN]
    bioc = [pkg for pkg in packages if pkg.provenance is Provenance.BIOCONDUCTOR]
    github = [pkg for pkg in packages if pkg.provenance is Provenance.GITHUB]

    instructions.extend(_cran_instructions(cran, options.versioned_packages, reporter))
    instructions.extend(_bioconductor_instructions(bioc, reporter))
    instructions.extend(_github_instructions(github, reporter))
    return instructions


def _system_instruction(packages, image, catalog, options, sysreqs, reporter) -> Optional[Run]:
    platform = catalog.platform_for(image)
    if platform is None:
        reporter.info(
            "Platform of image %s is unknown, system dependencies cannot be determined. "
            "You may have to add them manually.", image,
        )
        return None
    if sysreqs is None:
        reporter.debug("No system requirements service given, skipping system dependencies")
        return None

    names = _unique_sorted(pkg.name for pkg in packages)
    reporter.debug("Looking up system dependencies for %s packages on %s", len(names), platform)
    libraries = _unique_sorted(sysreqs.query(names, platform, soft=options.soft, offline=options.offline))
    if not libraries:
        return None

    if options.versioned_libs:
        versions: Dict[str, str] = sysreqs.library_versions(libraries)
        libraries = [f"{lib}={versions[lib]}" if lib in versions else lib for lib in libraries]

    reporter.info("Adding %s system dependencies: %s", len(libraries), ", ".join(libraries))
    return Run.commands(
        "apt-get update -qq",
        "apt-get install -y " + " ".join(libraries),
    )


def _cran_instructions(packages, versioned: bool, reporter: Reporter) -> List[Run]:
    if not packages:
        return []

    if not versioned:
        names = _unique_sorted(pkg.name for pkg in packages)
        reporter.debug("Adding CRAN packages: %s", ", ".join(names))
        return [Run.exec("install2.r", *names)]

    pinned: Dict[str, str] = {}
    unversioned = []
    for pkg in packages:
        if pkg.version:
            pinned.setdefault(pkg.name, pkg.version)
        else:
            unversioned.append(pkg.name)

    instructions = [Run.exec("install2.r", "remotes")]
    for name in sorted(pinned):
        expression = f"remotes::install_version({json.dumps(name)}, version = {json.dumps(pinned[name])})"
        instructions.append(Run.exec("Rscript", "-e", expression))
    rest = _unique_sorted(name for name in unversioned if name not in pinned)
    if rest:
        instructions.append(Run.exec("install2.r", *rest))
    reporter.debug("Adding %s versioned and %s unversioned CRAN packages", len(pinned), len(rest))
    return instructions


def _bioconductor_instructions(packages, reporter: Reporter) -> List[Run]:
    if not packages:
        return []
    names = _unique_sorted(pkg.name for pkg in packages)
    reporter.debug("Adding Bioconductor packages: %s", ", ".join(names))
    expression = f"BiocManager::install({_r_vector(names)}, update = FALSE, ask = FALSE)"
    return [
        Run.exec("install2.r", "BiocManager"),
        Run.exec("Rscript", "-e", expression),
    ]


def _github_instructions(packages, reporter: Reporter) -> List[Run]:
    if not packages:
        return []
    refs = _unique_sorted(pkg.version for pkg in packages if pkg.version)
    reporter.debug("Adding GitHub packages: %s", ", ".join(refs))
    return [Run.exec("installGithub.r", *refs)] if refs else []
