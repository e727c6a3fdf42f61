# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Pipeline entry point.

``dockerfile(source, options)`` classifies the source, extracts a package
manifest from it and assembles the Dockerfile:

    Dispatcher -> extractor -> (manifest, target file, R version)
               -> install instructions + copy instructions -> Dockerfile
"""

import os
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from rcapsule.core.container.copy import resolve_copy_instructions
from rcapsule.core.container.generator import assemble
from rcapsule.core.container.installer import build_install_instructions
from rcapsule.core.container.instructions import Copy, From
from rcapsule.core.container.manager import ImageCatalog
from rcapsule.core.container.registry import DockerHubRegistry, image_for_version
from rcapsule.core.container.sysreqs import SystemRequirementsService
from rcapsule.core.container.types import Dockerfile, DockerfileOptions, SaveImage
from rcapsule.core.detector.description import DESCRIPTION_FILENAME, load_description
from rcapsule.core.detector.executor import SessionExecutor
from rcapsule.core.detector.extractors import (
    extract_from_description,
    extract_from_frame,
    extract_from_lockfile,
    extract_from_session_info,
    extract_from_session_packages,
)
from rcapsule.core.detector.lockfile import LOCKFILE_NAME, load_lockfile
from rcapsule.core.detector.types import (
    ExtractionResult,
    PackageFrame,
    ProjectDescription,
    RenvLock,
    SessionExpression,
    SessionInfo,
    SessionPackages,
)
from rcapsule.core.detector.workspace import FileKind, file_kind, find_packageable_file
from rcapsule.core.errors import MissingCollaboratorError, UnsupportedInputKindError
from rcapsule.utils.config import RCapsuleConfig
from rcapsule.utils.path_helper import normalize_path
from rcapsule.utils.reporter import Reporter, WarningKind, ensure_reporter

Handler = Callable[[Any], ExtractionResult]


class SourceDispatcher:
    """
    Routes a source to the extractor for its shape.

    Handlers are kept in a table checked in priority order; the first
    entry whose type matches the source wins.
    """

    def __init__(
        self,
        options: DockerfileOptions,
        reporter: Reporter,
        executor: Optional[SessionExecutor] = None,
        context: Optional[Path] = None,
        self_package: str = "rcapsule",
    ):
        self.options = options
        self.reporter = reporter
        self.executor = executor
        self.context = normalize_path(context or os.getcwd())
        self.self_package = self_package
        self.save_target: Optional[SaveImage] = options.save_target()
        # True once an executor has written the save-state file
        self.state_saved = False

        self._handlers: List[Tuple[Any, Handler]] = [
            (type(None), self._from_absent),
            (SessionExpression, self._from_expression),
            (PackageFrame, self._from_frame),
            (SessionInfo, self._from_session_info),
            (SessionPackages, self._from_session_packages),
            (ProjectDescription, self._from_description),
            (RenvLock, self._from_lockfile),
            ((str, os.PathLike), self._from_path),
        ]

    def dispatch(self, source) -> ExtractionResult:
        for kind, handler in self._handlers:
            if isinstance(source, kind):
                return handler(source)
        raise UnsupportedInputKindError(source)

    # --- in-memory shapes ---

    def _from_absent(self, source) -> ExtractionResult:
        self.reporter.debug("from is None, not deriving any information at all")
        return ExtractionResult()

    def _from_expression(self, source: SessionExpression) -> ExtractionResult:
        self.reporter.debug("Creating from expressions with a clean session: %s", "; ".join(source.expressions))
        save_file, save_objects = self._save_arguments()
        session = self._require_executor(source).run_expressions(
            source.expressions, save_file=save_file, save_objects=save_objects,
        )
        self.state_saved = save_file is not None
        return self._from_session_info(session)

    def _from_frame(self, source: PackageFrame) -> ExtractionResult:
        return extract_from_frame(source, self.reporter)

    def _from_session_info(self, source: SessionInfo) -> ExtractionResult:
        return extract_from_session_info(
            source,
            self.reporter,
            include_loaded_only=self.options.add_loaded_only,
            include_self_package=self.options.add_self,
            self_package=self.self_package,
        )

    def _from_session_packages(self, source: SessionPackages) -> ExtractionResult:
        return extract_from_session_packages(
            source,
            self.reporter,
            include_self_package=self.options.add_self,
            self_package=self.self_package,
        )

    def _from_description(self, source: ProjectDescription) -> ExtractionResult:
        return extract_from_description(source, self.reporter)

    def _from_lockfile(self, source: RenvLock) -> ExtractionResult:
        return extract_from_lockfile(
            source,
            self.reporter,
            include_self_package=self.options.add_self,
            self_package=self.self_package,
        )

    # --- paths ---

    def _from_path(self, source) -> ExtractionResult:
        if not os.fspath(source):
            raise UnsupportedInputKindError(source)
        path = Path(source)
        if path.is_dir():
            self.reporter.debug("'%s' is a directory", path)
            return self._from_file(find_packageable_file(path, self.reporter))
        if path.is_file() and path.name == DESCRIPTION_FILENAME:
            self.reporter.debug("'%s' is a DESCRIPTION file", path)
            return extract_from_description(load_description(path), self.reporter)
        if path.is_file() and path.name == LOCKFILE_NAME:
            self.reporter.debug("'%s' is an renv lockfile", path)
            return self._from_lockfile(load_lockfile(path))
        if path.is_file():
            return self._from_file(path)
        raise UnsupportedInputKindError(source)

    def _from_file(self, path: Path) -> ExtractionResult:
        path = normalize_path(path)
        executor = self._require_executor(path)
        kind = file_kind(path, self.reporter)
        save_file, save_objects = self._save_arguments()

        if kind is FileKind.SNAPSHOT:
            self.reporter.info("Extracting session object from RData file %s", path)
            session = executor.load_snapshot(path)
        elif kind is FileKind.DOCUMENT:
            self.reporter.info("Processing Rmd file '%s' locally using rmarkdown::render(...)", path)
            session = executor.render_document(path, save_file=save_file, save_objects=save_objects)
            self.state_saved = save_file is not None
        else:
            self.reporter.info("Processing R script file '%s' locally.", path)
            session = executor.run_script(path, save_file=save_file, save_objects=save_objects)
            self.state_saved = save_file is not None

        result = self._from_session_info(session)
        result.target_file = path
        return result

    def _require_executor(self, source) -> SessionExecutor:
        if self.executor is None:
            raise MissingCollaboratorError(f"An R session executor is required to process {source!r}")
        return self.executor

    def _save_arguments(self) -> Tuple[Optional[str], Optional[List[str]]]:
        if self.save_target is None:
            return None, None
        objects = list(self.save_target.objects) if self.save_target.objects is not None else None
        return str(self.context / self.save_target.filename), objects


def select_image(
    options: DockerfileOptions,
    r_version: Optional[str],
    config: RCapsuleConfig,
    registry: Optional[DockerHubRegistry],
    reporter: Reporter,
    minimum: bool = False,
) -> From:
    """Explicit image first, then an image for the detected R version, then the configured default."""
    if options.image:
        return From.parse(options.image)
    if r_version:
        reporter.debug("Selecting base image for R version %s", r_version)
        return image_for_version(r_version, registry=registry, reporter=reporter, minimum=minimum)
    return From.parse(config.default_image)


def dockerfile(
    source=None,
    options: Optional[DockerfileOptions] = None,
    *,
    executor: Optional[SessionExecutor] = None,
    sysreqs: Optional[SystemRequirementsService] = None,
    registry: Optional[DockerHubRegistry] = None,
    config: Optional[RCapsuleConfig] = None,
    reporter: Optional[Reporter] = None,
    context=None,
) -> Dockerfile:
    """
    Create a Dockerfile for the R environment described by ``source``.

    Args:
        source: None, SessionExpression, PackageFrame, SessionInfo,
                SessionPackages, ProjectDescription, RenvLock or a path
                to a file (DESCRIPTION, renv.lock, R script, R Markdown,
                RData) or directory.
        options: Generation switches; defaults apply when omitted.
        executor: Runs R code for expression, script, document and
                  RData inputs.
        sysreqs: System dependency lookup. Without it no system
                 libraries are installed.
        registry: Tag lookup used to validate images derived from the R version.
        config: Configuration; loaded from ``rcapsule.json`` when omitted.
        reporter: Collects warnings; a new one is created when omitted.
        context: Build context directory for COPY paths; defaults to the
                 current working directory.

    Raises:
        RCapsuleError: Any fatal condition of the pipeline.
    """
    options = options or DockerfileOptions()
    options.validate()
    config = config or RCapsuleConfig()
    reporter = ensure_reporter(reporter, options.silent)
    catalog = ImageCatalog(overlay=config.catalog_overlay)

    dispatcher = SourceDispatcher(
        options, reporter, executor=executor, context=context, self_package=config.self_package,
    )
    result = dispatcher.dispatch(source)

    image = select_image(options, result.r_version, config, registry, reporter, minimum=result.r_version_minimum)
    if not catalog.is_supported(image):
        reporter.warning(
            WarningKind.UNSUPPORTED_BASE_IMAGE,
            "Unsupported base image %s. Proceed at your own risk. The following base images are supported: %s",
            image, ", ".join(catalog.supported_images()),
        )

    install = build_install_instructions(result.manifest, image, catalog, options, sysreqs, reporter)
    copy = resolve_copy_instructions(options.copy_selector(), dispatcher.context, result.target_file, reporter)

    save_copy = None
    if dispatcher.save_target is not None:
        filename = dispatcher.save_target.filename
        if not dispatcher.state_saved:
            reporter.info("Adding COPY instruction for %s, the file must be provided in the build context", filename)
        save_copy = Copy(filename, filename)

    the_dockerfile = assemble(
        image, options, install=install, copy=copy, save_image=save_copy, workdir=options.workdir(),
    )
    reporter.info("Created Dockerfile-Object based on %s", _describe(source))
    return the_dockerfile


def _describe(source) -> str:
    if source is None:
        return "nothing"
    if isinstance(source, (str, os.PathLike)):
        return str(source)
    return type(source).__name__
