# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Session executors: obtain an R session snapshot by running code.

SessionExecutor is the interface the dispatcher talks to. The default
implementation, RscriptSessionExecutor, runs a fresh ``Rscript --vanilla``
process which executes the script, renders the document or evaluates the
expressions, and then writes ``sessionInfo()`` as JSON for us to read back.
"""

import json
import logging
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader

from rcapsule.core.errors import SessionExecutionError
from rcapsule.utils.path_helper import get_resource_path

from .types import SessionInfo

logger = logging.getLogger(__name__)

TEMPLATE_DIR = get_resource_path("detector/templates")


class SessionExecutor(ABC):
    """
    Abstract interface for services that execute R code in a clean
    environment and report the resulting session.

    ``save_file``/``save_objects`` ask the service to save objects of the
    executed environment (all of them when ``save_objects`` is None) into
    ``save_file`` before it exits.
    """

    @abstractmethod
    def run_script(self, path: Path, save_file: Optional[str] = None,
                   save_objects: Optional[List[str]] = None) -> SessionInfo:
        raise NotImplementedError

    @abstractmethod
    def render_document(self, path: Path, save_file: Optional[str] = None,
                        save_objects: Optional[List[str]] = None) -> SessionInfo:
        raise NotImplementedError

    @abstractmethod
    def run_expressions(self, expressions: List[str], save_file: Optional[str] = None,
                        save_objects: Optional[List[str]] = None) -> SessionInfo:
        raise NotImplementedError

    @abstractmethod
    def load_snapshot(self, path: Path) -> SessionInfo:
        """Read a session object from a serialized R data file."""
        raise NotImplementedError


def _r_string(value) -> str:
    # JSON string escapes are valid R string escapes
    return json.dumps(str(value))


def _r_bool(value) -> str:
    return "TRUE" if value else "FALSE"


class RscriptSessionExecutor(SessionExecutor):
    """Executes R code with a local ``Rscript`` binary."""

    def __init__(self, rscript: str = "Rscript", timeout: int = 600,
                 echo: bool = False, workdir: Optional[str] = None):
        """
        Args:
            rscript: Name or path of the Rscript binary.
            timeout: Seconds before the R process is aborted.
            echo: Echo executed code into the R output (logged at debug level).
            workdir: Working directory of the R process; defaults to the
                     current working directory.
        """
        self.rscript = rscript
        self.timeout = timeout
        self.echo = echo
        self.workdir = workdir
        self._env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), keep_trailing_newline=True)
        self._env.filters["rstring"] = _r_string
        self._env.filters["rbool"] = _r_bool

    def render_code(self, kind: str, output_file: str, target: Optional[Path] = None,
                    expressions: Optional[List[str]] = None, save_file: Optional[str] = None,
                    save_objects: Optional[List[str]] = None) -> str:
        """Render the R program that executes the workload and dumps the session."""
        template = self._env.get_template("capture_session.R.j2")
        return template.render(
            kind=kind,
            output_file=output_file,
            target=str(target) if target is not None else None,
            expressions=expressions or [],
            echo=self.echo,
            save_file=save_file,
            save_objects=save_objects or [],
        )

    def run_script(self, path, save_file=None, save_objects=None) -> SessionInfo:
        return self._execute("script", target=path, save_file=save_file, save_objects=save_objects)

    def render_document(self, path, save_file=None, save_objects=None) -> SessionInfo:
        return self._execute("document", target=path, save_file=save_file, save_objects=save_objects)

    def run_expressions(self, expressions, save_file=None, save_objects=None) -> SessionInfo:
        return self._execute("expressions", expressions=list(expressions),
                             save_file=save_file, save_objects=save_objects)

    def load_snapshot(self, path) -> SessionInfo:
        return self._execute("snapshot", target=path)

    def _execute(self, kind: str, **kwargs) -> SessionInfo:
        with tempfile.TemporaryDirectory(prefix="rcapsule_") as tmp:
            output_file = Path(tmp) / "session.json"
            code = self.render_code(kind, output_file.as_posix(), **kwargs)
            args = [self.rscript, "--vanilla", "-e", code]
            logger.debug("Running %s session capture with %s", kind, self.rscript)

            try:
                result = subprocess.run(
                    args,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    timeout=self.timeout,
                    cwd=self.workdir,
                    check=False,
                )
            except FileNotFoundError as e:
                raise SessionExecutionError(
                    f"R runtime '{self.rscript}' not found. Please ensure R is installed and "
                    "available in your system PATH."
                ) from e
            except subprocess.TimeoutExpired as e:
                raise SessionExecutionError(
                    f"Executing {kind} {kwargs.get('target') or ''} timed out after {self.timeout}s"
                ) from e

            if result.stdout:
                logger.debug("R output:\n%s", result.stdout.rstrip())
            if result.returncode != 0:
                raise SessionExecutionError(
                    f"Executing {kind} {kwargs.get('target') or ''} failed "
                    f"(exit code: {result.returncode}):\n{result.stderr.strip()}"
                )
            if not output_file.exists():
                raise SessionExecutionError(f"R finished but wrote no session information for {kind}")

            with open(output_file, "r", encoding="utf-8") as f:
                data = json.load(f)

        return SessionInfo.from_dict(data)
