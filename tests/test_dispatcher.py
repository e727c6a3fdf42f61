import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from rcapsule.core.container.instructions import (
    Cmd,
    Copy,
    Entrypoint,
    From,
    Run,
    Workdir,
    cmd_rscript,
)
from rcapsule.core.container.registry import DockerHubRegistry
from rcapsule.core.container.types import DockerfileOptions, SaveImage
from rcapsule.core.detector.executor import SessionExecutor
from rcapsule.core.detector.types import (
    PackageFrame,
    ProjectDescription,
    SessionExpression,
    SessionInfo,
    SessionPackageRow,
    SessionPackages,
)
from rcapsule.core.dispatcher import dockerfile
from rcapsule.core.errors import (
    InvalidOptionError,
    MissingCollaboratorError,
    NoPackageableFileFoundError,
    NoTargetFileError,
    UnsupportedInputKindError,
)
from rcapsule.utils.config import RCapsuleConfig
from rcapsule.utils.reporter import Reporter, WarningKind

SESSION = {
    "r_version": "4.3.1",
    "otherPkgs": {
        "dplyr": {"Package": "dplyr", "Version": "1.1.2", "Repository": "CRAN"},
        "tool": {"Package": "tool", "Version": "0.1.0", "RemoteType": "github",
                 "RemoteUsername": "alice", "RemoteRepo": "tool", "RemoteRef": "v2"},
    },
    "loadedOnly": {},
}


class FakeExecutor(SessionExecutor):
    """Returns a fixed session and records what it was asked to do."""

    def __init__(self, session=None):
        self.session = session or SessionInfo.from_dict(SESSION)
        self.calls = []

    def run_script(self, path, save_file=None, save_objects=None):
        self.calls.append(("script", path, save_file, save_objects))
        return self.session

    def render_document(self, path, save_file=None, save_objects=None):
        self.calls.append(("document", path, save_file, save_objects))
        return self.session

    def run_expressions(self, expressions, save_file=None, save_objects=None):
        self.calls.append(("expressions", list(expressions), save_file, save_objects))
        return self.session

    def load_snapshot(self, path):
        self.calls.append(("snapshot", path, None, None))
        return self.session


@pytest.fixture
def config(tmp_path):
    return RCapsuleConfig(config_path=str(tmp_path / "missing.json"))


@pytest.fixture
def options():
    return DockerfileOptions(maintainer="alice", env={"generator": "rcapsule test"})


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    (root / "sub").mkdir(parents=True)
    (root / "sub" / "run.R").write_text("library(dplyr)\n", encoding="utf-8")
    return root


def _index(instructions, kind):
    return [i for i, instruction in enumerate(instructions) if isinstance(instruction, kind)]


# --- 1. classification ---
def test_absent_source(config, options):
    result = dockerfile(None, options, config=config)

    assert result.install == []
    assert result.workdir == Workdir("/payload/")
    assert result.image == From("rocker/r-ver", "latest")
    assert result.render() == (
        "FROM rocker/r-ver:latest\n"
        'LABEL maintainer="alice"\n'
        'ENV generator="rcapsule test"\n'
        "WORKDIR /payload/\n"
        'CMD ["R"]\n'
    )


def test_session_info_source(config, options):
    result = dockerfile(SessionInfo.from_dict(SESSION), options, config=config)

    assert result.image == From("rocker/r-ver", "4.3.1")
    assert Run.exec("install2.r", "dplyr") in result.install
    assert Run.exec("installGithub.r", "alice/tool@v2") in result.install


def test_session_packages_source(config, options):
    session = SessionPackages(r_version="4.2.0", rows=[SessionPackageRow("tool", "0.1", "GitHub (alice/tool@v2)")])
    result = dockerfile(session, options, config=config)
    assert result.install == [Run.exec("installGithub.r", "alice/tool@v2")]


def test_frame_source_uses_default_image(config, options):
    frame = PackageFrame.from_records([{"name": "dplyr", "version": "1.1.2", "source": "CRAN"}])
    result = dockerfile(frame, options, config=config)
    assert result.image == From("rocker/r-ver", "latest")
    assert result.install == [Run.exec("install2.r", "dplyr")]


def test_description_record_source(config, options):
    description = ProjectDescription(package="myproject", imports=["pkgA", "pkgB"], r_version="4.1.0")
    result = dockerfile(description, options, config=config)

    assert result.image == From("rocker/r-ver", "4.1.0")
    assert result.install == [Run.exec("install2.r", "pkgA", "pkgB")]


def test_description_file_source(tmp_path, config, options):
    path = tmp_path / "DESCRIPTION"
    path.write_text("Package: myproject\nVersion: 0.1.0\nImports: pkgA, pkgB\n", encoding="utf-8")
    result = dockerfile(str(path), options, config=config)
    assert result.install == [Run.exec("install2.r", "pkgA", "pkgB")]


def test_expression_source(config, options, executor):
    result = dockerfile(SessionExpression(["library(dplyr)"]), options, config=config, executor=executor)
    assert executor.calls[0][:2] == ("expressions", ["library(dplyr)"])
    assert Run.exec("install2.r", "dplyr") in result.install


def test_script_file_source(project, config, options, executor):
    script = project / "sub" / "run.R"
    options.copy = "script"
    result = dockerfile(str(script), options, config=config, executor=executor, context=project)

    assert executor.calls[0][0] == "script"
    assert result.copy == [Copy("sub/run.R", "sub/run.R")]


def test_directory_source(project, config, options, executor):
    (project / "report.Rmd").write_text("---\ntitle: x\n---\n", encoding="utf-8")
    reporter = Reporter()
    dockerfile(project, options, config=config, executor=executor, reporter=reporter)

    assert executor.calls[0][0] == "document"
    assert executor.calls[0][1].name == "report.Rmd"
    assert len(reporter.warnings_of(WarningKind.IGNORED_SCRIPTS)) == 1


def test_snapshot_file_source(tmp_path, config, options, executor):
    snapshot = tmp_path / "session.RData"
    snapshot.write_bytes(b"RDX3\n")
    dockerfile(str(snapshot), options, config=config, executor=executor)
    assert executor.calls[0][0] == "snapshot"


def test_empty_directory(tmp_path, config, options, executor):
    with pytest.raises(NoPackageableFileFoundError):
        dockerfile(str(tmp_path), options, config=config, executor=executor)


@pytest.mark.parametrize("source", [42, {"dplyr": "1.0"}, "/does/not/exist.R"])
def test_unsupported_input(config, options, source):
    with pytest.raises(UnsupportedInputKindError):
        dockerfile(source, options, config=config)


def test_file_without_executor(project, config, options):
    with pytest.raises(MissingCollaboratorError):
        dockerfile(str(project / "sub" / "run.R"), options, config=config)


# --- 2. assembly ---
def test_instruction_order(project, config, executor):
    (project / "data.csv").write_text("a\n", encoding="utf-8")
    options = DockerfileOptions(
        maintainer="alice",
        copy=["sub/run.R", "data.csv"],
        save_image=True,
        entrypoint=Entrypoint.of(["Rscript"]),
        cmd=Cmd.of(["sub/run.R"]),
    )
    result = dockerfile(str(project / "sub" / "run.R"), options, config=config,
                        executor=executor, context=project)
    instructions = result.instructions()

    workdir = _index(instructions, Workdir)[0]
    copies = _index(instructions, Copy)
    runs = _index(instructions, Run)
    assert runs and copies
    assert max(runs) < workdir < min(copies)
    assert instructions[copies[-1]] == Copy(".RData", ".RData")
    assert isinstance(instructions[-2], Entrypoint)
    assert isinstance(instructions[-1], Cmd)

    lines = result.render().splitlines()
    assert lines[0] == "FROM rocker/r-ver:4.3.1"
    assert lines[1] == 'LABEL maintainer="alice"'
    assert lines[-1] == 'CMD ["sub/run.R"]'


def test_idempotent(project, config, executor):
    options = DockerfileOptions(maintainer="alice", copy="script_dir", cmd=cmd_rscript("sub/run.R"))
    first = dockerfile(str(project), options, config=config, executor=executor, context=project).render()
    second = dockerfile(str(project), options, config=config, executor=executor, context=project).render()
    assert first == second
    assert 'COPY ["sub", "sub"]' in first
    assert 'CMD ["R", "--vanilla", "-f", "sub/run.R"]' in first


def test_no_workdir_and_no_maintainer(config):
    options = DockerfileOptions(maintainer=None, env={}, container_workdir=None)
    assert dockerfile(None, options, config=config).render() == "FROM rocker/r-ver:latest\nCMD [\"R\"]\n"


def test_copy_script_without_file(config, options):
    options.copy = "script"
    with pytest.raises(NoTargetFileError):
        dockerfile(SessionInfo.from_dict(SESSION), options, config=config)


@pytest.mark.parametrize("changes", [
    {"container_workdir": "/payload"},
    {"copy": 42},
    {"cmd": 5},
    {"entrypoint": "Rscript"},
    {"save_image": "yes"},
])
def test_invalid_options(config, changes):
    options = DockerfileOptions(**changes)
    with pytest.raises(InvalidOptionError):
        dockerfile(None, options, config=config)


# --- 3. image selection ---
def test_explicit_image_wins(config):
    options = DockerfileOptions(image="rocker/geospatial:4.2.2")
    result = dockerfile(SessionInfo.from_dict(SESSION), options, config=config)
    assert result.image == From("rocker/geospatial", "4.2.2")


def test_unsupported_image_warns(config):
    reporter = Reporter()
    dockerfile(None, DockerfileOptions(image="ubuntu:22.04"), config=config, reporter=reporter)
    assert len(reporter.warnings_of(WarningKind.UNSUPPORTED_BASE_IMAGE)) == 1


def test_default_image_from_config(tmp_path):
    config = RCapsuleConfig(config_path=str(tmp_path / "none.json"), overrides={"default_image": "rocker/r-ver:4.0.0"})
    assert dockerfile(None, config=config).image == From("rocker/r-ver", "4.0.0")


# --- 4. save state ---
def test_save_image_for_executed_script(project, config, executor):
    options = DockerfileOptions(save_image=SaveImage(objects=("model",), filename="state.RData"))
    result = dockerfile(str(project / "sub" / "run.R"), options, config=config,
                        executor=executor, context=project)

    _, _, save_file, save_objects = executor.calls[0]
    assert save_file == str(project.resolve() / "state.RData")
    assert save_objects == ["model"]
    assert result.save_image == Copy("state.RData", "state.RData")


def test_save_image_without_execution(config):
    reporter = Reporter()
    result = dockerfile(SessionInfo.from_dict(SESSION), DockerfileOptions(save_image=True),
                        config=config, reporter=reporter)
    assert result.save_image == Copy(".RData", ".RData")


# --- 5. edge inputs ---
def test_github_row_without_reference_is_reported(config, options):
    reporter = Reporter()
    frame = PackageFrame.from_records([{"name": "tool", "version": None, "source": "GitHub"}])
    result = dockerfile(frame, options, config=config, reporter=reporter)

    assert result.install == []
    assert len(reporter.warnings_of(WarningKind.UNRESOLVABLE_PROVENANCE)) == 1


def test_copy_accepts_path_objects(project, config):
    (project / "data").mkdir()
    options = DockerfileOptions(maintainer=None, env={}, copy=Path("data"))
    result = dockerfile(None, options, config=config, context=project)
    assert result.copy == [Copy("data", "data")]


def test_empty_string_source(config, options):
    with pytest.raises(UnsupportedInputKindError):
        dockerfile("", options, config=config)


def test_renv_lockfile_source(tmp_path, config, options):
    lock = {
        "R": {"Version": "4.2.3"},
        "Packages": {
            "dplyr": {"Package": "dplyr", "Version": "1.1.2", "Source": "Repository", "Repository": "CRAN"},
            "tool": {"Package": "tool", "Source": "GitHub", "RemoteUsername": "alice", "RemoteRef": "v2"},
        },
    }
    path = tmp_path / "renv.lock"
    path.write_text(json.dumps(lock), encoding="utf-8")

    result = dockerfile(str(path), options, config=config)

    assert result.image == From("rocker/r-ver", "4.2.3")
    assert result.install == [
        Run.exec("install2.r", "dplyr"),
        Run.exec("installGithub.r", "alice/tool@v2"),
    ]


@patch("urllib.request.urlopen")
def test_description_minimum_r_version_uses_tag_at_or_above(mock_urlopen, tmp_path, config, options):
    tags = {"results": [{"name": "3.2.5"}, {"name": "3.3.0"}, {"name": "3.3.1"}]}
    mock_response = MagicMock()
    mock_response.read.return_value = json.dumps(tags).encode("utf-8")
    mock_response.__enter__.return_value = mock_response
    mock_urlopen.return_value = mock_response

    path = tmp_path / "DESCRIPTION"
    path.write_text("Package: old\nVersion: 0.1\nDepends: R (>= 3.2.6)\nImports: pkgA\n", encoding="utf-8")
    result = dockerfile(str(path), options, config=config, registry=DockerHubRegistry())

    assert result.image == From("rocker/r-ver", "3.3.0")
