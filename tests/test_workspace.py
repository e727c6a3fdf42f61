import pytest

from rcapsule.core.detector.workspace import FileKind, file_kind, find_packageable_file
from rcapsule.core.errors import NoPackageableFileFoundError
from rcapsule.utils.reporter import Reporter, WarningKind


@pytest.fixture
def reporter():
    return Reporter()


def _touch(path, text="x <- 1\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_document_wins_over_scripts(tmp_path, reporter):
    _touch(tmp_path / "a.R")
    _touch(tmp_path / "b.R")
    doc = _touch(tmp_path / "doc.Rmd")

    assert find_packageable_file(tmp_path, reporter) == doc
    assert len(reporter.warnings) == 1
    assert reporter.warnings[0].kind is WarningKind.IGNORED_SCRIPTS


def test_single_script_no_warning(tmp_path, reporter):
    script = _touch(tmp_path / "analysis.R")
    assert find_packageable_file(tmp_path, reporter) == script
    assert reporter.warnings == []


def test_multiple_scripts_lexicographic_choice(tmp_path, reporter):
    _touch(tmp_path / "z.R")
    first = _touch(tmp_path / "sub" / "a.r")
    _touch(tmp_path / "m.R")

    # "m.R" < "sub/a.r" < "z.R"
    assert find_packageable_file(tmp_path, reporter) == tmp_path / "m.R"
    assert first.exists()
    warnings = reporter.warnings_of(WarningKind.MULTIPLE_CANDIDATES)
    assert len(warnings) == 1
    assert "3" in warnings[0].message


def test_multiple_documents(tmp_path, reporter):
    _touch(tmp_path / "report.Rmd")
    _touch(tmp_path / "appendix.RMD")
    assert find_packageable_file(tmp_path, reporter).name == "appendix.RMD"
    assert len(reporter.warnings_of(WarningKind.MULTIPLE_CANDIDATES)) == 1


def test_nothing_found(tmp_path, reporter):
    _touch(tmp_path / "notes.txt")
    with pytest.raises(NoPackageableFileFoundError):
        find_packageable_file(tmp_path, reporter)


def test_selection_is_repeatable(tmp_path):
    for name in ("c.R", "a.R", "b.R"):
        _touch(tmp_path / name)
    choices = {find_packageable_file(tmp_path, Reporter()) for _ in range(3)}
    assert choices == {tmp_path / "a.R"}


@pytest.mark.parametrize("name, kind", [
    ("run.R", FileKind.SCRIPT),
    ("run.r", FileKind.SCRIPT),
    ("doc.Rmd", FileKind.DOCUMENT),
    ("doc.rmd", FileKind.DOCUMENT),
    ("state.RData", FileKind.SNAPSHOT),
    ("state.rdata", FileKind.SNAPSHOT),
    ("analysis.txt", FileKind.SCRIPT),
])
def test_file_kind(name, kind, reporter):
    assert file_kind(name, reporter) is kind
