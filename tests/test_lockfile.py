import json

import pytest

from rcapsule.core.detector.extractors import extract_from_lockfile
from rcapsule.core.detector.lockfile import load_lockfile, record_from_lock_entry
from rcapsule.core.detector.types import PackageDescriptor, Provenance
from rcapsule.core.errors import InvalidLockfileError
from rcapsule.utils.reporter import Reporter, WarningKind

LOCK = {
    "R": {
        "Version": "4.3.1",
        "Repositories": [{"Name": "CRAN", "URL": "https://cloud.r-project.org"}],
    },
    "Packages": {
        "dplyr": {"Package": "dplyr", "Version": "1.1.2", "Source": "Repository", "Repository": "CRAN"},
        "glue": {"Package": "glue", "Version": "1.6.2", "Source": "Repository", "Repository": "RSPM"},
        "tool": {
            "Package": "tool", "Version": "0.1.0", "Source": "GitHub",
            "RemoteType": "github", "RemoteUsername": "alice", "RemoteRepo": "tool", "RemoteRef": "v2",
        },
        "limma": {"Package": "limma", "Version": "3.56.2", "Source": "Bioconductor"},
        "mine": {"Package": "mine", "Version": "0.0.1", "Source": "Local"},
        "rcapsule": {"Package": "rcapsule", "Version": "0.1.0", "Source": "Repository", "Repository": "CRAN"},
    },
}


@pytest.fixture
def lockfile(tmp_path):
    path = tmp_path / "renv.lock"
    path.write_text(json.dumps(LOCK, indent=2), encoding="utf-8")
    return path


def test_load_lockfile(lockfile):
    lock = load_lockfile(lockfile)

    assert lock.r_version == "4.3.1"
    assert set(lock.packages) == set(LOCK["Packages"])
    assert lock.packages["glue"].repository == "CRAN"
    assert lock.packages["limma"].bioc_views == ""


def test_extract_from_lockfile(lockfile):
    reporter = Reporter()
    result = extract_from_lockfile(load_lockfile(lockfile), reporter)

    assert result.r_version == "4.3.1"
    assert sorted(result.manifest, key=lambda p: p.name) == [
        PackageDescriptor("dplyr", "1.1.2", Provenance.CRAN),
        PackageDescriptor("glue", "1.6.2", Provenance.CRAN),
        PackageDescriptor("limma", "3.56.2", Provenance.BIOCONDUCTOR),
        PackageDescriptor("tool", "alice/tool@v2", Provenance.GITHUB),
    ]
    warnings = reporter.warnings_of(WarningKind.UNRESOLVABLE_PROVENANCE)
    assert len(warnings) == 1
    assert "mine" in warnings[0].message


def test_extract_from_lockfile_keeps_self_on_request(lockfile):
    result = extract_from_lockfile(load_lockfile(lockfile), Reporter(), include_self_package=True)
    assert "rcapsule" in {p.name for p in result.manifest}


def test_github_entry_without_remote_type():
    record = record_from_lock_entry("tool", {"Source": "GitHub", "RemoteUsername": "alice", "RemoteRef": "main"})
    assert record.package == "tool"
    assert record.remote_type == "github"


@pytest.mark.parametrize("content", ["{ not json", "[]", '{"R": {"Version": "4.3.1"}}', '{"Packages": {"a": 1}}'])
def test_invalid_lockfile(tmp_path, content):
    path = tmp_path / "renv.lock"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(InvalidLockfileError):
        load_lockfile(path)
