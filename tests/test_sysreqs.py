import json
import subprocess
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from rcapsule.core.container.sysreqs import SysreqsService
from rcapsule.core.errors import UnreachableRegistryError

PLATFORM = "linux-x86_64-debian-gcc"


@pytest.fixture
def service():
    return SysreqsService(base_url="https://sysreqs.example.org")


def _response(payload):
    mock_response = MagicMock()
    mock_response.read.return_value = json.dumps(payload).encode("utf-8")
    mock_response.__enter__.return_value = mock_response
    return mock_response


# --- 1. offline database ---
def test_offline_mapping(service):
    libs = service.query(["sf", "dplyr", "xml2"], PLATFORM, offline=True)
    assert "libgdal-dev" in libs
    assert "libxml2-dev" in libs
    assert "libsqlite3-dev" not in libs
    assert libs == sorted(set(libs))


def test_offline_soft_dependencies(service):
    libs = service.query(["sf"], PLATFORM, soft=True, offline=True)
    assert "libsqlite3-dev" in libs


def test_offline_custom_mapping(tmp_path):
    mapping = tmp_path / "sysreqs.json"
    mapping.write_text(json.dumps({"mypkg": {"apt": ["libfoo-dev"], "soft": []}}), encoding="utf-8")
    service = SysreqsService(mapping_path=mapping)
    assert service.query(["mypkg", "unknown"], PLATFORM, offline=True) == ["libfoo-dev"]


# --- 2. online lookup ---
@patch("urllib.request.urlopen")
def test_online_lookup(mock_urlopen, service):
    mock_urlopen.return_value = _response([["libcurl4-openssl-dev"], None, "libssl-dev"])
    libs = service.query(["curl"], PLATFORM)

    assert libs == ["libcurl4-openssl-dev", "libssl-dev"]
    assert mock_urlopen.call_args[0][0] == f"https://sysreqs.example.org/pkg/curl/{PLATFORM}"


@patch("urllib.request.urlopen")
def test_online_lookup_cached(mock_urlopen, service):
    mock_urlopen.return_value = _response(["libxml2-dev"])
    service.query(["xml2"], PLATFORM)
    service.query(["xml2"], PLATFORM)
    assert mock_urlopen.call_count == 1


@patch("urllib.request.urlopen")
def test_services_do_not_share_lookups(mock_urlopen):
    mock_urlopen.side_effect = [_response([]), _response(["libxml2-dev"])]

    assert SysreqsService().query(["xml2"], PLATFORM) == []
    assert SysreqsService().query(["xml2"], PLATFORM) == ["libxml2-dev"]
    assert mock_urlopen.call_count == 2


@patch("urllib.request.urlopen")
def test_online_unknown_package(mock_urlopen, service):
    mock_urlopen.side_effect = urllib.error.HTTPError(
        "https://sysreqs.example.org/pkg/nope", 404, "Not Found", None, None,
    )
    assert service.query(["nope"], PLATFORM) == []


@patch("urllib.request.urlopen")
def test_online_unreachable(mock_urlopen, service):
    mock_urlopen.side_effect = urllib.error.URLError("timed out")
    with pytest.raises(UnreachableRegistryError) as excinfo:
        service.query(["sf"], PLATFORM)
    assert excinfo.value.url.startswith("https://sysreqs.example.org/pkg/sf/")


# --- 3. installed library versions ---
@patch("subprocess.run")
def test_library_versions(mock_run, service):
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=1, stdout="libssl-dev\t3.0.11-1~deb12u2\n", stderr="",
    )
    versions = service.library_versions(["libssl-dev", "libnotinstalled-dev"])

    assert versions == {"libssl-dev": "3.0.11-1~deb12u2"}
    assert mock_run.call_args[0][0][:2] == ["dpkg-query", "-W"]


@patch("subprocess.run", side_effect=FileNotFoundError("dpkg-query"))
def test_library_versions_without_dpkg(mock_run, service):
    assert service.library_versions(["libssl-dev"]) == {}
