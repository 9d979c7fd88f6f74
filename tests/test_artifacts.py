"""
test_artifacts.py
=================
Unit tests for artifact fetching and environment injection.
HTTP is mocked with unittest.mock; file URIs use pytest's tmp_path.
"""

import io
import os
import zipfile
from unittest.mock import MagicMock, patch

import pytest
import requests

from deploy_commands.artifacts import (
    INJECTION_FOOTER,
    INJECTION_HEADER,
    build_injection_block,
    fetch_artifact,
    inject_environment,
)
from deploy_commands.errors import (
    ArtifactFetchError,
    DeployError,
    InjectionTargetNotFoundError,
    UnsupportedSchemeError,
)

HANDLER_SOURCE = "export const handler = async event => event.Records[0].cf.request;\n"


def make_zip(entries: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def read_zip(buffer: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(buffer)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


# ── fetch_artifact ────────────────────────────────────────────────────────────


def test_fetch_file_uri(tmp_path):
    path = tmp_path / "fn.zip"
    path.write_bytes(b"PK\x03\x04zipdata")
    assert fetch_artifact(path.as_uri()) == b"PK\x03\x04zipdata"


def test_fetch_missing_file_fails(tmp_path):
    with pytest.raises(ArtifactFetchError):
        fetch_artifact((tmp_path / "nope.zip").as_uri())


@patch("deploy_commands.artifacts.requests.get")
def test_fetch_https_returns_body(mock_get):
    resp = MagicMock()
    resp.content = b"zipbytes"
    mock_get.return_value = resp

    assert fetch_artifact("https://artifacts.example.com/fn.zip") == b"zipbytes"
    assert mock_get.call_args.args[0] == "https://artifacts.example.com/fn.zip"
    resp.raise_for_status.assert_called_once()


@patch("deploy_commands.artifacts.requests.get")
def test_fetch_http_error_is_fatal(mock_get):
    resp = MagicMock()
    resp.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
    mock_get.return_value = resp

    with pytest.raises(ArtifactFetchError) as exc_info:
        fetch_artifact("http://artifacts.example.com/missing.zip")
    assert "404" in str(exc_info.value)
    assert mock_get.call_count == 1


@pytest.mark.parametrize("uri", ["s3://bucket/fn.zip", "ftp://host/fn.zip", "/tmp/fn.zip"])
def test_fetch_unsupported_scheme(uri):
    with pytest.raises(UnsupportedSchemeError):
        fetch_artifact(uri)


# ── Injection ─────────────────────────────────────────────────────────────────


def test_injection_block_format():
    lines = build_injection_block({"A": "1", "B": 'x"y'})
    assert lines == [
        INJECTION_HEADER,
        'process.env["A"] = "1";',
        'process.env["B"] = "x\\"y";',
        INJECTION_FOOTER,
        "",
    ]


def test_injection_block_escapes_names_and_backslashes():
    lines = build_injection_block({'we"ird': "C:\\path"})
    assert lines[1] == 'process.env["we\\"ird"] = "C:\\\\path";'


def test_inject_environment_prefixes_entry_and_keeps_others():
    other = os.urandom(256)
    original = make_zip({"index.js": HANDLER_SOURCE.encode(), "lib/util.bin": other})

    rewritten = read_zip(inject_environment(original, "index.js", {"A": "1", "B": 'x"y'}))

    expected = os.linesep.join([*build_injection_block({"A": "1", "B": 'x"y'}), HANDLER_SOURCE])
    content = rewritten["index.js"].decode("utf-8")
    assert content == expected
    assert content.startswith(INJECTION_HEADER)
    assert content.endswith(os.linesep + HANDLER_SOURCE)
    assert content.index('"A"') < content.index('"B"')
    assert rewritten["lib/util.bin"] == other


def test_inject_environment_with_no_variables_still_fences():
    original = make_zip({"index.js": HANDLER_SOURCE.encode()})
    content = read_zip(inject_environment(original, "index.js", {}))["index.js"].decode()
    assert content == os.linesep.join([INJECTION_HEADER, INJECTION_FOOTER, "", HANDLER_SOURCE])


def test_inject_environment_missing_entry():
    original = make_zip({"index.js": HANDLER_SOURCE.encode()})
    with pytest.raises(InjectionTargetNotFoundError):
        inject_environment(original, "handler.js", {"A": "1"})


def test_inject_environment_rejects_non_zip():
    with pytest.raises(DeployError):
        inject_environment(b"not a zip", "index.js", {"A": "1"})


def test_inject_environment_rejects_non_utf8_entry():
    original = make_zip({"index.js": b"\xff\xfe latin \xe9"})
    with pytest.raises(DeployError) as exc_info:
        inject_environment(original, "index.js", {"A": "1"})
    assert exc_info.value.details == {"entry": "index.js"}
    assert "not UTF-8" in exc_info.value.message
