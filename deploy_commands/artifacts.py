"""
artifacts.py
============
Deployment artifact handling for edge functions: fetching the zip from an
http(s) or file URI, and injecting environment variables into one of its
entries as generated source lines (Lambda@Edge has no live environment).
"""

import io
import json
import os
import zipfile
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from deploy_commands.errors import (
    ArtifactFetchError,
    DeployError,
    InjectionTargetNotFoundError,
    UnsupportedSchemeError,
)

FETCH_TIMEOUT_SECONDS = 60

INJECTION_HEADER = (
    "// --- Environment variables injected by aws-deploy-toolkit "
    "--------------------------------v"
)
INJECTION_FOOTER = (
    "// ^-------------------------------- "
    "Environment variables injected by aws-deploy-toolkit ---"
)


# ── Acquisition ───────────────────────────────────────────────────────────────


def fetch_artifact(uri: str) -> bytes:
    """Resolve artifact bytes from an http(s) or file URI. Single attempt."""
    scheme = urlparse(uri).scheme.lower()
    if scheme in ("http", "https"):
        return _fetch_http(uri)
    if scheme == "file":
        return _read_file(uri)
    raise UnsupportedSchemeError(uri)


def _fetch_http(uri: str) -> bytes:
    try:
        resp = requests.get(uri, timeout=FETCH_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise ArtifactFetchError(uri, str(e)) from e
    return resp.content


def _read_file(uri: str) -> bytes:
    parsed = urlparse(uri)
    if parsed.netloc not in ("", "localhost"):
        raise ArtifactFetchError(uri, f"remote file host '{parsed.netloc}' is not supported")
    path = Path(url2pathname(parsed.path))
    try:
        return path.read_bytes()
    except OSError as e:
        raise ArtifactFetchError(uri, str(e)) from e


# ── Injection ─────────────────────────────────────────────────────────────────


def _js_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def build_injection_block(env: dict[str, str]) -> list[str]:
    lines = [INJECTION_HEADER]
    for name, value in env.items():
        lines.append(f"process.env[{_js_string(name)}] = {_js_string(value)};")
    lines.append(INJECTION_FOOTER)
    lines.append("")
    return lines


def inject_environment(buffer: bytes, entry: str, env: dict[str, str]) -> bytes:
    """
    Return a copy of the zip in ``buffer`` whose ``entry`` is prefixed with
    the generated environment block. All other entries are copied as-is.
    """
    out = io.BytesIO()
    try:
        src = zipfile.ZipFile(io.BytesIO(buffer))
    except zipfile.BadZipFile as e:
        raise DeployError(f"Artifact is not a valid zip archive: {e}") from e
    with src:
        if entry not in src.namelist():
            raise InjectionTargetNotFoundError(entry)
        with zipfile.ZipFile(out, "w") as dst:
            dst.comment = src.comment
            for info in src.infolist():
                data = src.read(info)
                if info.filename == entry:
                    try:
                        content = data.decode("utf-8")
                    except UnicodeDecodeError as e:
                        raise DeployError(
                            f"Cannot inject environment variables into '{entry}': "
                            f"entry is not UTF-8 text ({e.reason} at byte {e.start})",
                            {"entry": entry},
                        ) from e
                    data = os.linesep.join([*build_injection_block(env), content]).encode("utf-8")
                dst.writestr(info, data)
    return out.getvalue()
