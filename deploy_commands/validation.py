"""
validation.py
=============
Option schemas for both deploy commands. Options are validated as a whole
before any network call: no defaults, no coercion, unknown fields rejected,
and every violation is reported at once.
"""

import shlex
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from deploy_commands.errors import ValidationError

NonEmptyStr = Annotated[str, Field(min_length=1)]


# ── Schemas ───────────────────────────────────────────────────────────────────


class ServiceDeployOptions(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    access_key: NonEmptyStr
    secret_key: NonEmptyStr
    region: NonEmptyStr
    cluster: NonEmptyStr
    service: NonEmptyStr
    container: NonEmptyStr
    image: NonEmptyStr
    image_tag: NonEmptyStr
    container_env: dict[str, str]
    wait: bool

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.image_tag}"


class EdgeDeployOptions(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    access_key: NonEmptyStr
    secret_key: NonEmptyStr
    lambda_env: dict[str, str]
    lambda_env_inject: str  # "" means no injection
    function_name: NonEmptyStr
    handler: NonEmptyStr
    zip_file_uri: NonEmptyStr
    cf_distribution_id: NonEmptyStr
    wait: bool


# ── Validators ────────────────────────────────────────────────────────────────


def _violations(exc: PydanticValidationError) -> list[str]:
    out = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "<options>"
        out.append(f"{loc}: {err['msg']}")
    return out


def _validate(model, command: str, raw: dict[str, Any], problems: list[str] | None):
    violations = list(problems or [])
    try:
        options = model.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(command, violations + _violations(e)) from e
    if violations:
        raise ValidationError(command, violations)
    return options


def validate_service_options(
    raw: dict[str, Any], problems: list[str] | None = None
) -> ServiceDeployOptions:
    """Validate ``raw``; ``problems`` found while normalizing CLI input are reported with it."""
    return _validate(ServiceDeployOptions, "service-deploy", raw, problems)


def validate_edge_options(
    raw: dict[str, Any], problems: list[str] | None = None
) -> EdgeDeployOptions:
    return _validate(EdgeDeployOptions, "edge-deploy", raw, problems)


# ── CLI normalization ─────────────────────────────────────────────────────────


def parse_env_pairs(
    items: list[str] | None, option: str = "env"
) -> tuple[dict[str, str], list[str]]:
    """
    Turn repeatable ``KEY=value`` arguments into an ordered mapping.
    Each argument may hold several shell-quoted pairs, e.g. ``A=1 B="x y"``.
    Later keys win. Malformed tokens are returned as problems, not raised,
    so they can be reported alongside the schema violations.
    """
    pairs: dict[str, str] = {}
    problems = []
    for item in items or []:
        try:
            tokens = shlex.split(item)
        except ValueError as e:
            problems.append(f"{option}: cannot parse {item!r} ({e})")
            continue
        for token in tokens:
            name, sep, value = token.partition("=")
            if not sep or not name:
                problems.append(f"{option}: expected KEY=value, got {token!r}")
                continue
            pairs[name] = value
    return pairs, problems
