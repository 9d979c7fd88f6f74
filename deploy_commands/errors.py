"""
errors.py
=========
Exception hierarchy shared by both deployment pipelines, plus the translation
of botocore failures into it. Every error is fatal; nothing here retries.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError, WaiterError


class DeployError(Exception):
    """Base exception for aws-deploy-toolkit."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DeployError):
    """One or more command options are missing, mistyped or unknown."""

    def __init__(self, command: str, violations: list[str]):
        super().__init__(
            f"Invalid options for '{command}': " + "; ".join(violations),
            {"command": command, "violations": violations},
        )
        self.violations = violations


class UnsupportedSchemeError(DeployError):
    def __init__(self, uri: str):
        super().__init__(
            f"Artifact URI must use http(s) or file scheme: {uri}",
            {"uri": uri},
        )


class ArtifactFetchError(DeployError):
    def __init__(self, uri: str, reason: str):
        super().__init__(f"Could not fetch artifact {uri}: {reason}", {"uri": uri})


class InjectionTargetNotFoundError(DeployError):
    def __init__(self, entry: str):
        super().__init__(
            f"Archive has no entry '{entry}' to inject environment variables into",
            {"entry": entry},
        )


class ContainerNotFoundError(DeployError):
    def __init__(self, task_definition_arn: str, container: str, available: list[str]):
        super().__init__(
            f"Task definition {task_definition_arn} has no container named '{container}' "
            f"(containers: {', '.join(available) or 'none'})",
            {"task_definition_arn": task_definition_arn, "container": container},
        )


class ProviderError(DeployError):
    """An AWS control-plane call was rejected."""

    def __init__(self, operation: str, resource: str, reason: str):
        super().__init__(
            f"{operation} failed for '{resource}': {reason}",
            {"operation": operation, "resource": resource},
        )
        self.operation = operation
        self.resource = resource


class ConvergenceTimeoutError(DeployError):
    """A waiter gave up: max attempts exceeded or a terminal failure state."""

    def __init__(self, waiter: str, resource: str, reason: str):
        super().__init__(
            f"'{resource}' did not converge ({waiter}): {reason}",
            {"waiter": waiter, "resource": resource},
        )


class NoMatchingAssociationError(DeployError):
    def __init__(self, distribution_id: str, function_arn: str):
        super().__init__(
            f"CloudFront distribution '{distribution_id}' has no function association "
            f"matching {function_arn}",
            {"distribution_id": distribution_id, "function_arn": function_arn},
        )


class StaleUpdateError(DeployError):
    def __init__(self, distribution_id: str, etag: str):
        super().__init__(
            f"CloudFront distribution '{distribution_id}' update was not applied, "
            f"the etag is still {etag}",
            {"distribution_id": distribution_id, "etag": etag},
        )


@contextmanager
def provider_call(operation: str, resource: str) -> Iterator[None]:
    """Translate botocore failures raised inside the block."""
    try:
        yield
    except WaiterError as e:
        raise ConvergenceTimeoutError(operation, resource, e.kwargs.get("reason") or str(e)) from e
    except ClientError as e:
        raise ProviderError(operation, resource, e.response.get("Error", {}).get("Message", str(e))) from e
    except BotoCoreError as e:
        raise ProviderError(operation, resource, str(e)) from e
