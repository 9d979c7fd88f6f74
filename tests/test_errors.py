"""
test_errors.py
==============
Unit tests for the botocore -> DeployError translation.
"""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, WaiterError

from deploy_commands.errors import (
    ConvergenceTimeoutError,
    DeployError,
    ProviderError,
    provider_call,
)


def test_client_error_becomes_provider_error():
    err = ClientError(
        {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}}, "UpdateService"
    )
    with pytest.raises(ProviderError) as exc_info:
        with provider_call("UpdateService", "api"):
            raise err
    assert exc_info.value.details == {"operation": "UpdateService", "resource": "api"}
    assert "Rate exceeded" in exc_info.value.message
    assert exc_info.value.__cause__ is err


def test_waiter_error_becomes_timeout():
    with pytest.raises(ConvergenceTimeoutError):
        with provider_call("distribution_deployed", "EABC123"):
            raise WaiterError(name="DistributionDeployed", reason="Max attempts", last_response={})


def test_transport_error_becomes_provider_error():
    with pytest.raises(ProviderError):
        with provider_call("GetDistributionConfig", "EABC123"):
            raise EndpointConnectionError(endpoint_url="https://cloudfront.amazonaws.com")


def test_other_errors_pass_through():
    with pytest.raises(KeyError):
        with provider_call("DescribeServices", "api"):
            raise KeyError("taskDefinition")


def test_all_errors_share_base():
    assert issubclass(ProviderError, DeployError)
    assert issubclass(ConvergenceTimeoutError, DeployError)


def test_waiter_failure_reports_reason_not_timeout():
    with pytest.raises(ConvergenceTimeoutError) as exc_info:
        with provider_call("services_stable", "api"):
            raise WaiterError(
                name="ServicesStable",
                reason="Waiter encountered a terminal failure state",
                last_response={},
            )
    message = exc_info.value.message
    assert "did not converge" in message
    assert "terminal failure state" in message
    assert "Timed out" not in message
