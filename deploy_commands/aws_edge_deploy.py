"""
aws_edge_deploy.py
==================
Deploys a Lambda@Edge function used by a CloudFront distribution:
uploads new code (optionally with environment variables injected into the
source, since Lambda@Edge rejects a live environment), updates the handler,
publishes a version and rewires every matching function association in the
distribution's cache behaviors to that version.

Usage:
    python main.py edge-deploy --function-name my-fn --handler index.handler \\
        --zip-file-uri https://artifacts.example.com/fn.zip --cf-distribution-id EABC123
    python main.py edge-deploy ... --lambda-env "API_URL=https://api" \\
        --lambda-env-inject index.js --wait
"""

import copy
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import boto3
import typer
from rich import box
from rich.console import Console
from rich.table import Table

from deploy_commands.artifacts import fetch_artifact, inject_environment
from deploy_commands.errors import (
    NoMatchingAssociationError,
    StaleUpdateError,
    provider_call,
)
from deploy_commands.supervisor import OutputFormat, supervised
from deploy_commands.validation import EdgeDeployOptions, parse_env_pairs, validate_edge_options

console = Console()

# Lambda@Edge functions and CloudFront are managed from us-east-1 only.
REGION = "us-east-1"

DEFAULT_BEHAVIOR = "(default)"


# ── Data models ───────────────────────────────────────────────────────────────


@dataclass
class AssociationChange:
    cache_behavior: str
    event_type: str
    from_arn: str
    to_arn: str


@dataclass
class EdgeDeployResult:
    function_name: str
    function_arn: str
    version: str
    version_arn: str
    distribution_id: str
    old_etag: str
    new_etag: str
    injected_into: str | None = None
    changes: list[AssociationChange] = field(default_factory=list)
    waited: bool = False
    deployed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ── Distribution rewrite ──────────────────────────────────────────────────────


def rewrite_associations(
    distribution_config: dict[str, Any],
    function_arn: str,
    version_arn: str,
) -> tuple[dict[str, Any], list[AssociationChange]]:
    """
    Return a deep copy of ``distribution_config`` in which every edge function
    association whose ARN starts with ``function_arn`` points at ``version_arn``.
    The input is not modified.
    """
    config = copy.deepcopy(distribution_config)
    behaviors = [(DEFAULT_BEHAVIOR, config.get("DefaultCacheBehavior", {}))]
    behaviors += [
        (b.get("PathPattern", "?"), b)
        for b in config.get("CacheBehaviors", {}).get("Items", [])
    ]

    changes: list[AssociationChange] = []
    for name, behavior in behaviors:
        for association in behavior.get("LambdaFunctionAssociations", {}).get("Items", []):
            current = association.get("LambdaFunctionARN", "")
            if current.startswith(function_arn):
                association["LambdaFunctionARN"] = version_arn
                changes.append(
                    AssociationChange(name, association.get("EventType", "?"), current, version_arn)
                )
    return config, changes


# ── Pipeline ──────────────────────────────────────────────────────────────────


def _client(service: str, options: EdgeDeployOptions):
    return boto3.client(
        service,
        region_name=REGION,
        aws_access_key_id=options.access_key,
        aws_secret_access_key=options.secret_key,
    )


def _wait_function_updated(lam, function_name: str) -> None:
    console.print(f"Waiting for Lambda function '{function_name}' update to be completed")
    with provider_call("function_updated", function_name):
        lam.get_waiter("function_updated").wait(FunctionName=function_name)


def deploy_edge(options: EdgeDeployOptions) -> EdgeDeployResult:
    lam = _client("lambda", options)
    cf = _client("cloudfront", options)
    fn = options.function_name
    dist_id = options.cf_distribution_id

    console.print(f"Fetching deployment artifact [cyan]{options.zip_file_uri}[/cyan]")
    buffer = fetch_artifact(options.zip_file_uri)

    live_env = dict(options.lambda_env)
    if options.lambda_env_inject:
        console.print(f"Injecting environment variables into '{options.lambda_env_inject}'")
        buffer = inject_environment(buffer, options.lambda_env_inject, options.lambda_env)
        live_env = {}

    console.print(f"Updating code for Lambda function '{fn}'")
    with provider_call("UpdateFunctionCode", fn):
        lam.update_function_code(FunctionName=fn, ZipFile=buffer)
    _wait_function_updated(lam, fn)

    console.print(f"Updating configuration for Lambda function '{fn}'")
    with provider_call("UpdateFunctionConfiguration", fn):
        updated = lam.update_function_configuration(
            FunctionName=fn,
            Handler=options.handler,
            Environment={"Variables": live_env},
        )
    function_arn = updated["FunctionArn"]
    _wait_function_updated(lam, fn)

    console.print(f"Publishing Lambda function '{fn}'")
    with provider_call("PublishVersion", fn):
        published = lam.publish_version(FunctionName=fn)
    _wait_function_updated(lam, fn)
    version_arn = published["FunctionArn"]
    console.print(f"Successfully published Lambda function '{fn}'")
    console.print(f"  * Function ARN: {version_arn}")
    console.print(f"  * Version: {published['Version']}")

    console.print(f"Fetching configuration for CloudFront distribution '{dist_id}'")
    with provider_call("GetDistributionConfig", dist_id):
        current = cf.get_distribution_config(Id=dist_id)
    old_etag = current["ETag"]

    next_config, changes = rewrite_associations(
        current["DistributionConfig"], function_arn, version_arn
    )
    if not changes:
        raise NoMatchingAssociationError(dist_id, function_arn)
    for change in changes:
        console.print(f"Updating Lambda Function ARN ({change.cache_behavior}, {change.event_type})")
        console.print(f"  * From: {change.from_arn}")
        console.print(f"  * To: {change.to_arn}")

    console.print(f"Updating CloudFront distribution '{dist_id}'")
    with provider_call("UpdateDistribution", dist_id):
        response = cf.update_distribution(
            Id=dist_id, IfMatch=old_etag, DistributionConfig=next_config
        )
    new_etag = response.get("ETag")
    if new_etag == old_etag:
        raise StaleUpdateError(dist_id, old_etag)
    console.print(f"Successfully updated CloudFront distribution '{dist_id}':")
    console.print(f"  * Old etag: {old_etag}")
    console.print(f"  * New etag: {new_etag}")

    if options.wait:
        console.print("Waiting for distribution deployment...")
        with provider_call("distribution_deployed", dist_id):
            cf.get_waiter("distribution_deployed").wait(Id=dist_id)

    return EdgeDeployResult(
        function_name=fn,
        function_arn=function_arn,
        version=published["Version"],
        version_arn=version_arn,
        distribution_id=dist_id,
        old_etag=old_etag,
        new_etag=new_etag,
        injected_into=options.lambda_env_inject or None,
        changes=changes,
        waited=options.wait,
    )


# ── Output ────────────────────────────────────────────────────────────────────


def print_result(result: EdgeDeployResult) -> None:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold blue")
    table.add_column("Cache behavior", width=24)
    table.add_column("Event", width=18)
    table.add_column("Function version ARN")
    for change in result.changes:
        table.add_row(change.cache_behavior, change.event_type, change.to_arn)
    console.print(table)
    console.print(
        f"[bold]{result.function_name}[/bold] v{result.version} live on "
        f"[cyan]{result.distribution_id}[/cyan] · etag {result.old_etag} → {result.new_etag}"
    )
    console.print("[bold green]DONE![/bold green]")


# ── CLI command ───────────────────────────────────────────────────────────────


def run(
    access_key: str | None = typer.Option(None, "--access-key", envvar="AWS_ACCESS_KEY_ID"),
    secret_key: str | None = typer.Option(None, "--secret-key", envvar="AWS_SECRET_ACCESS_KEY"),
    lambda_env: list[str] | None = typer.Option(
        None, "--lambda-env", help="KEY=value pairs for the function (repeatable)"
    ),
    lambda_env_inject: str = typer.Option(
        "",
        "--lambda-env-inject",
        help="Zip entry to inject --lambda-env into as source code, e.g. index.js",
    ),
    function_name: str | None = typer.Option(None, "--function-name", help="Lambda function name"),
    handler: str | None = typer.Option(None, "--handler", help="Handler, e.g. index.handler"),
    zip_file_uri: str | None = typer.Option(
        None, "--zip-file-uri", help="http(s):// or file:// URI of the deployment zip"
    ),
    cf_distribution_id: str | None = typer.Option(
        None, "--cf-distribution-id", help="CloudFront distribution to rewire"
    ),
    wait: bool = typer.Option(
        False, "--wait/--no-wait", help="Block until the distribution is deployed"
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format: table | json"
    ),
) -> None:
    """
    Deploy a Lambda@Edge function and point its CloudFront distribution at the new version.
    """
    with supervised("edge-deploy"):
        env, env_problems = parse_env_pairs(lambda_env, "lambda_env")
        raw = {
            "access_key": access_key,
            "secret_key": secret_key,
            "lambda_env": env,
            "lambda_env_inject": lambda_env_inject,
            "function_name": function_name,
            "handler": handler,
            "zip_file_uri": zip_file_uri,
            "cf_distribution_id": cf_distribution_id,
            "wait": wait,
        }
        options = validate_edge_options(
            {k: v for k, v in raw.items() if v is not None}, env_problems
        )

        console.print(
            f"\n[bold blue]🚀 Deploying edge function[/bold blue] "
            f"[cyan]{options.function_name}[/cyan] → {options.cf_distribution_id}\n"
        )
        result = deploy_edge(options)

    if output == OutputFormat.JSON:
        typer.echo(json.dumps(asdict(result), indent=2, default=str))
    else:
        print_result(result)
