"""
aws_ecs_deploy.py
=================
Rolls an ECS service onto a new task-definition revision: the current
revision is cloned with a new image reference (and, optionally, a new
environment for the target container), registered, and the service is
pointed at it. Optionally blocks until the service reports steady state.

Usage:
    python main.py service-deploy --region eu-central-1 --cluster prod \\
        --service api --container api --image 1234.dkr.ecr.../api --image-tag 1.1
    python main.py service-deploy ... --container-env "LOG_LEVEL=info MODE=blue" --wait
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import boto3
import typer
from rich import box
from rich.console import Console
from rich.table import Table

from deploy_commands.errors import ContainerNotFoundError, ProviderError, provider_call
from deploy_commands.supervisor import OutputFormat, supervised
from deploy_commands.validation import (
    ServiceDeployOptions,
    parse_env_pairs,
    validate_service_options,
)

console = Console()

# Top-level fields carried over from the current revision.
TASK_DEFINITION_FIELDS = (
    "family",
    "taskRoleArn",
    "executionRoleArn",
    "networkMode",
    "volumes",
    "placementConstraints",
    "requiresCompatibilities",
    "cpu",
    "memory",
)


# ── Data models ───────────────────────────────────────────────────────────────


@dataclass
class ServiceDeployResult:
    cluster: str
    service: str
    container: str
    image: str
    previous_task_definition_arn: str
    task_definition_arn: str
    environment: dict[str, str] = field(default_factory=dict)
    waited: bool = False
    deployed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ── Task definition transform ─────────────────────────────────────────────────


def build_task_definition(
    task: dict[str, Any],
    container: str,
    image_ref: str,
    env: dict[str, str],
) -> dict[str, Any]:
    """
    Derive a register_task_definition request from a described revision.

    Only the container named ``container`` changes: its image becomes
    ``image_ref`` and, when ``env`` is non-empty, its environment is replaced.
    An empty ``env`` leaves the container's environment exactly as it was.
    """
    request = {k: task[k] for k in TASK_DEFINITION_FIELDS if task.get(k) is not None}

    definitions = []
    matched = False
    for definition in task.get("containerDefinitions", []):
        if definition.get("name") != container:
            definitions.append(definition)
            continue
        updated = {**definition, "image": image_ref}
        if env:
            updated["environment"] = [{"name": k, "value": v} for k, v in env.items()]
        definitions.append(updated)
        matched = True

    if not matched:
        raise ContainerNotFoundError(
            task.get("taskDefinitionArn", "?"),
            container,
            [d.get("name", "?") for d in task.get("containerDefinitions", [])],
        )

    request["containerDefinitions"] = definitions
    return request


# ── Pipeline ──────────────────────────────────────────────────────────────────


def deploy_service(options: ServiceDeployOptions) -> ServiceDeployResult:
    ecs = boto3.client(
        "ecs",
        region_name=options.region,
        aws_access_key_id=options.access_key,
        aws_secret_access_key=options.secret_key,
    )

    with provider_call("DescribeServices", options.service):
        described = ecs.describe_services(cluster=options.cluster, services=[options.service])
    services = described.get("services", [])
    if not services:
        reasons = ", ".join(f.get("reason", "?") for f in described.get("failures", []))
        raise ProviderError("DescribeServices", options.service, reasons or "service not found")
    current_arn = services[0]["taskDefinition"]

    with provider_call("DescribeTaskDefinition", current_arn):
        task = ecs.describe_task_definition(taskDefinition=current_arn)["taskDefinition"]
    console.print(f"Current task definition: [cyan]{task['taskDefinitionArn']}[/cyan]")

    request = build_task_definition(
        task, options.container, options.image_ref, options.container_env
    )

    with provider_call("RegisterTaskDefinition", request["family"]):
        registered = ecs.register_task_definition(**request)["taskDefinition"]
    new_arn = registered["taskDefinitionArn"]
    console.print(f"New task definition: [cyan]{new_arn}[/cyan]")
    if options.container_env:
        console.print(f"New task definition environment: {json.dumps(options.container_env)}")

    with provider_call("UpdateService", options.service):
        ecs.update_service(
            cluster=options.cluster,
            service=options.service,
            taskDefinition=new_arn,
        )

    if options.wait:
        console.print("Waiting for service stability...")
        with provider_call("services_stable", options.service):
            ecs.get_waiter("services_stable").wait(
                cluster=options.cluster, services=[options.service]
            )

    return ServiceDeployResult(
        cluster=options.cluster,
        service=options.service,
        container=options.container,
        image=options.image_ref,
        previous_task_definition_arn=current_arn,
        task_definition_arn=new_arn,
        environment=dict(options.container_env),
        waited=options.wait,
    )


# ── Output ────────────────────────────────────────────────────────────────────


def print_result(result: ServiceDeployResult) -> None:
    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="bold blue")
    table.add_column("Value")
    table.add_row("Service", f"{result.cluster}/{result.service}")
    table.add_row("Container", result.container)
    table.add_row("Image", result.image)
    table.add_row("From", result.previous_task_definition_arn)
    table.add_row("To", result.task_definition_arn)
    table.add_row("Stable", "yes" if result.waited else "[dim]not awaited[/dim]")
    console.print(table)
    console.print("[bold green]DONE![/bold green]")


# ── CLI command ───────────────────────────────────────────────────────────────


def run(
    access_key: str | None = typer.Option(None, "--access-key", envvar="AWS_ACCESS_KEY_ID"),
    secret_key: str | None = typer.Option(None, "--secret-key", envvar="AWS_SECRET_ACCESS_KEY"),
    region: str | None = typer.Option(None, "--region", "-r", envvar="AWS_DEFAULT_REGION"),
    cluster: str | None = typer.Option(None, "--cluster", help="ECS cluster name or ARN"),
    service: str | None = typer.Option(None, "--service", help="ECS service name"),
    container: str | None = typer.Option(None, "--container", help="Container to update"),
    image: str | None = typer.Option(None, "--image", help="Image repository, without tag"),
    image_tag: str | None = typer.Option(None, "--image-tag", help="Image tag to deploy"),
    container_env: list[str] | None = typer.Option(
        None,
        "--container-env",
        help="KEY=value pairs replacing the container environment (repeatable)",
    ),
    wait: bool = typer.Option(False, "--wait/--no-wait", help="Block until the service is stable"),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format: table | json"
    ),
) -> None:
    """
    Deploy a new image to an ECS service (Fargate) via a new task definition.

    All options except --container-env, --wait and --output are required.
    """
    with supervised("service-deploy"):
        env, env_problems = parse_env_pairs(container_env, "container_env")
        raw = {
            "access_key": access_key,
            "secret_key": secret_key,
            "region": region,
            "cluster": cluster,
            "service": service,
            "container": container,
            "image": image,
            "image_tag": image_tag,
            "container_env": env,
            "wait": wait,
        }
        options = validate_service_options(
            {k: v for k, v in raw.items() if v is not None}, env_problems
        )

        console.print(
            f"\n[bold blue]🚀 Deploying service[/bold blue] "
            f"[cyan]{options.cluster}/{options.service}[/cyan] → {options.image_ref}\n"
        )
        result = deploy_service(options)

    if output == OutputFormat.JSON:
        typer.echo(json.dumps(asdict(result), indent=2, default=str))
    else:
        print_result(result)
