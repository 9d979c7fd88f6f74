#!/usr/bin/env python3
"""
aws-deploy-toolkit
==================
CLI for shipping builds to AWS: ECS services (new task definition revision +
service rollout) and Lambda@Edge functions behind CloudFront (new function
version + distribution rewiring).

Usage:
    python main.py service-deploy --region eu-central-1 --cluster prod --service api \\
        --container api --image my-repo/api --image-tag 1.1 --wait
    python main.py edge-deploy --function-name my-fn --handler index.handler \\
        --zip-file-uri file:///tmp/fn.zip --cf-distribution-id EABC123
"""

import typer

from deploy_commands.aws_ecs_deploy import run as service_deploy
from deploy_commands.aws_edge_deploy import run as edge_deploy

app = typer.Typer(
    name="aws-deploy-toolkit",
    help="Deploy ECS services and Lambda@Edge functions.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# name -> (command, help, legacy alias)
COMMANDS = {
    "service-deploy": (service_deploy, "Deploy an AWS ECS service using Fargate.", "ecs"),
    "edge-deploy": (
        edge_deploy,
        "Deploy an AWS Lambda@Edge function used by a CloudFront distribution.",
        "edge",
    ),
}

for name, (command, help_text, alias) in COMMANDS.items():
    app.command(name, help=help_text)(command)
    app.command(alias, help=help_text, hidden=True)(command)

if __name__ == "__main__":
    app()
