# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for crdeploy.

Every option can also be supplied as a GitHub Actions input (INPUT_<NAME>),
so the same entry point runs locally and as a container action.
"""
import os
import logging
import click
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..MANAGERS.deployment import DeploymentOrchestrator
from ..MODELS.deploy_config import (
    DEFAULT_IMAGE_CHECK_INTERVAL,
    DEFAULT_IMAGE_CHECK_TIMEOUT,
    DEFAULT_TRIGGER_LABEL,
    DeployConfig,
)
from ..MODELS.errors import (
    ConfigError,
    CredentialError,
    DeployError,
    DeploymentFailedError,
    ReadinessTimeoutError,
    RegistryError,
    RegistryTimeoutError,
    RemoteApiError,
)
from ..MODELS.service_spec import AuthorizationMode, ServiceSpec
from ..PARSERS import env_overrides
from ..PLATFORM.service_document import build_service_document
from ..REGISTRY.image_reference import ImageReference

# Checked in order, most specific first
FAILURE_PHASES = [
    (ConfigError, "configuration"),
    (CredentialError, "credentials"),
    (RegistryTimeoutError, "image check"),
    (RegistryError, "image check"),
    (DeploymentFailedError, "rollout"),
    (ReadinessTimeoutError, "readiness check"),
    (RemoteApiError, "Cloud Run API"),
]


def _input(name: str) -> str:
    return f"INPUT_{name.upper()}"


def _option(name: str, **kwargs):
    return click.option(f"--{name.replace('_', '-')}", name, envvar=_input(name), **kwargs)


name_option = _option("name", required=True, help="Name of the service")
region_option = _option("run_region", required=True, help="Region the service runs in")
key_option = _option(
    "service_account_key",
    required=True,
    help="Service account key JSON, or a path to it",
)
token_option = _option("github_token", default=None, help="Token used to comment on the pull request")
image_option = _option("image", default=None, help="Image to deploy, e.g. gcr.io/project/app:v1")
account_option = _option(
    "service_account_name", default=None, help="Identity the service runs as"
)
vpc_option = _option("vpc_connector_name", default=None, help="VPC connector to attach")
public_option = _option(
    "allow_unauthenticated",
    type=click.BOOL,
    default=False,
    show_default=True,
    help="Allow unauthenticated invocations",
)
env_file_option = _option("env_file", default=None, help="Dotenv file with extra environment variables")


def phase_of(error: DeployError) -> str:
    for error_type, phase in FAILURE_PHASES:
        if isinstance(error, error_type):
            return phase
    return "deployment"


def publish_output(name: str, value: str) -> None:
    """Expose a step output to later workflow steps."""
    output_file = os.environ.get("GITHUB_OUTPUT")
    if output_file:
        with open(output_file, "a") as f:
            f.write(f"{name}={value}\n")


def _execute(ctx, **inputs) -> None:
    try:
        config = DeployConfig.from_inputs(**inputs)
        orchestrator = DeploymentOrchestrator(config)
        outcome = orchestrator.run()
    except DeployError as e:
        click.echo(f"Error during {phase_of(e)}: {e}", err=True)
        ctx.exit(1)

    if outcome is None:
        click.echo(f"Service {config.name} deleted.")
        return

    publish_output("url", outcome.url)
    click.echo(f"Deployment date: {outcome.deployed_at}")
    click.echo(f"Logs: {outcome.logs_url}")
    click.echo(outcome.url)


@click.group()
@click.option(
    "--verbose", "-v", is_flag=True, envvar="RUNNER_DEBUG", help="Enable debug logging"
)
def cli(verbose):
    """
    crdeploy - Deploy container images to Google Cloud Run.

    Waits for the image to reach its registry, then creates or replaces the
    service and waits until it serves traffic.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@name_option
@image_option
@key_option
@account_option
@vpc_option
@region_option
@public_option
@_option(
    "image_check_timeout",
    type=click.FLOAT,
    default=DEFAULT_IMAGE_CHECK_TIMEOUT,
    show_default=True,
    help="Minutes to wait for the image to appear in the registry",
)
@_option(
    "image_check_interval",
    type=click.FLOAT,
    default=DEFAULT_IMAGE_CHECK_INTERVAL,
    show_default=True,
    help="Seconds between registry checks",
)
@_option(
    "delete_service",
    type=click.BOOL,
    default=False,
    show_default=True,
    help="Delete the service instead of deploying it",
)
@token_option
@_option(
    "trigger_label",
    default=DEFAULT_TRIGGER_LABEL,
    show_default=True,
    help="Pull request label that triggers deployment",
)
@env_file_option
@click.pass_context
def run(ctx, **inputs):
    """Deploy the image, or delete the service when --delete-service is true."""
    _execute(ctx, **inputs)


@cli.command()
@name_option
@key_option
@region_option
@token_option
@click.pass_context
def delete(ctx, **inputs):
    """Delete the service. Succeeds if it does not exist."""
    _execute(ctx, delete_service=True, **inputs)


@cli.command()
@name_option
@click.option("--image", "image", envvar=_input("image"), required=True, help="Image to deploy")
@region_option
@account_option
@vpc_option
@public_option
@env_file_option
@click.option("--project", default="PROJECT_ID", show_default=True, help="Project id to render")
@click.pass_context
def render(ctx, name, image, run_region, service_account_name, vpc_connector_name,
           allow_unauthenticated, env_file, project):
    """Print the service document that would be submitted, as YAML."""
    try:
        ImageReference.parse(image)
        env = env_overrides.merge_env(
            env_overrides.from_prefixed_environ(os.environ),
            env_overrides.from_env_file(env_file),
        )
        spec = ServiceSpec(
            name=name,
            region=run_region,
            image=image,
            service_account_name=service_account_name,
            vpc_connector_name=vpc_connector_name,
            env=env,
            authorization_mode=(
                AuthorizationMode.PUBLIC if allow_unauthenticated else AuthorizationMode.RESTRICTED
            ),
        )
    except (DeployError, ValidationError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    document = build_service_document(spec, project)
    click.echo(yaml.safe_dump(document, sort_keys=False), nl=False)


def main():
    """
    Main entry point for the CLI.
    """
    load_dotenv()
    cli(obj={})


if __name__ == '__main__':
    main()
