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

import pytest
import yaml
from click.testing import CliRunner

from crdeploy.CLI import main as cli_module
from crdeploy.CLI.main import cli
from crdeploy.MODELS.errors import DeploymentFailedError, RegistryError, RegistryTimeoutError
from crdeploy.MODELS.service_status import DeploymentOutcome

REQUIRED = [
    "--name", "my-svc",
    "--image", "gcr.io/p/x:v1",
    "--run-region", "europe-west1",
    "--service-account-key", "{}",
]


class FakeOrchestrator:
    """Stands in for DeploymentOrchestrator, recording the config it got."""

    configs = []
    result = DeploymentOutcome(url="https://my-svc-xyz.a.run.app", logs_url="https://console/logs")

    def __init__(self, config):
        FakeOrchestrator.configs.append(config)

    def run(self):
        if isinstance(self.result, Exception):
            raise self.result
        if self.configs[-1].delete_service:
            return None
        return self.result


@pytest.fixture
def fake_orchestrator(monkeypatch):
    FakeOrchestrator.configs = []
    FakeOrchestrator.result = DeploymentOutcome(
        url="https://my-svc-xyz.a.run.app", logs_url="https://console/logs"
    )
    monkeypatch.setattr(cli_module, "DeploymentOrchestrator", FakeOrchestrator)
    return FakeOrchestrator


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Deploy container images to Google Cloud Run' in result.output


def test_cli_run_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['run', '--help'])
    assert result.exit_code == 0
    assert '--image-check-timeout' in result.output
    assert '--allow-unauthenticated' in result.output


def test_cli_run_success(fake_orchestrator, tmp_path):
    output_file = tmp_path / "github_output"
    runner = CliRunner()
    result = runner.invoke(cli, ['run'] + REQUIRED, env={"GITHUB_OUTPUT": str(output_file)})
    assert result.exit_code == 0, result.output
    assert "https://my-svc-xyz.a.run.app" in result.output
    assert output_file.read_text() == "url=https://my-svc-xyz.a.run.app\n"

    config = fake_orchestrator.configs[0]
    assert config.image_check_timeout == 30
    assert config.image_check_interval == 5
    assert config.allow_unauthenticated is False


def test_cli_reads_action_inputs(fake_orchestrator):
    runner = CliRunner()
    env = {
        "INPUT_NAME": "my_svc",
        "INPUT_IMAGE": "gcr.io/p/x:v1",
        "INPUT_RUN_REGION": "europe-west1",
        "INPUT_SERVICE_ACCOUNT_KEY": "{}",
        "INPUT_ALLOW_UNAUTHENTICATED": "true",
        "INPUT_IMAGE_CHECK_TIMEOUT": "1",
        "INPUT_IMAGE_CHECK_INTERVAL": "30",
        "INPUT_DELETE_SERVICE": "false",
        "INPUT_SERVICE_ACCOUNT_NAME": "",
    }
    result = runner.invoke(cli, ['run'], env=env)
    assert result.exit_code == 0, result.output

    config = fake_orchestrator.configs[0]
    assert config.name == "my_svc"
    assert config.allow_unauthenticated is True
    assert config.image_check_timeout == 1
    assert config.image_check_interval == 30
    assert config.service_account_name is None


def test_cli_delete(fake_orchestrator):
    runner = CliRunner()
    result = runner.invoke(cli, [
        'delete', '--name', 'my-svc', '--run-region', 'europe-west1', '--service-account-key', '{}',
    ])
    assert result.exit_code == 0, result.output
    assert "Service my-svc deleted." in result.output
    assert fake_orchestrator.configs[0].delete_service is True


def test_cli_invalid_config_exits_non_zero(fake_orchestrator):
    runner = CliRunner()
    result = runner.invoke(cli, ['run'] + REQUIRED + ['--image-check-interval', '0'])
    assert result.exit_code == 1
    assert "Error during configuration" in result.output
    assert fake_orchestrator.configs == []


def test_cli_registry_timeout_exits_non_zero(fake_orchestrator):
    fake_orchestrator.result = RegistryTimeoutError("Docker image gcr.io/p/x:v1 not found, stopping.")
    runner = CliRunner()
    result = runner.invoke(cli, ['run'] + REQUIRED)
    assert result.exit_code == 1
    assert "Error during image check" in result.output


def test_cli_registry_outage_reported_as_image_check(fake_orchestrator):
    fake_orchestrator.result = RegistryError(
        "Checking image gcr.io/p/x:v1 failed: HEAD failed: connection reset"
    )
    runner = CliRunner()
    result = runner.invoke(cli, ['run'] + REQUIRED)
    assert result.exit_code == 1
    assert "Error during image check" in result.output
    assert "Cloud Run API" not in result.output


def test_cli_failed_rollout_shows_logs_link(fake_orchestrator):
    fake_orchestrator.result = DeploymentFailedError("Container failed to start", "https://console/run/logs")
    runner = CliRunner()
    result = runner.invoke(cli, ['run'] + REQUIRED)
    assert result.exit_code == 1
    assert "Error during rollout" in result.output
    assert "https://console/run/logs" in result.output


def test_cli_render():
    runner = CliRunner()
    result = runner.invoke(cli, [
        'render', '--name', 'my_svc', '--image', 'gcr.io/p/x:v1', '--run-region', 'europe-west1',
        '--project', 'my-project',
    ], env={"CLOUDRUN_ACTION_DEBUG": "1"})
    assert result.exit_code == 0, result.output

    document = yaml.safe_load(result.output)
    assert document["metadata"] == {"name": "my-svc", "namespace": "my-project"}
    container = document["spec"]["template"]["spec"]["containers"][0]
    assert container["image"] == "gcr.io/p/x:v1"
    assert container["env"] == [{"name": "DEBUG", "value": "1"}]


def test_cli_render_malformed_image():
    runner = CliRunner()
    result = runner.invoke(cli, [
        'render', '--name', 'svc', '--image', 'nginx', '--run-region', 'europe-west1',
    ])
    assert result.exit_code == 1
    assert "Error:" in result.output
