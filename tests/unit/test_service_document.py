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
Unit tests for the Cloud Run service document and console links.
"""
from urllib.parse import unquote

from crdeploy.MODELS.container_metadata import EnvVar
from crdeploy.MODELS.service_spec import ServiceSpec
from crdeploy.PLATFORM.run_client import add_binding
from crdeploy.PLATFORM.service_document import (
    VPC_CONNECTOR_ANNOTATION,
    build_service_document,
    logs_viewer_url,
    revision_logs_url,
)


class TestServiceDocument:
    """Tests for build_service_document."""

    def test_minimal_document(self):
        spec = ServiceSpec(name="my_svc", region="europe-west1", image="gcr.io/p/x:v1")
        document = build_service_document(spec, "my-project")
        assert document == {
            "apiVersion": "serving.knative.dev/v1",
            "kind": "Service",
            "metadata": {"name": "my-svc", "namespace": "my-project"},
            "spec": {"template": {"spec": {"containers": [{"image": "gcr.io/p/x:v1"}]}}},
        }

    def test_full_document(self):
        spec = ServiceSpec(
            name="svc",
            region="europe-west1",
            image="gcr.io/p/x:v1",
            service_account_name="runner@p.iam.gserviceaccount.com",
            vpc_connector_name="projects/p/locations/europe-west1/connectors/c",
            env=[EnvVar(name="B", value="2"), EnvVar(name="A", value="1")],
            args=["--port", "8080"],
        )
        template = build_service_document(spec, "p")["spec"]["template"]
        assert template["metadata"]["annotations"] == {
            VPC_CONNECTOR_ANNOTATION: "projects/p/locations/europe-west1/connectors/c"
        }
        assert template["spec"]["serviceAccountName"] == "runner@p.iam.gserviceaccount.com"
        container = template["spec"]["containers"][0]
        assert container["env"] == [{"name": "B", "value": "2"}, {"name": "A", "value": "1"}]
        assert container["args"] == ["--port", "8080"]

    def test_document_depends_only_on_spec(self):
        """Building twice from the same spec gives equal, independent documents."""
        spec = ServiceSpec(name="svc", region="r", image="gcr.io/p/x:v1", args=["a"])
        first = build_service_document(spec, "p")
        first["spec"]["template"]["spec"]["containers"][0]["args"].append("b")
        assert build_service_document(spec, "p")["spec"]["template"]["spec"]["containers"][0]["args"] == ["a"]


class TestConsoleLinks:
    """Tests for Cloud Console links."""

    def test_logs_viewer_url(self):
        url = logs_viewer_url("my-svc", "europe-west1", "my-project")
        assert url.startswith("https://console.cloud.google.com/logs/viewer?advancedFilter=")
        assert url.endswith("&project=my-project")
        assert 'resource.labels.service_name = "my-svc"' in unquote(url)

    def test_revision_logs_url(self):
        assert revision_logs_url("my-svc", "europe-west1", "p") == (
            "https://console.cloud.google.com/run/detail/europe-west1/my-svc/logs?project=p"
        )


class TestAddBinding:
    """Tests for merging IAM bindings."""

    def test_adds_new_binding(self):
        policy = {"etag": "x"}
        assert add_binding(policy, "roles/run.invoker", "allUsers") is True
        assert policy["bindings"] == [{"role": "roles/run.invoker", "members": ["allUsers"]}]

    def test_extends_existing_role(self):
        policy = {"bindings": [{"role": "roles/run.invoker", "members": ["user:a@b.c"]}]}
        assert add_binding(policy, "roles/run.invoker", "allUsers") is True
        assert policy["bindings"][0]["members"] == ["user:a@b.c", "allUsers"]

    def test_keeps_other_bindings(self):
        policy = {"bindings": [{"role": "roles/run.admin", "members": ["user:a@b.c"]}]}
        add_binding(policy, "roles/run.invoker", "allUsers")
        assert {"role": "roles/run.admin", "members": ["user:a@b.c"]} in policy["bindings"]

    def test_already_bound(self):
        policy = {"bindings": [{"role": "roles/run.invoker", "members": ["allUsers"]}]}
        assert add_binding(policy, "roles/run.invoker", "allUsers") is False
