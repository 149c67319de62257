"""
Shared fakes for the registry and Cloud Run clients.
"""
import copy
import pytest

from crdeploy.MODELS.errors import NotFoundError, ReportingError


class FakeRegistry:
    """Registry whose manifest checks follow a script of results."""

    def __init__(self, results=None, manifest=None, config=None):
        # Each entry is True, False, or an exception to raise
        self.results = list(results or [True])
        self.checks = 0
        self.manifest = manifest or {"config": {"digest": "sha256:cfg"}}
        self.config = config or {"config": {"Env": [], "Labels": {}}}

    def manifest_exists(self, ref):
        self.checks += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result

    def get_manifest(self, ref):
        if isinstance(self.manifest, Exception):
            raise self.manifest
        return self.manifest

    def get_config(self, ref, manifest):
        return self.config


def ready_resource(url="https://my-svc-xyz.a.run.app", when="2024-05-01T10:00:00Z"):
    return {
        "status": {
            "url": url,
            "conditions": [{"type": "Ready", "status": "True", "lastTransitionTime": when}],
        }
    }


def unknown_resource():
    return {"status": {"conditions": [{"type": "Ready", "status": "Unknown"}]}}


def failed_resource(message="Revision failed to start"):
    return {
        "status": {
            "conditions": [
                {
                    "type": "Ready",
                    "status": "False",
                    "message": message,
                    "lastTransitionTime": "2024-05-01T10:00:00Z",
                }
            ]
        }
    }


class FakeRunClient:
    """In-memory Cloud Run namespace that records every mutating call."""

    def __init__(self, region="europe-west1", project="my-project"):
        self.region = region
        self.project = project
        self.services = {}
        self.policies = {}
        self.calls = []
        # Resources returned by get_service once a service exists
        self.statuses = [ready_resource()]
        self.errors = {}

    def _raise_for(self, operation):
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def get_service(self, name):
        self.calls.append(("get", name))
        self._raise_for("get")
        if name not in self.services:
            raise NotFoundError(f"Get service {name} failed with HTTP 404", status=404)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        resource = copy.deepcopy(self.services[name])
        resource.update(status)
        return resource

    def create_service(self, document):
        name = document["metadata"]["name"]
        self.calls.append(("create", name))
        self._raise_for("create")
        self.services[name] = copy.deepcopy(document)
        return document

    def replace_service(self, name, document):
        self.calls.append(("replace", name))
        self._raise_for("replace")
        self.services[name] = copy.deepcopy(document)
        return document

    def delete_service(self, name):
        self.calls.append(("delete", name))
        self._raise_for("delete")
        if name not in self.services:
            raise NotFoundError(f"Delete service {name} failed with HTTP 404", status=404)
        del self.services[name]

    def get_iam_policy(self, name):
        self.calls.append(("get_iam", name))
        return copy.deepcopy(self.policies.get(name, {"etag": "BwX"}))

    def set_iam_policy(self, name, policy):
        self.calls.append(("set_iam", name))
        self.policies[name] = copy.deepcopy(policy)
        return policy

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)


class RecordingReporter:
    """Progress reporter that keeps every published text."""

    def __init__(self, fail=False):
        self.fail = fail
        self.posts = []
        self.updates = []

    def post(self, text):
        if self.fail:
            raise ReportingError("comment API down")
        self.posts.append(text)
        return 1

    def update(self, handle, text):
        if self.fail:
            raise ReportingError("comment API down")
        self.updates.append(text)

    @property
    def last(self):
        return (self.updates or self.posts)[-1]


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def run_client():
    return FakeRunClient()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def sleeps():
    """A sleep replacement that records requested delays."""
    recorded = []

    def _sleep(seconds):
        recorded.append(seconds)

    _sleep.calls = recorded
    return _sleep
