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
Remote-observed service state and the final result of a deployment.
"""
from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime
from pydantic import BaseModel


class ReadinessState(str, Enum):
    """
    Readiness of a service as derived from its first status condition.
    """
    UNKNOWN = "Unknown"
    READY = "Ready"
    FAILED = "Failed"


class ServiceStatus(BaseModel):
    """
    A single sample of the remote service status.
    Replaced wholesale on every poll.
    """
    state: ReadinessState = ReadinessState.UNKNOWN
    url: Optional[str] = None
    message: Optional[str] = None
    last_transition_time: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state != ReadinessState.UNKNOWN

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "ServiceStatus":
        """
        Derives readiness from a Knative service resource.

        Only the first condition is inspected. A status other than "Unknown"
        is terminal: Ready when the resource carries a URL, Failed otherwise.
        A resource without conditions has not been reconciled yet, and neither
        has one whose observedGeneration lags metadata.generation: its
        conditions still describe the previous revision.
        """
        status = resource.get("status") or {}
        conditions = status.get("conditions") or []
        if not conditions:
            return cls()

        generation = (resource.get("metadata") or {}).get("generation")
        observed = status.get("observedGeneration")
        if generation is not None and observed is not None and observed < generation:
            return cls()

        condition = conditions[0]
        transition = condition.get("lastTransitionTime")
        if condition.get("status", "Unknown") == "Unknown":
            return cls(last_transition_time=transition)

        url = status.get("url")
        if url:
            return cls(
                state=ReadinessState.READY,
                url=url,
                last_transition_time=transition,
            )
        return cls(
            state=ReadinessState.FAILED,
            message=condition.get("message") or condition.get("reason") or "Service failed",
            last_transition_time=transition,
        )


class DeploymentOutcome(BaseModel):
    """
    Terminal result of a successful reconciliation.
    """
    url: str
    logs_url: str
    deployed_at: Optional[datetime] = None
