"""Resource models and an in-memory API client for the control plane machine set operator."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

# Condition types reported in the ControlPlaneMachineSet status.
CONDITION_AVAILABLE = "Available"
CONDITION_DEGRADED = "Degraded"
CONDITION_PROGRESSING = "Progressing"

# Available reasons.
REASON_ALL_REPLICAS_AVAILABLE = "AllReplicasAvailable"
REASON_UNAVAILABLE_REPLICAS = "UnavailableReplicas"

# Degraded reasons.
REASON_AS_EXPECTED = "AsExpected"
REASON_INVALID_STRATEGY = "InvalidStrategy"
REASON_MACHINES_ALREADY_OWNED = "MachinesAlreadyOwned"
REASON_NO_READY_MACHINES = "NoReadyMachines"
REASON_UNMANAGED_NODES = "UnmanagedNodes"

# Progressing reasons.
REASON_ALL_REPLICAS_UPDATED = "AllReplicasUpdated"
REASON_OPERATOR_DEGRADED = "OperatorDegraded"
REASON_EXCESS_REPLICAS = "ExcessReplicas"
REASON_NEEDS_UPDATE_REPLICAS = "NeedsUpdateReplicas"

# Cluster operator condition types.
OPERATOR_AVAILABLE = "Available"
OPERATOR_PROGRESSING = "Progressing"
OPERATOR_DEGRADED = "Degraded"
OPERATOR_UPGRADEABLE = "Upgradeable"

# Only the ControlPlaneMachineSet with this name is reconciled within a namespace.
CLUSTER_CONTROL_PLANE_MACHINE_SET_NAME = "cluster"

# Finalizer that blocks deletion until owner references are cleaned up.
CONTROL_PLANE_MACHINE_SET_FINALIZER = "controlplanemachineset.machine.openshift.io"

DEGRADED_CLUSTER_STATE = (
    "Cluster state is degraded. The control plane machine set will not take any "
    "action until issues have been resolved."
)

_CPMS_RESOURCE = "controlplanemachinesets.machine.openshift.io"
_CLUSTER_OPERATOR_RESOURCE = "clusteroperators.config.openshift.io"


class ConditionStatus(str, enum.Enum):
    """Status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None


@dataclass
class Condition:
    """A condition on the ControlPlaneMachineSet status."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    observed_generation: int = 0
    last_transition_time: Optional[datetime] = None


@dataclass
class ClusterOperatorStatusCondition:
    """A condition on the ClusterOperator status."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = None


@dataclass
class ClusterOperator:
    """A cluster-scoped ClusterOperator resource."""

    name: str
    conditions: list[ClusterOperatorStatusCondition] = field(default_factory=list)


@dataclass
class ControlPlaneMachineSetStatus:
    """Observed state of a ControlPlaneMachineSet."""

    conditions: list[Condition] = field(default_factory=list)
    observed_generation: int = 0
    replicas: int = 0
    ready_replicas: int = 0
    updated_replicas: int = 0
    unavailable_replicas: int = 0


@dataclass
class ControlPlaneMachineSet:
    """A namespaced ControlPlaneMachineSet resource."""

    name: str = CLUSTER_CONTROL_PLANE_MACHINE_SET_NAME
    namespace: str = ""
    replicas: Optional[int] = None
    generation: int = 0
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None
    status: ControlPlaneMachineSetStatus = field(default_factory=ControlPlaneMachineSetStatus)

    def to_dict(self) -> dict[str, Any]:
        """Return the resource as a JSON-compatible document."""
        status = self.status
        return {
            "apiVersion": "machine.openshift.io/v1",
            "kind": "ControlPlaneMachineSet",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "generation": self.generation,
                "finalizers": list(self.finalizers),
                "deletionTimestamp": _timestamp(self.deletion_timestamp),
            },
            "spec": {"replicas": self.replicas},
            "status": {
                "conditions": [
                    {
                        "type": c.type,
                        "status": str(c.status),
                        "observedGeneration": c.observed_generation,
                        "lastTransitionTime": _timestamp(c.last_transition_time),
                        "reason": c.reason,
                        "message": c.message,
                    }
                    for c in status.conditions
                ],
                "observedGeneration": status.observed_generation,
                "replicas": status.replicas,
                "readyReplicas": status.ready_replicas,
                "updatedReplicas": status.updated_replicas,
                "unavailableReplicas": status.unavailable_replicas,
            },
        }


@dataclass(frozen=True)
class MachineInfo:
    """What a machine provider reports about one control plane machine."""

    index: int
    machine_name: Optional[str] = None
    node_name: Optional[str] = None
    ready: bool = False
    needs_update: bool = False
    error_message: str = ""


@dataclass(frozen=True)
class ObjectKey:
    """Identifies a namespaced object."""

    namespace: str
    name: str


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""


class ReplicasRequiredError(ValueError):
    """Raised when a ControlPlaneMachineSet has no replica count."""

    def __init__(self, message: str = "spec.replicas is required") -> None:
        super().__init__(message)


Resource = Union[ClusterOperator, ControlPlaneMachineSet]


class InMemoryClient:
    """Stores resources in memory and hands out independent copies."""

    def __init__(self) -> None:
        self._cluster_operators: dict[str, ClusterOperator] = {}
        self._machine_sets: dict[ObjectKey, ControlPlaneMachineSet] = {}

    def add(self, obj: Resource) -> None:
        """Create a new object; raise ValueError if it already exists."""
        if isinstance(obj, ClusterOperator):
            if obj.name in self._cluster_operators:
                raise ValueError(f'{_CLUSTER_OPERATOR_RESOURCE} "{obj.name}" already exists')
            self._cluster_operators[obj.name] = copy.deepcopy(obj)
        elif isinstance(obj, ControlPlaneMachineSet):
            key = ObjectKey(obj.namespace, obj.name)
            if key in self._machine_sets:
                raise ValueError(f'{_CPMS_RESOURCE} "{obj.name}" already exists')
            self._machine_sets[key] = copy.deepcopy(obj)
        else:
            raise TypeError(f"unsupported object type: {type(obj).__name__}")

    def get_cluster_operator(self, name: str) -> ClusterOperator:
        try:
            return copy.deepcopy(self._cluster_operators[name])
        except KeyError:
            raise NotFoundError(f'{_CLUSTER_OPERATOR_RESOURCE} "{name}" not found') from None

    def get_control_plane_machine_set(self, key: ObjectKey) -> ControlPlaneMachineSet:
        try:
            return copy.deepcopy(self._machine_sets[key])
        except KeyError:
            raise NotFoundError(f'{_CPMS_RESOURCE} "{key.name}" not found') from None

    def update_status(self, obj: Resource) -> None:
        """Replace the stored status of an existing object, leaving everything else alone."""
        if isinstance(obj, ClusterOperator):
            stored = self._cluster_operators.get(obj.name)
            if stored is None:
                raise NotFoundError(f'{_CLUSTER_OPERATOR_RESOURCE} "{obj.name}" not found')
            stored.conditions = copy.deepcopy(obj.conditions)
        elif isinstance(obj, ControlPlaneMachineSet):
            stored_set = self._machine_sets.get(ObjectKey(obj.namespace, obj.name))
            if stored_set is None:
                raise NotFoundError(f'{_CPMS_RESOURCE} "{obj.name}" not found')
            stored_set.status = copy.deepcopy(obj.status)
        else:
            raise TypeError(f"unsupported object type: {type(obj).__name__}")