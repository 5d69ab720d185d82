# cpmsoperator

`cpmsoperator` holds the reconciliation logic for a *control plane machine
set*: the singleton resource (named `cluster`) that says how many control
plane machines a cluster should run, together with the status that a
cluster operator reports about it.

It has no dependencies outside the standard library.

## Modules

- `cpmsoperator.resources`: the resource models, an in-memory client and
  the condition type and reason names.
- `cpmsoperator.cluster_operator`: helpers for lists of cluster operator
  conditions, and `ClusterOperatorStatusReporter`.
- `cpmsoperator.status`: `merge_patch` and
  `update_control_plane_machine_set_status`.
- `cpmsoperator.controller`: `machine_infos_by_index`,
  `is_control_plane_machine_set_degraded` and
  `ControlPlaneMachineSetReconciler`.

## Resources and the in-memory client

`cpmsoperator.resources` defines these models:

- `ConditionStatus`: `TRUE`, `FALSE` or `UNKNOWN`.
- `Condition` and `ClusterOperatorStatusCondition`.
- `ClusterOperator`.
- `ControlPlaneMachineSet` and `ControlPlaneMachineSetStatus`.
- `MachineInfo` and `ObjectKey`.

`ControlPlaneMachineSet.to_dict()` returns the object as a JSON-compatible
document.

`InMemoryClient` stores cluster operators by name and machine sets by
`ObjectKey`. It returns deep copies of what it holds, so you change stored
state only through its methods:

- `add(obj)` creates an object. It raises `ValueError` if the object already
  exists and `TypeError` for any other kind of object.
- `get_cluster_operator(name)` and `get_control_plane_machine_set(key)` look
  objects up. They raise `NotFoundError` for an unknown object.
- `update_status(obj)` replaces only the stored status: the conditions of a
  cluster operator, or the `status` of a machine set. It raises
  `NotFoundError` if the object has not been added.

## Cluster operator status

`ClusterOperatorStatusReporter(client, operator_name)` keeps the named
cluster operator's conditions in line with the operator's state.

- `set_available(logger=None)` sets four conditions: `Available=True`,
  `Progressing=False`, `Degraded=False` and `Upgradeable=True`. Use it when
  no machine set exists.
- `update_from(cpms, logger=None)` copies the machine set's conditions onto
  the cluster operator. It then adds `Upgradeable`, which is `True` only
  when `Available` is `True`.

Both methods write the cluster operator back only when the status, reason or
message of some condition changed, and they return whether they wrote it. If
the cluster operator is missing they raise `NotFoundError`.

The condition helpers also work on their own:

- `new_cluster_operator_status_condition(condition_type, status, reason, message)`
  builds a condition stamped with the current UTC time.
- `find_status_condition(conditions, condition_type)` returns the first
  condition of that type, or `None`.
- `is_status_condition_present_and_equal(conditions, condition_type, status, message, reason)`
  tells whether a matching condition is present.
- `set_status_condition(conditions, condition)` adds or updates a condition
  in place. The transition time moves only when the status changes.

## Machine set status

`merge_patch(original, modified)` computes a JSON merge patch between two
documents:

- Keys missing from `modified` become `None`.
- Nested mappings are compared recursively.
- Any other changed value, lists included, is replaced whole.

`update_control_plane_machine_set_status(client, cpms, patch_base, logger=None)`
compares `cpms.to_dict()` with `patch_base.to_dict()`. It writes the status
through the client only when the patch is not empty, and returns whether it
wrote.

## Reconciling

The reconciler relies on two helpers:

- `machine_infos_by_index(cpms, machine_infos)` groups `MachineInfo`
  entries by index. The result has an entry for every index from `0` to
  `replicas - 1`, even when no machine occupies it. A machine set with no
  replica count raises `ReplicasRequiredError`.
- `is_control_plane_machine_set_degraded(cpms)` is true when the machine set
  has a `Degraded` condition whose status is `True`.

`ControlPlaneMachineSetReconciler(client, namespace, operator_name, machine_provider_factory)`
reconciles one machine set per call of `reconcile(request)`. The factory is
called with the machine set and a logger. It must return an object with a
`get_machine_infos(logger)` method.

A pass works like this:

1. If the machine set does not exist, the cluster operator is marked
   available and an empty `Result` is returned.
2. If the machine set is being deleted, nothing further is done to it.
3. Otherwise the machine infos are fetched and grouped by index.
4. The machine set status is written if it changed.
5. The cluster operator is updated from the machine set's conditions.

Failures in steps 3 to 5 are collected. If there were any, they are raised
together as one `ReconcileError`, whose `errors` attribute lists them.

```python
from cpmsoperator.controller import ControlPlaneMachineSetReconciler, Request
from cpmsoperator.resources import (
    ClusterOperator,
    ControlPlaneMachineSet,
    InMemoryClient,
    MachineInfo,
)


class StaticProvider:
    def __init__(self, infos):
        self.infos = infos

    def get_machine_infos(self, logger):
        return self.infos


client = InMemoryClient()
client.add(ClusterOperator(name="control-plane-machine-set"))
client.add(ControlPlaneMachineSet(namespace="openshift-machine-api", replicas=3))

reconciler = ControlPlaneMachineSetReconciler(
    client,
    "openshift-machine-api",
    "control-plane-machine-set",
    lambda cpms, logger: StaticProvider([MachineInfo(index=0, machine_name="machine-0", ready=True)]),
)
result = reconciler.reconcile(Request("openshift-machine-api", "cluster"))
```

Loggers passed to these functions are standard `logging.Logger` objects.
Messages go out at debug and error level.

## What it does not do

This is a library only. It has:

- no command to run;
- no long-running manager, no watches, and no health or metrics endpoints;
- no connection to a real cluster API: `InMemoryClient` is the only client.

The reconciler also leaves out several steps:

- It does not add or remove finalizers.
- It does not set owner references on machines.
- It does not check nodes against machines.
- It does not derive replica counts or conditions from machine infos.
- It does not roll out machine updates.

A machine set's status therefore changes only as far as the caller changes
it.