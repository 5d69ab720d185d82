import json

import pytest

from cpmsoperator.resources import (
    CONTROL_PLANE_MACHINE_SET_FINALIZER,
    ClusterOperator,
    ClusterOperatorStatusCondition,
    Condition,
    ConditionStatus,
    ControlPlaneMachineSet,
    InMemoryClient,
    NotFoundError,
    ObjectKey,
)


def test_cluster_operator_round_trip_returns_copy():
    client = InMemoryClient()
    client.add(ClusterOperator(name="control-plane-machine-set"))

    fetched = client.get_cluster_operator("control-plane-machine-set")
    fetched.conditions.append(
        ClusterOperatorStatusCondition(type="Available", status=ConditionStatus.TRUE)
    )

    again = client.get_cluster_operator("control-plane-machine-set")
    assert again.conditions == []
    assert again.name == "control-plane-machine-set"


def test_missing_cluster_operator_raises():
    client = InMemoryClient()
    with pytest.raises(NotFoundError):
        client.get_cluster_operator("absent")


def test_missing_cpms_error_message():
    client = InMemoryClient()
    with pytest.raises(NotFoundError) as info:
        client.get_control_plane_machine_set(ObjectKey("ns", "cluster"))
    assert str(info.value) == 'controlplanemachinesets.machine.openshift.io "cluster" not found'


def test_adding_twice_raises():
    client = InMemoryClient()
    client.add(ControlPlaneMachineSet(namespace="ns"))
    with pytest.raises(ValueError):
        client.add(ControlPlaneMachineSet(namespace="ns"))


def test_add_rejects_unknown_type():
    with pytest.raises(TypeError):
        InMemoryClient().add(object())


def test_update_status_only_changes_status():
    client = InMemoryClient()
    client.add(ControlPlaneMachineSet(namespace="ns", replicas=3))

    cpms = client.get_control_plane_machine_set(ObjectKey("ns", "cluster"))
    cpms.replicas = 5
    cpms.status.observed_generation = 2
    cpms.status.ready_replicas = 4
    client.update_status(cpms)

    stored = client.get_control_plane_machine_set(ObjectKey("ns", "cluster"))
    assert stored.replicas == 3
    assert stored.status.observed_generation == 2
    assert stored.status.ready_replicas == 4


def test_update_status_of_missing_object_raises():
    client = InMemoryClient()
    with pytest.raises(NotFoundError):
        client.update_status(ControlPlaneMachineSet(namespace="ns"))
    with pytest.raises(NotFoundError):
        client.update_status(ClusterOperator(name="absent"))


def test_update_status_of_cluster_operator_replaces_conditions():
    client = InMemoryClient()
    client.add(ClusterOperator(name="co"))
    cond = ClusterOperatorStatusCondition(type="Degraded", status=ConditionStatus.FALSE, reason="AsExpected")
    client.update_status(ClusterOperator(name="co", conditions=[cond]))
    assert client.get_cluster_operator("co").conditions == [cond]


def test_to_dict_is_json_serialisable_and_carries_values():
    cpms = ControlPlaneMachineSet(
        namespace="ns",
        replicas=3,
        generation=2,
        finalizers=[CONTROL_PLANE_MACHINE_SET_FINALIZER],
    )
    cpms.status.conditions.append(Condition(type="Available", status=ConditionStatus.TRUE))
    document = cpms.to_dict()

    assert json.loads(json.dumps(document)) == document
    assert document["spec"]["replicas"] == 3
    assert document["metadata"]["finalizers"] == [CONTROL_PLANE_MACHINE_SET_FINALIZER]
    assert document["status"]["conditions"][0]["status"] == "True"


def test_to_dict_reflects_status_changes():
    first = ControlPlaneMachineSet(namespace="ns", replicas=3)
    second = ControlPlaneMachineSet(namespace="ns", replicas=3)
    assert first.to_dict() == second.to_dict()

    second.status.replicas = 2
    assert first.to_dict()["spec"] == second.to_dict()["spec"]
    assert first.to_dict()["status"] != second.to_dict()["status"]