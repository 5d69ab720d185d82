import logging

import pytest

from cpmsoperator.resources import ControlPlaneMachineSet, InMemoryClient, NotFoundError
from cpmsoperator.status import (
    NOT_UPDATING_STATUS,
    UPDATING_STATUS,
    merge_patch,
    update_control_plane_machine_set_status,
)

LOGGER_NAME = "cpmsoperator.tests.status"


@pytest.fixture
def setup():
    client = InMemoryClient()
    cpms = ControlPlaneMachineSet(namespace="test-ns", replicas=3)
    client.add(cpms)
    cpms.status.observed_generation = 1
    cpms.status.replicas = 2
    cpms.status.ready_replicas = 3
    client.update_status(cpms)
    return client, cpms


def _stored(client, cpms):
    from cpmsoperator.resources import ObjectKey

    return client.get_control_plane_machine_set(ObjectKey(cpms.namespace, cpms.name)).status


def test_merge_patch_equal_documents_is_empty():
    doc = {"a": 1, "b": {"c": [1, 2]}}
    assert merge_patch(doc, {"a": 1, "b": {"c": [1, 2]}}) == {}


def test_merge_patch_nested_change_and_removal():
    original = {"a": 1, "b": {"c": 2, "d": 3}, "gone": True}
    modified = {"a": 1, "b": {"c": 5, "d": 3}, "new": "x"}
    assert merge_patch(original, modified) == {"b": {"c": 5}, "gone": None, "new": "x"}


def test_merge_patch_replaces_lists_whole():
    assert merge_patch({"l": [1, 2]}, {"l": [1, 3]}) == {"l": [1, 3]}


def test_updates_status_when_changed(setup, caplog):
    client, cpms = setup
    patch_base = ControlPlaneMachineSet(**{**cpms.__dict__})
    import copy

    patch_base = copy.deepcopy(cpms)
    cpms.status.observed_generation = 2
    cpms.status.replicas = 3
    cpms.status.ready_replicas = 4

    logger = logging.getLogger(LOGGER_NAME)
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        updated = update_control_plane_machine_set_status(client, copy.deepcopy(cpms), patch_base, logger)

    assert updated is True
    stored = _stored(client, cpms)
    assert (stored.observed_generation, stored.replicas, stored.ready_replicas) == (2, 3, 4)
    messages = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert messages == [
        UPDATING_STATUS + ' data={"status":{"observedGeneration":2,"readyReplicas":4,"replicas":3}}'
    ]


def test_does_not_update_when_unchanged(setup, caplog):
    import copy

    client, cpms = setup
    cpms.status.observed_generation = 2
    cpms.status.replicas = 3
    cpms.status.ready_replicas = 4
    patch_base = copy.deepcopy(cpms)

    logger = logging.getLogger(LOGGER_NAME)
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        updated = update_control_plane_machine_set_status(client, copy.deepcopy(cpms), patch_base, logger)

    assert updated is False
    stored = _stored(client, cpms)
    assert (stored.observed_generation, stored.replicas, stored.ready_replicas) == (1, 2, 3)
    messages = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert messages == [NOT_UPDATING_STATUS]


def test_update_of_missing_object_raises():
    import copy

    client = InMemoryClient()
    cpms = ControlPlaneMachineSet(namespace="missing", replicas=3)
    base = copy.deepcopy(cpms)
    cpms.status.replicas = 1
    with pytest.raises(NotFoundError, match="failed to sync status for control plane machine set object"):
        update_control_plane_machine_set_status(client, cpms, base)