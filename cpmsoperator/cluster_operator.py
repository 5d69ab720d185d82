"""Reporting of the operator's state through its ClusterOperator resource."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, MutableSequence
from datetime import datetime, timezone
from typing import Optional

from .resources import (
    OPERATOR_AVAILABLE,
    OPERATOR_DEGRADED,
    OPERATOR_PROGRESSING,
    OPERATOR_UPGRADEABLE,
    REASON_AS_EXPECTED,
    ClusterOperator,
    ClusterOperatorStatusCondition,
    ConditionStatus,
    ControlPlaneMachineSet,
    InMemoryClient,
    NotFoundError,
)

_log = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def new_cluster_operator_status_condition(
    condition_type: str, status: ConditionStatus, reason: str, message: str
) -> ClusterOperatorStatusCondition:
    """Build a cluster operator condition stamped with the current time."""
    return ClusterOperatorStatusCondition(
        type=condition_type,
        status=ConditionStatus(status),
        reason=reason,
        message=message,
        last_transition_time=_now(),
    )


def find_status_condition(
    conditions: Iterable[ClusterOperatorStatusCondition], condition_type: str
) -> Optional[ClusterOperatorStatusCondition]:
    """Return the first condition of the given type, or None."""
    return next((c for c in conditions if c.type == condition_type), None)


def is_status_condition_present_and_equal(
    conditions: Iterable[ClusterOperatorStatusCondition],
    condition_type: str,
    status: ConditionStatus,
    message: str,
    reason: str,
) -> bool:
    """Whether the condition type is present with the same status, message and reason."""
    condition = find_status_condition(conditions, condition_type)
    if condition is None:
        return False
    return condition.status == status and condition.message == message and condition.reason == reason


def set_status_condition(
    conditions: MutableSequence[ClusterOperatorStatusCondition],
    condition: ClusterOperatorStatusCondition,
) -> None:
    """Add or update a condition in place.

    The transition time only changes when the status changes.
    """
    existing = find_status_condition(conditions, condition.type)
    if existing is None:
        conditions.append(dataclasses.replace(condition, last_transition_time=_now()))
        return
    if existing.status != condition.status:
        existing.status = condition.status
        existing.last_transition_time = condition.last_transition_time
    existing.reason = condition.reason
    existing.message = condition.message


def _is_present_with_status(
    conditions: Iterable[ClusterOperatorStatusCondition], condition_type: str, status: ConditionStatus
) -> bool:
    condition = find_status_condition(conditions, condition_type)
    return condition is not None and condition.status == status


class ClusterOperatorStatusReporter:
    """Keeps the operator's ClusterOperator conditions in step with its state."""

    def __init__(self, client: InMemoryClient, operator_name: str) -> None:
        self.client = client
        self.operator_name = operator_name

    def set_available(self, logger: Optional[logging.Logger] = None) -> bool:
        """Mark the operator available; used when no ControlPlaneMachineSet exists.

        Returns whether the ClusterOperator was updated.
        """
        logger = logger or _log
        operator = self._get(logger)
        conditions = [
            new_cluster_operator_status_condition(
                OPERATOR_AVAILABLE, ConditionStatus.TRUE, REASON_AS_EXPECTED, "cluster operator is available"
            ),
            new_cluster_operator_status_condition(
                OPERATOR_PROGRESSING, ConditionStatus.FALSE, REASON_AS_EXPECTED, ""
            ),
            new_cluster_operator_status_condition(OPERATOR_DEGRADED, ConditionStatus.FALSE, REASON_AS_EXPECTED, ""),
            new_cluster_operator_status_condition(
                OPERATOR_UPGRADEABLE, ConditionStatus.TRUE, REASON_AS_EXPECTED, "cluster operator is upgradable"
            ),
        ]
        return self._patch_conditions(operator, conditions, logger)

    def update_from(self, cpms: ControlPlaneMachineSet, logger: Optional[logging.Logger] = None) -> bool:
        """Copy the ControlPlaneMachineSet conditions onto the ClusterOperator.

        The operator is upgradeable exactly when it is available.
        Returns whether the ClusterOperator was updated.
        """
        logger = logger or _log
        operator = self._get(logger)
        conditions = [
            new_cluster_operator_status_condition(c.type, c.status, c.reason, c.message)
            for c in cpms.status.conditions
        ]
        if _is_present_with_status(conditions, OPERATOR_AVAILABLE, ConditionStatus.TRUE):
            upgradeable = new_cluster_operator_status_condition(
                OPERATOR_UPGRADEABLE, ConditionStatus.TRUE, REASON_AS_EXPECTED, "cluster operator is upgradable"
            )
        else:
            upgradeable = new_cluster_operator_status_condition(
                OPERATOR_UPGRADEABLE, ConditionStatus.FALSE, REASON_AS_EXPECTED, "cluster operator is not upgradable"
            )
        conditions.append(upgradeable)
        return self._patch_conditions(operator, conditions, logger)

    def _get(self, logger: logging.Logger) -> ClusterOperator:
        try:
            return self.client.get_cluster_operator(self.operator_name)
        except NotFoundError as err:
            logger.error("failed to get cluster operator: %s", err)
            raise NotFoundError(
                f"cannot get cluster operator: failed to get cluster operator {self.operator_name}: {err}"
            ) from err

    def _patch_conditions(
        self,
        operator: ClusterOperator,
        conditions: list[ClusterOperatorStatusCondition],
        logger: logging.Logger,
    ) -> bool:
        need_update = False
        for condition in conditions:
            if not is_status_condition_present_and_equal(
                operator.conditions, condition.type, condition.status, condition.message, condition.reason
            ):
                need_update = True
                set_status_condition(operator.conditions, condition)

        if not need_update:
            return False

        try:
            self.client.update_status(operator)
        except NotFoundError as err:
            logger.error("failed to sync status for cluster operator: %s", err)
            raise NotFoundError(
                f"failed to sync status for cluster operator {self.operator_name}, {err}"
            ) from err

        def status_of(condition_type: str) -> str:
            found = find_status_condition(conditions, condition_type)
            return str(found.status) if found is not None else ""

        logger.debug(
            "Syncing cluster operator status available=%s progressing=%s degraded=%s upgradable=%s",
            status_of(OPERATOR_AVAILABLE),
            status_of(OPERATOR_PROGRESSING),
            status_of(OPERATOR_DEGRADED),
            status_of(OPERATOR_UPGRADEABLE),
        )
        return True