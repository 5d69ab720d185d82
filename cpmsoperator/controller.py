"""Reconciliation of ControlPlaneMachineSet resources."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from .cluster_operator import ClusterOperatorStatusReporter
from .resources import (
    CONDITION_DEGRADED,
    DEGRADED_CLUSTER_STATE,
    ConditionStatus,
    ControlPlaneMachineSet,
    InMemoryClient,
    MachineInfo,
    NotFoundError,
    ObjectKey,
    ReplicasRequiredError,
)
from .status import update_control_plane_machine_set_status

_log = logging.getLogger(__name__)


class MachineProvider(Protocol):
    """Source of information about the control plane machines."""

    def get_machine_infos(self, logger: logging.Logger) -> Sequence[MachineInfo]: ...


MachineProviderFactory = Callable[[ControlPlaneMachineSet, logging.Logger], MachineProvider]


@dataclass(frozen=True)
class Request:
    """Identifies the ControlPlaneMachineSet to reconcile."""

    namespace: str
    name: str


@dataclass(frozen=True)
class Result:
    """Outcome of a reconcile."""

    requeue: bool = False


class ReconcileError(Exception):
    """Raised when a reconcile fails; ``errors`` holds every collected failure."""

    def __init__(self, message: str, errors: Sequence[BaseException] = ()) -> None:
        super().__init__(message)
        self.errors = list(errors)


def _aggregate(errors: Sequence[BaseException]) -> ReconcileError:
    if len(errors) == 1:
        message = str(errors[0])
    else:
        message = "[" + ", ".join(str(e) for e in errors) + "]"
    return ReconcileError(message, errors)


def machine_infos_by_index(
    cpms: ControlPlaneMachineSet, machine_infos: Iterable[MachineInfo]
) -> dict[int, list[MachineInfo]]:
    """Group machine infos by index, with an entry for every expected index."""
    if cpms.replicas is None:
        raise ReplicasRequiredError()

    out: dict[int, list[MachineInfo]] = {index: [] for index in range(cpms.replicas)}
    for info in machine_infos:
        out.setdefault(info.index, []).append(info)
    return out


def is_control_plane_machine_set_degraded(cpms: ControlPlaneMachineSet) -> bool:
    """Whether the ControlPlaneMachineSet has a true Degraded condition."""
    return any(
        c.type == CONDITION_DEGRADED and c.status == ConditionStatus.TRUE for c in cpms.status.conditions
    )


class ControlPlaneMachineSetReconciler:
    """Reconciles ControlPlaneMachineSets and reports through the ClusterOperator."""

    def __init__(
        self,
        client: InMemoryClient,
        namespace: str,
        operator_name: str,
        machine_provider_factory: MachineProviderFactory,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.operator_name = operator_name
        self.machine_provider_factory = machine_provider_factory
        self._reporter = ClusterOperatorStatusReporter(client, operator_name)

    def reconcile(self, request: Request) -> Result:
        """Reconcile the named ControlPlaneMachineSet; raise ReconcileError on failure."""
        _log.debug("Reconciling control plane machine set namespace=%s name=%s", request.namespace, request.name)
        try:
            return self._reconcile_request(request)
        finally:
            _log.debug(
                "Finished reconciling control plane machine set namespace=%s name=%s",
                request.namespace,
                request.name,
            )

    def _reconcile_request(self, request: Request) -> Result:
        try:
            cpms = self.client.get_control_plane_machine_set(ObjectKey(request.namespace, request.name))
        except NotFoundError:
            _log.debug("No control plane machine set found, setting operator status available")
            try:
                self._reporter.set_available(_log)
            except NotFoundError as err:
                raise ReconcileError(f"unable to reconcile cluster operator status: {err}", [err]) from err
            return Result()

        patch_base = copy.deepcopy(cpms)
        errors: list[BaseException] = []
        result = Result()

        try:
            result = self._reconcile(cpms)
        except Exception as err:  # collected so that status updates still happen
            wrapped = ReconcileError(f"error reconciling control plane machine set: {err}")
            wrapped.__cause__ = err
            errors.append(wrapped)

        try:
            update_control_plane_machine_set_status(self.client, cpms, patch_base, _log)
        except NotFoundError as err:
            wrapped = ReconcileError(f"error updating control plane machine set status: {err}")
            wrapped.__cause__ = err
            errors.append(wrapped)

        try:
            self._reporter.update_from(cpms, _log)
        except NotFoundError as err:
            wrapped = ReconcileError(f"error updating control plane machine set status: {err}")
            wrapped.__cause__ = err
            errors.append(wrapped)

        if errors:
            raise _aggregate(errors)
        return result

    def _reconcile(self, cpms: ControlPlaneMachineSet) -> Result:
        # Deletion has its own flow; nothing further is done for a deleted set.
        if cpms.deletion_timestamp is not None:
            return Result()

        try:
            provider = self.machine_provider_factory(cpms, _log)
        except Exception as err:
            raise ReconcileError(f"error constructing machine provider: {err}") from err

        try:
            machine_infos = provider.get_machine_infos(_log)
        except Exception as err:
            raise ReconcileError(f"error fetching machine info: {err}") from err

        try:
            indexed = machine_infos_by_index(cpms, machine_infos)
        except ReplicasRequiredError as err:
            raise ReconcileError(f"could not sort machine info by index: {err}") from err

        return self._reconcile_machines(cpms, indexed)

    def _reconcile_machines(
        self, cpms: ControlPlaneMachineSet, machine_infos: dict[int, list[MachineInfo]]
    ) -> Result:
        if is_control_plane_machine_set_degraded(cpms):
            _log.debug(DEGRADED_CLUSTER_STATE)
        return Result()