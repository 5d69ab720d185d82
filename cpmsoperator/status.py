"""Persisting the ControlPlaneMachineSet status back to the API."""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Optional

from .resources import ControlPlaneMachineSet, InMemoryClient, NotFoundError

UPDATING_STATUS = "Updating control plane machine set status"
NOT_UPDATING_STATUS = "No update to control plane machine set status required"

_log = logging.getLogger(__name__)


def merge_patch(original: dict[str, Any], modified: dict[str, Any]) -> dict[str, Any]:
    """Return the JSON merge patch that turns ``original`` into ``modified``.

    Keys removed in ``modified`` map to None, nested mappings are diffed
    recursively and any other changed value, lists included, is replaced whole.
    """
    patch: dict[str, Any] = {key: None for key in original if key not in modified}
    for key, value in modified.items():
        if key not in original:
            patch[key] = copy.deepcopy(value)
            continue
        before = original[key]
        if isinstance(value, dict) and isinstance(before, dict):
            nested = merge_patch(before, value)
            if nested:
                patch[key] = nested
        elif value != before:
            patch[key] = copy.deepcopy(value)
    return patch


def update_control_plane_machine_set_status(
    client: InMemoryClient,
    cpms: ControlPlaneMachineSet,
    patch_base: ControlPlaneMachineSet,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Write the status of ``cpms`` if it differs from ``patch_base``.

    Returns whether an update was sent.
    """
    logger = logger or _log
    data = merge_patch(patch_base.to_dict(), cpms.to_dict())

    if not data:
        logger.debug(NOT_UPDATING_STATUS)
        return False

    try:
        client.update_status(cpms)
    except NotFoundError as err:
        raise NotFoundError(
            f"failed to sync status for control plane machine set object: {err}"
        ) from err

    logger.debug("%s data=%s", UPDATING_STATUS, json.dumps(data, sort_keys=True, separators=(",", ":")))
    return True