"""Reconciliation logic for control plane machine sets and their cluster operator status."""

__version__ = "0.1.0"

__all__ = ["cluster_operator", "controller", "resources", "status"]