"""Capstone Approvals - multi-approver decision workflow service."""

__version__ = "0.1.0"
