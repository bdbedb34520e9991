"""
Clinic Control Tower - metrics snapshot and alerting rules engine.

Turns tenant-scoped operational facts into KPI snapshots, plan-tier-aware
priority alerts, a root-cause-action (RCA) lifecycle and export cadence windows.
"""

__version__ = "0.1.0"
