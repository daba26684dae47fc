"""
Collector daemon package for the P1 meter telemetry logger.

Locates a HomeWizard P1 energy meter on the local network via mDNS, polls
its ``/api/v1/data`` endpoint, and appends every reading to a local CSV log.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""
