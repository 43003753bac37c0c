"""Inspection engine: validation, probes, health classification, orchestration."""
