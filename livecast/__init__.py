"""Resilient live-broadcast session orchestrator."""
