"""Orchestration of search fan-out rounds."""

from fanout.orchestration.orchestrator import SearchOrchestrator

__all__ = ["SearchOrchestrator"]
