"""Test suite for the FormRuntime dynamic form core.

This package contains tests for:
- Immutable form state and the context façade
- Rule ordering and re-evaluation
- Async validation, including stale-result handling
- Undo/redo history
- Submission gating through transaction services
- Orchestrator isolation between form instances
"""
