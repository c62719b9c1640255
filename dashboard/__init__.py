"""Core (UI-agnostic) customer dashboard logic.

This package contains:
- query state snapshots and their transitions
- fetch sequencing (last-issued-wins for overlapping requests)
- the grid controller (table view state + latest accepted page)
- the remote customer source (httpx -> pydantic payloads)
- chart summary adapters (pandas -> Altair -> Vega-Lite spec dict)
"""
