from __future__ import annotations
from typing import Any, Dict, Mapping, MutableMapping
from .constants import PHASE_ORDER


def phase_position(phase: str) -> int:
    """Index of ``phase`` in the pipeline order; unknown phases are a wiring error."""
    try:
        return PHASE_ORDER.index(phase)
    except ValueError:
        raise KeyError(f"unknown analysis phase: {phase!r}") from None


def _with_phase(state: Mapping[str, Any], phase: str, payload: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    """Build a node's state update: the phase payload plus any extra state keys."""
    phase_position(phase)
    update: Dict[str, Any] = {"phase_outputs": {**(state.get("phase_outputs") or {}), phase: payload}}
    update.update(extra)
    return update


def _emit_callback(state: MutableMapping[str, Any], phase: str, payload: Mapping[str, Any]) -> None:
    """Report progress as ``callback(phase, payload, index, total)`` when a callback is set."""
    callback = state.get("_callback")
    if callable(callback):
        callback(phase, payload, phase_position(phase), len(PHASE_ORDER))
