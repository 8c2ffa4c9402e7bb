"""
Call stack matching.

A stack signature is a list of qualified method names
(``module.Class.method``), outermost call first and the instrumented
call last. It matches when those names appear as one contiguous run, in
order, somewhere in the live call stack.
"""

from __future__ import annotations

import sys
from types import FrameType
from typing import List, Optional, Sequence

_OWN_PACKAGE = "runseq."


def frame_name(frame: FrameType) -> str:
    """Return ``module.qualname`` for a frame."""
    module = frame.f_globals.get("__name__", "")
    code = frame.f_code
    qualname = getattr(code, "co_qualname", code.co_name)
    return f"{module}.{qualname}" if module else qualname


def live_stack(skip_own: bool = True, frame: Optional[FrameType] = None) -> List[str]:
    """
    Return the qualified names of the current call stack, outermost
    first.

    Args:
        skip_own: Leave out frames that belong to runseq itself.
        frame: Innermost frame to start from (default: caller).
    """
    if frame is None:
        frame = sys._getframe(1)
    names: List[str] = []
    while frame is not None:
        name = frame_name(frame)
        if not (skip_own and name.startswith(_OWN_PACKAGE)):
            names.append(name)
        frame = frame.f_back
    names.reverse()
    return names


def match_frames(signature: Sequence[str], frames: Sequence[str]) -> bool:
    """
    Check whether ``signature`` occurs as a contiguous run in ``frames``.

    Both lists are outermost first. An empty signature matches any
    stack.
    """
    size = len(signature)
    if size == 0:
        return True
    signature = list(signature)
    for start in range(len(frames) - size + 1):
        if list(frames[start:start + size]) == signature:
            return True
    return False


def matches_current_stack(signature: Sequence[str] | str) -> bool:
    """
    Check ``signature`` against the caller's live stack.

    Args:
        signature: Names outermost first, or one comma-separated string.
    """
    if isinstance(signature, str):
        signature = [s.strip() for s in signature.split(",") if s.strip()]
    return match_frames(signature, live_stack(frame=sys._getframe(1)))
