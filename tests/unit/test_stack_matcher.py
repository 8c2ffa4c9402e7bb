"""
Tests for call stack matching.

Tests cover the pure frame matcher and matching against the live
interpreter stack.
"""

import pytest

from runseq.execution.stack_matcher import (
    frame_name,
    live_stack,
    match_frames,
    matches_current_stack,
)

_MODULE = __name__


def _outer(signature):
    return _inner(signature)


def _inner(signature):
    return matches_current_stack(signature)


class _Handler:
    def handle(self, signature):
        return matches_current_stack(signature)

    def stack(self):
        return live_stack()


class TestMatchFrames:
    """Contiguous in-order matching on plain name lists."""

    FRAMES = ["main", "p.Server.run", "p.A.m1", "p.B.m2"]

    def test_suffix_matches(self) -> None:
        assert match_frames(["p.A.m1", "p.B.m2"], self.FRAMES)

    def test_removing_a_frame_breaks_match(self) -> None:
        frames = ["main", "p.Server.run", "p.B.m2"]
        assert not match_frames(["p.A.m1", "p.B.m2"], frames)

    def test_middle_run_matches(self) -> None:
        assert match_frames(["p.Server.run", "p.A.m1"], self.FRAMES)

    def test_order_matters(self) -> None:
        assert not match_frames(["p.B.m2", "p.A.m1"], self.FRAMES)

    def test_must_be_contiguous(self) -> None:
        assert not match_frames(["p.Server.run", "p.B.m2"], self.FRAMES)

    def test_signature_longer_than_stack(self) -> None:
        assert not match_frames(["a", "b", "c"], ["a", "b"])

    def test_empty_signature(self) -> None:
        assert match_frames([], self.FRAMES)


class TestLiveStack:
    """Matching against real frames."""

    def test_nested_functions(self) -> None:
        signature = [f"{_MODULE}._outer", f"{_MODULE}._inner"]
        assert _outer(signature)

    def test_missing_caller(self) -> None:
        signature = [f"{_MODULE}._outer", f"{_MODULE}._inner"]
        assert not _inner(signature)

    def test_comma_separated_signature(self) -> None:
        assert _outer(f"{_MODULE}._outer, {_MODULE}._inner")

    def test_method_qualname(self) -> None:
        assert _Handler().handle([f"{_MODULE}._Handler.handle"])

    def test_live_stack_excludes_own_frames(self) -> None:
        names = _Handler().stack()
        assert names[-1] == f"{_MODULE}._Handler.stack"
        assert not any(n.startswith("runseq.") for n in names)

    def test_frame_name(self) -> None:
        import sys

        assert frame_name(sys._getframe()) == (
            f"{_MODULE}.TestLiveStack.test_frame_name"
        )


@pytest.mark.parametrize(
    "signature, expected",
    [
        ([f"{_MODULE}._inner"], True),
        ([f"{_MODULE}._outer"], True),
        ([f"{_MODULE}._Handler.handle"], False),
    ],
)
def test_single_frame_signatures(signature, expected) -> None:
    assert _outer(signature) is expected
