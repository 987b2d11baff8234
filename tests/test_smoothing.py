"""Tests for majority-vote flag smoothing."""

import pytest

from speech_pipeline.audio.smoothing import smooth_flags, smoothing_window_for_frame_ms

T, F = True, False


class TestSmoothingWindow:
    """Tests for frame-length to window mapping."""

    @pytest.mark.parametrize(("frame_ms", "window"), [(10, 1), (20, 2), (30, 3), (25, 1)])
    def test_mapping(self, frame_ms: int, window: int) -> None:
        assert smoothing_window_for_frame_ms(frame_ms) == window


class TestSmoothFlags:
    """Tests for smooth_flags()."""

    @pytest.mark.parametrize("flags", [[], [T], [F, T, F, T, T], [F] * 7])
    def test_window_one_is_identity(self, flags: list[bool]) -> None:
        assert smooth_flags(flags, 1) == flags

    def test_window_zero_is_identity(self) -> None:
        assert smooth_flags([T, F, T], 0) == [T, F, T]

    def test_returns_new_list(self) -> None:
        flags = [T, F]
        result = smooth_flags(flags, 1)
        assert result == flags
        assert result is not flags

    def test_fills_single_gap(self) -> None:
        assert smooth_flags([T, T, F, T, T], 3) == [T, T, T, T, T]

    def test_removes_isolated_speech(self) -> None:
        assert smooth_flags([F, F, T, F, F], 3) == [F, F, F, F, F]

    def test_edges_use_truncated_window(self) -> None:
        # Index 0 sees [T, F]: 1 of 2 meets ceil(2/2) = 1, so speech.
        # Index 4 sees [F, F]: 0 of 2, so silence.
        assert smooth_flags([T, F, F, F, F], 3) == [T, F, F, F, F]

    def test_ties_resolve_to_speech(self) -> None:
        assert smooth_flags([F, T], 3) == [T, T]

    def test_window_two_behaves_like_three(self) -> None:
        flags = [T, F, T, F, F, T, T, F]
        assert smooth_flags(flags, 2) == smooth_flags(flags, 3)

    def test_length_preserved(self) -> None:
        flags = [T, F] * 50
        assert len(smooth_flags(flags, 5)) == 100

    def test_empty_input(self) -> None:
        assert smooth_flags([], 3) == []

    def test_returns_python_bools(self) -> None:
        assert all(type(v) is bool for v in smooth_flags([T, F, T], 3))
