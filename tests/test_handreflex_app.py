"""Tests for command line handling."""

import pytest

from handreflex.config import EXIT_PROFILE_ERROR
from handreflex.handreflex_app import apply_overrides, build_parser, main
from handreflex.profile_loader import ProfileLoadError, create_default_profile


def _apply(*argv):
    args = build_parser().parse_args(list(argv))
    return apply_overrides(create_default_profile(), args)


class TestOverrides:
    def test_no_flags_keeps_profile(self):
        profile = _apply()
        default = create_default_profile()
        assert profile.pipeline == default.pipeline
        assert profile.player_id == default.player_id

    def test_tuning_flags(self):
        profile = _apply("--alpha", "0.3", "--gain", "1.1", "--threshold", "7.5")
        assert profile.pipeline.smoothing.alpha == pytest.approx(0.3)
        assert profile.pipeline.prediction.gain == pytest.approx(1.1)
        assert profile.pipeline.prediction.threshold == pytest.approx(7.5)

    def test_backend_order(self):
        profile = _apply("--backend", "cpu", "--backend", "solutions", "--backend", "cpu")
        assert profile.pipeline.loop.backends == ("cpu", "solutions")

    def test_unknown_backend_rejected(self):
        with pytest.raises(SystemExit):
            _apply("--backend", "webgl")

    def test_event_log_flags(self, tmp_path):
        path = str(tmp_path / "e.jsonl")
        profile = _apply("--player-id", "architect-9", "--event-log", path)
        assert profile.player_id == "architect-9"
        assert profile.event_log.path == path
        assert not _apply("--no-event-log").event_log.enabled

    def test_no_flip(self):
        assert _apply("--no-flip").flip_horizontal is False

    @pytest.mark.parametrize("argv", [
        ("--alpha", "0"),
        ("--alpha", "1.5"),
        ("--gain", "-1"),
        ("--threshold", "0"),
    ])
    def test_invalid_values(self, argv):
        with pytest.raises(ProfileLoadError):
            _apply(*argv)


class TestMain:
    def test_missing_profile_exit_code(self, tmp_path, monkeypatch):
        monkeypatch.setenv("APPDATA", str(tmp_path))
        code = main(["--profile", str(tmp_path / "missing.json")])
        assert code == EXIT_PROFILE_ERROR

    def test_bad_override_exit_code(self, tmp_path, monkeypatch):
        monkeypatch.setenv("APPDATA", str(tmp_path))
        assert main(["--threshold", "-2"]) == EXIT_PROFILE_ERROR
