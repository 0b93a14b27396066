# tests/test_run_session.py

"""Tests for the terminal runner's session setup."""

import pytest

import run_session


class TestBuildSession:
    """Test how command line flags reach the session config."""

    def test_defaults(self):
        args = run_session.build_parser().parse_args([])

        assert args.mode == "demo"
        assert run_session.build_session(args).config.fake_sensors is False

    @pytest.mark.parametrize("mode", ["demo", "interactive"])
    def test_fake_sensors_flag(self, mode):
        args = run_session.build_parser().parse_args([mode, "--fake-sensors", "--seed", "3"])

        session = run_session.build_session(args)

        assert session.config.fake_sensors is True
        assert session.rng.random() == run_session.build_session(args).rng.random()

    @pytest.mark.asyncio
    async def test_demo_honors_fake_sensors(self, monkeypatch):
        """The scripted demo builds its session from the same flags."""
        seen = []

        def fake_build(args):
            seen.append(args.fake_sensors)
            raise RuntimeError("stop before playing")

        monkeypatch.setattr(run_session, "build_session", fake_build)
        args = run_session.build_parser().parse_args(["demo", "--fake-sensors"])

        with pytest.raises(RuntimeError):
            await run_session.run_demo(args)

        assert seen == [True]
