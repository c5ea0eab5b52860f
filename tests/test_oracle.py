"""Tests for ordered backend fallback."""

import asyncio

import pytest

from handreflex.oracle import BackendUnavailableError, OracleError, first_available


class TestFirstAvailable:
    def test_first_success_wins(self):
        tried = []

        async def factory(name):
            tried.append(name)
            return f"handle-{name}"

        assert asyncio.run(first_available(["gpu", "cpu"], factory)) == "handle-gpu"
        assert tried == ["gpu"]

    def test_falls_back_in_order(self):
        tried = []

        async def factory(name):
            tried.append(name)
            if name != "cpu":
                raise RuntimeError(f"{name} unsupported")
            return name

        assert asyncio.run(first_available(["gpu", "solutions", "cpu"], factory)) == "cpu"
        assert tried == ["gpu", "solutions", "cpu"]

    def test_all_fail(self):
        async def factory(name):
            raise RuntimeError(f"{name} broken")

        with pytest.raises(BackendUnavailableError) as exc_info:
            asyncio.run(first_available(["gpu", "cpu"], factory))

        error = exc_info.value
        assert isinstance(error, OracleError)
        assert list(error.failures) == ["gpu", "cpu"]
        assert "gpu broken" in str(error)

    def test_no_candidates(self):
        async def factory(name):
            return name

        with pytest.raises(BackendUnavailableError, match="no backends configured"):
            asyncio.run(first_available([], factory))
