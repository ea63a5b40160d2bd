"""Tests for the self re-arming prediction loop."""

from __future__ import annotations

import asyncio

from conftest import wait_for

from imageanalyzer.analyzer.loop import LoopState, PredictionLoop


class TestPredictionLoop:
    async def test_runs_until_step_declines(self) -> None:
        calls = 0

        async def step() -> bool:
            nonlocal calls
            calls += 1
            return calls < 5

        loop = PredictionLoop(step)
        loop.start()
        await loop.wait()

        assert calls == 5
        assert loop.cycles == 5
        assert loop.state is LoopState.STOPPED

    async def test_stop_prevents_rearm(self) -> None:
        calls = 0

        async def step() -> bool:
            nonlocal calls
            calls += 1
            return True

        loop = PredictionLoop(step)
        loop.start()
        await wait_for(lambda: calls >= 3)
        loop.stop()
        await loop.wait()
        seen = calls

        await asyncio.sleep(0.05)
        assert calls == seen
        assert loop.done

    async def test_in_flight_cycle_finishes_after_stop(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def step() -> bool:
            started.set()
            await release.wait()
            finished.append(True)
            return True

        loop = PredictionLoop(step)
        loop.start()
        await started.wait()
        loop.stop()
        release.set()
        await loop.wait()

        assert finished == [True]
        assert loop.cycles == 1

    async def test_cycles_never_overlap(self) -> None:
        in_flight = 0
        peak = 0
        calls = 0

        async def step() -> bool:
            nonlocal in_flight, peak, calls
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            calls += 1
            return calls < 10

        loop = PredictionLoop(step)
        loop.start()
        await loop.wait()
        assert peak == 1

    async def test_on_exit_runs_once(self) -> None:
        exits = []

        async def step() -> bool:
            return False

        loop = PredictionLoop(step, on_exit=lambda: exits.append(1))
        loop.start()
        loop.start()
        await loop.wait()
        assert exits == [1]

    async def test_not_started_is_done(self) -> None:
        async def step() -> bool:
            return True

        loop = PredictionLoop(step)
        assert loop.done
        assert loop.state is LoopState.STOPPED
        await loop.wait()
