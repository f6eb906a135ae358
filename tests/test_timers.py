import asyncio

from focusvoice.timers import Generation, SessionTimers


def test_rearming_replaces_previous_timer():
    async def scenario():
        timers = SessionTimers()
        fired = []
        timers.arm("silence", 0.02, lambda: fired.append("first"))
        timers.arm("silence", 0.02, lambda: fired.append("second"))
        assert timers.armed() == {"silence"}
        await asyncio.sleep(0.06)
        return fired, timers.armed()

    fired, armed = asyncio.run(scenario())
    assert fired == ["second"]
    assert armed == set()


def test_disarm_reports_whether_timer_existed():
    async def scenario():
        timers = SessionTimers()
        fired = []
        timers.arm("idle", 0.01, lambda: fired.append(True))
        assert timers.disarm("idle") is True
        assert timers.disarm("idle") is False
        await asyncio.sleep(0.03)
        return fired

    assert asyncio.run(scenario()) == []


def test_disarm_all():
    async def scenario():
        timers = SessionTimers()
        fired = []
        for name in ("silence", "idle", "relisten"):
            timers.arm(name, 0.01, lambda n=name: fired.append(n))
        timers.disarm_all()
        await asyncio.sleep(0.03)
        return fired, timers.armed()

    fired, armed = asyncio.run(scenario())
    assert fired == []
    assert armed == set()


def test_guard_discards_stale_callbacks():
    generation = Generation()
    calls = []
    stale = generation.guard(calls.append, "stale")
    generation.bump()
    fresh = generation.guard(calls.append, "fresh")

    stale()
    fresh()

    assert calls == ["fresh"]
    assert generation.is_current(1)
    assert not generation.is_current(0)
