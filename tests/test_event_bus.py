import asyncio

from kawaii_narrator.core.event_bus import EventBus


def test_sync_and_async_listeners():
    received = []

    async def async_listener(value):
        await asyncio.sleep(0)
        received.append(("async", value))

    async def scenario():
        bus = EventBus()
        await bus.initialize()
        bus.subscribe("speech_started", lambda value: received.append(("sync", value)))
        bus.subscribe("speech_started", async_listener)
        await bus.emit("speech_started", "やあ")

    asyncio.run(scenario())
    assert received == [("sync", "やあ"), ("async", "やあ")]


def test_failing_listener_does_not_block_others():
    received = []

    def broken(value):
        raise RuntimeError("listener bug")

    async def scenario():
        bus = EventBus()
        await bus.initialize()
        bus.subscribe("segment_accepted", broken)
        bus.subscribe("segment_accepted", received.append)
        await bus.emit("segment_accepted", "text")

    asyncio.run(scenario())
    assert received == ["text"]


def test_unsubscribe_and_shutdown():
    received = []

    async def scenario():
        bus = EventBus()
        await bus.initialize()
        bus.subscribe("voice_toggled", received.append)
        await bus.emit("voice_toggled", False)
        bus.unsubscribe("voice_toggled", received.append)
        await bus.emit("voice_toggled", True)

        bus.subscribe("voice_toggled", received.append)
        await bus.shutdown()
        await bus.emit("voice_toggled", True)
        return bus

    bus = asyncio.run(scenario())
    assert received == [False]
    assert not bus.running
