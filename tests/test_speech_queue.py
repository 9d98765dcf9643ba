import asyncio

from kawaii_narrator.core.config import ExpressionConfig
from kawaii_narrator.core.event_bus import EventBus
from kawaii_narrator.emotion import EmotionClassifier
from kawaii_narrator.models.expression import ExpressionEngine
from kawaii_narrator.voice.speech_queue import SpeechQueue

from fakes import FakePlayer, FakeSynthesizer, RecordingSink, fast_config


def make_queue(player=None, synthesizer=None, **voice):
    config = fast_config(**voice)
    synthesizer = synthesizer or FakeSynthesizer()
    player = player or FakePlayer()
    return SpeechQueue(synthesizer, player, config.voice), synthesizer, player


async def wait_until_playing(player):
    while not player.playing:
        await asyncio.sleep(0.001)


def test_items_spoken_in_order_without_overlap():
    async def scenario():
        queue, synthesizer, player = make_queue()
        for text in ["一", "二", "三"]:
            queue.enqueue(text)
        await queue.join()
        return queue, synthesizer, player

    queue, synthesizer, player = asyncio.run(scenario())
    assert synthesizer.texts == ["一", "二", "三"]
    assert player.max_concurrent == 1
    assert [(kind, text) for kind, text, _ in player.events] == [
        ("start", "一"), ("end", "一"),
        ("start", "二"), ("end", "二"),
        ("start", "三"), ("end", "三"),
    ]
    times = [at for _, _, at in player.events]
    assert times == sorted(times)
    assert queue.spoken_count == 3
    assert not queue.is_processing


def test_synthesis_failure_skips_item():
    async def scenario():
        queue, synthesizer, player = make_queue(synthesizer=FakeSynthesizer(fail_on={"壊れ"}))
        for text in ["前", "壊れ", "後"]:
            queue.enqueue(text)
        await queue.join()
        return queue, synthesizer, player

    queue, synthesizer, player = asyncio.run(scenario())
    assert synthesizer.texts == ["前", "壊れ", "後"]
    assert player.started() == ["前", "後"]
    assert queue.status()["failed"] == 1


def test_playback_failure_treated_as_ended():
    async def scenario():
        queue, synthesizer, player = make_queue(player=FakePlayer(fail_on={"無音"}))
        for text in ["無音", "次"]:
            queue.enqueue(text)
        await queue.join()
        return queue, player

    queue, player = asyncio.run(scenario())
    assert player.started() == ["無音", "次"]
    assert queue.spoken_count == 1
    assert queue.failed_count == 1


def test_disable_flushes_pending_items():
    async def scenario():
        queue, synthesizer, player = make_queue(player=FakePlayer(duration=0.05))
        for text in ["a", "b", "c", "d"]:
            queue.enqueue(text)
        await wait_until_playing(player)
        queue.set_enabled(False)
        pending = len(queue)
        await queue.join()
        return queue, synthesizer, player, pending

    queue, synthesizer, player, pending = asyncio.run(scenario())
    assert pending == 0
    assert synthesizer.texts == ["a"]
    assert player.started() == ["a"]
    assert not queue.config.enabled


def test_disabled_flag_checked_before_each_item():
    async def scenario():
        queue, synthesizer, player = make_queue(player=FakePlayer(duration=0.03))
        for text in ["a", "b", "c"]:
            queue.enqueue(text)
        await wait_until_playing(player)
        queue.config.enabled = False
        await queue.join()
        return queue, synthesizer

    queue, synthesizer = asyncio.run(scenario())
    assert synthesizer.texts == ["a"]
    assert len(queue) == 0


def test_interval_between_items():
    async def scenario():
        queue, synthesizer, player = make_queue(interval_seconds=0.05)
        queue.enqueue("a")
        queue.enqueue("b")
        await queue.join()
        return player

    player = asyncio.run(scenario())
    first_end = player.events[1][2]
    second_start = player.events[2][2]
    assert second_start - first_end >= 0.045


def test_settings_read_per_item():
    async def scenario():
        queue, synthesizer, player = make_queue(player=FakePlayer(duration=0.03))
        queue.enqueue("a")
        queue.enqueue("b")
        await wait_until_playing(player)
        queue.config.speaker_id = 1
        queue.config.volume = 80
        await queue.join()
        return synthesizer

    synthesizer = asyncio.run(scenario())
    first, second = synthesizer.calls
    assert (first.speaker_id, first.volume_scale, first.speed_scale) == (888753760, 0.5, 1.2)
    assert (second.speaker_id, second.volume_scale) == (1, 0.8)


def test_full_queue_drops_oldest_pending_item():
    async def scenario():
        queue, synthesizer, player = make_queue(max_queue_size=2)
        for text in ["a", "b", "c", "d"]:
            queue.enqueue(text)
        dropped = queue.dropped_count
        await queue.join()
        return synthesizer, dropped

    synthesizer, dropped = asyncio.run(scenario())
    # "a" is committed to the drain task and never counts against the cap
    assert dropped == 1
    assert synthesizer.texts == ["a", "c", "d"]


def test_cap_applies_while_speaking():
    async def scenario():
        queue, synthesizer, player = make_queue(player=FakePlayer(duration=0.05), max_queue_size=2)
        queue.enqueue("a")
        await wait_until_playing(player)
        for text in ["b", "c", "d"]:
            queue.enqueue(text)
        pending = len(queue)
        await queue.join()
        return synthesizer, pending

    synthesizer, pending = asyncio.run(scenario())
    assert pending == 2
    assert synthesizer.texts == ["a", "c", "d"]


def test_items_queued_without_loop_spoken_on_join():
    queue, synthesizer, player = make_queue()
    queue.enqueue("a")
    queue.enqueue("b")
    assert len(queue) == 2
    assert not queue.is_processing

    asyncio.run(queue.join())
    assert synthesizer.texts == ["a", "b"]


def test_blank_items_ignored():
    async def scenario():
        queue, synthesizer, player = make_queue()
        queue.enqueue("   ")
        queue.enqueue("")
        await queue.join()
        return queue, synthesizer

    queue, synthesizer = asyncio.run(scenario())
    assert synthesizer.calls == []
    assert queue.status()["is_processing"] is False


def test_expression_follows_speech():
    async def scenario():
        config = fast_config()
        sink = RecordingSink()
        engine = ExpressionEngine(sink, ExpressionConfig(neutralize_ms=5, apply_ms=5, frame_ms=1))
        bus = EventBus()
        await bus.initialize()
        events = []
        bus.subscribe("speech_started", lambda text: events.append(("started", text)))
        bus.subscribe("emotion_detected", lambda text, result: events.append(("emotion", result.label)))
        bus.subscribe("speech_ended", lambda text: events.append(("ended", text)))

        queue = SpeechQueue(FakeSynthesizer(), FakePlayer(), config.voice,
                            classifier=EmotionClassifier(), expression=engine, event_bus=bus)
        queue.enqueue("すごいな！")
        await queue.join()
        return sink, events

    sink, events = asyncio.run(scenario())
    assert events == [("started", "すごいな！"), ("emotion", "joy"), ("ended", "すごいな！")]
    happy = [weight for channel, weight in sink.writes if channel == "happy"]
    assert max(happy) == 0.15
    assert happy[-1] == 0.0


def test_shutdown_cancels_playback():
    async def scenario():
        queue, synthesizer, player = make_queue(player=FakePlayer(duration=5))
        queue.enqueue("long")
        queue.enqueue("never")
        await wait_until_playing(player)
        await queue.shutdown()
        return queue, synthesizer, player

    queue, synthesizer, player = asyncio.run(scenario())
    assert synthesizer.texts == ["long"]
    assert player.playing == 0
    assert not queue.is_processing
