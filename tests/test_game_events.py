from conftest import FakeClock

from db.session import make_sessionmaker
from services import monitoring_service
from services.game_events import GAME_EVENTS_KEY, GameEvents
from services.game_service import GameService
from utils.clock import now_ms


async def test_publish_and_history(events):
    entry_id = await events.publish("g1", "question_started", {"status": "live"})
    assert entry_id

    history = await events.history("g1")
    assert history == [{"type": "question_started", "game_id": "g1", "state": {"status": "live"}, "id": entry_id}]


async def test_history_keeps_the_newest_events(events):
    for i in range(5):
        await events.publish("g1", "tick", {"i": i})

    history = await events.history("g1", count=2)
    assert [event["state"]["i"] for event in history] == [3, 4]


async def test_stream_is_trimmed(redis):
    events = GameEvents(redis, maxlen=5)
    for i in range(50):
        await events.publish("g1", "tick", {"i": i})
    # Approximate trimming keeps the stream bounded, never below maxlen
    length = await redis.xlen(GAME_EVENTS_KEY.format(game_id="g1"))
    assert 5 <= length < 50


async def test_subscribe_yields_committed_events_in_order(events):
    await events.publish("g1", "created", {"status": "waiting"})
    await events.publish("g1", "question_started", {"status": "live"})

    received = []
    async for event in events.subscribe("g1", last_id="0"):
        if event is None:
            continue
        received.append(event)
        if len(received) == 2:
            break

    assert [e["type"] for e in received] == ["created", "question_started"]
    assert all(e["id"] for e in received)


async def test_publish_failure_is_logged_not_raised():
    class Broken:
        async def xadd(self, *args, **kwargs):
            raise ConnectionError("redis down")

    assert await GameEvents(Broken()).publish("g1", "tick", {}) is None


async def test_monitor_games_settles_expired_questions(engine, db, redis, monkeypatch, sample_questions):
    monkeypatch.setattr(monitoring_service, "AsyncSessionLocal", make_sessionmaker(engine))

    # Started a minute ago on the real clock, so its 30s timer has run out
    past = FakeClock(start_ms=now_ms() - 60_000)
    service = GameService(db, clock=past)
    game = await service.create_game("host-1")
    await service.load_questions(game.id, "host-1", sample_questions)
    await service.start_question(game.id, "host-1")

    assert await monitoring_service.monitor_games(redis) == [game.id]

    settled = await GameService(db).get_game(game.id)
    assert settled.status == "waiting"
    assert settled.answers_locked is True

    history = await GameEvents(redis).history(game.id)
    assert history[-1]["type"] == "question_expired"
