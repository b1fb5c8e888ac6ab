import asyncio

import pytest

from core.errors import NotFoundError, PreconditionError, ValidationError
from db.session import make_sessionmaker
from services.game_service import GameService
from services.participant_ledger import ParticipantLedger


@pytest.fixture
async def live_game(db, clock, sample_questions):
    service = GameService(db, clock=clock)
    game = await service.create_game("host-1")
    await service.load_questions(game.id, "host-1", sample_questions)
    await service.start_question(game.id, "host-1")
    return game


async def test_join_creates_then_renames(db, clock, live_game):
    ledger = ParticipantLedger(db, clock=clock)
    joined = await ledger.join(live_game.id, "p1", "Ali")
    assert (joined.score, joined.last_answered_question_index) == (0, -1)

    await ledger.submit_answer(live_game.id, "p1", 0, 1)
    renamed = await ledger.join(live_game.id, "p1", "Alisher")
    assert renamed.name == "Alisher"
    assert renamed.score == 1


async def test_join_unknown_game(db, clock):
    with pytest.raises(NotFoundError):
        await ParticipantLedger(db, clock=clock).join("missing", "p1", "Ali")


async def test_correct_answer_scores_once(db, clock, live_game):
    ledger = ParticipantLedger(db, clock=clock)

    first = await ledger.submit_answer(live_game.id, "p1", 0, 1)
    assert first == {"correct": True, "already_answered": False}

    for option in (1, 0, 2):
        repeat = await ledger.submit_answer(live_game.id, "p1", 0, option)
        assert repeat == {"correct": True, "already_answered": True}

    participant = await ledger.get(live_game.id, "p1")
    assert participant.score == 1
    assert participant.last_answered_question_index == 0


async def test_wrong_answer_replays_wrong(db, clock, live_game):
    ledger = ParticipantLedger(db, clock=clock)
    assert (await ledger.submit_answer(live_game.id, "p1", 0, 0))["correct"] is False
    assert await ledger.submit_answer(live_game.id, "p1", 0, 1) == {"correct": False, "already_answered": True}
    assert (await ledger.get(live_game.id, "p1")).score == 0


async def test_unjoined_participant_is_created_on_answer(db, clock, live_game):
    ledger = ParticipantLedger(db, clock=clock)
    await ledger.submit_answer(live_game.id, "p2", 0, 1)
    participant = await ledger.get(live_game.id, "p2")
    assert participant.name == "Player"
    assert participant.score == 1


async def test_score_never_exceeds_distinct_questions(db, clock, live_game):
    game_service = GameService(db, clock=clock)
    ledger = ParticipantLedger(db, clock=clock)

    # Cycle through the two questions three times, answering each correctly every time
    answered = set()
    for _ in range(3):
        game = await game_service.get_game(live_game.id)
        index = game.current_question_index
        correct_option = 1 if index == 0 else 2
        await ledger.submit_answer(live_game.id, "p1", index, correct_option)
        answered.add(index)
        participant = await ledger.get(live_game.id, "p1")
        assert participant.score <= len(answered)
        await game_service.start_question(live_game.id, "host-1")

    assert (await ledger.get(live_game.id, "p1")).score == 2


async def test_locked_answers_rejected(db, clock, live_game):
    await GameService(db, clock=clock).lock_answers(live_game.id, "host-1")
    with pytest.raises(PreconditionError):
        await ParticipantLedger(db, clock=clock).submit_answer(live_game.id, "p1", 0, 1)


async def test_expired_question_rejected(db, clock, live_game):
    clock.advance(30)
    with pytest.raises(PreconditionError):
        await ParticipantLedger(db, clock=clock).submit_answer(live_game.id, "p1", 0, 1)


async def test_waiting_game_rejected(db, clock, live_game):
    await GameService(db, clock=clock).end_question(live_game.id, "host-1")
    with pytest.raises(PreconditionError):
        await ParticipantLedger(db, clock=clock).submit_answer(live_game.id, "p1", 0, 1)


async def test_out_of_range_indices(db, clock, live_game):
    ledger = ParticipantLedger(db, clock=clock)
    with pytest.raises(ValidationError):
        await ledger.submit_answer(live_game.id, "p1", 5, 0)
    with pytest.raises(ValidationError):
        await ledger.submit_answer(live_game.id, "p1", 0, 9)
    assert await ledger.get(live_game.id, "p1") is None


async def test_unknown_game(db, clock):
    with pytest.raises(NotFoundError):
        await ParticipantLedger(db, clock=clock).submit_answer("missing", "p1", 0, 0)


async def test_leaderboard_order(db, clock, live_game):
    ledger = ParticipantLedger(db, clock=clock)
    await ledger.join(live_game.id, "p1", "Bobur")
    await ledger.join(live_game.id, "p2", "Aziz")
    await ledger.join(live_game.id, "p3", "Cyrus")
    await ledger.submit_answer(live_game.id, "p3", 0, 1)

    board = await ledger.leaderboard(live_game.id)
    assert [p.participant_id for p in board] == ["p3", "p2", "p1"]


@pytest.mark.parametrize("joined", [False, True])
async def test_concurrent_duplicate_answers_count_once(engine, db, clock, live_game, joined):
    if joined:
        await ParticipantLedger(db, clock=clock).join(live_game.id, "p1", "Ali")
    sessionmaker = make_sessionmaker(engine)

    async def answer():
        async with sessionmaker() as session:
            return await ParticipantLedger(session, clock=clock).submit_answer(live_game.id, "p1", 0, 1)

    outcomes = await asyncio.gather(answer(), answer())

    assert sorted(o["already_answered"] for o in outcomes) == [False, True]
    assert all(o["correct"] for o in outcomes)
    participant = await ParticipantLedger(db, clock=clock).get(live_game.id, "p1")
    assert participant.score == 1
    assert participant.answers == {"0": True}
