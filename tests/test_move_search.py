"""Unit tests for src/move_search.py"""

import random

import pytest

from move_search import Candidate, CandidateSelector, EngineClient, EnginePosition


def test_time_budget_is_drawn_within_inclusive_bounds(make_engine, rng) -> None:
    client = EngineClient(make_engine([[]]), movetime=(100, 102), rng=rng)
    draws = {client.draw_time_budget() for _ in range(200)}
    assert draws == {100, 101, 102}


def test_fixed_bounds_give_a_fixed_budget(make_engine, search_info) -> None:
    engine = make_engine([search_info((8, "e2e4"))])
    client = EngineClient(engine, movetime=(250, 250))
    client.suggest_move(EnginePosition.startpos([]))
    assert engine.searches == [250]


def test_only_records_deeper_than_threshold_are_candidates(make_engine, search_info, rng) -> None:
    engine = make_engine([search_info(
        (5, "a2a3"),
        (6, "b2b3"),
        (7, "e2e4 e7e5"),
        (8, "d2d4 d7d5"),
        (9, "e2e4 c7c5"),
    )])
    client = EngineClient(engine, movetime=(100, 300), rng=rng)
    candidates = client.suggest_move(EnginePosition.startpos([]))
    assert candidates == [Candidate("e2e4", 7), Candidate("d2d4", 8)]


def test_no_record_above_threshold_gives_empty_set(make_engine, search_info, rng) -> None:
    engine = make_engine([search_info((3, "e2e4"), (6, "d2d4"))])
    client = EngineClient(engine, rng=rng)
    assert client.suggest_move(EnginePosition.startpos([])) == []


def test_records_without_pv_are_skipped(make_engine, rng) -> None:
    engine = make_engine([[{'depth': 10, 'pv': []}]])
    client = EngineClient(engine, rng=rng)
    assert client.suggest_move(EnginePosition.startpos([])) == []


def test_position_is_forwarded_to_engine(make_engine, search_info, rng) -> None:
    engine = make_engine([search_info((8, "g1f3"))])
    client = EngineClient(engine, rng=rng)
    client.suggest_move(EnginePosition.startpos(["e2e4", "e7e5"]))
    client.suggest_move(EnginePosition.from_fen("8/8/8/8/8/8/8/K6k w - - 0 1"))
    assert engine.positions == [
        (None, ("e2e4", "e7e5")),
        ("8/8/8/8/8/8/8/K6k w - - 0 1", ()),
    ]


def test_selector_never_leaves_the_candidate_set() -> None:
    selector = CandidateSelector(random.Random(7))
    candidates = [Candidate("e2e4", 8), Candidate("d2d4", 8), Candidate("c2c4", 9)]
    picks = {selector.select(candidates) for _ in range(100)}
    assert picks <= {"e2e4", "d2d4", "c2c4"}
    assert len(picks) > 1


def test_selector_single_candidate_is_deterministic() -> None:
    selector = CandidateSelector()
    assert all(selector.select([Candidate("e2e4", 8)]) == "e2e4" for _ in range(20))


def test_selector_refuses_empty_set() -> None:
    with pytest.raises(ValueError):
        CandidateSelector().select([])


def test_position_spec_describe() -> None:
    assert EnginePosition.startpos(["e2e4"]).describe() == "startpos +1 move(s)"
    assert EnginePosition.from_fen("x").describe() == "fen x"


def test_malformed_pv_moves_are_skipped(make_engine, search_info, rng) -> None:
    engine = make_engine([search_info((8, "0000"), (9, "e2e4"))])
    client = EngineClient(engine, rng=rng)
    assert client.suggest_move(EnginePosition.startpos([])) == [Candidate("e2e4", 9)]
