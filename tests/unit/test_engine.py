"""
Unit tests for the rating engine.

Covers the per-match pipeline end to end:
- K multipliers for flagged, returning, pro and pool players
- Void, bye and explicit-factor matches
- Performance estimation, catch-up boost and promotion floors
- Date ordering and replay determinism
"""

from datetime import date, timedelta

import pytest

from goelo.elo.engine import EngineParams, MatchOrderError, RatingEngine, ratings_at
from goelo.elo.models import Match

from conftest import build_player

DAY = date(2024, 1, 10)


def win(player_a, player_b, on=DAY, **kwargs):
    """Match won by player_a."""
    return Match(date=on, player_a=player_a, player_b=player_b, score_a=1, score_b=0, **kwargs)


class TestBasicExchange:
    """Tests for plain matches between established players."""

    def test_equal_players(self, league):
        engine = RatingEngine(league)
        rated = engine.apply_match(win("alice", "bob"))

        assert rated.player_a_after == pytest.approx(2116)
        assert rated.player_b_after == pytest.approx(2084)
        assert rated.multiplier_a == rated.multiplier_b == 1.0
        assert rated.shift_display == "16.0"
        assert engine.rating("alice") == pytest.approx(2116)
        assert engine.games_played("alice") == 1

    def test_unplayed_player_gets_grade_baseline(self, league):
        engine = RatingEngine(league)
        assert engine.rating("carol") == 2300
        assert "carol" not in engine.ratings()

    def test_unknown_player(self, league):
        engine = RatingEngine(league)
        with pytest.raises(KeyError):
            engine.apply_match(win("alice", "zed"))
        with pytest.raises(KeyError):
            engine.rating("zed")


class TestMultipliers:
    """Tests for K multiplier sizing."""

    def test_flagged_player_moves_faster(self, league):
        league["dave"] = build_player("dave", "5K", needs_dynamic_factor=True)
        rated = RatingEngine(league).apply_match(win("alice", "dave"))

        plain = RatingEngine({
            "alice": league["alice"],
            "dave": build_player("dave", "5K"),
        }).apply_match(win("alice", "dave"))

        assert rated.multiplier_b == pytest.approx(3.0)
        assert rated.multiplier_a == pytest.approx(0.5)
        assert rated.player_b_change == pytest.approx(3 * plain.player_b_change)
        assert abs(rated.player_b_change) > abs(plain.player_b_change)
        assert rated.shift_display == "0.9-5.1"

    def test_pro_opponent_not_damped(self, league):
        league["pro"] = build_player("pro", "1P")
        league["newbie"] = build_player("newbie", "1D", needs_dynamic_factor=True)
        rated = RatingEngine(league).apply_match(win("pro", "newbie"))

        assert rated.multiplier_a == 1.0
        assert rated.multiplier_b == pytest.approx(3.0)

    def test_both_flagged_capped(self, player_factory):
        players = {
            "x": player_factory("x", "2K", needs_dynamic_factor=True),
            "y": player_factory("y", "2K", needs_dynamic_factor=True),
        }
        rated = RatingEngine(players).apply_match(win("x", "y"))

        assert rated.multiplier_a == pytest.approx(2.0)
        assert rated.multiplier_b == pytest.approx(2.0)

    def test_prior_games_shrink_multiplier(self, league):
        league["dave"] = build_player("dave", "5K", needs_dynamic_factor=True, games_played=6)
        rated = RatingEngine(league).apply_match(win("alice", "dave"))
        assert rated.multiplier_b == pytest.approx(2.0)

    def test_returning_player(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob", on=date(2020, 1, 1)))
        rated = engine.apply_match(win("alice", "carol", on=date(2023, 1, 1)))

        assert rated.multiplier_a == pytest.approx(3.0)
        assert rated.multiplier_b == pytest.approx(0.5)

    def test_break_of_two_years_is_not_a_return(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob", on=date(2020, 1, 1)))
        rated = engine.apply_match(
            win("alice", "carol", on=date(2020, 1, 1) + timedelta(days=730))
        )
        assert rated.multiplier_a == rated.multiplier_b == 1.0

    def test_virtual_pool_untracked(self, league):
        league["pool"] = build_player("pool", "1D", is_virtual_pool=True, needs_dynamic_factor=True)
        engine = RatingEngine(league)
        rated = engine.apply_match(win("pool", "alice"))

        assert rated.multiplier_a == rated.multiplier_b == 1.0
        assert "pool" in engine.store
        assert engine.games_played("pool") == 0
        assert engine.booster.recent_wins("pool") == []
        assert "pool" not in engine.estimator


class TestSpecialMatches:
    """Tests for void, bye and out-of-order matches."""

    def test_factor_zero_is_void(self, league):
        engine = RatingEngine(league)
        rated = engine.apply_match(win("alice", "bob", factor=0))

        assert rated.void
        assert rated.player_a_before == rated.player_a_after == 2100
        assert rated.shift_display == "0.0"
        assert len(engine.store) == 0
        assert engine.games_played("alice") == 0

    def test_positive_factor_disables_scaling(self, league):
        league["dave"] = build_player("dave", "5K", needs_dynamic_factor=True)
        rated = RatingEngine(league).apply_match(win("alice", "dave", factor=1.5))
        assert rated.multiplier_a == rated.multiplier_b == 1.0

    def test_negative_factor_rejected(self):
        with pytest.raises(ValueError):
            win("alice", "bob", factor=-1)

    def test_bye_skipped(self, league):
        engine = RatingEngine(league)
        rated = engine.apply_match(Match(date=DAY, player_a="alice", player_b=None, score_a=1, score_b=0))

        assert rated.skipped
        assert len(engine.store) == 0
        assert engine.games_played("alice") == 0

    def test_out_of_order_match_rejected(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob", on=date(2024, 2, 1)))
        with pytest.raises(MatchOrderError):
            engine.apply_match(win("alice", "bob", on=date(2024, 1, 1)))

    def test_order_error_is_value_error(self):
        assert issubclass(MatchOrderError, ValueError)

    def test_same_day_matches_allowed(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob"))
        engine.apply_match(win("bob", "alice"))
        assert engine.games_played("alice") == 2


class TestPerformanceEstimation:
    """Tests for the estimation phase of new players."""

    @pytest.fixture
    def players(self):
        players = {f"opp{i}": build_player(f"opp{i}", "1D") for i in range(12)}
        players["newbie"] = build_player("newbie", "5K", needs_dynamic_factor=True)
        return players

    def test_estimate_applied_after_twelfth_game(self, players):
        engine = RatingEngine(players)
        for i in range(11):
            engine.apply_match(win("newbie", f"opp{i}", on=DAY + timedelta(days=i)))
        assert engine.is_estimating("newbie")

        rated = engine.apply_match(win("newbie", "opp11", on=DAY + timedelta(days=11)))

        # Estimate: 12 wins over 2100s -> capped at 2100 + 150 = 2250.
        # Baseline 5K = 1600, half the gap applied: +325
        assert engine.rating("newbie") == pytest.approx(rated.player_a_after + 325)
        assert not engine.is_estimating("newbie")
        assert "newbie" not in engine.estimator

    def test_estimating_player_gets_no_catch_up(self, players):
        engine = RatingEngine(players)
        for i in range(6):
            engine.apply_match(win("newbie", f"opp{i}", on=DAY + timedelta(days=i)))
        assert engine.catch_up_events == []

    def test_flag_reported_before_first_game(self, players):
        assert RatingEngine(players).is_estimating("newbie")


class TestCatchUp:
    """Tests for catch-up boosts applied by the engine."""

    def test_boost_after_five_strong_wins(self, player_factory):
        players = {f"strong{i}": player_factory(f"strong{i}", "3D") for i in range(5)}
        players["eve"] = player_factory("eve", "5K")
        engine = RatingEngine(players)

        for i in range(4):
            engine.apply_match(win("eve", f"strong{i}", on=DAY + timedelta(days=i)))
        assert engine.catch_up_events == []

        rated = engine.apply_match(win("eve", "strong4", on=DAY + timedelta(days=4)))

        [event] = engine.catch_up_events
        assert event.boost == pytest.approx(50)
        assert event.average_beaten == pytest.approx(2300)
        assert engine.rating("eve") == pytest.approx(rated.player_a_after + 50)

    def test_boost_never_exceeds_cap(self, player_factory):
        players = {f"strong{i}": player_factory(f"strong{i}", "9P") for i in range(10)}
        players["eve"] = player_factory("eve", "20K")
        engine = RatingEngine(players)
        for i in range(10):
            engine.apply_match(win("eve", f"strong{i}", on=DAY + timedelta(days=i)))
        assert engine.catch_up_events
        assert all(event.boost <= 50 for event in engine.catch_up_events)

    def test_loss_with_full_log_still_checked(self, player_factory):
        players = {f"strong{i}": player_factory(f"strong{i}", "3D") for i in range(5)}
        players["eve"] = player_factory("eve", "5K")
        players["weak"] = player_factory("weak", "20K")
        engine = RatingEngine(players)
        for i in range(5):
            engine.apply_match(win("eve", f"strong{i}", on=DAY + timedelta(days=i)))
        assert len(engine.catch_up_events) == 1

        rated = engine.apply_match(win("weak", "eve", on=DAY + timedelta(days=5)))

        # The log still averages 2300, now more than 500 above eve
        assert len(engine.catch_up_events) == 2
        assert engine.catch_up_events[-1].boost == pytest.approx(50)
        assert engine.rating("eve") == pytest.approx(rated.player_b_after + 50)
        assert engine.catch_up_events[-1].rating_before == pytest.approx(rated.player_b_after)


class TestPromotionFloor:
    """Tests for promotion floors applied by the engine."""

    @pytest.fixture
    def players(self, league):
        league["kim"] = build_player(
            "kim", "11K", "SWA", date(2023, 1, 1),
            extra_grades=(("8K", "SWA", date(2024, 3, 1)),),
            needs_dynamic_factor=True,
        )
        return league

    def test_kyu_promotion_raises_rating_and_ends_estimation(self, players):
        engine = RatingEngine(players)
        engine.run([
            win("alice", "kim", on=date(2024, 2, 1)),
            win("bob", "kim", on=date(2024, 3, 1)),
        ])

        # 8K = 1300, floor half a grade below
        assert engine.rating("kim") == pytest.approx(1250)
        assert not engine.is_estimating("kim")
        assert "kim" not in engine.estimator

        [event] = engine.promotion_events
        assert event.to_grade.label == "8K"
        assert event.bonus > 0
        assert set(engine.promotion_bonuses(date(2024, 1, 1), date(2024, 12, 31))) == {"kim"}

    def test_floor_waits_for_end_of_day(self, players):
        engine = RatingEngine(players)
        engine.apply_match(win("alice", "kim", on=date(2024, 2, 1)))
        engine.apply_match(win("bob", "kim", on=date(2024, 3, 1)))
        assert engine.rating("kim") < 1250

        engine.apply_match(win("carol", "kim", on=date(2024, 3, 1)))
        assert engine.rating("kim") < 1250

        # Next day: the floor lands before this game is rated
        rated = engine.apply_match(win("kim", "dave", on=date(2024, 3, 2)))
        assert rated.player_a_before == pytest.approx(1250)

    def test_consume_events(self, players):
        engine = RatingEngine(players)
        engine.run([
            win("alice", "kim", on=date(2024, 2, 1)),
            win("bob", "kim", on=date(2024, 3, 1)),
        ])
        assert len(engine.consume_promotion_events("kim", date(2024, 3, 1))) == 1
        assert engine.promotion_events == []


class TestRun:
    """Tests for RatingEngine.run and ratings_at."""

    @pytest.fixture
    def matches(self):
        return [
            win("alice", "bob", on=date(2024, 1, 10)),
            win("carol", "dave", on=date(2024, 1, 10)),
            win("dave", "alice", on=date(2024, 2, 5)),
            Match(date=date(2024, 2, 5), player_a="bob", player_b="carol", score_a=1, score_b=1),
            win("bob", "alice", on=date(2024, 3, 1)),
        ]

    def test_replay_is_deterministic(self, league, matches):
        first = RatingEngine(league)
        first.run(matches)
        second = RatingEngine(league)
        second.run(matches)
        assert first.ratings() == second.ratings()

    def test_as_of_ignores_later_matches(self, league, matches):
        ratings = ratings_at(league, matches, date(2024, 1, 31))
        assert set(ratings) == {"alice", "bob", "carol", "dave"}
        assert ratings["alice"] == pytest.approx(2116)
        assert ratings["bob"] == pytest.approx(2084)

        engine = RatingEngine(league)
        engine.run(matches)
        assert ratings_at(league, matches, date(2024, 3, 1)) == engine.ratings()

    def test_on_match_called_for_rated_matches_only(self, league):
        seen = []
        RatingEngine(league).run(
            [
                Match(date=DAY, player_a="alice", player_b=None, score_a=1, score_b=0),
                win("alice", "bob", factor=0),
                win("alice", "bob"),
            ],
            on_match=lambda match, rated: seen.append(rated),
        )
        assert len(seen) == 1
        assert seen[0].player_a_after == pytest.approx(2116)

    def test_custom_params(self, league):
        engine = RatingEngine(league, EngineParams(k_base=16))
        rated = engine.apply_match(win("alice", "bob"))
        assert rated.player_a_after == pytest.approx(2108)


class TestPromotionsUpToDate:
    """Tests for promotions recorded after a player's last game."""

    @pytest.fixture
    def players(self, league):
        league["kim"] = build_player(
            "kim", "11K", "SWA", date(2023, 1, 1),
            extra_grades=(("8K", "SWA", date(2024, 3, 1)),),
            needs_dynamic_factor=True,
        )
        return league

    @pytest.fixture
    def matches(self):
        return [win("alice", "kim", on=date(2024, 2, 1))]

    def test_run_as_of_applies_later_promotion(self, players, matches):
        engine = RatingEngine(players)
        engine.run(matches, as_of=date(2024, 6, 1))

        assert engine.rating("kim") == pytest.approx(1250)
        assert not engine.is_estimating("kim")
        assert "kim" not in engine.estimator
        [event] = engine.promotion_events
        assert event.date == date(2024, 3, 1)

    def test_promotion_after_as_of_ignored(self, players, matches):
        engine = RatingEngine(players)
        engine.run(matches, as_of=date(2024, 2, 15))
        assert engine.rating("kim") < 1250
        assert engine.promotion_events == []

    def test_run_without_as_of_only_flushes(self, players, matches):
        engine = RatingEngine(players)
        engine.run(matches)
        assert engine.rating("kim") < 1250

    def test_ratings_at(self, players, matches):
        assert ratings_at(players, matches, date(2024, 6, 1))["kim"] == pytest.approx(1250)

    def test_apply_promotions_up_to(self, players, matches):
        snapshots = {}
        engine = RatingEngine(players)

        def snapshot(match, rated):
            engine.apply_promotions_up_to(date(2024, 3, 31))
            snapshots[match.date] = engine.ratings()

        engine.run(matches, on_match=snapshot)

        assert snapshots[date(2024, 2, 1)]["kim"] == pytest.approx(1250)
        with pytest.raises(MatchOrderError):
            engine.apply_match(win("alice", "kim", on=date(2024, 3, 15)))

    def test_apply_promotions_before_last_match_rejected(self, players, matches):
        engine = RatingEngine(players)
        engine.run(matches)
        with pytest.raises(MatchOrderError):
            engine.apply_promotions_up_to(date(2024, 1, 1))


class TestRankedStatus:
    """Tests for RatingEngine.is_ranked."""

    def test_unplayed_player_not_ranked(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob"))
        assert not engine.is_ranked("carol")

    def test_active_within_two_years(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob", on=date(2024, 1, 10)))

        assert engine.is_ranked("alice")
        assert engine.is_ranked("alice", date(2025, 12, 1))
        assert not engine.is_ranked("alice", date(2026, 1, 10))

    def test_pro_always_active(self, league):
        league["pro"] = build_player("pro", "1P")
        engine = RatingEngine(league)
        engine.apply_match(win("pro", "alice", on=date(2020, 1, 1)))

        assert engine.is_ranked("pro", date(2024, 1, 1))
        assert not engine.is_ranked("alice", date(2024, 1, 1))

    def test_new_kyu_player_unlisted(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "dave"))
        assert not engine.is_ranked("dave")

    def test_experienced_kyu_player_listed(self, league):
        league["dave"] = build_player("dave", "5K", games_played=20)
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "dave"))
        assert engine.is_ranked("dave")

    def test_new_ungraded_player_unlisted(self, league):
        league["ghost"] = build_player("ghost", None)
        engine = RatingEngine(league)
        engine.apply_match(win("ghost", "alice"))
        assert not engine.is_ranked("ghost")

    def test_new_dan_player_listed(self, league):
        engine = RatingEngine(league)
        engine.apply_match(win("alice", "bob"))
        assert engine.is_ranked("bob")

    def test_international_pool_lists_new_players(self, league):
        engine = RatingEngine(league, EngineParams(international=True))
        engine.apply_match(win("alice", "dave"))
        assert engine.is_ranked("dave")

    def test_virtual_pool_never_ranked(self, league):
        league["pool"] = build_player("pool", "1D", is_virtual_pool=True)
        engine = RatingEngine(league)
        engine.apply_match(win("pool", "alice"))
        assert not engine.is_ranked("pool")


class TestInternationalPool:
    """Tests for pro detection in an international pool."""

    @pytest.fixture
    def players(self, league):
        # Home 1P (2700) against foreign 8D: 7D-equivalent at home, 2800 abroad
        league["hybrid"] = build_player("hybrid", "1P", extra_grades=(("8D", "CWA", None),))
        league["newbie"] = build_player("newbie", "1D", needs_dynamic_factor=True)
        return league

    def test_home_league_treats_player_as_pro(self, players):
        rated = RatingEngine(players).apply_match(win("newbie", "hybrid"))
        assert rated.multiplier_b == 1.0

    def test_international_pool_uses_stronger_dan_grade(self, players):
        engine = RatingEngine(players, EngineParams(international=True))
        rated = engine.apply_match(win("newbie", "hybrid"))

        assert rated.player_b_before == 2800
        assert rated.multiplier_b == pytest.approx(0.5)

    def test_player_is_pro_at(self, players):
        hybrid = players["hybrid"]
        assert hybrid.is_pro_at(DAY, "SWA")
        assert not hybrid.is_pro_at(DAY, "SWA", international=True)
