import copy
import unittest
from datetime import datetime, timedelta, timezone

from domain.ledger import (
    SETTLEMENT_TOLERANCE,
    UNKNOWN_PLAYER_NAME,
    compute_discrepancy,
    compute_settlement,
    compute_stats,
    group_by_round,
    is_near_zero,
    summarize_session,
)
from domain.models import (
    GameType,
    Player,
    PlayerSessionStats,
    Session,
    Transaction,
    TransactionKind,
)

BUY_IN = TransactionKind.BUY_IN
CASH_OUT = TransactionKind.CASH_OUT
START = datetime(2024, 3, 1, 20, 0, tzinfo=timezone.utc)


def _tx(tx_id, player_id, kind, amount, session_id="s1", minute=0, round=1):
    return Transaction(
        id=tx_id,
        session_id=session_id,
        player_id=player_id,
        kind=kind,
        amount=amount,
        timestamp=START + timedelta(minutes=minute),
        round=round,
    )


def _stats(**nets):
    return [
        PlayerSessionStats(
            player_id=pid,
            total_buy_in=max(-net, 0.0),
            total_cash_out=max(net, 0.0),
            net_score=net,
        )
        for pid, net in nets.items()
    ]


def _apply(stats, transfers):
    balances = {s.player_id: s.net_score for s in stats}
    for t in transfers:
        balances[t.from_player_id] += t.amount
        balances[t.to_player_id] -= t.amount
    return balances


PLAYERS = {pid: Player(id=pid, name=pid.upper()) for pid in ("a", "b", "c", "d")}

THREE_PLAYER_GAME = [
    _tx("t1", "a", BUY_IN, 100),
    _tx("t2", "b", BUY_IN, 100),
    _tx("t3", "c", BUY_IN, 100),
    _tx("t4", "c", CASH_OUT, 300, minute=30),
]


class ComputeStatsTests(unittest.TestCase):
    def test_three_player_example(self):
        stats = compute_stats("s1", THREE_PLAYER_GAME, ["a", "b", "c"])

        self.assertEqual(
            stats,
            [
                PlayerSessionStats("c", 100, 300, 200),
                PlayerSessionStats("a", 100, 0, -100),
                PlayerSessionStats("b", 100, 0, -100),
            ],
        )
        self.assertEqual(compute_discrepancy(stats), 0)

    def test_filters_other_sessions(self):
        txs = THREE_PLAYER_GAME + [_tx("x1", "a", CASH_OUT, 999, session_id="s2")]
        stats = compute_stats("s1", txs, ["a", "b", "c"])
        by_player = {s.player_id: s for s in stats}
        self.assertEqual(by_player["a"].total_cash_out, 0)

    def test_participants_without_transactions_get_zero_rows(self):
        stats = compute_stats("s1", THREE_PLAYER_GAME, ["a", "b", "c", "d"])
        self.assertEqual(len(stats), 4)
        self.assertIn(PlayerSessionStats("d", 0, 0, 0), stats)

    def test_non_participants_are_excluded(self):
        stats = compute_stats("s1", THREE_PLAYER_GAME, ["a", "c"])
        self.assertEqual([s.player_id for s in stats], ["c", "a"])

    def test_ties_keep_participant_order(self):
        stats = compute_stats("s1", THREE_PLAYER_GAME, ["c", "b", "a"])
        self.assertEqual([s.player_id for s in stats], ["c", "b", "a"])

    def test_empty_inputs(self):
        self.assertEqual(compute_stats("s1", THREE_PLAYER_GAME, []), [])
        self.assertEqual(
            compute_stats("s1", [], ["a"]),
            [PlayerSessionStats("a", 0, 0, 0)],
        )

    def test_totals_are_not_rounded(self):
        txs = [_tx("t1", "a", BUY_IN, 0.1), _tx("t2", "a", BUY_IN, 0.2)]
        (stat,) = compute_stats("s1", txs, ["a"])
        self.assertEqual(stat.total_buy_in, 0.1 + 0.2)

    def test_zero_sum_when_ledger_balances(self):
        txs = [
            _tx("t1", "a", BUY_IN, 33.33),
            _tx("t2", "b", BUY_IN, 33.33),
            _tx("t3", "c", BUY_IN, 33.34),
            _tx("t4", "a", CASH_OUT, 12.1),
            _tx("t5", "b", CASH_OUT, 70.45),
            _tx("t6", "c", CASH_OUT, 17.45),
        ]
        stats = compute_stats("s1", txs, ["a", "b", "c"])
        self.assertTrue(is_near_zero(sum(s.net_score for s in stats)))
        self.assertTrue(is_near_zero(compute_discrepancy(stats)))


class ComputeSettlementTests(unittest.TestCase):
    def test_three_player_example(self):
        stats = compute_stats("s1", THREE_PLAYER_GAME, ["a", "b", "c"])
        transfers = compute_settlement(stats, PLAYERS)

        self.assertEqual(
            [(t.from_player_id, t.to_player_id, t.amount) for t in transfers],
            [("a", "c", 100), ("b", "c", 100)],
        )
        self.assertEqual(transfers[0].from_player_name, "A")
        self.assertEqual(transfers[0].to_player_name, "C")

    def test_largest_debtor_pays_largest_creditor_first(self):
        stats = _stats(a=70.0, b=30.0, c=-40.0, d=-60.0)
        transfers = compute_settlement(stats, PLAYERS)

        self.assertEqual(
            [(t.from_player_id, t.to_player_id, t.amount) for t in transfers],
            [("d", "a", 60), ("c", "a", 10), ("c", "b", 30)],
        )
        self.assertEqual(sum(t.amount for t in transfers), 100)
        for balance in _apply(stats, transfers).values():
            self.assertLess(abs(balance), SETTLEMENT_TOLERANCE)

    def test_settles_uneven_amounts(self):
        txs = [
            _tx("t1", "a", BUY_IN, 33.33),
            _tx("t2", "b", BUY_IN, 33.33),
            _tx("t3", "c", BUY_IN, 33.34),
            _tx("t4", "d", BUY_IN, 50),
            _tx("t5", "a", CASH_OUT, 12.1),
            _tx("t6", "b", CASH_OUT, 70.45),
            _tx("t7", "c", CASH_OUT, 17.45),
            _tx("t8", "d", CASH_OUT, 50),
        ]
        stats = compute_stats("s1", txs, ["a", "b", "c", "d"])
        transfers = compute_settlement(stats, PLAYERS)

        self.assertLessEqual(len(transfers), 2)
        self.assertTrue(all(t.amount > 0 for t in transfers))
        credit = sum(s.net_score for s in stats if s.net_score > 0)
        self.assertAlmostEqual(sum(t.amount for t in transfers), credit, places=2)
        for balance in _apply(stats, transfers).values():
            self.assertLess(abs(balance), SETTLEMENT_TOLERANCE)

    def test_unbalanced_ledger_leaves_residual(self):
        stats = _stats(a=-50.0, b=30.0)
        transfers = compute_settlement(stats, PLAYERS)

        self.assertEqual(len(transfers), 1)
        self.assertEqual(
            (transfers[0].from_player_id, transfers[0].to_player_id, transfers[0].amount),
            ("a", "b", 30),
        )
        self.assertAlmostEqual(_apply(stats, transfers)["a"], -20)
        self.assertAlmostEqual(sum(s.net_score for s in stats), -20)
        self.assertAlmostEqual(compute_discrepancy(stats), 20)

    def test_unknown_player_gets_placeholder_name(self):
        transfers = compute_settlement(_stats(a=10.0, zz=-10.0), PLAYERS)
        self.assertEqual(transfers[0].from_player_name, UNKNOWN_PLAYER_NAME)
        self.assertEqual(transfers[0].to_player_name, "A")

    def test_empty_and_even_inputs(self):
        self.assertEqual(compute_settlement([], PLAYERS), [])
        self.assertEqual(compute_settlement(_stats(a=0.0, b=0.0), PLAYERS), [])

    def test_noise_below_tolerance_produces_no_transfer(self):
        self.assertEqual(compute_settlement(_stats(a=0.004, b=-0.004), PLAYERS), [])

        transfers = compute_settlement(_stats(a=50.005, b=-50.0, c=-0.005), PLAYERS)
        self.assertEqual(
            [(t.from_player_id, t.to_player_id, t.amount) for t in transfers],
            [("b", "a", 50)],
        )

    def test_amounts_are_rounded_to_cents(self):
        transfers = compute_settlement(_stats(a=10.0 / 3, b=-10.0 / 3), PLAYERS)
        self.assertEqual(transfers[0].amount, 3.33)

    def test_is_idempotent_and_does_not_mutate_input(self):
        stats = compute_stats("s1", THREE_PLAYER_GAME, ["a", "b", "c"])
        snapshot = copy.deepcopy(stats)

        first = compute_settlement(stats, PLAYERS)
        second = compute_settlement(stats, PLAYERS)

        self.assertEqual(first, second)
        self.assertEqual(stats, snapshot)
        self.assertEqual(
            compute_stats("s1", THREE_PLAYER_GAME, ["a", "b", "c"]), stats
        )

    def test_accepts_a_generator(self):
        transfers = compute_settlement(iter(_stats(a=5.0, b=-5.0)), PLAYERS)
        self.assertEqual(len(transfers), 1)


class SessionHelpersTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = Session(
            id="s1",
            name="Friday",
            game_type=GameType.POKER,
            created_at=START,
            player_ids=["a", "b", "c"],
        )

    def test_summarize_session(self):
        summary = summarize_session(self.session, THREE_PLAYER_GAME, PLAYERS.values())

        self.assertEqual(summary.total_buy_in, 300)
        self.assertEqual(summary.total_cash_out, 300)
        self.assertEqual(summary.discrepancy, 0)
        self.assertTrue(summary.is_balanced)
        self.assertEqual(len(summary.transfers), 2)

    def test_summarize_unbalanced_session(self):
        txs = THREE_PLAYER_GAME[:-1] + [_tx("t4", "c", CASH_OUT, 250)]
        summary = summarize_session(self.session, txs, PLAYERS.values())

        self.assertAlmostEqual(summary.discrepancy, 50)
        self.assertFalse(summary.is_balanced)

    def test_group_by_round_newest_first(self):
        txs = [
            _tx("t1", "a", BUY_IN, 10, minute=0, round=1),
            _tx("t2", "b", BUY_IN, 10, minute=5, round=1),
            _tx("t3", "a", CASH_OUT, 20, minute=10, round=2),
            _tx("t4", "c", BUY_IN, 10, minute=1, round=1, session_id="s2"),
        ]
        rounds = group_by_round("s1", txs)

        self.assertEqual(
            [(r, [t.id for t in group]) for r, group in rounds],
            [(2, ["t3"]), (1, ["t2", "t1"])],
        )

    def test_group_by_round_empty(self):
        self.assertEqual(group_by_round("s1", []), [])


if __name__ == "__main__":
    unittest.main()
