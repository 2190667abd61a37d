import copy
import unittest
from types import SimpleNamespace
from unittest import mock

from application.services import (
    add_player_to_session,
    create_session,
    end_session,
)
from domain.models import AppState, GameType, TransactionKind
from domain.repositories import StateStorage
from interfaces.telegram.callback_data import encode_confirmation, encode_player_choice
from interfaces.telegram.handlers import create_telegram_bot


class InMemoryStateStorage(StateStorage):
    def __init__(self):
        self.state = AppState()

    def load(self) -> AppState:
        return copy.deepcopy(self.state)

    def save(self, state: AppState) -> None:
        self.state = copy.deepcopy(state)


class TelegramCallbackTests(unittest.TestCase):
    def setUp(self) -> None:
        self.storage = InMemoryStateStorage()
        self.session_id = create_session("Friday", GameType.POKER, self.storage).session.id
        self.alice = add_player_to_session(self.session_id, "Alice", self.storage).player.id

        self.bot = create_telegram_bot("123456:TEST", self.storage)
        # Keep the handlers off the network.
        self.bot.send_message = mock.Mock()
        self.bot.delete_message = mock.Mock()
        self.bot.answer_callback_query = mock.Mock()

    def _handler(self, name):
        for handler in self.bot.callback_query_handlers:
            if handler["function"].__name__ == name:
                return handler["function"]
        raise AssertionError(f"No callback handler named {name}")

    def _call(self, data):
        return SimpleNamespace(
            id="cb-1",
            data=data,
            message=SimpleNamespace(id=7, chat=SimpleNamespace(id=42)),
        )

    def test_player_choice_records_and_answers_callback(self):
        data = encode_player_choice(self.session_id, TransactionKind.BUY_IN, self.alice, 50.0)
        self._handler("handle_player_choice")(self._call(data))

        self.assertEqual(len(self.storage.state.transactions), 1)
        self.bot.answer_callback_query.assert_called_once_with("cb-1")
        self.bot.delete_message.assert_called_once_with(42, 7)

    def test_player_choice_on_ended_session_still_answers_callback(self):
        end_session(self.session_id, self.storage)
        data = encode_player_choice(self.session_id, TransactionKind.BUY_IN, self.alice, 50.0)
        self._handler("handle_player_choice")(self._call(data))

        self.assertEqual(self.storage.state.transactions, [])
        self.bot.answer_callback_query.assert_called_once_with("cb-1")

    def test_declined_confirmation_answers_callback(self):
        data = encode_confirmation(self.session_id, "end", accepted=False)
        self._handler("handle_confirmation")(self._call(data))

        self.assertTrue(self.storage.state.sessions[0].is_active)
        self.bot.answer_callback_query.assert_called_once_with("cb-1")
        self.bot.send_message.assert_not_called()

    def test_confirmed_round_answers_callback(self):
        data = encode_confirmation(self.session_id, "round", accepted=True)
        self._handler("handle_confirmation")(self._call(data))

        self.assertEqual(self.storage.state.sessions[0].current_round, 2)
        self.bot.answer_callback_query.assert_called_once_with("cb-1")
        self.bot.send_message.assert_called_once_with(42, "Round 2 started.")

    def test_invalid_callback_data_is_answered_with_error(self):
        self._handler("handle_player_choice")(self._call("tx:BUY_IN:broken"))

        self.bot.answer_callback_query.assert_called_once_with("cb-1", "Invalid selection.")
        self.bot.delete_message.assert_not_called()


if __name__ == "__main__":
    unittest.main()
