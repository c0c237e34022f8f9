import unittest

from turntalk.messages import Connected, Dial, Disconnected, Log, SentenceReceived, SentenceSent, Submit
from turntalk.tui_model import (
    ACTION_DIAL,
    ACTION_QUIT,
    ACTION_SUBMIT,
    ELEMENT_CONNECT,
    ELEMENT_INPUT,
    STATE_IN_SESSION,
    STATE_WAITING,
    PeerTuiModel,
)


def _type(model: PeerTuiModel, text: str) -> list:
    return [model.handle_key("CHAR", char) for char in text]


class PeerTuiModelTests(unittest.TestCase):
    def test_initial_state(self):
        render = PeerTuiModel().render()

        self.assertEqual(render.app_state, STATE_WAITING)
        self.assertEqual(render.selected_element, ELEMENT_CONNECT)
        self.assertEqual(render.content, "")

    def test_escape_quits(self):
        self.assertEqual(PeerTuiModel().handle_key("ESC"), ACTION_QUIT)

    def test_arrows_and_tab_switch_elements(self):
        model = PeerTuiModel()
        model.handle_key("LEFT")
        self.assertEqual(model.selected_element, ELEMENT_INPUT)
        model.handle_key("RIGHT")
        self.assertEqual(model.selected_element, ELEMENT_CONNECT)
        model.handle_key("TAB")
        self.assertEqual(model.selected_element, ELEMENT_INPUT)

    def test_enter_dials_typed_address(self):
        model = PeerTuiModel()
        _type(model, "127.0.0.1:90011")
        model.handle_key("BACKSPACE")

        self.assertEqual(model.handle_key("ENTER"), ACTION_DIAL)
        self.assertEqual(model.take_command(), Dial(host="127.0.0.1", port=9001))
        self.assertIsNone(model.take_command())

    def test_invalid_address_is_logged(self):
        model = PeerTuiModel()
        _type(model, "nowhere")

        self.assertIsNone(model.handle_key("ENTER"))
        self.assertIsNone(model.take_command())
        self.assertTrue(model.render().log_lines[-1].startswith("Invalid address:"))

    def test_typing_is_ignored_in_input_while_waiting(self):
        model = PeerTuiModel()
        model.handle_key("LEFT")
        _type(model, "hi.")

        self.assertEqual(model.input_buffer, "")
        self.assertIsNone(model.take_command())

    def test_connected_enters_session(self):
        model = PeerTuiModel()
        model.handle_notification(Connected(initial_turn=True, peer="127.0.0.1:9001"))
        render = model.render()

        self.assertEqual(render.app_state, STATE_IN_SESSION)
        self.assertTrue(render.is_our_turn)
        self.assertEqual(render.peer, "127.0.0.1:9001")
        self.assertEqual(render.selected_element, ELEMENT_INPUT)
        self.assertEqual(render.log_lines[-1], "Your turn to write")

    def test_delimiter_submits_sentence(self):
        model = PeerTuiModel()
        model.handle_notification(Connected(initial_turn=True))

        actions = _type(model, "hello.")

        self.assertEqual(actions[-1], ACTION_SUBMIT)
        self.assertEqual(model.take_command(), Submit("hello."))
        self.assertEqual(model.input_buffer, "")
        self.assertFalse(model.is_our_turn)

    def test_typing_out_of_turn_is_ignored(self):
        model = PeerTuiModel()
        model.handle_notification(Connected(initial_turn=False))
        _type(model, "early.")

        self.assertEqual(model.input_buffer, "")
        self.assertIsNone(model.take_command())

    def test_custom_delimiter(self):
        model = PeerTuiModel(delimiter="!")
        model.handle_notification(Connected(initial_turn=True))

        self.assertEqual(_type(model, "a.b!")[-1], ACTION_SUBMIT)
        self.assertEqual(model.take_command(), Submit("a.b!"))

    def test_transcript_and_turn_follow_notifications(self):
        model = PeerTuiModel()
        model.handle_notification(Connected(initial_turn=False))
        model.handle_notification(SentenceReceived("hello."))
        self.assertTrue(model.is_our_turn)

        model.handle_notification(SentenceSent("hi."))
        render = model.render()
        self.assertFalse(render.is_our_turn)
        self.assertEqual(render.transcript, ("hello.", "hi."))
        self.assertEqual(render.content, "hello. hi.")

    def test_disconnect_returns_to_waiting(self):
        model = PeerTuiModel()
        model.handle_notification(Connected(initial_turn=True))
        _type(model, "half")
        model.handle_notification(SentenceReceived("x."))
        model.handle_notification(Disconnected())
        render = model.render()

        self.assertEqual(render.app_state, STATE_WAITING)
        self.assertEqual(render.transcript, ())
        self.assertEqual(render.input_text, "")
        self.assertEqual(render.selected_element, ELEMENT_CONNECT)

    def test_log_lines_are_bounded(self):
        model = PeerTuiModel(max_log_lines=3)
        for index in range(5):
            model.handle_notification(Log(f"line {index}"))

        self.assertEqual(model.render().log_lines, ("line 2", "line 3", "line 4"))

    def test_delimiter_must_be_one_character(self):
        with self.assertRaises(ValueError):
            PeerTuiModel(delimiter="..")
