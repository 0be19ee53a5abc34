import unittest
from unittest.mock import MagicMock

from peer_dashboard.input_poller import InputPoller, KeyAction
from peer_dashboard.terminal import KEY_RESIZE
from tests.mocks.mock_terminal import MockTerminal


class TestInputPoller(unittest.TestCase):
    def make_poller(self, keys):
        self.terminal = MockTerminal(keys=keys)
        self.render = MagicMock()
        return InputPoller(self.terminal, self.render)

    def test_no_pending_key(self):
        poller = self.make_poller([])
        self.assertIs(poller.poll(), KeyAction.NONE)
        self.render.request_resize.assert_not_called()

    def test_quit_keys(self):
        poller = self.make_poller([ord("q"), ord("Q")])
        self.assertIs(poller.poll(), KeyAction.QUIT)
        self.assertIs(poller.poll(), KeyAction.QUIT)

    def test_resize_requests_new_geometry(self):
        poller = self.make_poller([KEY_RESIZE])
        self.assertIs(poller.poll(), KeyAction.RESIZE)
        self.render.request_resize.assert_called_once_with()

    def test_other_keys_are_ignored(self):
        poller = self.make_poller([ord("x"), ord(" "), 27])
        for _ in range(3):
            self.assertIs(poller.poll(), KeyAction.IGNORE)
        self.render.request_resize.assert_not_called()

    def test_reads_one_key_per_poll(self):
        poller = self.make_poller([ord("x"), ord("q")])
        self.assertIs(poller.poll(), KeyAction.IGNORE)
        self.assertEqual(len(self.terminal.keys), 1)
        self.assertIs(poller.poll(), KeyAction.QUIT)
        self.assertIs(poller.poll(), KeyAction.NONE)


if __name__ == '__main__':
    unittest.main()
