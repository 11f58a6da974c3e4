"""
EventSource Unit Tests
"""

import pytest
import sys
import os
from unittest.mock import MagicMock

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from eagle_automation.events import EventSource


class TestEventSource:
    """Handler registration and firing"""

    def test_fire_in_order(self):
        calls = []
        event = EventSource('test')
        event += lambda value: calls.append(('first', value))
        event += lambda value: calls.append(('second', value))

        event.fire(42)

        assert calls == [('first', 42), ('second', 42)]

    def test_remove(self):
        handler = MagicMock()
        event = EventSource()
        event += handler
        event -= handler

        event.fire()

        handler.assert_not_called()
        assert len(event) == 0

    def test_remove_unknown_handler(self):
        event = EventSource()
        event.remove(MagicMock())
        assert len(event) == 0

    def test_failing_handler_does_not_stop_others(self):
        after = MagicMock()
        event = EventSource('status')
        event.add(MagicMock(side_effect=RuntimeError("boom")))
        event.add(after)

        event.fire(True, None)

        after.assert_called_once_with(True, None)

    def test_handler_may_unsubscribe_while_firing(self):
        event = EventSource()
        second = MagicMock()

        def once():
            event.remove(once)

        event += once
        event += second
        event.fire()
        event.fire()

        assert event.handlers() == (second,)
        assert second.call_count == 2


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
