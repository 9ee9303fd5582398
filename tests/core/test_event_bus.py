"""
EventBus 测试
"""

import pytest

from plugforge.core.event_bus import EventBus


class TestEventBus:
    """测试事件订阅与发布"""

    @pytest.mark.asyncio
    async def test_handlers_called_in_registration_order(self):
        bus = EventBus()
        calls = []

        async def first(event_name, data):
            calls.append(("first", data))

        def second(event_name, data):
            calls.append(("second", data))

        bus.on("ready", first)
        bus.on("ready", second)
        await bus.emit("ready", 42)

        assert calls == [("first", 42), ("second", 42)]

    @pytest.mark.asyncio
    async def test_handler_error_does_not_propagate(self, log_messages):
        bus = EventBus()
        calls = []

        def failing(event_name, data):
            raise RuntimeError("handler failed")

        bus.on("ready", failing)
        bus.on("ready", lambda event_name, data: calls.append(event_name))
        await bus.emit("ready")

        assert calls == ["ready"]
        assert any("handler failed" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_off(self):
        bus = EventBus()
        calls = []

        def handler(event_name, data):
            calls.append(data)

        bus.on("ready", handler)
        bus.off("ready", handler)
        await bus.emit("ready", 1)

        assert calls == []
        assert bus.get_listeners_count("ready") == 0
        assert bus.list_events() == []

    @pytest.mark.asyncio
    async def test_emit_without_listeners(self):
        await EventBus().emit("nobody-listens", {"a": 1})

    def test_clear(self):
        bus = EventBus()
        bus.on("a", lambda event_name, data: None)
        bus.on("b", lambda event_name, data: None)

        bus.clear()

        assert bus.list_events() == []
