import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable, Dict, List

from plugforge.modules.logging import get_logger

# 宿主生命周期事件
EXTENSIONS_LOADED = "extensions.loaded"
HOST_STOP = "host.stop"


class EventBus:
    """简单的事件总线实现，用于宿主生命周期通知和扩展单元间通信"""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = defaultdict(list)
        self.logger = get_logger("EventBus")
        self.logger.debug("EventBus 初始化完成")

    async def emit(self, event_name: str, data: Any = None, source: str = "unknown") -> None:
        """
        发布事件

        处理器按注册顺序依次执行；单个处理器出错只记录日志，不影响其他处理器。

        Args:
            event_name: 事件名称
            data: 事件数据
            source: 事件源
        """
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            self.logger.debug(f"事件 {event_name} 没有监听器")
            return

        self.logger.info(f"发布事件 {event_name} (来源: {source}, 监听器: {len(handlers)})")
        for handler in handlers:
            await self._call_handler(handler, event_name, data, source)

    async def _call_handler(self, handler: Callable, event_name: str, data: Any, source: str):
        try:
            result = handler(event_name, data)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.opt(exception=e).error(f"事件处理器执行错误 (事件: {event_name}, 来源: {source}): {e}")

    def on(self, event_name: str, handler: Callable) -> None:
        """
        订阅事件

        Args:
            event_name: 要监听的事件名称
            handler: 事件处理器，签名为 handler(event_name, data)，可以是协程函数
        """
        self._handlers[event_name].append(handler)
        self.logger.debug(f"注册事件监听器: {event_name} -> {getattr(handler, '__name__', handler)}")

    def off(self, event_name: str, handler: Callable) -> None:
        """取消订阅"""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
            self.logger.debug(f"移除事件监听器: {event_name} -> {getattr(handler, '__name__', handler)}")
            if not handlers:
                del self._handlers[event_name]

    def clear(self) -> None:
        """清除所有事件监听器"""
        events = self.list_events()
        self._handlers.clear()
        self.logger.debug(f"已清除所有事件监听器: {events}")

    def get_listeners_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def list_events(self) -> List[str]:
        return list(self._handlers.keys())


__all__ = ["EXTENSIONS_LOADED", "HOST_STOP", "EventBus"]
