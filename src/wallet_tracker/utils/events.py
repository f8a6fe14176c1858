"""
Шина уведомлений об изменениях данных.

Синхронный внутрипроцессный publish/subscribe: независимые представления
подписываются на ChangeEvent и перезагружают свои данные при публикации.
Доставка выполняется в порядке подписки, ровно один раз на обработчик.
"""

import logging
from threading import Lock
from typing import Callable, Dict, List, Union

from wallet_tracker.models.enums import ChangeEvent

logger = logging.getLogger(__name__)

Handler = Callable[..., None]


class EventBus:
    """Реестр подписчиков по типам событий."""

    def __init__(self):
        self._handlers: Dict[ChangeEvent, List[Handler]] = {}
        self._lock = Lock()

    @staticmethod
    def _coerce(event: Union[ChangeEvent, str]) -> ChangeEvent:
        # ValueError для неизвестного топика
        return ChangeEvent(event)

    def subscribe(self, event: Union[ChangeEvent, str], handler: Handler) -> Callable[[], None]:
        """
        Подписывает обработчик на событие.

        Returns:
            Функция отписки (повторный вызов безопасен)
        """
        event = self._coerce(event)
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)
        logger.debug(f"Подписка на {event.value}: {handler!r}")

        def unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return unsubscribe

    def unsubscribe(self, event: Union[ChangeEvent, str], handler: Handler) -> None:
        event = self._coerce(event)
        with self._lock:
            handlers = self._handlers.get(event)
            if not handlers:
                return
            self._handlers[event] = [h for h in handlers if h != handler]

    def publish(self, event: Union[ChangeEvent, str], *args, **kwargs) -> int:
        """
        Синхронно вызывает всех подписчиков события.

        Список обработчиков фиксируется в момент публикации: подписки и отписки
        внутри обработчика влияют только на следующие публикации. Исключение
        одного обработчика логируется и не мешает остальным.

        Returns:
            Количество вызванных обработчиков
        """
        event = self._coerce(event)
        with self._lock:
            handlers = list(self._handlers.get(event, ()))

        for handler in handlers:
            try:
                handler(*args, **kwargs)
            except Exception:
                logger.exception(f"Ошибка в обработчике события {event.value}: {handler!r}")

        logger.debug(f"Событие {event.value} доставлено {len(handlers)} подписчикам")
        return len(handlers)

    def handler_count(self, event: Union[ChangeEvent, str]) -> int:
        event = self._coerce(event)
        with self._lock:
            return len(self._handlers.get(event, ()))

    def clear(self) -> None:
        """Удаляет всех подписчиков."""
        with self._lock:
            self._handlers.clear()


# Глобальный экземпляр шины
event_bus = EventBus()

subscribe = event_bus.subscribe
unsubscribe = event_bus.unsubscribe
publish = event_bus.publish
