"""
Модуль настройки логирования для Wallet Tracker.

Обеспечивает:
- Структурированное логирование в файл (JSON формат, отдельный файл на запуск)
- Читаемый вывод в консоль
"""

import json
import logging
import sys
from pathlib import Path
from datetime import datetime, date
from typing import Any, Dict, Optional
from decimal import Decimal

from wallet_tracker.config import settings

# Стандартные атрибуты LogRecord, которые не попадают в extra
_RESERVED_ATTRS = frozenset({
    "args", "asctime", "created", "exc_info", "exc_text", "filename",
    "funcName", "levelname", "levelno", "lineno", "module", "msecs",
    "message", "msg", "name", "pathname", "process", "processName",
    "relativeCreated", "stack_info", "thread", "threadName", "taskName",
})


class JsonFormatter(logging.Formatter):
    """
    Форматтер для вывода логов в формате JSON (одна запись на строку).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S'),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        # Поля из extra, например logger.info("...", extra={"user_id": uid})
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_record[key] = self._serialize_value(value)

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False)

    def _serialize_value(self, value: Any) -> Any:
        """Преобразует значение в JSON-сериализуемый формат."""
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        elif isinstance(value, Decimal):
            return str(value)
        elif isinstance(value, (str, int, float, bool)) or value is None:
            return value
        return str(value)


def setup_logging(log_file: Optional[str] = None) -> Optional[Path]:
    """
    Настраивает систему логирования приложения.

    Создаёт новый файл лога для каждого запуска
    (wallet_tracker_YYYYMMDD_HHMMSS.log) рядом с settings.log_file.

    Args:
        log_file: Путь-шаблон файла лога (по умолчанию settings.log_file)

    Returns:
        Путь к файлу лога текущего запуска или None, если файл настроить не удалось
    """
    log_dir = Path(log_file or settings.log_file).parent

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers = []

    session_log_file: Optional[Path] = None
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        session_log_file = log_dir / f"wallet_tracker_{timestamp}.log"

        file_handler = logging.FileHandler(session_log_file, encoding='utf-8')
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)
    except OSError as e:
        print(f"КРИТИЧЕСКАЯ ОШИБКА: Не удалось настроить файл логов: {e}", file=sys.stderr)
        session_log_file = None

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(module)s:%(funcName)s | %(message)s',
        datefmt='%H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    logging.info("Система логирования инициализирована")
    if session_log_file is not None:
        logging.info(f"Логи записываются в: {session_log_file}")
    return session_log_file


def get_logger(name: str) -> logging.Logger:
    """Возвращает логгер с указанным именем (обычно __name__)."""
    return logging.getLogger(name)
