"""
Модуль конфигурации приложения Wallet Tracker.

Содержит настройки:
- Основные параметры приложения (название, версия)
- Настройки базы данных (путь, первичное заполнение демо-данными)
- Настройки логирования
- Настройки форматов (символ валюты)
- Стоимость хэширования паролей
- Персистентность настроек (загрузка/сохранение)
"""

import os
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class Config:
    """
    Класс конфигурации приложения.
    Реализует паттерн Singleton для доступа к настройкам из любой части приложения.

    Все пользовательские данные (БД, логи, настройки) хранятся в
    директории ~/.wallet_tracker_data/.
    """

    _instance = None

    # Константы приложения
    APP_NAME = "Wallet Tracker"
    VERSION = "1.0.0"

    @staticmethod
    def get_user_data_dir() -> Path:
        """
        Возвращает путь к директории пользовательских данных.

        Создаёт директорию ~/.wallet_tracker_data/ и поддиректорию logs/.

        Returns:
            Path: Путь к ~/.wallet_tracker_data/
        """
        data_dir = Path.home() / ".wallet_tracker_data"
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Директория пользовательских данных: {data_dir}")

        logs_dir = data_dir / "logs"
        logs_dir.mkdir(exist_ok=True)
        logger.debug(f"Директория логов: {logs_dir}")

        return data_dir

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._initialized = True

        self.user_data_dir = self.get_user_data_dir()

        # Пути к файлам
        self.db_path: str = str(self.user_data_dir / "wallet.db")
        self.config_file: str = str(self.user_data_dir / "config.json")
        self.log_file: str = str(self.user_data_dir / "logs" / "wallet_tracker.log")

        # Настройки логирования
        self.log_level: str = "INFO"

        # Настройки форматов
        self.currency_symbol: str = "R$"

        # Заполнение демо-данными при первом запуске
        self.seed_demo_data: bool = True

        # Стоимость bcrypt (log2 числа раундов)
        self.password_hash_rounds: int = 12

        self.load()

    def load(self) -> None:
        """
        Загружает настройки из файла конфигурации.

        Если файл не существует, используются значения по умолчанию.
        Путь к БД из конфигурации не загружается.
        """
        if not os.path.exists(self.config_file):
            logger.info(f"Файл конфигурации не найден, используются значения по умолчанию: {self.config_file}")
            return

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self.log_level = data.get("log_level", "INFO")
            self.currency_symbol = data.get("currency_symbol", "R$")
            self.seed_demo_data = data.get("seed_demo_data", True)
            self.password_hash_rounds = data.get("password_hash_rounds", 12)

            logger.info(f"Конфигурация загружена из {self.config_file}")

        except Exception as e:
            logger.error(f"Ошибка при загрузке конфигурации: {e}")

    def save(self) -> None:
        """Сохраняет текущие настройки в файл конфигурации."""
        data = {
            "log_level": self.log_level,
            "currency_symbol": self.currency_symbol,
            "seed_demo_data": self.seed_demo_data,
            "password_hash_rounds": self.password_hash_rounds,
        }

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=4, ensure_ascii=False)
            logger.info(f"Конфигурация сохранена в {self.config_file}")
        except Exception as e:
            logger.error(f"Ошибка при сохранении конфигурации: {e}")


# Глобальный экземпляр конфигурации
settings = Config()
