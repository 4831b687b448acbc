"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP ответов /monitor
- единый стиль исключений по проекту
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    UNKNOWN = "unknown"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    CONFIG = "config_error"

    # Провайдеры
    TRANSPORT_PROVIDER_ERROR = "transport_provider_error"
    ANALYSIS_PROVIDER_ERROR = "analysis_provider_error"
    ENCODING_ERROR = "encoding_error"


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение
    - details: доп. данные (без секретов/медиа)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "Ошибка валидации", details: dict | None = None) -> None:
        super().__init__(ErrCode.VALIDATION, message, details)


class ConflictError(AppError):
    def __init__(self, message: str = "Конфликт", details: dict | None = None) -> None:
        super().__init__(ErrCode.CONFLICT, message, details)


class MonitorTimeoutError(AppError):
    def __init__(self, message: str = "Таймаут ожидания", details: dict | None = None) -> None:
        super().__init__(ErrCode.TIMEOUT, message, details)


class ConfigError(AppError):
    def __init__(self, message: str = "Ошибка конфигурации", details: dict | None = None) -> None:
        super().__init__(ErrCode.CONFIG, message, details)


class ProviderError(AppError):
    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, details)
