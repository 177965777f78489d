from .logging import setup_logger
from .settings import AppSettings

__all__ = [
    "AppSettings",
    "setup_logger",
]
