"""Logging helpers: the SUCCESS level, secret redaction and the run log file."""

import logging
from typing import Iterable, List

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOGGER_NAME = "dockdeploy"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
REDACTED = "***"


def redact(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


class SecretFilter(logging.Filter):
    """Masks registered secrets in every record before a handler emits it."""

    def __init__(self):
        super().__init__()
        self.secrets: List[str] = []

    def add_secret(self, secret: str):
        # Longest first so a URL embedding the token is masked as a whole.
        if secret and secret not in self.secrets:
            self.secrets.append(secret)
            self.secrets.sort(key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        cleaned = redact(message, self.secrets)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = redact(record.exc_text, self.secrets)
        return True


def attach_secret_filter(logger: logging.Logger, secret_filter: SecretFilter):
    for handler in logger.handlers + logging.getLogger().handlers:
        if secret_filter not in handler.filters:
            handler.addFilter(secret_filter)


def add_file_handler(logger: logging.Logger, log_file: str, verbose: bool) -> logging.FileHandler:
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)
    return file_handler
