import logging
import sys


class Log:
    """Centralized logging for the compressor.

    Keyword arguments are rendered as ``key=value`` pairs after the message so
    request ids and backend names stay greppable in plain-text logs.
    """

    _logger: logging.Logger = logging.getLogger("pdfcompressor")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Configure the logger with the specified level and stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
            )
            cls._logger.addHandler(handler)

    @staticmethod
    def _render(message: str, fields: dict[str, object]) -> str:
        if not fields:
            return message
        context = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} [{context}]"

    @classmethod
    def info(cls, message: str, **fields: object) -> None:
        cls._logger.info(cls._render(message, fields))

    @classmethod
    def error(cls, message: str, **fields: object) -> None:
        cls._logger.error(cls._render(message, fields))

    @classmethod
    def warning(cls, message: str, **fields: object) -> None:
        cls._logger.warning(cls._render(message, fields))

    @classmethod
    def debug(cls, message: str, **fields: object) -> None:
        cls._logger.debug(cls._render(message, fields))
