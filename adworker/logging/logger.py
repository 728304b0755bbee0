import logging
import sys

_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Libraries that log every request or pool event at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "psycopg.pool")


class _FieldsFormatter(logging.Formatter):
    """Appends fields passed to ``Log`` calls as sorted key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED
        }
        if not fields:
            return line
        rendered = " ".join(f"{key}={fields[key]}" for key in sorted(fields))
        return f"{line} | {rendered}"


class Log:
    """Centralized logging for the worker.

    Keyword arguments become structured fields, e.g.
    ``Log.info("Job claimed", job_id="7101")``.
    """

    _logger: logging.Logger = logging.getLogger("adworker")

    @classmethod
    def configure(cls, log_level: str) -> None:
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(_FieldsFormatter("%(asctime)s [%(levelname)s] %(message)s"))
            cls._logger.addHandler(handler)
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    @classmethod
    def info(cls, message: str, **fields: object) -> None:
        cls._logger.info(message, extra=fields)

    @classmethod
    def error(cls, message: str, **fields: object) -> None:
        cls._logger.error(message, extra=fields)

    @classmethod
    def exception(cls, message: str, **fields: object) -> None:
        """Error with the traceback of the exception being handled."""
        cls._logger.exception(message, extra=fields)

    @classmethod
    def warning(cls, message: str, **fields: object) -> None:
        cls._logger.warning(message, extra=fields)

    @classmethod
    def debug(cls, message: str, **fields: object) -> None:
        cls._logger.debug(message, extra=fields)
