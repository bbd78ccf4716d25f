import logging
import sys

from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogRecordExporter

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Route stdlib logging through an OpenTelemetry LoggerProvider and to stdout.

    Args:
        level: Log level name. Defaults to settings.LOG_LEVEL.
    """
    level = (level or settings.LOG_LEVEL).upper()
    root_logger = logging.getLogger()

    logger_provider = LoggerProvider()
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(ConsoleLogRecordExporter()))
    set_logger_provider(logger_provider)

    # OTel handler picks up every logger.* call, including the structured `extra` fields
    root_logger.addHandler(
        LoggingHandler(level=getattr(logging, level), logger_provider=logger_provider)
    )
    root_logger.setLevel(level)

    # Plain stdout handler so startup messages (root CA path, capability decision)
    # show up before the batch processor flushes
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stream_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger("interception")
