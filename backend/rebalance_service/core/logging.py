import logging
import sys

_HANDLER_NAME = "rebalance-stdout"
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [trace=%(trace_id)s] %(message)s"


class _TraceDefaults(logging.Filter):
    """Give records a ``trace_id`` so the format works before telemetry hooks in."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = "-"
        return True


def setup_logging(level: int | str = logging.INFO) -> None:
    """Send application logs to stdout; calling it again only adjusts the level."""
    root_logger = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger.setLevel(level)

    if any(handler.get_name() == _HANDLER_NAME for handler in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.addFilter(_TraceDefaults())
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(handler)

    # Outbound polling of exchanges and the store is chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
