"""Centralized logging for landlock-ci.

Library logging conventions (Python docs, PEP 282):
- Attach NullHandler to the library root logger
- Never add other handlers from library code -- entry points do that
- Support LANDLOCK_CI_LOG_LEVEL env var for level control
- Provide configure_logging() for the CLI

CLI output format:
    WARNING [2026-02-25 10:02:54] landlock_ci.runner - message

Harness diagnostics go to stderr through a QueueHandler + QueueListener
pair so that chatty test phases streaming output never block on stderr.
Pipeline results (raw log, summary, annotations) are written to stdout
by the verdict emitters, not through logging.
"""

import contextlib
import logging
import logging.handlers
import os
import queue

import click

LIBRARY_LOGGER_NAME: str = "landlock_ci"

logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())

# Honor LANDLOCK_CI_LOG_LEVEL env var (e.g. "DEBUG", "WARNING", "ERROR")
_env_level = os.environ.get("LANDLOCK_CI_LOG_LEVEL", "").strip().upper()
_env_level_value = logging.getLevelNamesMapping().get(_env_level)
if _env_level_value:  # excludes NOTSET (0) and missing keys (None)
    logging.getLogger(LIBRARY_LOGGER_NAME).setLevel(_env_level_value)

_FMT = "%(levelname)s [%(asctime)s] %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Test phases can stream thousands of lines; the queue absorbs bursts.
_QUEUE_CAPACITY = 4096


class _ClickHandler(logging.Handler):
    """Target handler: writes to stderr via click.echo with dim styling.

    click.echo() strips ANSI codes automatically when stderr is not a TTY,
    which keeps CI logs readable.
    """

    def __init__(self) -> None:
        super().__init__()
        self.formatter = logging.Formatter(fmt=_FMT, datefmt=_DATEFMT)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            click.echo(click.style(msg, dim=True), err=True)
        except BlockingIOError:
            pass  # Stderr buffer full -- drop the record
        except Exception:  # noqa: BLE001
            self.handleError(record)


class _NonBlockingHandler(logging.handlers.QueueHandler):
    """Queue-backed handler that never blocks the caller.

    Records are enqueued with put_nowait() into a bounded FIFO drained by
    a QueueListener daemon thread. A full queue drops records.
    """

    def __init__(self) -> None:
        q: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=_QUEUE_CAPACITY)
        super().__init__(q)
        self._listener = logging.handlers.QueueListener(q, _ClickHandler(), respect_handler_level=False)
        self._stopped = False
        self._listener.start()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        """Skip serialization -- same-process queue, no pickle needed."""
        return record

    def enqueue(self, record: logging.LogRecord) -> None:
        with contextlib.suppress(queue.Full):
            self.queue.put_nowait(record)

    def close(self) -> None:
        # logging.shutdown() closes again at exit
        if not self._stopped:
            self._stopped = True
            self._listener.stop()
        super().close()


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name.

    All landlock_ci modules use this instead of logging.getLogger()
    directly for a consistent logger hierarchy.
    """
    return logging.getLogger(name)


def configure_logging(
    *,
    level: int | str | None = None,
    quiet: bool = False,
) -> None:
    """Configure library logging for CLI entry points.

    Adds a _NonBlockingHandler if none exists (idempotent), then sets the
    log level. Consumers that configure their own handlers are unaffected.

    Args:
        level: Log level (e.g. logging.DEBUG, "WARNING"). Overrides env var.
        quiet: If True, set level to ERROR. Takes precedence over level.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)

    if not any(isinstance(h, _NonBlockingHandler) for h in lib_logger.handlers):
        lib_logger.addHandler(_NonBlockingHandler())

    if quiet:
        lib_logger.setLevel(logging.ERROR)
    elif level is not None:
        lib_logger.setLevel(level)


def flush_logging() -> None:
    """Drain queued records and stop the listener thread (call right before exiting).

    The handler is detached, so a later configure_logging() installs a fresh one.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    for handler in list(lib_logger.handlers):
        if isinstance(handler, _NonBlockingHandler):
            lib_logger.removeHandler(handler)
            handler.close()
