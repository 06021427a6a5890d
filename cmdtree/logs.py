"""
cmdtree logging: the "cmdtree" logger and its rich handler.

Scope
- logger: library logger, silent (NullHandler) until the host opts in.
- configure(level, console): attach a RichHandler writing to the diagnostic
  stream; the level defaults to $CMDTREE_LOG_LEVEL, then WARNING.

What is logged
- debug: registration, inclusion, sealing, path resolution, dispatch outcome.
- error: unexpected handler faults, with their traceback.
"""
import logging
import os

from rich.console import Console
from rich.logging import RichHandler

from .utils import Unset

logger = logging.getLogger("cmdtree")
logger.addHandler(logging.NullHandler())


def configure(level=Unset, /, console=Unset):
    """
    Route the cmdtree logger through rich and return it.

    level is a logging level name or number; Unset reads CMDTREE_LOG_LEVEL.
    Calling configure() again replaces the previously installed handler.
    """
    if level is Unset:
        level = os.environ.get("CMDTREE_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        if not isinstance(resolved := logging.getLevelName(level.strip().upper()), int):
            raise ValueError("unknown log level %r" % level)
        level = resolved

    for handler in [*logger.handlers]:
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    logger.addHandler(RichHandler(
        console=Console(stderr=True) if console is Unset else console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    ))
    logger.setLevel(level)
    return logger


__all__ = (
    "logger",
    "configure",
)
