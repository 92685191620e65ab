"""Root logger setup for the CLI and embedding applications.

Two output modes are supported:

* plain text (default): ``timestamp level logger: message``
* JSON lines (``FORMBUILDER_STRUCTURED_LOGGING=true``): one object per
  record, suitable for log aggregators that index fields without regex
  parsing.

Output schema per JSON line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "formbuilder.schema.guard",
        "message": "created scheme checksum snapshot ...",
        "exc_info": "Traceback ..."  // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from formbuilder.config import Settings

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Marker attribute so repeated configure_logging() calls replace our own
# handler instead of stacking duplicates.
_HANDLER_MARKER = "_formbuilder_handler"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings) -> logging.Handler:
    """Install the formbuilder handler on the root logger and return it."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    setattr(handler, _HANDLER_MARKER, True)

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    return handler
