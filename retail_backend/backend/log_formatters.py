# backend/log_formatters.py

import logging

# Attributes every LogRecord carries; anything else arrived through extra={}
_RESERVED = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class ContextFormatter(logging.Formatter):
    """
    Plain-text formatter that keeps the structured context.

    Service code logs with extra={"batch_number": ..., "product_id": ...};
    those keys are appended to the line as key=value pairs, sorted by key.
    """

    def format(self, record):
        line = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if not context:
            return line
        pairs = " ".join(f"{key}={context[key]}" for key in sorted(context))
        return f"{line} {pairs}"
