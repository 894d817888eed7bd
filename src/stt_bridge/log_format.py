import logging

RESET = "\033[0m"
DIM = "\033[2m"
BOLD = "\033[1m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
MAGENTA = "\033[35m"

LEVEL_STYLES = {
    logging.DEBUG: ("DBG", DIM),
    logging.INFO: ("INF", GREEN),
    logging.WARNING: ("WRN", YELLOW),
    logging.ERROR: ("ERR", RED),
    logging.CRITICAL: ("CRT", RED + BOLD),
}

# First matching prefix wins.
MESSAGE_STYLES = (
    ("State:", BOLD + CYAN),
    ("Recognition started", BOLD + MAGENTA),
    ("Transcript:", CYAN),
    ("Session summary", BOLD + GREEN),
    ("Dropping", YELLOW),
    ("Filtered", YELLOW),
)


def message_style(message: str, levelno: int) -> str:
    for prefix, style in MESSAGE_STYLES:
        if message.startswith(prefix):
            return style
    if levelno >= logging.WARNING:
        return LEVEL_STYLES.get(levelno, ("", RED))[1]
    if levelno <= logging.DEBUG:
        return DIM
    return ""


class ColoredFormatter(logging.Formatter):
    """One line per record: time, short level tag, last logger name component,
    and the message colored by what it reports."""

    def format(self, record: logging.LogRecord) -> str:
        tag, level_style = LEVEL_STYLES.get(record.levelno, (record.levelname[:3], ""))
        message = record.getMessage()
        style = message_style(message, record.levelno)
        if style:
            message = f"{style}{message}{RESET}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        source = record.name.rsplit(".", 1)[-1]
        stamp = self.formatTime(record, self.datefmt)
        return f"{DIM}{stamp}{RESET} {level_style}{tag}{RESET} {DIM}{source:<20}{RESET} {message}"
