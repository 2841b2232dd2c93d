"""Process-wide logging setup with colored level names."""

import logging
import sys


class ColoredFormatter(logging.Formatter):
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, datefmt=None, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record):
        if not self.use_color:
            return super().format(record)
        original = record.levelname
        color = self.COLORS.get(original, '')
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(level: str = "INFO") -> None:
    """Install one colored stream handler on the root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(
        '%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s',
        datefmt='%H:%M:%S',
        use_color=sys.stderr.isatty(),
    ))
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
