import os
import sys
import logging
from logging.handlers import TimedRotatingFileHandler

LOG_DIR = os.environ.get('PROMPT_LIBRARY_LOG_DIR', 'user/logs')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Ensure log directory exists before the file handler opens
try:
    os.makedirs(LOG_DIR, exist_ok=True)
except OSError as e:
    print(f"Failed to create log dir {LOG_DIR}: {e}", file=sys.stderr)

# Configure file handler with daily rotation
file_handler = TimedRotatingFileHandler(
    os.path.join(LOG_DIR, 'prompt_library.log'),
    when='midnight',
    interval=1,
    backupCount=30,
    encoding='utf-8'
)
file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

# Console handler for terminal output
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

# Configure root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)

# Remove any existing handlers
for handler in root_logger.handlers[:]:
    root_logger.removeHandler(handler)

root_logger.addHandler(file_handler)
root_logger.addHandler(console_handler)

# Quiet down Flask's werkzeug logger and the Google client stack
logging.getLogger('werkzeug').setLevel(logging.WARNING)
logging.getLogger('google').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)


def set_level(level_name: str):
    """Apply LOG_LEVEL from settings (hot-reloadable)."""
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        root_logger.warning(f"Unknown LOG_LEVEL '{level_name}', keeping {logging.getLevelName(root_logger.level)}")
        return
    root_logger.setLevel(level)
