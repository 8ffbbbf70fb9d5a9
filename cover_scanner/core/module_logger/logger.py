import logging
import os

from cover_scanner.core.utils import Utils

class ModuleLogger:
    """
    Configures and manages logging for Cover Scanner modules.
    """
    PROJECT_ROOT  = Utils.find_root('pyproject.toml')
    LOGS_DIR      = PROJECT_ROOT / 'cover_scanner' / 'logs'
    LEVEL_ENV_VAR = 'COVER_SCANNER_LOG_LEVEL'
    LOG_FORMAT    = '%(asctime)s - %(levelname)s - %(threadName)s - %(message)s'

    def __init__(self, module_name: str, level: int | str | None = None):
        """
        Initialize logger configuration for a specific module.

        Args:
            module_name : Name of the module requesting the logger
            level       : Optional level; falls back to $COVER_SCANNER_LOG_LEVEL, then INFO
        """
        self.logger   = logging.getLogger(f'cover_scanner.{module_name}')
        self.log_file = self.LOGS_DIR / f'{module_name}.log'
        self.level    = level or os.environ.get(self.LEVEL_ENV_VAR, 'INFO')

        self.configure_logger()

    def configure_logger(self):
        """
        Sets up logger with a file handler if not already configured.
        Worker threads log through the same handler, so the thread name is part of each record.
        """
        if not self.logger.handlers:

            self.logger.setLevel(self.level.upper() if isinstance(self.level, str) else self.level)
            self.LOGS_DIR.mkdir(parents = True, exist_ok = True)

            handler = logging.FileHandler(self.log_file, mode = 'a', encoding = 'utf-8')
            handler.setFormatter(logging.Formatter(self.LOG_FORMAT))

            self.logger.addHandler(handler)
            self.logger.propagate = False

    def __call__(self) -> logging.Logger:
        """
        Returns the configured logger instance.
        """
        return self.logger
