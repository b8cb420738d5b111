import logging
import logging.handlers
from datetime import datetime
from pathlib import Path

from retail_forecasting.config import config

ROOT_LOGGER_NAME = 'retail_forecasting'

class Logger:
    """Logging manager for the Retail Forecasting engine.

    Every logger handed out lives under the 'retail_forecasting' hierarchy.
    Handlers sit on the package logger only, so module loggers share one
    console stream and one rotating file. Batch runs additionally write to
    their own batch.log.
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger if not already initialized."""
        if self._initialized:
            return

        self._log_config = config.log_config
        self._formatter = logging.Formatter(self._log_config['format'])
        self._log_dir = Path(self._log_config['directory'])

        if self._log_config['file_output']:
            self._log_dir.mkdir(parents=True, exist_ok=True)

        self._package_logger = self._configure(
            logging.getLogger(ROOT_LOGGER_NAME), f"{ROOT_LOGGER_NAME}.log", console=True
        )
        self._batch_logger = self._configure(
            self.get_logger('batch'), 'batch.log', console=False
        )
        self._app_logger = self.get_logger('app')

        self._initialized = True

    def _configure(self, target, file_name, console):
        level_name = self._log_config['level'].upper()
        target.setLevel(getattr(logging, level_name, logging.INFO))

        for handler in target.handlers[:]:
            target.removeHandler(handler)

        if self._log_config['file_output']:
            file_handler = logging.handlers.RotatingFileHandler(
                self._log_dir / file_name,
                maxBytes=self._log_config['max_size_mb'] * 1024 * 1024,
                backupCount=self._log_config['backup_count']
            )
            file_handler.setFormatter(self._formatter)
            target.addHandler(file_handler)

        if console and self._log_config['console_output']:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(self._formatter)
            target.addHandler(console_handler)

        if target.name == ROOT_LOGGER_NAME:
            # Host applications configure the root logger themselves
            target.propagate = False

        return target

    def get_logger(self, name):
        """Get a logger in the package hierarchy.

        Args:
            name: Component name or module __name__

        Returns:
            Logger named 'retail_forecasting.<name>'
        """
        if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
            return logging.getLogger(name)
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception with its stack trace.

        Args:
            logger_name: Logger name
            exception: Exception object
            message: Optional context prefix
        """
        text = f"{message}: {str(exception)}" if message else str(exception)
        self.get_logger(logger_name).error(text, exc_info=exception)

    @property
    def app_logger(self):
        """Get the application logger."""
        return self._app_logger

    def batch_start_log(self, process_name, additional_info=None):
        """Log the start of a batch run.

        Returns:
            Run record to hand back to batch_end_log
        """
        run = {
            'process_name': process_name,
            'start_time': datetime.now(),
            'additional_info': additional_info
        }

        suffix = f" ({additional_info})" if additional_info else ""
        self._batch_logger.info(f"Starting {process_name}{suffix}")

        return run

    def batch_end_log(self, log_info, success=True, result_info=None):
        """Log the end of a batch run with its duration and outcome."""
        duration = datetime.now() - log_info['start_time']
        status = 'completed' if success else 'failed'
        level = logging.INFO if success else logging.ERROR

        suffix = f": {result_info}" if result_info else ""
        self._batch_logger.log(
            level, f"{log_info['process_name']} {status} in {duration}{suffix}"
        )

# Global logger instance
logger = Logger()

def get_logger(name):
    """Get a logger with the specified name."""
    return logger.get_logger(name)

def log_exception(logger_name, exception, message=None):
    """Log an exception with stack trace."""
    logger.log_exception(logger_name, exception, message)
