"""Logging configuration for the web app, the worker and the CLI."""
import logging
import logging.handlers
import os
from datetime import datetime

from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MAX_BYTES = 10485760  # 10MB


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for structured logging."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.utcnow().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno


def _rotating_handler(path, level, formatter):
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=10)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_app_logging(app, log_path):
    """Setup application-wide logging."""
    os.makedirs(log_path, exist_ok=True)

    # app.logger is a child of the package logger, so handlers live on the package logger
    package_logger = logging.getLogger('storefront_sync')
    package_logger.handlers = []

    text_formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(text_formatter)

    package_logger.addHandler(console_handler)
    package_logger.addHandler(_rotating_handler(os.path.join(log_path, 'app.log'), logging.INFO, text_formatter))
    package_logger.addHandler(_rotating_handler(os.path.join(log_path, 'app.json.log'), logging.INFO, CustomJsonFormatter()))
    package_logger.addHandler(_rotating_handler(os.path.join(log_path, 'errors.log'), logging.ERROR, text_formatter))

    package_logger.setLevel(logging.INFO)
    app.logger.setLevel(logging.INFO)
    app.logger.info('Application logging configured')


def setup_cli_logging(verbose: bool = False):
    """Configure console logging for command-line runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT
    )


def get_sync_logger(sync_log_id, log_path):
    """Get a logger that also writes one run's messages to ``<log_path>/syncs/<id>.log``."""
    logger = logging.getLogger(f'storefront_sync.sync.{sync_log_id}')
    logger.setLevel(logging.DEBUG)

    close_sync_logger(logger)

    log_file = os.path.join(log_path, 'syncs', f'{sync_log_id}.log')
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(file_handler)

    return logger


def close_sync_logger(logger):
    """Close and detach the file handlers opened by ``get_sync_logger``."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
