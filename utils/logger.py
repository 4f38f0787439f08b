"""Application logging.

Log lines written while handling a request carry the method, path and the
caller's X-User-Id; lines from the email processor and scripts carry "-".
"""
import logging
import os
import sys

from flask import has_request_context, request


class RequestContextFilter(logging.Filter):
    def filter(self, record):
        if has_request_context():
            record.request = f"{request.method} {request.path} user={request.headers.get('X-User-Id') or 'anonymous'}"
        else:
            record.request = '-'
        return True


def _build_logger(name: str) -> logging.Logger:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - [%(request)s] %(message)s'))
    handler.addFilter(RequestContextFilter())

    built = logging.getLogger(name)
    built.setLevel(getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO))
    if not built.handlers:
        built.addHandler(handler)
    built.propagate = False
    return built


logger = _build_logger('freedom_suite')


def log_error(message: str, error: Exception = None, traceback_str: str = None):
    """Log error with optional exception and traceback"""
    if error:
        logger.error(f"{message}: {error}", exc_info=error)
    elif traceback_str:
        logger.error(f"{message}\n{traceback_str}")
    else:
        logger.error(message)


def log_warning(message: str):
    logger.warning(message)


def log_info(message: str):
    logger.info(message)
