import json
import os
import uuid
from copy import deepcopy
from datetime import date
from decimal import Decimal
from logging import setLoggerClass, getLogger, Logger, NOTSET, StreamHandler, Formatter

from chalice.app import Request

from chalicelib.constants.constants import SERVICE_NAME


class RequestLogger(Logger):
    """
    Logger which puts the id of the request being served in front of every message
    """

    def __init__(self, name, level=NOTSET):
        self.current_request_id = None
        super(RequestLogger, self).__init__(name, level)

    def _log(self, level, msg, args, **kwargs):
        super(RequestLogger, self)._log(level, f'[{self.current_request_id}] : {msg}', args, **kwargs)


def conf_logger(level) -> RequestLogger:
    setLoggerClass(RequestLogger)
    logger_ = getLogger(SERVICE_NAME)
    setLoggerClass(Logger)

    console_handler = StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(Formatter('%(asctime)s - %(levelname)s - %(threadName)s - %(message)s'))
    if logger_.hasHandlers():
        logger_.handlers.clear()
    logger_.addHandler(console_handler)
    logger_.setLevel(level)
    logger_.propagate = False
    return logger_


logger = conf_logger(os.environ.get('LOG_LEVEL', 'DEBUG').upper())


def set_request_id(request: Request) -> str:
    """
    Takes the short request id from the lambda context,
    local runs and tests don't have one so a random one is generated
    """
    lambda_context = getattr(request, 'lambda_context', None)
    aws_request_id = getattr(lambda_context, 'aws_request_id', None)
    source_id = aws_request_id if isinstance(aws_request_id, str) else str(uuid.uuid4())
    logger.current_request_id = source_id.split('-')[-1]
    return logger.current_request_id


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, value):
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, bytes):
            return value.decode('utf-8', errors='replace')
        return super(CustomJSONEncoder, self).default(value)


def log_request(request: Request):
    request_dict = deepcopy(request.to_dict())
    # credentials never reach the logs
    request_dict.get('headers', {}).pop('authorization', None)
    logger.info(f"Request: {json.dumps(request_dict, cls=CustomJSONEncoder)}")


def log_exception(error: Exception, status_code: int = 400, msg: str = "", *args, **kwargs):
    """
    One json line per handled error, the error's LEVEL picks the log level
    """
    log_methods = {
        'debug': logger.debug,
        'info': logger.info,
        'warning': logger.warning,
        'error': logger.error,
        'exception': logger.exception,
    }
    level = getattr(error, 'LEVEL', 'exception')
    if level not in log_methods:
        level = 'exception'
    log_methods[level](json.dumps({
        'error': str(error),
        'exception': error.__class__.__name__,
        'message': str(msg),
        'level': level,
        'status_code': status_code,
        'error_id': logger.current_request_id,
        'args': args,
        'kwargs': kwargs
    }, cls=CustomJSONEncoder))
