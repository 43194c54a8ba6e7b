import functools
from typing import Callable

from chalice import Response

from chalicelib.constants.status_codes import http500
from chalicelib.utils.exceptions import DomainError
from chalicelib.utils.logger import logger, log_exception

GENERIC_ERROR_MESSAGE = 'Internal server error'


def error_response(error: Exception, msg: str = "", status_code: int = 400, *args, **kwargs):
    log_exception(error=error, msg=msg, status_code=status_code, *args, **kwargs)
    public_message = str(error) if isinstance(error, DomainError) else GENERIC_ERROR_MESSAGE
    return Response(
        body={
            'message': public_message,
            'exception': error.__class__.__name__ if isinstance(error, DomainError) else 'ServerError',
            'error_id': getattr(logger, 'current_request_id', None)
        },
        status_code=status_code,
        headers={'Content-Type': 'application/json'}
    )


def request_exception_handler(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        try:
            logger.info(f'Calling function {func.__name__}')
            return func(*args, **kwargs)
        except DomainError as domain_error:
            return error_response(
                error=domain_error,
                msg=f'function = {func.__name__} , error = {domain_error}',
                status_code=domain_error.STATUS_CODE)
        except Exception as exception:
            return error_response(
                error=exception,
                msg=f'function = {func.__name__}, error = {exception}',
                status_code=http500)
    return result


def log_start_finish(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.info(f'{func.__name__} ::: started')
        response = func(*args, **kwargs)
        logger.info(f'{func.__name__} ::: finished')
        return response
    return result
