from .config import config
from .db import db, get_database
from .logging_setup import logger, get_logger
from .exceptions import (
    GodownError, ValidationError, NotFoundError, ConflictError,
    InvalidStateError, StorageError, ConfigError
)
from .services import GodownService, AssignmentService, StockService, TransferService

__all__ = [
    'config',
    'db',
    'get_database',
    'logger',
    'get_logger',
    'GodownError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'InvalidStateError',
    'StorageError',
    'ConfigError',
    'GodownService',
    'AssignmentService',
    'StockService',
    'TransferService'
]
