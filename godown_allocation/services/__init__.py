from .godown_service import GodownService
from .assignment_service import AssignmentService
from .stock_service import StockService
from .transfer_service import TransferService, TransferResult, StockWarning

__all__ = [
    'GodownService',
    'AssignmentService',
    'StockService',
    'TransferService',
    'TransferResult',
    'StockWarning'
]
