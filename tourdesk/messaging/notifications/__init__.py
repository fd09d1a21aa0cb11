from .dispatcher import DispatchResult, TicketDispatcher
from .retry import RetryCoordinator, RetryResult

__all__ = ['DispatchResult', 'RetryCoordinator', 'RetryResult', 'TicketDispatcher']
