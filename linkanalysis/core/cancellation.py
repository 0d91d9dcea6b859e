"""
Cooperative cancellation shared between a caller and a running parse
"""

import threading
from typing import Callable, Optional

from .exceptions import ParseCancelledError

ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Flag checked by parsers between row batches"""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ParseCancelledError(self.job_id)
