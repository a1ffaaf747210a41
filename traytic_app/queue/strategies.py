"""
Queue strategies using Strategy Pattern.

The collect path hands its rows to a queue and returns; the insert worker
drains the queue in the background. Only an in-process queue exists:
ingestion is best-effort, and a durable broker is out of scope.
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List
import logging
from .models import RowBatch


logger = logging.getLogger(__name__)


class QueueStrategy(ABC):
    """
    Abstract base class for queue strategies.
    
    publish() must never block or raise: the caller is an HTTP request
    that has already decided to answer 204.
    """
    
    @abstractmethod
    def publish(self, batch: RowBatch) -> bool:
        """
        Publish a batch to the queue.
        
        Args:
            batch: RowBatch to publish
            
        Returns:
            True if accepted, False if the batch was dropped
        """
        pass
    
    @abstractmethod
    def consume(self, max_rows: int = 500) -> List[RowBatch]:
        """
        Take batches off the queue.
        
        Args:
            max_rows: Stop taking batches once this many rows are collected
            
        Returns:
            List of RowBatch messages (possibly empty)
        """
        pass
    
    @abstractmethod
    def get_queue_length(self) -> int:
        """Number of batches waiting"""
        pass


class InMemoryQueue(QueueStrategy):
    """
    Bounded in-memory queue using Python deque.
    
    Pros:
    - No external dependencies, no network hop on the request path
    - Bounded: under sustained overload new batches are dropped instead of
      growing memory
    
    Cons:
    - Not persistent (lost on restart)
    - Per process
    
    deque append/popleft are atomic, so the request path and the worker
    need no extra locking.
    """
    
    def __init__(self, max_batches: int = 10000):
        """Initialize queue"""
        self.max_batches = max_batches
        self._queue: Deque[RowBatch] = deque()
        self.dropped_batches = 0
    
    def publish(self, batch: RowBatch) -> bool:
        """Append batch unless the queue is full"""
        if len(self._queue) >= self.max_batches:
            self.dropped_batches += 1
            logger.warning(
                "Insert queue full (%d batches), dropped %d rows for site %s",
                self.max_batches, len(batch.rows), batch.site_id
            )
            return False
        self._queue.append(batch)
        return True
    
    def consume(self, max_rows: int = 500) -> List[RowBatch]:
        """Pop batches until max_rows is reached or the queue is empty"""
        batches: List[RowBatch] = []
        row_count = 0
        
        while row_count < max_rows:
            try:
                batch = self._queue.popleft()
            except IndexError:
                break
            batches.append(batch)
            row_count += len(batch.rows)
        
        return batches
    
    def get_queue_length(self) -> int:
        """Get queue length"""
        return len(self._queue)
