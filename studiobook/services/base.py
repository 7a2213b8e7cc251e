# studiobook/services/base.py
"""
Base Service Pattern for the studio booking core.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error handling
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    DomainException,
    RepositoryException,
    ServiceException,
    StoreTransactionAbortedException,
    is_transaction_abort,
)
from ..core.time_utils import Clock, utc_now
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _store_error(exc: BaseException) -> Optional[SQLAlchemyError]:
    """The SQLAlchemy error behind ``exc``, unwrapping RepositoryException."""
    if isinstance(exc, SQLAlchemyError):
        return exc
    cause = exc.__cause__
    if isinstance(cause, SQLAlchemyError):
        return cause
    return None


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    # Class-level metrics storage
    _class_metrics: Dict[str, Dict[str, Dict[str, Any]]] = {}
    _metrics_lock = threading.Lock()

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Initialize base service.

        Args:
            db: Database session
            clock: Source of "now" (UTC); injectable for tests
        """
        self.db = db
        self.clock: Clock = clock or utc_now
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> Any:
        return self.clock()

    @contextmanager
    def transaction(
        self,
        on_integrity_error: Optional[Callable[[IntegrityError], DomainException]] = None,
    ) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Commits on success and rolls back on any error. Domain exceptions pass
        through unchanged; store failures become ``StoreTransactionAbortedException``
        (retryable) or ``ServiceException``.

        Usage:
            with self.transaction():
                self.db.add(entity)
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except DomainException:
            self.db.rollback()
            raise
        except (SQLAlchemyError, RepositoryException) as e:
            self.db.rollback()
            store_error = _store_error(e)
            if on_integrity_error is not None and isinstance(store_error, IntegrityError):
                raise on_integrity_error(store_error) from e
            if is_transaction_abort(e):
                self.logger.warning(f"Transaction aborted by store: {str(e)}")
                raise StoreTransactionAbortedException(details={"error": str(e)}) from e
            self.logger.error(f"Transaction failed: {str(e)}")
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception as e:
            self.logger.error(f"Unexpected error in transaction: {str(e)}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, data):
                ...
        """

        def decorator(func: F) -> F:
            func._operation_name = operation_name  # type: ignore[attr-defined]
            func._is_measured = True  # type: ignore[attr-defined]

            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time

                    if hasattr(self, "_record_metric"):
                        self._record_metric(operation_name, elapsed, success)

                    if elapsed > 1.0 and hasattr(self, "logger"):
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    try:
                        prometheus_metrics.record_service_operation(
                            service=self.__class__.__name__,
                            operation=operation_name,
                            duration=elapsed,
                            status="success" if success else "error",
                            error_type=error_type,
                        )
                    except Exception as metrics_error:
                        # Metrics must never change the outcome of the operation.
                        logger.debug("Failed to record metrics: %s", metrics_error)

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Args:
            operation: Operation name
            **context: Additional context to log
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        """
        Record performance metrics.

        Args:
            operation: Operation name
            elapsed: Time taken in seconds
            success: Whether operation succeeded
        """
        class_name = self.__class__.__name__
        with BaseService._metrics_lock:
            metrics = BaseService._class_metrics.setdefault(class_name, {})

            if operation not in metrics:
                metrics[operation] = {
                    "count": 0,
                    "total_time": 0.0,
                    "success_count": 0,
                    "failure_count": 0,
                    "min_time": float("inf"),
                    "max_time": 0.0,
                }

            metric_data = metrics[operation]
            metric_data["count"] += 1
            metric_data["total_time"] += elapsed
            metric_data["min_time"] = min(metric_data["min_time"], elapsed)
            metric_data["max_time"] = max(metric_data["max_time"], elapsed)

            if success:
                metric_data["success_count"] += 1
            else:
                metric_data["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get performance metrics for this service.

        Returns:
            Dictionary with metrics for each measured operation
        """
        with BaseService._metrics_lock:
            metrics = {
                op: dict(data)
                for op, data in BaseService._class_metrics.get(self.__class__.__name__, {}).items()
            }

        result = {}
        for operation, data in metrics.items():
            count = data["count"]
            if count == 0:
                continue

            result[operation] = {
                "count": count,
                "avg_time": data["total_time"] / count,
                "min_time": data["min_time"],
                "max_time": data["max_time"],
                "total_time": data["total_time"],
                "success_rate": data["success_count"] / count,
                "success_count": data["success_count"],
                "failure_count": data["failure_count"],
            }

        return result

    def reset_metrics(self) -> None:
        """Reset all metrics for this service."""
        class_name = self.__class__.__name__
        with BaseService._metrics_lock:
            if class_name in BaseService._class_metrics:
                BaseService._class_metrics[class_name].clear()
        self.logger.info(f"Metrics reset for {class_name}")
