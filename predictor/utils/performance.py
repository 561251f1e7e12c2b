"""
Performance monitoring utilities for the weekly predictor
"""

import functools
import time

from flask import current_app, has_app_context

from predictor.utils.logging_config import get_logger

logger = get_logger(__name__)


def _slow_threshold():
    if has_app_context():
        return current_app.config.get("SLOW_FUNCTION_THRESHOLD", 5.0)
    return 5.0


def timer(func):
    """Decorator that logs how long ``func`` took, warning when it was slow"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            execution_time = time.time() - start_time
            logger.error(
                f"Function {func.__name__} failed after {execution_time:.2f}s: {str(e)}"
            )
            raise

        execution_time = time.time() - start_time
        threshold = _slow_threshold()
        if execution_time > threshold:
            logger.warning(
                f"Slow function {func.__name__} took {execution_time:.2f}s "
                f"(threshold: {threshold}s)"
            )
        else:
            logger.debug(f"Function {func.__name__} executed in {execution_time:.2f}s")
        return result

    return wrapper


class PerformanceMonitor:
    """Context manager for monitoring performance of code blocks"""

    def __init__(self, operation_name, log_threshold=0.1):
        self.operation_name = operation_name
        self.log_threshold = log_threshold
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.time() - self.start_time

        if exc_type:
            logger.error(
                f"Operation '{self.operation_name}' failed after {self.duration:.3f}s: {exc_val}"
            )
        elif self.duration > self.log_threshold:
            logger.info(
                f"Operation '{self.operation_name}' completed in {self.duration:.3f}s"
            )
        return False
