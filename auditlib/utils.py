"""
Utility functions for the AWS usage audit collector.

Logging Level Standards:
------------------------
- ERROR: A region that failed and was skipped
         "[us-east-1] Region failed: {e}"
- WARNING: Retries after throttling, partial failures
           "Retrying get_metric_datapoints in 2.0 seconds..."
- INFO: Progress messages, resource counts
        "[us-east-1] Found 42 EC2 instances"
- DEBUG: Per-resource detail
         "[us-east-1] vol-0abc: 3 read, 3 write datapoints"
"""
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from botocore.exceptions import ClientError, NoCredentialsError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_MAX_WAIT,
    DEFAULT_RETRY_MIN_WAIT,
    REPORT_EBS_VOLUME_METRICS,
    REPORT_EC2_CPU_METRICS,
    REPORT_UNUSED_EBS_SNAPSHOTS,
    REPORT_UNUSED_EIPS,
)

logger = logging.getLogger(__name__)

# Type variable for generic function decorator
F = TypeVar('F', bound=Callable[..., Any])


# =============================================================================
# Error Classification
# =============================================================================

class AuthError(Exception):
    """Custom exception for credential failures.

    Raised when the credentials themselves are missing, expired or invalid.
    No region can succeed in that case, so collection stops instead of
    logging and skipping one region.
    """
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


# AWS error codes that mean the credentials themselves are unusable
AWS_CREDENTIAL_ERROR_CODES = {
    'ExpiredToken', 'ExpiredTokenException', 'InvalidClientTokenId',
    'SignatureDoesNotMatch', 'InvalidIdentityToken', 'CredentialsNotFound',
}

# AWS error codes for a region that is not enabled for the account or is
# denied by policy; other regions may still work
AWS_ACCESS_DENIED_ERROR_CODES = {
    'AccessDenied', 'AccessDeniedException', 'UnauthorizedAccess',
    'UnauthorizedOperation', 'AuthFailure', 'OptInRequired',
}

# AWS error codes returned when a request is rate limited
AWS_THROTTLING_ERROR_CODES = {
    'Throttling', 'ThrottlingException', 'ThrottledException',
    'RequestThrottled', 'RequestThrottledException', 'RequestLimitExceeded',
    'TooManyRequestsException', 'SlowDown', 'PriorRequestNotComplete',
    'EC2ThrottledException',
}


def get_error_code(exc: BaseException) -> str:
    """Return the AWS error code of a ClientError, or '' for anything else."""
    if isinstance(exc, ClientError):
        return exc.response.get('Error', {}).get('Code', '')
    return ''


def is_credential_error(exc: BaseException) -> bool:
    """Check if an exception means the credentials are missing or unusable."""
    if isinstance(exc, NoCredentialsError):
        return True
    return get_error_code(exc) in AWS_CREDENTIAL_ERROR_CODES


def is_access_denied_error(exc: BaseException) -> bool:
    """
    Check if an exception is a permission or opt-in refusal.

    EC2 answers AuthFailure for opt-in regions the account has not enabled,
    and UnauthorizedOperation when an SCP denies the region.
    """
    return get_error_code(exc) in AWS_ACCESS_DENIED_ERROR_CODES


def is_throttling_error(exc: BaseException) -> bool:
    """Check if an exception is an AWS rate-limit error worth retrying."""
    return get_error_code(exc) in AWS_THROTTLING_ERROR_CODES


def check_and_raise_auth_error(exc: Exception, context: str) -> None:
    """
    Check if exception is a credential error and raise AuthError if so.

    Call this in exception handlers before logging and continuing.
    Region-scoped refusals (see is_access_denied_error) return normally so
    the caller can record the region as failed and move on.

    Raises:
        AuthError: If exc is a credential error
    """
    if is_credential_error(exc):
        raise AuthError(
            f"Credential error while trying to {context}: {exc}",
            original_error=exc
        ) from exc


# =============================================================================
# Retry
# =============================================================================

def retry_with_backoff(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 60,
    exceptions: tuple = (Exception,),
    when: Optional[Callable[[BaseException], bool]] = None
) -> Callable[[F], F]:
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum wait time between retries in seconds (default: 1)
        max_wait: Maximum wait time between retries in seconds (default: 60)
        exceptions: Tuple of exception types to retry on (default: all Exceptions)
        when: Optional predicate; an exception is only retried if it returns True

    Returns:
        Decorated function with retry logic. The last exception is re-raised
        once attempts are exhausted.

    Example:
        @retry_with_backoff(max_attempts=5, exceptions=(ClientError,), when=is_throttling_error)
        def call_api():
            ...
    """
    condition = retry_if_exception_type(exceptions)
    if when is not None:
        condition = condition & retry_if_exception(when)

    def decorator(func: F) -> F:
        return retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=condition,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )(func)
    return decorator


# Applied to every AWS API call made by the collector
retry_on_throttle = retry_with_backoff(
    max_attempts=DEFAULT_RETRY_ATTEMPTS,
    min_wait=DEFAULT_RETRY_MIN_WAIT,
    max_wait=DEFAULT_RETRY_MAX_WAIT,
    exceptions=(ClientError,),
    when=is_throttling_error,
)


# =============================================================================
# Progress Tracking
# =============================================================================

REPORT_LABELS = {
    REPORT_EC2_CPU_METRICS: "EC2 CPU rows",
    REPORT_EBS_VOLUME_METRICS: "EBS volume metric rows",
    REPORT_UNUSED_EBS_SNAPSHOTS: "Unused volume snapshots",
    REPORT_UNUSED_EIPS: "Unused Elastic IPs",
}


class ProgressTracker:
    """
    Progress tracker for the region loop with rich display.

    Falls back to simple print statements if stdout is not a TTY
    (e.g., when piping output).

    Usage:
        with ProgressTracker("AWS Usage Audit", total_regions=18) as tracker:
            for region in regions:
                tracker.start_region(region)
                tracker.update_task("Fetching CPU metrics...")
                tracker.add_rows(REPORT_EC2_CPU_METRICS, 3)
                tracker.complete_region()
    """

    def __init__(self, title: str, total_regions: int = 0, show_progress: bool = True):
        self.title = title
        self.total_regions = total_regions
        self.show_progress = show_progress and sys.stdout.isatty()

        # Counters
        self.completed_regions = 0
        self.failed_regions: Dict[str, str] = {}
        self.rows_written: Dict[str, int] = {name: 0 for name in REPORT_LABELS}
        self.current_region = ""
        self.current_task = ""

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._main_task: Optional[TaskID] = None

    def __enter__(self):
        if self.show_progress:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._main_task = self._progress.add_task(self.title, total=self.total_regions or 1)
            self._progress.start()
        else:
            print(f"\n{'='*60}")
            print(f"{self.title} Starting")
            print(f"{'='*60}")
            if self.total_regions:
                print(f"Regions: {self.total_regions}")
            print()

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.show_progress:
            assert self._progress is not None
            assert self._console is not None
            self._progress.stop()
            self._console.print()
            self._print_summary_rich()
        else:
            self._print_summary_plain()
        return False

    def start_region(self, region: str):
        """Mark the start of processing a region."""
        self.current_region = region
        if self.show_progress:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, description=f"{self.title} [{region}]")
        else:
            print(f"  [{region}] Starting collection...")

    def update_task(self, task_description: str):
        """Update the current task being performed."""
        self.current_task = task_description
        if self.show_progress:
            assert self._progress is not None
            assert self._main_task is not None
            region_info = f"[{self.current_region}] " if self.current_region else ""
            self._progress.update(
                self._main_task,
                description=f"{self.title} {region_info}{task_description}"
            )

    def add_rows(self, report: str, count: int):
        """Add rows written to a report to the running total."""
        self.rows_written[report] = self.rows_written.get(report, 0) + count

    def complete_region(self):
        """Mark a region as complete."""
        self.completed_regions += 1
        self._advance()
        if not self.show_progress:
            print(f"  [{self.current_region}] Complete - Running total: {self.total_rows:,} rows")

    def fail_region(self, region: str, error: BaseException):
        """Mark a region as failed; the run moves on to the next one."""
        self.failed_regions[region] = str(error)
        self._advance()
        if not self.show_progress:
            print(f"  [{region}] FAILED - {error}")

    @property
    def total_rows(self) -> int:
        return sum(self.rows_written.values())

    def _advance(self):
        if self.show_progress:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, advance=1)

    def _print_summary_rich(self):
        """Print a formatted summary using rich."""
        table = Table(title=f"{self.title} Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Regions completed", str(self.completed_regions))
        if self.failed_regions:
            table.add_row("Regions failed", ", ".join(sorted(self.failed_regions)), style="red")
        for report, label in REPORT_LABELS.items():
            table.add_row(label, f"{self.rows_written.get(report, 0):,}")

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        """Print a plain text summary."""
        print(f"\n{'='*60}")
        print(f"{self.title} Complete")
        print(f"{'='*60}")
        print(f"  Regions completed: {self.completed_regions}")
        if self.failed_regions:
            print(f"  Regions failed:    {', '.join(sorted(self.failed_regions))}")
        for report, label in REPORT_LABELS.items():
            print(f"  {label + ':':<26} {self.rows_written.get(report, 0):,}")
        print()


# =============================================================================
# Logging
# =============================================================================

def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        output_dir: If provided, also write logs to a file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    # Console handler (stderr)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(output_dir, f"usage_audit_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    return logging.getLogger(__name__)


def parse_list(value: Any) -> List[str]:
    """Split a comma-separated string (or pass a list through) into clean items."""
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    return [str(v).strip() for v in value if str(v).strip()]
