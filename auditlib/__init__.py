"""
AWS usage audit shared library.
"""
# Import constants module for easy access
from . import constants
from .config import AuditConfig, ConfigError, generate_sample_config, load_config
from .constants import (
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_PERIOD_SECONDS,
    DEFAULT_REGIONS,
    SECONDS_PER_DAY,
)
from .enumerators import (
    filter_unassociated_addresses,
    list_instances,
    list_unassociated_addresses,
    list_unused_volume_ids,
    list_volume_snapshots,
    list_volumes,
)
from .metrics import (
    collect_instance_cpu_rows,
    collect_volume_ops_rows,
    get_cloudwatch_client,
    get_metric_datapoints,
)
from .models import (
    Datapoint,
    EbsVolumeMetricRow,
    Ec2CpuMetricRow,
    InstanceInfo,
    UnusedEipRow,
    UnusedSnapshotRow,
    VolumeInfo,
)
from .sinks import CsvReportSink, ReportSinks
from .utils import (
    AuthError,
    ProgressTracker,
    check_and_raise_auth_error,
    is_access_denied_error,
    is_credential_error,
    is_throttling_error,
    retry_with_backoff,
    setup_logging,
)
from .window import TimeWindow, compute_window, format_timestamp, get_timestamp

__all__ = [
    # Constants
    'constants',
    'DEFAULT_LOOKBACK_DAYS',
    'DEFAULT_PERIOD_SECONDS',
    'DEFAULT_REGIONS',
    'SECONDS_PER_DAY',
    # Config
    'AuditConfig',
    'ConfigError',
    'generate_sample_config',
    'load_config',
    # Window
    'TimeWindow',
    'compute_window',
    'format_timestamp',
    'get_timestamp',
    # Models
    'Datapoint',
    'EbsVolumeMetricRow',
    'Ec2CpuMetricRow',
    'InstanceInfo',
    'UnusedEipRow',
    'UnusedSnapshotRow',
    'VolumeInfo',
    # Enumerators
    'filter_unassociated_addresses',
    'list_instances',
    'list_unassociated_addresses',
    'list_unused_volume_ids',
    'list_volume_snapshots',
    'list_volumes',
    # Metrics
    'collect_instance_cpu_rows',
    'collect_volume_ops_rows',
    'get_cloudwatch_client',
    'get_metric_datapoints',
    # Sinks
    'CsvReportSink',
    'ReportSinks',
    # Utils
    'AuthError',
    'ProgressTracker',
    'check_and_raise_auth_error',
    'is_access_denied_error',
    'is_credential_error',
    'is_throttling_error',
    'retry_with_backoff',
    'setup_logging',
]
