"""
Constants for the AWS usage audit collector.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Time Constants
# =============================================================================

SECONDS_PER_DAY = 86400

# CloudWatch timestamp format (second precision, literal Z)
TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

# =============================================================================
# Default Configuration Values
# =============================================================================

DEFAULT_LOOKBACK_DAYS = 90
DEFAULT_PERIOD_SECONDS = 30 * SECONDS_PER_DAY  # 2592000
DEFAULT_RETRY_ATTEMPTS = 5
DEFAULT_RETRY_MIN_WAIT = 1
DEFAULT_RETRY_MAX_WAIT = 30

DEFAULT_REGIONS = [
    "ap-east-1",
    "ap-northeast-1",
    "ap-northeast-2",
    "ap-northeast-3",
    "ap-south-1",
    "ap-southeast-1",
    "ap-southeast-2",
    "ca-central-1",
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "eu-central-1",
    "eu-north-1",
    "eu-west-1",
    "eu-west-2",
    "eu-west-3",
    "sa-east-1",
]

# =============================================================================
# CloudWatch Metrics
# =============================================================================

NAMESPACE_EC2 = "AWS/EC2"
NAMESPACE_EBS = "AWS/EBS"

METRIC_CPU_UTILIZATION = "CPUUtilization"
METRIC_VOLUME_READ_OPS = "VolumeReadOps"
METRIC_VOLUME_WRITE_OPS = "VolumeWriteOps"

DIMENSION_INSTANCE_ID = "InstanceId"
DIMENSION_VOLUME_ID = "VolumeId"

STATISTIC_AVERAGE = "Average"
STATISTIC_MAXIMUM = "Maximum"

# =============================================================================
# EC2 Filters
# =============================================================================

VOLUME_STATE_AVAILABLE = "available"
FILTER_VOLUME_STATUS = "status"
FILTER_VOLUME_ID = "volume-id"

# =============================================================================
# Report Files
# =============================================================================

REPORT_EBS_VOLUME_METRICS = "ebs_volume_metrics.csv"
REPORT_EC2_CPU_METRICS = "ec2_cpu_metrics.csv"
REPORT_UNUSED_EBS_SNAPSHOTS = "unused_ebs_snapshots.csv"
REPORT_UNUSED_EIPS = "unused_eips.csv"

EBS_VOLUME_METRICS_FIELDS = [
    "region", "volume_id", "state", "attachment_time", "instance_id",
    "timestamp", "read_ops", "write_ops",
]
EC2_CPU_METRICS_FIELDS = [
    "region", "instance_id", "instance_type", "platform", "platform_details",
    "timestamp", "average_pct",
]
UNUSED_EBS_SNAPSHOTS_FIELDS = [
    "region", "snapshot_id", "volume_id", "start_time", "description",
]
UNUSED_EIPS_FIELDS = [
    "region", "public_ip", "allocation_id",
]

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_REGION_FAILURES = 2
