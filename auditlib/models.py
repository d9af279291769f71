"""
Data models for the AWS usage audit collector.
"""
from dataclasses import asdict, dataclass
from typing import Dict, Optional


# =============================================================================
# Enumerated Resources
# =============================================================================

@dataclass
class InstanceInfo:
    """Projection of an EC2 instance used to drive CPU metric queries."""
    instance_id: str
    instance_type: Optional[str] = None
    platform: Optional[str] = None  # Only set for Windows instances
    platform_details: Optional[str] = None


@dataclass
class VolumeInfo:
    """
    Projection of an EBS volume.

    Attachment fields describe the first attachment only and are None for
    unattached volumes.
    """
    volume_id: str
    state: Optional[str] = None
    attachment_state: Optional[str] = None
    attachment_time: Optional[str] = None
    instance_id: Optional[str] = None
    device: Optional[str] = None


@dataclass
class Datapoint:
    """One aggregated CloudWatch statistic."""
    timestamp: str
    value: float


# =============================================================================
# Report Rows
# =============================================================================

@dataclass
class EbsVolumeMetricRow:
    """Row in ebs_volume_metrics.csv. Exactly one of read_ops/write_ops is set."""
    region: str
    volume_id: str
    state: Optional[str]
    attachment_time: Optional[str]
    instance_id: Optional[str]
    timestamp: str
    read_ops: Optional[float] = None
    write_ops: Optional[float] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for CSV serialization."""
        return asdict(self)


@dataclass
class Ec2CpuMetricRow:
    """Row in ec2_cpu_metrics.csv."""
    region: str
    instance_id: str
    instance_type: Optional[str]
    platform: Optional[str]
    platform_details: Optional[str]
    timestamp: str
    average_pct: float

    def to_dict(self) -> Dict:
        """Convert to dictionary for CSV serialization."""
        return asdict(self)


@dataclass
class UnusedSnapshotRow:
    """Row in unused_ebs_snapshots.csv."""
    region: str
    snapshot_id: str
    volume_id: str
    start_time: Optional[str]
    description: Optional[str]

    def to_dict(self) -> Dict:
        """Convert to dictionary for CSV serialization."""
        return asdict(self)


@dataclass
class UnusedEipRow:
    """Row in unused_eips.csv."""
    region: str
    public_ip: Optional[str]
    allocation_id: Optional[str]

    def to_dict(self) -> Dict:
        """Convert to dictionary for CSV serialization."""
        return asdict(self)
