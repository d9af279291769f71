"""
Read-only EC2 listings for one region.

Every function takes a regional EC2 client and returns a plain list; a
region with nothing to report yields an empty list, not an error.
"""
import logging
from typing import List

from .constants import FILTER_VOLUME_ID, FILTER_VOLUME_STATUS, VOLUME_STATE_AVAILABLE
from .models import InstanceInfo, UnusedEipRow, UnusedSnapshotRow, VolumeInfo
from .utils import retry_on_throttle
from .window import format_timestamp

logger = logging.getLogger(__name__)


@retry_on_throttle
def list_instances(ec2) -> List[InstanceInfo]:
    """List all EC2 instances in the client's region."""
    instances = []
    paginator = ec2.get_paginator('describe_instances')

    for page in paginator.paginate():
        for reservation in page.get('Reservations', []):
            for instance in reservation.get('Instances', []):
                instances.append(InstanceInfo(
                    instance_id=instance.get('InstanceId', ''),
                    instance_type=instance.get('InstanceType'),
                    platform=instance.get('Platform'),
                    platform_details=instance.get('PlatformDetails'),
                ))

    return instances


def _to_volume_info(volume: dict) -> VolumeInfo:
    attachments = volume.get('Attachments') or [{}]
    first = attachments[0]
    return VolumeInfo(
        volume_id=volume.get('VolumeId', ''),
        state=volume.get('State'),
        attachment_state=first.get('State'),
        attachment_time=format_timestamp(first.get('AttachTime')),
        instance_id=first.get('InstanceId'),
        device=first.get('Device'),
    )


@retry_on_throttle
def list_volumes(ec2) -> List[VolumeInfo]:
    """List all EBS volumes in the client's region, attached or not."""
    volumes = []
    paginator = ec2.get_paginator('describe_volumes')

    for page in paginator.paginate():
        for volume in page.get('Volumes', []):
            volumes.append(_to_volume_info(volume))

    return volumes


@retry_on_throttle
def list_unused_volume_ids(ec2) -> List[str]:
    """List IDs of volumes in the 'available' state (not attached to any instance)."""
    volume_ids = []
    paginator = ec2.get_paginator('describe_volumes')
    filters = [{'Name': FILTER_VOLUME_STATUS, 'Values': [VOLUME_STATE_AVAILABLE]}]

    for page in paginator.paginate(Filters=filters):
        for volume in page.get('Volumes', []):
            if volume.get('VolumeId'):
                volume_ids.append(volume['VolumeId'])

    return volume_ids


@retry_on_throttle
def list_volume_snapshots(ec2, region: str, volume_id: str) -> List[UnusedSnapshotRow]:
    """List snapshots owned by this account that were taken from volume_id."""
    rows = []
    paginator = ec2.get_paginator('describe_snapshots')
    filters = [{'Name': FILTER_VOLUME_ID, 'Values': [volume_id]}]

    # 'self' works for both real AWS and moto
    for page in paginator.paginate(OwnerIds=['self'], Filters=filters):
        for snapshot in page.get('Snapshots', []):
            rows.append(UnusedSnapshotRow(
                region=region,
                snapshot_id=snapshot.get('SnapshotId', ''),
                volume_id=snapshot.get('VolumeId', volume_id),
                start_time=format_timestamp(snapshot.get('StartTime')),
                description=snapshot.get('Description'),
            ))

    return rows


def filter_unassociated_addresses(region: str, addresses: List[dict]) -> List[UnusedEipRow]:
    """
    Keep only addresses with no AssociationId.

    describe_addresses filters cannot express "association is null", so this
    is done on the returned records.
    """
    return [
        UnusedEipRow(
            region=region,
            public_ip=address.get('PublicIp'),
            allocation_id=address.get('AllocationId'),
        )
        for address in addresses
        if not address.get('AssociationId')
    ]


@retry_on_throttle
def list_unassociated_addresses(ec2, region: str) -> List[UnusedEipRow]:
    """List Elastic IPs in the client's region that are not associated with anything."""
    # describe_addresses is not paginated
    response = ec2.describe_addresses()
    return filter_unassociated_addresses(region, response.get('Addresses', []))
