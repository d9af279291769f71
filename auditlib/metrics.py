"""
CloudWatch utilization metrics for EC2 instances and EBS volumes.

All queries in a run share one TimeWindow. Each datapoint becomes one report
row carrying the resource's static attributes.
"""
import logging
from typing import List

from .constants import (
    DIMENSION_INSTANCE_ID,
    DIMENSION_VOLUME_ID,
    METRIC_CPU_UTILIZATION,
    METRIC_VOLUME_READ_OPS,
    METRIC_VOLUME_WRITE_OPS,
    NAMESPACE_EBS,
    NAMESPACE_EC2,
    STATISTIC_AVERAGE,
    STATISTIC_MAXIMUM,
)
from .models import Datapoint, EbsVolumeMetricRow, Ec2CpuMetricRow, InstanceInfo, VolumeInfo
from .utils import retry_on_throttle
from .window import TimeWindow, format_timestamp

logger = logging.getLogger(__name__)


def get_cloudwatch_client(session, region: str):
    """Get CloudWatch client for a region."""
    return session.client('cloudwatch', region_name=region)


@retry_on_throttle
def get_metric_datapoints(
    cloudwatch_client,
    namespace: str,
    metric_name: str,
    dimension_name: str,
    dimension_value: str,
    window: TimeWindow,
    statistic: str
) -> List[Datapoint]:
    """
    Fetch one metric series for a single resource.

    Args:
        cloudwatch_client: boto3 CloudWatch client
        namespace: CloudWatch namespace (e.g., 'AWS/EBS')
        metric_name: Metric name (e.g., 'VolumeReadOps')
        dimension_name: Dimension key (e.g., 'VolumeId')
        dimension_value: Resource ID
        window: Shared analysis window
        statistic: 'Average' or 'Maximum'

    Returns:
        Datapoints ordered by timestamp (empty if the metric has no data)
    """
    response = cloudwatch_client.get_metric_statistics(
        Namespace=namespace,
        MetricName=metric_name,
        Dimensions=[{'Name': dimension_name, 'Value': dimension_value}],
        StartTime=window.start,
        EndTime=window.end,
        Period=window.period,
        Statistics=[statistic]
    )

    datapoints = [
        Datapoint(timestamp=format_timestamp(dp['Timestamp']), value=dp[statistic])
        for dp in response.get('Datapoints', [])
        if statistic in dp
    ]
    datapoints.sort(key=lambda dp: dp.timestamp)
    return datapoints


def collect_instance_cpu_rows(
    cloudwatch_client,
    region: str,
    instance: InstanceInfo,
    window: TimeWindow
) -> List[Ec2CpuMetricRow]:
    """Average CPUUtilization rows for one instance; no datapoints means no rows."""
    datapoints = get_metric_datapoints(
        cloudwatch_client,
        namespace=NAMESPACE_EC2,
        metric_name=METRIC_CPU_UTILIZATION,
        dimension_name=DIMENSION_INSTANCE_ID,
        dimension_value=instance.instance_id,
        window=window,
        statistic=STATISTIC_AVERAGE,
    )
    logger.debug(f"[{region}] {instance.instance_id}: {len(datapoints)} CPU datapoints")

    return [
        Ec2CpuMetricRow(
            region=region,
            instance_id=instance.instance_id,
            instance_type=instance.instance_type,
            platform=instance.platform,
            platform_details=instance.platform_details,
            timestamp=dp.timestamp,
            average_pct=dp.value,
        )
        for dp in datapoints
    ]


def collect_volume_ops_rows(
    cloudwatch_client,
    region: str,
    volume: VolumeInfo,
    window: TimeWindow
) -> List[EbsVolumeMetricRow]:
    """
    Maximum VolumeReadOps and VolumeWriteOps rows for one volume.

    The two series are fetched independently and emitted as separate rows,
    read rows first. A read row leaves write_ops empty and vice versa; rows
    sharing a timestamp are not merged.
    """
    rows = []
    for metric_name, column in ((METRIC_VOLUME_READ_OPS, 'read_ops'),
                                (METRIC_VOLUME_WRITE_OPS, 'write_ops')):
        datapoints = get_metric_datapoints(
            cloudwatch_client,
            namespace=NAMESPACE_EBS,
            metric_name=metric_name,
            dimension_name=DIMENSION_VOLUME_ID,
            dimension_value=volume.volume_id,
            window=window,
            statistic=STATISTIC_MAXIMUM,
        )
        logger.debug(f"[{region}] {volume.volume_id}: {len(datapoints)} {metric_name} datapoints")

        for dp in datapoints:
            rows.append(EbsVolumeMetricRow(
                region=region,
                volume_id=volume.volume_id,
                state=volume.state,
                attachment_time=volume.attachment_time,
                instance_id=volume.instance_id,
                timestamp=dp.timestamp,
                **{column: dp.value},
            ))

    return rows
