#!/usr/bin/env python3
"""
AWS Usage Audit - EC2/EBS Utilization and Idle Resource Collector

Walks a list of AWS regions one at a time and writes four CSV reports:
    ebs_volume_metrics.csv    VolumeReadOps/VolumeWriteOps (Maximum) per volume
    ec2_cpu_metrics.csv       CPUUtilization (Average) per instance
    unused_ebs_snapshots.csv  Snapshots taken from unattached volumes
    unused_eips.csv           Elastic IPs with no association

Metrics cover the last 90 days in 30-day periods by default.

Usage:
    # All 18 default regions, current credentials, reports in current directory
    python3 usage_collect.py

    # Specific regions and output directory
    python3 usage_collect.py --regions us-east-1,us-west-2 -o ./reports/

    # Named profile and shorter window
    python3 usage_collect.py --profile prod --lookback-days 30 --period 86400

    # Stop on the first region error
    python3 usage_collect.py --fail-fast
"""
import argparse
import logging
import sys
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from auditlib.config import ConfigError, generate_sample_config, load_config
from auditlib.constants import (
    EXIT_FATAL,
    EXIT_REGION_FAILURES,
    EXIT_SUCCESS,
    REPORT_EBS_VOLUME_METRICS,
    REPORT_EC2_CPU_METRICS,
    REPORT_UNUSED_EBS_SNAPSHOTS,
    REPORT_UNUSED_EIPS,
)
from auditlib.enumerators import (
    list_instances,
    list_unassociated_addresses,
    list_unused_volume_ids,
    list_volume_snapshots,
    list_volumes,
)
from auditlib.metrics import collect_instance_cpu_rows, collect_volume_ops_rows, get_cloudwatch_client
from auditlib.sinks import ReportSinks
from auditlib.utils import (
    AuthError,
    ProgressTracker,
    check_and_raise_auth_error,
    is_access_denied_error,
    setup_logging,
)
from auditlib.window import TimeWindow, compute_window

logger = logging.getLogger(__name__)


# =============================================================================
# Session Management
# =============================================================================

def get_session(profile: Optional[str] = None) -> boto3.Session:
    """Create boto3 session. Credentials come from the standard provider chain."""
    return boto3.Session(profile_name=profile)


# =============================================================================
# Region Collection
# =============================================================================

def collect_region(
    session: boto3.Session,
    region: str,
    window: TimeWindow,
    sinks: ReportSinks,
    tracker: Optional[ProgressTracker] = None
) -> Dict[str, int]:
    """
    Collect all four reports for one region.

    Steps run in a fixed order: instance CPU metrics, volume read/write
    metrics, snapshots of unused volumes, unassociated Elastic IPs. Rows are
    written as soon as each resource is processed.

    Returns:
        Rows written per report file name
    """
    counts = {
        REPORT_EC2_CPU_METRICS: 0,
        REPORT_EBS_VOLUME_METRICS: 0,
        REPORT_UNUSED_EBS_SNAPSHOTS: 0,
        REPORT_UNUSED_EIPS: 0,
    }

    def record(report: str, written: int):
        counts[report] += written
        if tracker:
            tracker.add_rows(report, written)

    def update_task(description: str):
        if tracker:
            tracker.update_task(description)

    ec2 = session.client('ec2', region_name=region)
    cloudwatch = get_cloudwatch_client(session, region)

    # EC2 instances -> CPU utilization
    update_task("Listing EC2 instances...")
    instances = list_instances(ec2)
    logger.info(f"[{region}] Found {len(instances)} EC2 instances")
    update_task("Fetching CPU metrics...")
    for instance in instances:
        logger.debug(f"[{region}] Processing instance: {instance.instance_id} ({instance.instance_type})")
        rows = collect_instance_cpu_rows(cloudwatch, region, instance, window)
        record(REPORT_EC2_CPU_METRICS, sinks.ec2_cpu.write_all(rows))

    # EBS volumes -> read/write operations
    update_task("Listing EBS volumes...")
    volumes = list_volumes(ec2)
    logger.info(f"[{region}] Found {len(volumes)} EBS volumes")
    update_task("Fetching volume metrics...")
    for volume in volumes:
        logger.debug(f"[{region}] Processing volume: {volume.volume_id}")
        rows = collect_volume_ops_rows(cloudwatch, region, volume, window)
        record(REPORT_EBS_VOLUME_METRICS, sinks.ebs_volume_metrics.write_all(rows))

    # Unused volumes -> snapshots taken from them
    update_task("Finding snapshots of unused volumes...")
    unused_volume_ids = list_unused_volume_ids(ec2)
    logger.info(f"[{region}] Found {len(unused_volume_ids)} unused EBS volumes")
    for volume_id in unused_volume_ids:
        rows = list_volume_snapshots(ec2, region, volume_id)
        record(REPORT_UNUSED_EBS_SNAPSHOTS, sinks.unused_snapshots.write_all(rows))

    # Elastic IPs with no association
    update_task("Finding unused Elastic IPs...")
    eip_rows = list_unassociated_addresses(ec2, region)
    logger.info(f"[{region}] Found {len(eip_rows)} unused Elastic IPs")
    record(REPORT_UNUSED_EIPS, sinks.unused_eips.write_all(eip_rows))

    return counts


def run_collection(
    session: boto3.Session,
    regions: List[str],
    window: TimeWindow,
    sinks: ReportSinks,
    tracker: Optional[ProgressTracker] = None,
    fail_fast: bool = False
) -> Dict[str, str]:
    """
    Collect every region in list order, one at a time.

    A region that raises is logged and skipped unless fail_fast is set. This
    includes regions the account has not opted into or that a policy denies.
    Credential errors always stop the run since every later region would
    fail the same way.

    Returns:
        Mapping of failed region to error message (empty when all succeeded)
    """
    failed: Dict[str, str] = {}

    for region in regions:
        logger.info(f"Processing region: {region}")
        if tracker:
            tracker.start_region(region)
        try:
            counts = collect_region(session, region, window, sinks, tracker)
        except AuthError:
            raise
        except Exception as e:
            check_and_raise_auth_error(e, f"collect region {region}")
            if fail_fast:
                raise
            if is_access_denied_error(e):
                logger.error(f"[{region}] Region not enabled or access denied: {e}")
            else:
                logger.error(f"[{region}] Region failed: {e}")
            failed[region] = str(e)
            if tracker:
                tracker.fail_region(region, e)
            continue

        logger.info(f"[{region}] Completed: {sum(counts.values())} rows")
        if tracker:
            tracker.complete_region()

    return failed


# =============================================================================
# Main
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='AWS Usage Audit - EC2/EBS utilization and idle resource collector',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # All default regions
  python3 usage_collect.py

  # Specific regions
  python3 usage_collect.py --regions us-east-1,us-west-2

  # Write reports and log file to a directory
  python3 usage_collect.py -o ./reports/

Exit codes:
  0  all regions collected
  1  fatal error (configuration, credentials, access denied)
  2  finished, but one or more regions failed
"""
    )

    parser.add_argument('--config', '-c', help='Path to YAML config file')
    parser.add_argument('--generate-config', action='store_true',
                        help='Generate a sample config file and exit')
    parser.add_argument('--profile', help='AWS profile name (default: standard credential chain)')
    parser.add_argument('--regions', help='Comma-separated list of regions (default: 18 standard regions)')
    parser.add_argument('--output', '-o', help='Output directory for reports (default: .)')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--lookback-days', type=int,
                        help='Days of CloudWatch history to query (default: 90)')
    parser.add_argument('--period', type=int,
                        help='CloudWatch aggregation period in seconds (default: 2592000)')
    parser.add_argument('--fail-fast', action='store_true',
                        help='Abort on the first region error instead of skipping the region')
    parser.add_argument('--no-progress', action='store_true',
                        help='Disable the progress bar')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.generate_config:
        print(generate_sample_config())
        return EXIT_SUCCESS

    # Console only until the config says where the log file goes
    setup_logging(args.log_level or "INFO")

    try:
        config = load_config(args)
    except (FileNotFoundError, ConfigError) as e:
        logger.error(str(e))
        return EXIT_FATAL

    try:
        setup_logging(config.log_level, output_dir=config.output)
    except OSError as e:
        logger.error(f"Cannot write to output directory {config.output}: {e}")
        return EXIT_FATAL

    # One window for the whole run
    window = compute_window(config.lookback_days, config.period)
    logger.info(f"END_TIME: {window.end}")
    logger.info(f"START_TIME: {window.start}")
    logger.info(f"PERIOD: {window.period}")

    try:
        session = get_session(config.profile)
        with ReportSinks(config.output) as sinks:
            with ProgressTracker("AWS Usage Audit", total_regions=len(config.regions),
                                 show_progress=not args.no_progress) as tracker:
                failed = run_collection(session, config.regions, window, sinks,
                                        tracker=tracker, fail_fast=config.fail_fast)
    except AuthError as e:
        logger.error(str(e))
        return EXIT_FATAL
    except NoCredentialsError as e:
        logger.error(f"No AWS credentials found: {e}")
        return EXIT_FATAL
    except (ClientError, BotoCoreError) as e:
        # Only reachable with --fail-fast or a bad profile
        logger.error(f"Collection aborted: {e}")
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"Cannot write reports to {config.output}: {e}")
        return EXIT_FATAL

    if failed:
        logger.warning(f"{len(failed)} region(s) failed: {', '.join(failed)}")
        return EXIT_REGION_FAILURES

    logger.info("Collection complete")
    return EXIT_SUCCESS


if __name__ == '__main__':
    sys.exit(main())
