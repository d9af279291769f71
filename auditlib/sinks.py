"""
CSV report sinks.

Each sink owns one report file for the whole run: the file is truncated and
its header written when the sink opens, and every row is flushed as soon as
it is written so partial output survives an interrupted run.
"""
import csv
import logging
import os
from typing import Iterable, List, Optional

from .constants import (
    EBS_VOLUME_METRICS_FIELDS,
    EC2_CPU_METRICS_FIELDS,
    REPORT_EBS_VOLUME_METRICS,
    REPORT_EC2_CPU_METRICS,
    REPORT_UNUSED_EBS_SNAPSHOTS,
    REPORT_UNUSED_EIPS,
    UNUSED_EBS_SNAPSHOTS_FIELDS,
    UNUSED_EIPS_FIELDS,
)

logger = logging.getLogger(__name__)


class CsvReportSink:
    """Append-only CSV report with a fixed header."""

    def __init__(self, path: str, fieldnames: List[str]):
        self.path = path
        self.name = os.path.basename(path)
        self.fieldnames = list(fieldnames)
        self.rows_written = 0

        # Owner read/write only
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            self._file = os.fdopen(fd, 'w', newline='', encoding='utf-8')
        except Exception:
            os.close(fd)
            raise
        self._writer = csv.DictWriter(self._file, fieldnames=self.fieldnames, lineterminator='\n')
        self._writer.writeheader()
        self._file.flush()

    def write(self, row) -> None:
        """Append one row (a dataclass with to_dict() or a plain dict) and flush."""
        data = row.to_dict() if hasattr(row, 'to_dict') else row
        self._writer.writerow(data)
        self._file.flush()
        self.rows_written += 1

    def write_all(self, rows: Iterable) -> int:
        """Append rows one by one; returns how many were written."""
        count = 0
        for row in rows:
            self.write(row)
            count += 1
        return count

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            logger.debug(f"Closed {self.path} ({self.rows_written} rows)")


class ReportSinks:
    """
    The four report files of a run, opened together and closed together.

    Usage:
        with ReportSinks(output_dir) as sinks:
            sinks.ec2_cpu.write(row)
    """

    def __init__(self, output_dir: str = "."):
        self.output_dir = output_dir
        self.ebs_volume_metrics: Optional[CsvReportSink] = None
        self.ec2_cpu: Optional[CsvReportSink] = None
        self.unused_snapshots: Optional[CsvReportSink] = None
        self.unused_eips: Optional[CsvReportSink] = None

    def open(self) -> "ReportSinks":
        os.makedirs(self.output_dir, exist_ok=True)
        try:
            self.ebs_volume_metrics = CsvReportSink(
                os.path.join(self.output_dir, REPORT_EBS_VOLUME_METRICS), EBS_VOLUME_METRICS_FIELDS)
            self.ec2_cpu = CsvReportSink(
                os.path.join(self.output_dir, REPORT_EC2_CPU_METRICS), EC2_CPU_METRICS_FIELDS)
            self.unused_snapshots = CsvReportSink(
                os.path.join(self.output_dir, REPORT_UNUSED_EBS_SNAPSHOTS), UNUSED_EBS_SNAPSHOTS_FIELDS)
            self.unused_eips = CsvReportSink(
                os.path.join(self.output_dir, REPORT_UNUSED_EIPS), UNUSED_EIPS_FIELDS)
        except Exception:
            self.close()
            raise
        logger.info(f"Writing reports to {os.path.abspath(self.output_dir)}")
        return self

    def all(self) -> List[CsvReportSink]:
        return [s for s in (self.ebs_volume_metrics, self.ec2_cpu,
                            self.unused_snapshots, self.unused_eips) if s is not None]

    def close(self) -> None:
        for sink in self.all():
            sink.close()

    def __enter__(self) -> "ReportSinks":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
