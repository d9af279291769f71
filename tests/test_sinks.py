"""
Tests for auditlib/sinks.py.

Covers:
- Header written once on open, truncation of previous runs
- Immediate flush of each row
- Empty optional fields
- ReportSinks opening and closing all four reports
"""
import csv
import os
import stat
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from auditlib.constants import (
    EBS_VOLUME_METRICS_FIELDS,
    EC2_CPU_METRICS_FIELDS,
    UNUSED_EBS_SNAPSHOTS_FIELDS,
    UNUSED_EIPS_FIELDS,
)
from auditlib.models import EbsVolumeMetricRow, UnusedEipRow, UnusedSnapshotRow
from auditlib.sinks import CsvReportSink, ReportSinks


def read_lines(path):
    with open(path, encoding="utf-8") as f:
        return f.read().splitlines()


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


# =============================================================================
# CsvReportSink Tests
# =============================================================================

class TestCsvReportSink:
    """Tests for CsvReportSink."""

    def test_header_written_on_open(self, tmp_path):
        path = tmp_path / "unused_eips.csv"
        sink = CsvReportSink(str(path), UNUSED_EIPS_FIELDS)
        try:
            assert read_lines(path) == ["region,public_ip,allocation_id"]
        finally:
            sink.close()

    def test_row_visible_before_close(self, tmp_path):
        path = tmp_path / "unused_eips.csv"
        sink = CsvReportSink(str(path), UNUSED_EIPS_FIELDS)
        try:
            sink.write(UnusedEipRow(region="us-east-1", public_ip="1.2.3.4", allocation_id="eipalloc-1"))
            assert read_lines(path)[1] == "us-east-1,1.2.3.4,eipalloc-1"
            assert sink.rows_written == 1
        finally:
            sink.close()

    def test_truncates_existing_file(self, tmp_path):
        path = tmp_path / "unused_eips.csv"
        path.write_text("old,stale,data\nmore,stale,data\n")

        sink = CsvReportSink(str(path), UNUSED_EIPS_FIELDS)
        sink.close()

        assert read_lines(path) == ["region,public_ip,allocation_id"]

    def test_none_written_as_empty(self, tmp_path):
        path = tmp_path / "ebs_volume_metrics.csv"
        with_sink = CsvReportSink(str(path), EBS_VOLUME_METRICS_FIELDS)
        with_sink.write(EbsVolumeMetricRow(
            region="us-east-1", volume_id="vol-1", state="available",
            attachment_time=None, instance_id=None,
            timestamp="2026-07-19T08:15:00Z", read_ops=12.0,
        ))
        with_sink.close()

        assert read_lines(path)[1] == "us-east-1,vol-1,available,,,2026-07-19T08:15:00Z,12.0,"

    def test_description_with_comma_is_quoted(self, tmp_path):
        path = tmp_path / "unused_ebs_snapshots.csv"
        sink = CsvReportSink(str(path), UNUSED_EBS_SNAPSHOTS_FIELDS)
        sink.write(UnusedSnapshotRow(
            region="eu-west-1", snapshot_id="snap-1", volume_id="vol-1",
            start_time="2026-01-01T00:00:00Z", description="backup, weekly",
        ))
        sink.close()

        rows = read_rows(path)
        assert rows[1] == ["eu-west-1", "snap-1", "vol-1", "2026-01-01T00:00:00Z", "backup, weekly"]

    def test_accepts_plain_dicts(self, tmp_path):
        path = tmp_path / "unused_eips.csv"
        sink = CsvReportSink(str(path), UNUSED_EIPS_FIELDS)
        sink.write({"region": "us-west-2", "public_ip": "5.6.7.8", "allocation_id": "eipalloc-2"})
        sink.close()

        assert read_lines(path)[1] == "us-west-2,5.6.7.8,eipalloc-2"

    def test_write_all_counts(self, tmp_path):
        path = tmp_path / "unused_eips.csv"
        sink = CsvReportSink(str(path), UNUSED_EIPS_FIELDS)
        rows = [UnusedEipRow("us-east-1", f"1.2.3.{i}", f"eipalloc-{i}") for i in range(3)]

        assert sink.write_all(rows) == 3
        assert sink.write_all([]) == 0
        sink.close()

        assert len(read_lines(path)) == 4

    def test_restrictive_permissions(self, tmp_path):
        path = tmp_path / "unused_eips.csv"
        CsvReportSink(str(path), UNUSED_EIPS_FIELDS).close()

        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode & (stat.S_IRWXG | stat.S_IRWXO) == 0

    def test_close_is_idempotent(self, tmp_path):
        sink = CsvReportSink(str(tmp_path / "unused_eips.csv"), UNUSED_EIPS_FIELDS)
        sink.close()
        sink.close()
        assert sink.closed


# =============================================================================
# ReportSinks Tests
# =============================================================================

class TestReportSinks:
    """Tests for ReportSinks."""

    def test_creates_four_header_only_files(self, tmp_path):
        with ReportSinks(str(tmp_path)):
            pass

        assert read_lines(tmp_path / "ebs_volume_metrics.csv") == [",".join(EBS_VOLUME_METRICS_FIELDS)]
        assert read_lines(tmp_path / "ec2_cpu_metrics.csv") == [",".join(EC2_CPU_METRICS_FIELDS)]
        assert read_lines(tmp_path / "unused_ebs_snapshots.csv") == [",".join(UNUSED_EBS_SNAPSHOTS_FIELDS)]
        assert read_lines(tmp_path / "unused_eips.csv") == [",".join(UNUSED_EIPS_FIELDS)]

    def test_exact_headers(self, tmp_path):
        with ReportSinks(str(tmp_path)):
            pass

        assert read_lines(tmp_path / "ebs_volume_metrics.csv")[0] == \
            "region,volume_id,state,attachment_time,instance_id,timestamp,read_ops,write_ops"
        assert read_lines(tmp_path / "ec2_cpu_metrics.csv")[0] == \
            "region,instance_id,instance_type,platform,platform_details,timestamp,average_pct"
        assert read_lines(tmp_path / "unused_ebs_snapshots.csv")[0] == \
            "region,snapshot_id,volume_id,start_time,description"

    def test_creates_output_dir(self, tmp_path):
        output = tmp_path / "nested" / "reports"
        with ReportSinks(str(output)):
            pass
        assert (output / "unused_eips.csv").exists()

    def test_closed_on_exit(self, tmp_path):
        with ReportSinks(str(tmp_path)) as sinks:
            opened = sinks.all()
        assert len(opened) == 4
        assert all(s.closed for s in opened)

    def test_closed_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            with ReportSinks(str(tmp_path)) as sinks:
                opened = sinks.all()
                raise RuntimeError("boom")
        assert all(s.closed for s in opened)

    def test_rerun_truncates(self, tmp_path):
        with ReportSinks(str(tmp_path)) as sinks:
            sinks.unused_eips.write(UnusedEipRow("us-east-1", "1.2.3.4", "eipalloc-1"))
        with ReportSinks(str(tmp_path)):
            pass

        assert len(read_lines(tmp_path / "unused_eips.csv")) == 1
