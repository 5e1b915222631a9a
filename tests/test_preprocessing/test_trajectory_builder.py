"""
Test suite for trajectory correspondence building
"""

import shutil
import tempfile
import unittest
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).parent.parent.parent / "src"))
from earth_alignment.preprocessing.synchronization import (
    GeoPosition,
    PositionQuery,
    SynchronizationService,
    TriggerMatch,
    TriggerQuery,
    compose_timestamp,
)
from earth_alignment.preprocessing.trajectory_builder import (
    StreamSelector,
    TrajectoryBuilder,
    parse_record,
    parse_record_name,
)
from earth_alignment.utils.errors import InputPathError, RecordParseError


class FakeTriggerQuery(TriggerQuery):
    def __init__(self, matches, log):
        self.matches = matches
        self.log = log
        self.queries = []

    def query_by_master(self, timestamp):
        self.queries.append(timestamp)
        if timestamp in self.matches:
            return TriggerMatch(True, self.matches[timestamp])
        return TriggerMatch(False)

    def close(self):
        self.log.append("trigger-closed")


class FakePositionQuery(PositionQuery):
    def __init__(self, positions, log):
        self.positions = positions
        self.log = log

    def query(self, timestamp):
        if timestamp in self.positions:
            return GeoPosition(True, *self.positions[timestamp])
        return GeoPosition(False)

    def close(self):
        self.log.append("position-closed")


class FakeService(SynchronizationService):
    """In-memory service recording how its handles are used."""

    def __init__(self, matches, positions):
        self.matches = matches
        self.positions = positions
        self.log = []
        self.trigger = None

    def open_trigger_query(self, root, tag, module):
        self.log.append(("trigger", str(root), tag, module))
        self.trigger = FakeTriggerQuery(self.matches, self.log)
        return self.trigger

    def open_position_query(self, root, tag, module):
        self.log.append(("position", str(root), tag, module))
        return FakePositionQuery(self.positions, self.log)


def _record(x, y, z):
    return " ".join(["0.5"] * 9 + [str(x), str(y), str(z)]) + "\n"


class TestRecordParsing(unittest.TestCase):
    """Record content and file name decoding."""

    def test_parse_record_returns_last_three_fields(self):
        point = parse_record("1 2 3 4 5 6 7 8 9 10.5 -20.25 30\n")
        self.assertEqual(point, (10.5, -20.25, 30.0))

    def test_parse_record_across_lines(self):
        point = parse_record("1 2 3\n4 5 6\n7 8 9\n10 11 12\n")
        self.assertEqual(point, (10.0, 11.0, 12.0))

    def test_parse_record_rejects_wrong_field_count(self):
        with self.assertRaises(RecordParseError):
            parse_record("1 2 3 4 5 6 7 8 9 10 11")
        with self.assertRaises(RecordParseError):
            parse_record("1 2 3 4 5 6 7 8 9 10 11 12 13")
        with self.assertRaises(RecordParseError):
            parse_record("")

    def test_parse_record_rejects_non_numeric(self):
        with self.assertRaises(RecordParseError):
            parse_record("1 2 3 4 5 6 7 8 9 10 11 abc")

    def test_parse_record_name(self):
        self.assertEqual(parse_record_name("1401234567_000125"), (1401234567, 125))
        self.assertEqual(parse_record_name("1401234567_42.rig"), (1401234567, 42))

    def test_parse_record_name_rejects_malformed(self):
        for name in ("rig_1401234567", "1401234567", "_12", "12_", "a_b"):
            with self.assertRaises(RecordParseError):
                parse_record_name(name)


class TestTrajectoryBuilder(unittest.TestCase):
    """Correspondence accumulation against a fake synchronization service."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.tmp = Path(tempfile.mkdtemp())
        self.rigs = self.tmp / "rigs"
        self.rigs.mkdir()

        # Three good events
        self.events = [
            (1000, 10, (1.0, 2.0, 3.0), (6.1, 46.1, 400.0)),
            (1001, 20, (4.0, 5.0, 6.0), (6.2, 46.2, 401.0)),
            (1002, 30, (7.0, 8.0, 9.0), (6.3, 46.3, 402.0)),
        ]
        matches = {}
        positions = {}
        for sec, usec, vo, gps in self.events:
            (self.rigs / f"{sec}_{usec}").write_text(_record(*vo))
            master = compose_timestamp(sec, usec)
            synch = master + 7
            matches[master] = synch
            positions[synch] = gps

        # Trigger without a position fix
        (self.rigs / "1003_40").write_text(_record(0, 0, 0))
        matches[compose_timestamp(1003, 40)] = compose_timestamp(1003, 41)
        # No trigger at all
        (self.rigs / "1004_50").write_text(_record(0, 0, 0))
        # Malformed record content
        (self.rigs / "1005_60").write_text("1 2 3\n")
        # Malformed file name
        (self.rigs / "notes.txt").write_text(_record(0, 0, 0))
        # Directories are ignored
        (self.rigs / "1006_70").mkdir()

        self.service = FakeService(matches, positions)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _builder(self, delay=0):
        return TrajectoryBuilder(
            self.rigs,
            self.tmp / "root",
            self.service,
            StreamSelector("cam", "cam-mod"),
            StreamSelector("gps", "gps-mod"),
            delay=delay,
        )

    def test_build_pairs_only_fully_synchronized_events(self):
        curves = self._builder().build()

        self.assertEqual(len(curves.source), 3)
        self.assertEqual(len(curves.reference), 3)
        for i, (_, _, vo, gps) in enumerate(self.events):
            self.assertEqual(tuple(curves.source[i]), vo)
            self.assertEqual(tuple(curves.reference[i]), gps)

    def test_build_statistics(self):
        stats = self._builder().build().stats

        self.assertEqual(stats.files_scanned, 7)
        self.assertEqual(stats.accepted, 3)
        self.assertEqual(stats.missing_positions, 1)
        self.assertEqual(stats.unmatched_triggers, 1)
        self.assertEqual(stats.rejected_records, 2)

    def test_handles_opened_once_and_closed(self):
        self._builder().build()

        opened = [entry for entry in self.service.log if isinstance(entry, tuple)]
        self.assertEqual(opened, [
            ("trigger", str(self.tmp / "root"), "cam", "cam-mod"),
            ("position", str(self.tmp / "root"), "gps", "gps-mod"),
        ])
        self.assertIn("trigger-closed", self.service.log)
        self.assertIn("position-closed", self.service.log)

    def test_delay_is_added_to_record_timestamp(self):
        curves = self._builder(delay=-1000).build()

        # Shifted timestamps no longer match any trigger
        self.assertEqual(len(curves), 0)
        self.assertIn(compose_timestamp(0, 10), self.service.trigger.queries)

    def test_negative_delayed_timestamp_is_skipped(self):
        curves = self._builder(delay=-5000).build()

        self.assertEqual(len(curves), 0)
        self.assertEqual(self.service.trigger.queries, [])

    def test_missing_rig_directory_raises(self):
        builder = TrajectoryBuilder(
            self.tmp / "missing",
            self.tmp,
            self.service,
            StreamSelector("cam", "m"),
            StreamSelector("gps", "n"),
        )
        with self.assertRaises(InputPathError):
            builder.build()


if __name__ == '__main__':
    unittest.main()
