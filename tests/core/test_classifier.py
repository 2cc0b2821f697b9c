import unittest
from pinguard.core.classifier import classify, is_banned
from pinguard.core.model import PolicyConfig, VersionConstraint


def banned(text, **policy):
    return is_banned(VersionConstraint.parse(text), PolicyConfig(**policy))


class TestClassifier(unittest.TestCase):

    def test_fixed_release_version_is_never_banned(self):
        self.assertFalse(banned("1.2.3"))

    def test_latest(self):
        self.assertTrue(banned("LATEST"))
        self.assertFalse(banned("LATEST", allow_latest=True))

    def test_release(self):
        self.assertTrue(banned("RELEASE"))
        self.assertFalse(banned("RELEASE", allow_release=True))

    def test_snapshot_banned_iff_not_allowed(self):
        for version in ["1.0-SNAPSHOT", "2.3.4-SNAPSHOT"]:
            with self.subTest(version=version):
                self.assertTrue(banned(version, allow_snapshots=False))
                self.assertFalse(banned(version, allow_snapshots=True))

    def test_snapshot_toggle_does_not_leak_into_aliases(self):
        self.assertTrue(banned("LATEST", allow_snapshots=True))

    def test_range(self):
        self.assertTrue(banned("[1.0,2.0)"))
        self.assertFalse(banned("[1.0,2.0)", allow_ranges=True))

    def test_range_not_single_point_with_identical_bounds_allowance(self):
        self.assertTrue(banned("[1.0,2.0)", allow_ranges_with_identical_bounds=True))

    def test_single_point_range_allowed_regardless_of_allow_ranges(self):
        for allow_ranges in (False, True):
            with self.subTest(allow_ranges=allow_ranges):
                self.assertFalse(banned("[1.0]", allow_ranges=allow_ranges, allow_ranges_with_identical_bounds=True))
                self.assertFalse(banned("[1.0,1.0]", allow_ranges=allow_ranges,
                                        allow_ranges_with_identical_bounds=True))

    def test_single_point_range_banned_without_allowances(self):
        self.assertTrue(banned("[1.0]"))

    def test_unbounded_range_is_not_a_single_point(self):
        self.assertTrue(banned("(,)", allow_ranges_with_identical_bounds=True))

    def test_reasons_follow_rule_order(self):
        policy = PolicyConfig()
        self.assertEqual(classify(VersionConstraint.parse("LATEST"), policy), "latest")
        self.assertEqual(classify(VersionConstraint.parse("RELEASE"), policy), "release")
        self.assertEqual(classify(VersionConstraint.parse("1-SNAPSHOT"), policy), "snapshot")
        self.assertEqual(classify(VersionConstraint.parse("[1]"), policy), "single-point range")
        self.assertEqual(classify(VersionConstraint.parse("[1,2]"), policy), "range")

    def test_unexpected_constraint_is_a_warning_only(self):
        with self.assertLogs(level="WARNING") as logs:
            self.assertFalse(banned(""))

        self.assertIn("Unexpected version constraint found", logs.output[0])
