import pytest
from pydantic import ValidationError

from plugin_studio.models.patch import ImpactReport
from plugin_studio.services.patcher import (
    MANUAL_MERGE_REASON,
    apply_unified_diff,
    build_changelog_entry,
    estimate_impact,
    manual_merge_message,
    requires_confirmation,
)

BUFFER = "line1\nline2\nline3"
DIFF = """\
@@ -1,3 +1,3 @@
 line1
-line2
+line2-modified
 line3
"""

UNLOCATABLE = """\
@@ -1,2 +1,2 @@
 gamma
-delta
+epsilon
"""


def test_simple_modification_applies_exactly():
    outcome = apply_unified_diff(BUFFER, DIFF)
    assert outcome.changed is True
    assert outcome.result == "line1\nline2-modified\nline3"
    assert outcome.manual == []


def test_impact_of_simple_modification():
    impact = estimate_impact(BUFFER, DIFF)
    assert impact.added == 1
    assert impact.removed == 1
    assert impact.touched_lines == 2
    assert impact.total_lines == 3
    assert impact.touched_pct == pytest.approx(200 / 3)
    assert impact.deleted_pct == pytest.approx(100 / 3)


def test_unlocatable_hunk_goes_to_manual_and_leaves_text_alone():
    outcome = apply_unified_diff(BUFFER, UNLOCATABLE)
    assert outcome.changed is False
    assert outcome.result == BUFFER
    assert len(outcome.manual) == 1
    assert outcome.manual[0].header == "@@ -1,2 +1,2 @@"
    assert outcome.manual[0].reason == MANUAL_MERGE_REASON


def test_dry_run_never_mutates_but_reports_manual():
    outcome = apply_unified_diff(BUFFER, DIFF + UNLOCATABLE, dry_run=True)
    assert outcome.result == BUFFER
    assert outcome.changed is False
    assert [m.header for m in outcome.manual] == ["@@ -1,2 +1,2 @@"]


def test_failed_hunk_does_not_block_successful_ones():
    outcome = apply_unified_diff(BUFFER, UNLOCATABLE + DIFF)
    assert outcome.changed is True
    assert outcome.result == "line1\nline2-modified\nline3"
    assert len(outcome.manual) == 1


def test_later_hunks_see_earlier_hunks_effects():
    buffer = "alpha\nbeta\ngamma\n"
    diff = """\
@@ -1,2 +1,2 @@
 alpha
-beta
+BETA
@@ -2,2 +2,2 @@
 BETA
-gamma
+GAMMA
"""
    outcome = apply_unified_diff(buffer, diff)
    assert outcome.result == "alpha\nBETA\nGAMMA\n"
    assert outcome.manual == []


def test_text_outside_the_hunk_is_untouched():
    prefix = "using Oxide.Core;\n\n"
    suffix = "\n// end of plugin\n"
    outcome = apply_unified_diff(prefix + BUFFER + suffix, DIFF)
    assert outcome.result == prefix + "line1\nline2-modified\nline3" + suffix


def test_empty_diff_changes_nothing():
    outcome = apply_unified_diff(BUFFER, "")
    assert outcome.changed is False
    assert outcome.result == BUFFER
    assert outcome.manual == []


def test_impact_is_not_clamped():
    diff = "@@ -1 +1,4 @@\n-a\n+b\n+c\n+d\n+e\n"
    impact = estimate_impact("a", diff)
    assert impact.total_lines == 1
    assert impact.touched_pct == pytest.approx(500.0)
    assert impact.deleted_pct == pytest.approx(100.0)


def test_impact_counts_crlf_lines():
    assert estimate_impact("a\r\nb\r\nc", "").total_lines == 3


def test_requires_confirmation_thresholds():
    def report(touched, deleted):
        return ImpactReport(
            total_lines=100, added=0, removed=0, touched_lines=0, touched_pct=touched, deleted_pct=deleted
        )

    assert not requires_confirmation(report(20.0, 10.0))
    assert requires_confirmation(report(20.1, 0.0))
    assert requires_confirmation(report(0.0, 10.5))
    assert not requires_confirmation(report(30.0, 0.0), touched_threshold=50)


def test_build_changelog_entry():
    impact = estimate_impact(BUFFER, DIFF)
    entry = build_changelog_entry("Applied Patch", DIFF, impact)
    assert entry.title == "Applied Patch"
    assert entry.summary == "+1/-1, touched 2 lines (66.7%)"
    assert entry.diff == DIFF
    assert entry.timestamp.endswith("Z")
    with pytest.raises(ValidationError):
        entry.title = "changed"


def test_manual_merge_message():
    clean = apply_unified_diff(BUFFER, DIFF, dry_run=True)
    assert manual_merge_message(clean, dry_run=True) == "Dry-run OK: patch applies cleanly"
    failed = apply_unified_diff(BUFFER, UNLOCATABLE)
    assert manual_merge_message(failed, dry_run=False) == "1 hunks need manual merge (not applied)"
