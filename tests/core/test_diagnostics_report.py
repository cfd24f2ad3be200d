"""Tests for DiagnosticsReport aggregation."""

from flashdoc.diagnostics import DiagnosticsReport
from flashdoc.exceptions import Diagnostic, ErrorCode, Severity


class TestCollect:
    """Grouping, de-duplication and ordering."""

    def test_grouped_by_code_family(self):
        report = DiagnosticsReport.collect(
            [Diagnostic(ErrorCode.FD101, "bad", path="a.hpp", severity=Severity.ERROR)],
            [Diagnostic(ErrorCode.FD300, "unresolved 'X'", entity_id="f()")],
            [Diagnostic(ErrorCode.FD500, "conflict", entity_id="Foo")],
            [Diagnostic(ErrorCode.FD400, "corrupt", path="b.hpp")],
        )
        assert [d.code for d in report.failed_files] == [ErrorCode.FD101]
        assert [d.code for d in report.unresolved] == [ErrorCode.FD300]
        assert [d.code for d in report.merge_conflicts] == [ErrorCode.FD500]
        assert [d.code for d in report.cache] == [ErrorCode.FD400]
        assert len(report) == 4

    def test_duplicates_removed(self):
        diagnostic = Diagnostic(ErrorCode.FD102, "recovered", path="a.hpp")
        report = DiagnosticsReport.collect([diagnostic], [diagnostic])
        assert report.recovered_syntax == [diagnostic]

    def test_stable_order(self):
        """Order depends on content, not on the order sources were collected."""
        a = Diagnostic(ErrorCode.FD200, "x", path="a.hpp", entity_id="f()")
        b = Diagnostic(ErrorCode.FD201, "y", path="a.hpp", entity_id="g()")
        c = Diagnostic(ErrorCode.FD200, "z", path="b.hpp")
        assert DiagnosticsReport.collect([c, b, a]).all() == DiagnosticsReport.collect([a, b, c]).all()
        assert DiagnosticsReport.collect([c, b, a]).grammar_errors == [a, b, c]


class TestSummary:
    """Derived views."""

    def test_has_errors_only_for_error_severity(self):
        warning = DiagnosticsReport.collect([Diagnostic(ErrorCode.FD300, "u")])
        assert not warning.has_errors
        error = DiagnosticsReport.collect(
            [Diagnostic(ErrorCode.FD600, "timed out", path="a.hpp", severity=Severity.ERROR)]
        )
        assert error.has_errors
        assert error.failed_paths == ["a.hpp"]

    def test_counts_and_by_code(self):
        report = DiagnosticsReport.collect(
            [
                Diagnostic(ErrorCode.FD300, "a", entity_id="f()"),
                Diagnostic(ErrorCode.FD300, "b", entity_id="g()"),
                Diagnostic(ErrorCode.FD301, "cycle", entity_id="A"),
            ]
        )
        assert report.counts()["unresolved"] == 2
        assert report.counts()["cycles"] == 1
        assert report.counts()["cache"] == 0
        assert report.by_code() == {"FD300": 2, "FD301": 1}

    def test_every_code_has_a_group(self):
        report = DiagnosticsReport.collect([Diagnostic(code, "m") for code in ErrorCode])
        assert len(report) == len(ErrorCode)

    def test_to_json(self):
        report = DiagnosticsReport.collect([Diagnostic(ErrorCode.FD401, "storage")])
        data = report.to_json()
        assert set(data) == set(DiagnosticsReport.group_names())
        assert data["cache"][0]["code"] == "FD401"
