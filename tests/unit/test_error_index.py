from __future__ import annotations

from validation_wizard.models.error_location import ErrorIndex, ErrorLocation


def _loc(row: int, rule: str = "Int", value: str = "x", reason: str = "bad") -> ErrorLocation:
    return ErrorLocation(row=row, value=value, rule_failed=rule, reason=reason)


def test_add_keeps_rows_ordered():
    index = ErrorIndex()
    for row in (5, 1, 3):
        index.add("qty", _loc(row))
    assert [loc.row for loc in index.for_column("qty")] == [1, 3, 5]
    assert len(index) == 3
    assert index.errors_detected == 3
    assert index.rows_with_errors() == [1, 3, 5]


def test_merge_row_marks_passing_cells_resolved():
    index = ErrorIndex({"qty": [_loc(2), _loc(4)]})
    index.merge_row(2, {("qty", "Required"), ("qty", "Int")}, [])

    entries = index.for_column("qty")
    assert entries[0].resolved is True
    assert entries[1].resolved is False
    assert index.resolved_count == 1
    assert not index.all_resolved()
    # 解決済みでも履歴として残る
    assert len(index) == 2


def test_merge_row_replaces_failure_and_adds_new_rule():
    index = ErrorIndex({"qty": [_loc(2, value="12a")]})
    failures = [
        ("qty", _loc(2, value="1.5", reason="decimal")),
        ("total", _loc(2, rule="total_check", reason="violated")),
    ]
    index.merge_row(2, {("qty", "Int"), ("total", "total_check")}, failures)

    assert index.for_column("qty")[0].value == "1.5"
    assert index.for_column("qty")[0].resolved is False
    assert index.for_column("total")[0].rule_failed == "total_check"
    assert len(index) == 2


def test_merge_row_ignores_unaffected_rules_and_rows():
    index = ErrorIndex({"qty": [_loc(2, rule="qty_cap"), _loc(3)]})
    index.merge_row(2, {("qty", "Int")}, [])
    assert index.resolved_count == 0


def test_reasons_by_row_uses_no_data_label():
    index = ErrorIndex()
    index.add("qty", ErrorLocation(1, "NULL", "Required", "This field cannot be empty."))
    index.add("email", ErrorLocation(1, "a,b", "Email", "Use '.' instead of ','."))
    index.add("qty", ErrorLocation(2, "9", "qty_cap", "violated", resolved=True))

    assert index.reasons_by_row() == {
        1: "qty: Required - Contains No Data; email: Email - Use '.' instead of ','."
    }
    assert 2 in index.reasons_by_row(unresolved_only=False)


def test_copy_is_independent():
    index = ErrorIndex({"qty": [_loc(1)]})
    clone = index.copy()
    clone.merge_row(1, {("qty", "Int")}, [])
    assert index.resolved_count == 0
    assert clone.resolved_count == 1
    assert index.to_dict()["qty"][0]["row"] == 1


def test_counters_follow_merges():
    index = ErrorIndex({"qty": [_loc(2), _loc(3)], "email": [_loc(2, rule="Email")]})
    assert index.resolved_count == 0

    index.merge_row(2, {("qty", "Int"), ("email", "Email")}, [])
    assert index.resolved_count == 2
    assert [c for c, _ in index.entries_for_row(2)] == ["qty", "email"]

    # 再び失敗した行は未解決に戻る
    index.merge_row(2, {("qty", "Int")}, [("qty", _loc(2, value="1.5"))])
    assert index.resolved_count == 1
    assert index.unresolved() == [("qty", _loc(2, value="1.5")), ("qty", _loc(3))]

    index.merge_row(3, {("qty", "Int")}, [])
    index.merge_row(2, {("qty", "Int")}, [])
    assert index.all_resolved()
    assert len(index) == 3


def test_merge_on_row_without_entries_only_adds():
    index = ErrorIndex({"qty": [_loc(1), _loc(9)]})
    index.merge_row(5, {("qty", "Int")}, [("qty", _loc(5))])
    assert [loc.row for loc in index.for_column("qty")] == [1, 5, 9]
    assert index.resolved_count == 0
