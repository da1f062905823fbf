"""Tests for sitebuild.ledger."""

from __future__ import annotations

from sitebuild.ledger import ErrorLedger, ItemResult, capture, format_entries


def _fill(ledger: ErrorLedger, order: list[tuple[str, str]]) -> None:
    for key, message in order:
        ledger.record(key, ValueError(message))


def test_drain_orders_by_key_then_insertion() -> None:
    ledger = ErrorLedger()
    _fill(
        ledger,
        [
            ("page: b.md", "b1"),
            ("component: nav", "n1"),
            ("page: b.md", "b2"),
            ("page: a.md", "a1"),
        ],
    )

    entries = ledger.drain()

    assert [(e.key, e.message) for e in entries] == [
        ("component: nav", "n1"),
        ("page: a.md", "a1"),
        ("page: b.md", "b1"),
        ("page: b.md", "b2"),
    ]


def test_drain_is_independent_of_key_processing_order() -> None:
    first, second = ErrorLedger(), ErrorLedger()
    _fill(first, [("x", "1"), ("y", "2"), ("z", "3")])
    _fill(second, [("z", "3"), ("x", "1"), ("y", "2")])

    assert format_entries(first.drain()) == format_entries(second.drain())


def test_drain_empties_the_ledger() -> None:
    ledger = ErrorLedger()
    ledger.record("page: a.md", RuntimeError("boom"))

    assert ledger
    assert len(ledger) == 1
    ledger.drain()
    assert not ledger
    assert ledger.drain() == []


def test_record_result_only_records_failures() -> None:
    ledger = ErrorLedger()

    assert ledger.record_result("ok", ItemResult.ok(1)) is True
    assert ledger.record_result("bad", ItemResult.fail(KeyError("k"))) is False
    assert ledger.keys() == ["bad"]


def test_capture_folds_exceptions_into_result() -> None:
    def explode() -> None:
        raise OSError("disk")

    failed = capture(explode)
    succeeded = capture(lambda a, b: a + b, 1, 2)

    assert failed.failed and isinstance(failed.error, OSError)
    assert not succeeded.failed and succeeded.value == 3


def test_format_entries_falls_back_to_exception_name() -> None:
    ledger = ErrorLedger()
    ledger.record("css: main.css", KeyError())

    assert format_entries(ledger.drain()) == "css: main.css: KeyError"
