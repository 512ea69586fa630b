from __future__ import annotations

import pytest

from app_usage.classifier import classify_event, describe_kind
from app_usage.models import EventClass, EventKind, RawEvent


def _event(kind: int, package: str | None = "com.example.mail") -> RawEvent:
    return RawEvent(
        package_name=package,
        application_label="Mail",
        is_system_app=False,
        kind=kind,
        timestamp=1_700_000_000_000,
    )


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (EventKind.MOVE_TO_FOREGROUND, EventClass.APP_VISIBLE),
        (EventKind.MOVE_TO_BACKGROUND, EventClass.APP_HIDDEN),
        (EventKind.SCREEN_NON_INTERACTIVE, EventClass.SCREEN_OFF),
        (EventKind.SCREEN_INTERACTIVE, EventClass.SCREEN_ON),
        (EventKind.ACTIVITY_STOPPED, EventClass.IRRELEVANT),
        (EventKind.USER_INTERACTION, EventClass.IRRELEVANT),
        (EventKind.KEYGUARD_SHOWN, EventClass.IRRELEVANT),
        (42, EventClass.IRRELEVANT),
        (-1, EventClass.IRRELEVANT),
    ],
)
def test_classify_by_kind(kind: int, expected: EventClass) -> None:
    assert classify_event(_event(kind)) is expected


def test_plain_integer_codes_are_recognized() -> None:
    assert classify_event(_event(1)) is EventClass.APP_VISIBLE
    assert classify_event(_event(16)) is EventClass.SCREEN_OFF


@pytest.mark.parametrize("package", [None, "", "   "])
def test_missing_package_is_irrelevant(package: str | None) -> None:
    assert classify_event(_event(EventKind.MOVE_TO_FOREGROUND, package)) is EventClass.IRRELEVANT
    assert classify_event(_event(EventKind.SCREEN_NON_INTERACTIVE, package)) is EventClass.IRRELEVANT


def test_describe_kind() -> None:
    assert describe_kind(2) == "MOVE_TO_BACKGROUND"
    assert describe_kind(1234) == "UNKNOWN(1234)"
