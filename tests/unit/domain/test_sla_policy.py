"""Tests for SlaPolicy."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from crm_assign.domain.policies.sla import SlaPolicy
from crm_assign.domain.value_objects.enums import Priority

START = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def test_default_offsets():
    policy = SlaPolicy()
    assert policy.offset_for(Priority.URGENT) == timedelta(hours=1)
    assert policy.offset_for(Priority.HIGH) == timedelta(hours=4)
    assert policy.offset_for(Priority.MEDIUM) == timedelta(hours=24)
    assert policy.offset_for(Priority.LOW) == timedelta(hours=72)


def test_deadline_is_start_plus_offset():
    assert SlaPolicy().deadline_for(Priority.URGENT, START) == START + timedelta(hours=1)


def test_accepts_plain_string_priority():
    assert SlaPolicy().offset_for("high") == timedelta(hours=4)


def test_from_hours_custom_table():
    policy = SlaPolicy.from_hours(
        {Priority.URGENT: 0.5, Priority.HIGH: 2, Priority.MEDIUM: 8, Priority.LOW: 48}
    )
    assert policy.deadline_for(Priority.URGENT, START) == START + timedelta(minutes=30)
    assert policy.offset_for(Priority.LOW) == timedelta(hours=48)


def test_from_settings():
    settings = SimpleNamespace(
        sla_urgent_hours=2, sla_high_hours=8, sla_medium_hours=24, sla_low_hours=96
    )
    policy = SlaPolicy.from_settings(settings)
    assert policy.offset_for(Priority.URGENT) == timedelta(hours=2)
    assert policy.offset_for(Priority.LOW) == timedelta(hours=96)


def test_missing_priority_rejected():
    with pytest.raises(ValueError, match="missing priorities"):
        SlaPolicy.from_hours({Priority.URGENT: 1})


def test_non_positive_offset_rejected():
    with pytest.raises(ValueError, match="positive"):
        SlaPolicy.from_hours(
            {Priority.URGENT: 0, Priority.HIGH: 4, Priority.MEDIUM: 24, Priority.LOW: 72}
        )


def test_policy_table_is_read_only():
    policy = SlaPolicy()
    with pytest.raises(TypeError):
        policy.offsets[Priority.URGENT] = timedelta(hours=9)
