"""Tests for the availability service's publish flow."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.domain.models import (
    AvailabilityExpressionCreate,
    AvailabilityExpressionUpdate,
    ExpressionStatus,
)
from app.repos.memory import ExpressionRepository, TimeslotRepository
from app.services.availability import AvailabilityService
from app.services.timeslots import TimeslotMaterializer

UTC = timezone.utc

_CREATE = AvailabilityExpressionCreate(
    host_user_id="coach-1",
    date_of_opening=datetime(2024, 1, 1, tzinfo=UTC),
    date_of_closure=datetime(2024, 1, 31, tzinfo=UTC),
    minutes_of_duration=60,
    cron_expressions_of_available_time_points=["0 9 * * MON"],
    venue_ids=[10],
)


class BrokenTimeslotRepository(TimeslotRepository):
    """Accepts writes until ``broken`` is set."""

    broken = False

    def replace_for_expression(self, expression_id, slots):
        if self.broken:
            raise RuntimeError("timeslot store unavailable")
        super().replace_for_expression(expression_id, slots)


@pytest.fixture()
def service():
    return AvailabilityService(
        expression_repo=ExpressionRepository(),
        timeslot_store=BrokenTimeslotRepository(),
        materializer=TimeslotMaterializer(30),
    )


def test_create_publishes_expression_and_slots(service):
    expression, slots = service.create(_CREATE)
    assert expression.status == ExpressionStatus.PUBLISHED
    assert service.expression_repo.get(expression.id) is expression
    assert len(service.timeslot_store.list_for_expression(expression.id)) == len(slots) == 10


def test_failed_slot_write_on_create_stores_nothing(service):
    service.timeslot_store.broken = True
    with pytest.raises(RuntimeError):
        service.create(_CREATE)
    assert service.expression_repo._store == {}


def test_failed_slot_write_on_update_keeps_previous_version(service):
    expression, _ = service.create(_CREATE)
    service.timeslot_store.broken = True

    with pytest.raises(RuntimeError):
        service.update(
            expression.id,
            AvailabilityExpressionUpdate(
                cron_expressions_of_available_time_points=["0 9 * * TUE"]
            ),
        )

    stored = service.expression_repo.get(expression.id)
    assert stored.cron_expressions_of_available_time_points == ["0 9 * * MON"]
    assert stored.status == ExpressionStatus.PUBLISHED
    assert {
        s.day_of_week for s in service.timeslot_store.list_for_expression(expression.id)
    } == {1}
