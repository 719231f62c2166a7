"""Service for creating and updating availability expressions together with
their generated timeslots."""

from __future__ import annotations

import logging

from app.domain.models import (
    AvailabilityExpression,
    AvailabilityExpressionCreate,
    AvailabilityExpressionUpdate,
    AvailabilityTimeslot,
    ExpressionStatus,
)
from app.repos.contracts import TimeslotStore
from app.repos.memory import ExpressionRepository
from app.services.timeslots import TimeslotMaterializer

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Keeps an expression and its timeslots in step.

    Timeslots are always materialized before anything is written, so an
    ``InvalidExpression`` leaves both the expression and its slots untouched.
    """

    def __init__(
        self,
        expression_repo: ExpressionRepository,
        timeslot_store: TimeslotStore,
        materializer: TimeslotMaterializer,
    ) -> None:
        self.expression_repo = expression_repo
        self.timeslot_store = timeslot_store
        self.materializer = materializer

    def _publish(
        self, expression: AvailabilityExpression
    ) -> tuple[AvailabilityExpression, list[AvailabilityTimeslot]]:
        slots = self.materializer.materialize(expression)
        self.timeslot_store.replace_for_expression(expression.id, slots)
        # Stored as published only once its slots are in place.
        expression.status = ExpressionStatus.PUBLISHED
        self.expression_repo.save(expression)
        logger.info(
            "Published availability expression %s for host %s with %d timeslots",
            expression.id,
            expression.host_user_id,
            len(slots),
        )
        return expression, slots

    def create(
        self, data: AvailabilityExpressionCreate
    ) -> tuple[AvailabilityExpression, list[AvailabilityTimeslot]]:
        expression = AvailabilityExpression(**data.model_dump())
        return self._publish(expression)

    def update(
        self, expression_id: str, data: AvailabilityExpressionUpdate
    ) -> tuple[AvailabilityExpression, list[AvailabilityTimeslot]]:
        current = self.expression_repo.get_or_raise(expression_id)
        changes = data.model_dump(exclude_unset=True)
        # Re-validate the merged record; the stored one is replaced only on success.
        updated = AvailabilityExpression.model_validate(
            {**current.model_dump(), **changes, "status": ExpressionStatus.DRAFT}
        )
        return self._publish(updated)

    def regenerate(self, expression_id: str) -> list[AvailabilityTimeslot]:
        """Rebuild the timeslots of a stored expression from its current rules."""
        expression = self.expression_repo.get_or_raise(expression_id)
        _, slots = self._publish(expression.model_copy())
        return slots
