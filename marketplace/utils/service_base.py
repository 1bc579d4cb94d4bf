"""
Plumbing shared by the lifecycle services: existence checks, conditional
write outcomes and amount parsing.
"""

from decimal import Decimal, InvalidOperation

from ..exceptions import ResourceNotFound, StateConflict, ValidationFailed
from ..models import quantize_amount


def parse_amount(value, field_name='amount', allow_zero=False):
    """Coerce ``value`` to a 2-place Decimal, rejecting non-positive values."""
    if value is None or value == '':
        raise ValidationFailed(f"{field_name} is required", details={'field': field_name})
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailed(f"{field_name} must be a number", details={'field': field_name})
    if not amount.is_finite():
        raise ValidationFailed(f"{field_name} must be a number", details={'field': field_name})
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationFailed(
            f"{field_name} must be greater than {'or equal to ' if allow_zero else ''}zero",
            details={'field': field_name},
        )
    return quantize_amount(amount)


def reject_fields(fields, names, message):
    present = sorted(set(fields) & set(names))
    if present:
        raise ValidationFailed(message, details={'fields': present})


def require_fields(fields, names, entity):
    missing = [name for name in names if fields.get(name) in (None, '')]
    if missing:
        raise ValidationFailed(
            f"{entity} requires: {', '.join(missing)}",
            details={'missing_fields': missing},
        )


class StoreBackedService:
    entity = 'Resource'

    def __init__(self, store):
        self.store = store

    def _get(self, pk):
        instance = self.store.find_by_id(pk)
        if instance is None:
            raise ResourceNotFound(f"{self.entity} with ID {pk} not found")
        return instance

    def _single_row(self, affected, rows, pk, conflict_message=None):
        """
        Resolve the outcome of a conditional write.

        Zero rows means the entity vanished (NotFound) or its status moved
        underneath us (Conflict).
        """
        if affected:
            return rows[0]
        if self.store.find_by_id(pk) is None:
            raise ResourceNotFound(f"{self.entity} with ID {pk} not found")
        raise StateConflict(
            conflict_message or f"{self.entity} {pk} was modified concurrently; reload and retry"
        )
