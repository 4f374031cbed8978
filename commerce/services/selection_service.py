"""Slot selections for configurable bundles and their validation."""
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import List

from commerce.services.exceptions import SelectionValidationError

logger = logging.getLogger(__name__)


class SlotSelections(Mapping):
    """
    Immutable mapping of slot id -> tuple of selected product ids.

    Product ids are de-duplicated per slot when the mapping is built (first
    occurrence wins, order kept) and slots without products are dropped, so
    consumers never have to re-check either.
    """

    def __init__(self, selections=None):
        data = {}
        for slot_id, product_ids in (selections or {}).items():
            try:
                slot_key = int(slot_id)
                unique_ids = tuple(dict.fromkeys(int(pid) for pid in product_ids if pid is not None))
            except (TypeError, ValueError):
                raise SelectionValidationError(
                    'Invalid selections.',
                    errors=[f'Invalid selection for slot: {slot_id}'],
                )
            if unique_ids:
                data[slot_key] = unique_ids
        self._data = data

    @classmethod
    def from_payload(cls, payload):
        """
        Build selections from the API payload.

        Accepts `[{"slot_id": 1, "product_ids": [4, 5]}, {"slot_id": 2, "product_id": 7}]`;
        repeated entries for the same slot are merged.
        """
        merged = {}
        for entry in payload or []:
            if 'slot_id' not in entry:
                raise SelectionValidationError('Invalid selections.', errors=['Each selection needs a slot_id'])
            product_ids = entry.get('product_ids')
            if product_ids is None:
                product_ids = [entry.get('product_id')]
            merged.setdefault(entry['slot_id'], []).extend(product_ids)
        return cls(merged)

    def to_payload(self):
        return [{'slot_id': slot_id, 'product_ids': list(product_ids)} for slot_id, product_ids in self._data.items()]

    def all_product_ids(self):
        return [product_id for product_ids in self._data.values() for product_id in product_ids]

    def with_slot(self, slot_id, product_ids):
        data = dict(self._data)
        data[slot_id] = product_ids
        return SlotSelections(data)

    def __getitem__(self, slot_id):
        return self._data[slot_id]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f"SlotSelections({self._data!r})"


@dataclass
class SelectionResult:
    is_complete: bool
    missing_required_slots: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    # Subset of `errors` about slots or products outside the bundle, or too many picks
    structural_errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self):
        """Complete and free of structural errors; required before adding to cart."""
        return self.is_complete and not self.structural_errors


def select_product(slot, selections, product_id):
    """
    Return new selections after the customer picks `product_id` in `slot`.

    Single-select slots replace the current choice. Multi-select slots toggle
    membership; picking beyond max_selections leaves the selections unchanged.
    """
    current = selections.get(slot.id, ())
    if not slot.allows_multiple:
        return selections.with_slot(slot.id, (product_id,))

    if product_id in current:
        return selections.with_slot(slot.id, tuple(pid for pid in current if pid != product_id))
    if len(current) >= slot.max_selections:
        return selections
    return selections.with_slot(slot.id, current + (product_id,))


def validate_selections(bundle, selections):
    """
    Check `selections` against a bundle's slots.

    The result is complete when every required slot holds at least
    min_selections products; optional slots never block completeness.
    References to slots or products outside the bundle, or more products than
    a slot allows, are reported in `errors`. Fixed bundles are always complete.
    """
    if not bundle.is_configurable:
        return SelectionResult(is_complete=True)

    slots = {slot.id: slot for slot in bundle.slots.all()}
    missing = []
    errors = []
    structural = []

    for slot in slots.values():
        if not slot.is_required:
            continue
        chosen = selections.get(slot.id, ())
        if len(chosen) >= slot.min_selections:
            continue
        missing.append(slot.id)
        if not chosen:
            errors.append(f"Selection required for slot: {slot.name}")
        else:
            errors.append(f"At least {slot.min_selections} selection(s) required for: {slot.name}")

    for slot_id, product_ids in selections.items():
        slot = slots.get(slot_id)
        if slot is None:
            structural.append(f"Invalid slot ID: {slot_id}")
            continue
        if len(product_ids) > slot.max_selections:
            structural.append(f"Maximum {slot.max_selections} selection(s) allowed for: {slot.name}")
        offered = {slot_product.product_id for slot_product in slot.products.all()}
        if any(product_id not in offered for product_id in product_ids):
            structural.append(f"Invalid product selection for slot: {slot.name}")

    errors += structural
    if errors:
        logger.debug(f"Bundle {bundle.id} selections incomplete or invalid: {errors}")
    return SelectionResult(
        is_complete=not missing,
        missing_required_slots=missing,
        errors=errors,
        structural_errors=structural,
    )
