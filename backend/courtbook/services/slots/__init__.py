# backend/courtbook/services/slots/__init__.py
"""
Slots module.

Generation:   weekly patterns → availability rows
Matching:     availability rows × bookings → open / partial / full / past
Coordination: edit/delete of one published slot across sibling locations
"""

from .config import BookingConfig, get_booking_config
from .generator import SlotDraft, generate_slots, materialize_slots, create_single_slot, new_batch_id
from .matching import SlotState, SlotStatus, overlaps, status_of, statuses_by_location, representative_row, day_view
from .coordinator import DeletionReport, UpdateReport, find_siblings, delete_slot, delete_batch, update_slot

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "SlotDraft",
    "generate_slots",
    "materialize_slots",
    "create_single_slot",
    "new_batch_id",
    "SlotState",
    "SlotStatus",
    "overlaps",
    "status_of",
    "statuses_by_location",
    "representative_row",
    "day_view",
    "DeletionReport",
    "UpdateReport",
    "find_siblings",
    "delete_slot",
    "delete_batch",
    "update_slot",
]
