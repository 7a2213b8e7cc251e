# studiobook/services/booking_service.py
"""
Booking Lifecycle Manager.

Every write follows the same shape:

    validate input -> take resource locks (sorted) -> open transaction ->
    row-lock room/equipment -> re-check availability -> persist -> commit ->
    release locks

so two overlapping requests for the same room can never both commit.
Status changes go through the forward-only transition graph in
``booking_validation`` and each one leaves a ``status_change`` note.
"""

from datetime import datetime
import logging
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import booking_key, equipment_key, resource_locks, room_key
from ..core.config import settings
from ..core.enums import PermissionName, RoleName
from ..core.exceptions import (
    BookingConflictException,
    EquipmentShortageException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ResourceBusyException,
)
from ..core.time_utils import Clock, ensure_utc
from ..models.booking import Booking, BookingStatus
from ..models.booking_equipment import BookingEquipment
from ..models.booking_note import BookingNote, NoteCategory
from ..models.booking_prep_material import BookingPrepMaterial
from ..models.booking_reminder import BookingReminder
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import ActorContext
from ..repositories import RepositoryFactory
from ..schemas.booking import (
    BookingCreate,
    BookingFilters,
    BookingNoteCreate,
    BookingNoteResponse,
    BookingResponse,
    BookingUpdate,
    PrepMaterialCreate,
    PrepMaterialResponse,
    ReminderCreate,
    ReminderResponse,
)
from .base import BaseService
from .booking_validation import (
    normalize_equipment_lines,
    validate_attendees,
    validate_equipment_rows,
    validate_room,
    validate_staff_ids,
    validate_status_transition,
    validate_time_range,
)
from .conflict_checker import ConflictChecker
from .equipment_ledger import EquipmentLedger
from .payment_ledger import PaymentLedger

logger = logging.getLogger(__name__)

STAFF_ROLE_VALUES = [RoleName.STAFF.value, RoleName.ADMIN.value]
UPDATE_LOCK_ATTEMPTS = 3


def _store_conflict(exc: IntegrityError) -> BookingConflictException:
    prometheus_metrics.record_booking_conflict("store")
    return BookingConflictException(
        "Booking could not be saved because of a concurrent change",
        details={"error": str(exc.orig) if exc.orig is not None else str(exc)},
    )


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Owns create/update/transition of bookings and their sub-records.
    Availability and equipment checks are delegated to ConflictChecker and
    EquipmentLedger so the pre-check API and the write path share one query.
    """

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        equipment_ledger: Optional[EquipmentLedger] = None,
        payment_ledger: Optional[PaymentLedger] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.conflict_repository = RepositoryFactory.create_conflict_checker_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.note_repository = RepositoryFactory.create_booking_note_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(
            db, self.conflict_repository, clock=self.clock
        )
        self.equipment_ledger = equipment_ledger or EquipmentLedger(
            db, self.conflict_repository, clock=self.clock
        )
        self.payment_ledger = payment_ledger or PaymentLedger(db, clock=self.clock)

    # Reads

    def _get_booking_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    def _to_response(self, booking_id: str) -> BookingResponse:
        return BookingResponse.model_validate(self._get_booking_or_404(booking_id))

    @BaseService.measure_operation("get_booking")
    def get_booking(self, actor: ActorContext, booking_id: str) -> BookingResponse:
        booking = self._get_booking_or_404(booking_id)
        actor.require_for_owner(
            booking.client_id, PermissionName.VIEW_OWN_BOOKINGS, PermissionName.VIEW_ALL_BOOKINGS
        )
        return BookingResponse.model_validate(booking)

    @BaseService.measure_operation("list_bookings")
    def list_bookings(self, actor: ActorContext, filters: BookingFilters) -> List[BookingResponse]:
        """
        Bookings matching the filters. Clients only ever see their own.
        """
        client_id = filters.client_id
        if not actor.can(PermissionName.VIEW_ALL_BOOKINGS):
            actor.require(PermissionName.VIEW_OWN_BOOKINGS)
            if client_id is not None and client_id != actor.user_id:
                raise ForbiddenException(
                    "Clients can only list their own bookings", code="MISSING_CAPABILITY"
                )
            client_id = actor.user_id

        window_start = ensure_utc(filters.window_start, "window_start") if filters.window_start else None
        window_end = ensure_utc(filters.window_end, "window_end") if filters.window_end else None
        if window_start is not None and window_end is not None:
            validate_time_range(window_start, window_end)

        bookings = self.repository.list_bookings(
            studio_id=filters.studio_id,
            room_id=filters.room_id,
            client_id=client_id,
            statuses=[BookingStatus(s).value for s in filters.statuses] if filters.statuses else None,
            window_start=window_start,
            window_end=window_end,
            skip=filters.skip,
            limit=filters.limit,
        )
        return [BookingResponse.model_validate(b) for b in bookings]

    # Create

    @BaseService.measure_operation("create_booking")
    def create_booking(self, actor: ActorContext, data: BookingCreate) -> BookingResponse:
        """
        Create a booking in ``pending``.

        Raises:
            ValidationException: bad range, quantities, capacity, staff or studio/room mismatch
            NotFoundException: unknown room, client or equipment
            BookingConflictException: the room is taken (details.conflicts lists the bookings)
            EquipmentShortageException: not enough stock (details.shortages)
            ResourceBusyException: lock wait timed out
        """
        client_id = data.client_id or actor.user_id
        if client_id == actor.user_id:
            actor.require(PermissionName.CREATE_OWN_BOOKINGS)
        else:
            actor.require(PermissionName.CREATE_BOOKINGS_FOR_CLIENTS)

        start, end = validate_time_range(
            data.start_time,
            data.end_time,
            min_minutes=settings.min_booking_minutes,
            max_minutes=settings.max_booking_minutes,
        )
        requested = normalize_equipment_lines(data.equipment)

        keys = [room_key(data.room_id)] + [equipment_key(eid) for eid in requested]
        with resource_locks(keys):
            with self.transaction(on_integrity_error=_store_conflict):
                room = validate_room(
                    self.conflict_repository.get_room(data.room_id, lock=True),
                    data.room_id,
                    data.studio_id,
                )
                validate_attendees(data.attendees, room)

                if self.user_repository.get_by_id(client_id, load_relationships=False) is None:
                    raise NotFoundException(f"Client {client_id} not found", code="CLIENT_NOT_FOUND")
                staff_ids = self._validate_staff(data.staff_ids)

                stock = validate_equipment_rows(
                    requested,
                    self.conflict_repository.get_equipment(list(requested), lock=True),
                    data.studio_id,
                )

                self._ensure_room_free(room.id, start, end)
                self._ensure_equipment_free(requested, stock, start, end)

                booking = Booking(
                    studio_id=data.studio_id,
                    room_id=room.id,
                    client_id=client_id,
                    staff_ids=staff_ids,
                    start_time=start,
                    end_time=end,
                    status=BookingStatus.PENDING.value,
                    purpose=data.purpose,
                    attendees=data.attendees,
                    special_requests=data.special_requests,
                    created_at=self.now(),
                )
                booking.equipment_lines = [
                    BookingEquipment(equipment_id=eid, quantity=qty) for eid, qty in requested.items()
                ]
                self.db.add(booking)
                if data.payment is not None:
                    self.payment_ledger.attach_payment_record(
                        booking, data.payment.amount, data.payment.currency
                    )
                self.db.flush()
                self._add_status_note(booking, actor, None, BookingStatus.PENDING)
                self.db.flush()
                booking_id = booking.id

        self.log_operation(
            "create_booking",
            booking_id=booking_id,
            room_id=data.room_id,
            client_id=client_id,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return self._to_response(booking_id)

    # Update

    @BaseService.measure_operation("update_booking")
    def update_booking(
        self, actor: ActorContext, booking_id: str, patch: BookingUpdate
    ) -> BookingResponse:
        """
        Apply a partial update.

        Time or room changes re-run the availability check excluding this
        booking; time or equipment changes re-run the equipment check.
        A ``status`` in the patch goes through the transition rules.

        Raises:
            InvalidTransitionException: booking is cancelled/completed, or illegal status move
            ForbiddenException: client editing someone else's or a non-pending booking
            ResourceBusyException: lock wait timed out, or the booking kept moving
                to other resources while its locks were being taken
        """
        fields = patch.model_fields_set
        current = self._get_booking_or_404(booking_id)
        self._require_can_edit(actor, current)

        patch_keys: Set[str] = {booking_key(booking_id)}
        if "room_id" in fields and patch.room_id:
            patch_keys.add(room_key(patch.room_id))
        requested_update: Optional[Dict[str, int]] = None
        if "equipment" in fields:
            requested_update = normalize_equipment_lines(patch.equipment or [])
            patch_keys.update(equipment_key(eid) for eid in requested_update)
        keys = patch_keys | self._resource_keys(current)

        # The room and equipment held by the booking can change between the read
        # above and lock acquisition; retry with the keys of the re-read row.
        for _ in range(UPDATE_LOCK_ATTEMPTS):
            with resource_locks(keys) as held:
                self.db.expire_all()
                with self.transaction(on_integrity_error=_store_conflict):
                    booking = self.repository.get_for_update(booking_id)
                    if booking is None:
                        raise NotFoundException(
                            f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND"
                        )
                    needed = patch_keys | self._resource_keys(booking)
                    if needed <= set(held):
                        self._require_can_edit(actor, booking)
                        self._apply_update(actor, booking, patch, fields, requested_update)
                        self.db.flush()
                        break
            self.logger.info(
                "update_booking_lock_keys_changed",
                extra={"booking_id": booking_id, "missing": sorted(needed - set(held))},
            )
            keys = needed
        else:
            raise ResourceBusyException(booking_key(booking_id), settings.booking_lock_wait_seconds)

        self.log_operation("update_booking", booking_id=booking_id, fields=sorted(fields))
        return self._to_response(booking_id)

    @staticmethod
    def _resource_keys(booking: Booking) -> Set[str]:
        """Lock keys for the room and equipment a booking currently holds."""
        keys = {room_key(booking.room_id)}
        keys.update(equipment_key(line.equipment_id) for line in booking.equipment_lines)
        return keys

    def _require_can_edit(self, actor: ActorContext, booking: Booking) -> None:
        actor.require_for_owner(
            booking.client_id,
            PermissionName.UPDATE_OWN_BOOKINGS,
            PermissionName.UPDATE_ALL_BOOKINGS,
        )
        if booking.is_terminal:
            raise InvalidTransitionException(
                booking.status, booking.status, "cancelled or completed bookings cannot be edited"
            )
        if not actor.can(PermissionName.UPDATE_ALL_BOOKINGS) and booking.status != BookingStatus.PENDING.value:
            raise ForbiddenException(
                "Only pending bookings can be changed by the client", code="BOOKING_LOCKED"
            )

    def _apply_update(
        self,
        actor: ActorContext,
        booking: Booking,
        patch: BookingUpdate,
        fields: Set[str],
        requested_update: Optional[Dict[str, int]],
    ) -> None:
        target_status: Optional[BookingStatus] = None
        if "status" in fields and patch.status is not None:
            target_status = BookingStatus(patch.status)
            if target_status.value == booking.status:
                target_status = None
            else:
                self._require_transition_capability(actor, booking, target_status)
                validate_status_transition(
                    booking.status_enum, target_status, end_time=booking.end_time, now=self.now()
                )

        room_id = patch.room_id if "room_id" in fields and patch.room_id else booking.room_id
        time_changed = bool({"start_time", "end_time"} & fields)
        if time_changed:
            start, end = validate_time_range(
                patch.start_time if "start_time" in fields and patch.start_time else booking.start_time,
                patch.end_time if "end_time" in fields and patch.end_time else booking.end_time,
                min_minutes=settings.min_booking_minutes,
                max_minutes=settings.max_booking_minutes,
            )
        else:
            start, end = booking.start_time, booking.end_time
        attendees = (
            patch.attendees if "attendees" in fields and patch.attendees is not None else booking.attendees
        )

        room_changed = room_id != booking.room_id
        if room_changed or "attendees" in fields:
            room = validate_room(
                self.conflict_repository.get_room(room_id, lock=True), room_id, booking.studio_id
            )
            validate_attendees(attendees, room)

        if requested_update is not None:
            requested = requested_update
        else:
            requested = {line.equipment_id: line.quantity for line in booking.equipment_lines}

        stays_active = target_status != BookingStatus.CANCELLED
        if stays_active and (time_changed or room_changed):
            self._ensure_room_free(room_id, start, end, exclude_booking_id=booking.id)
        if stays_active and requested and (time_changed or requested_update is not None):
            stock = validate_equipment_rows(
                requested,
                self.conflict_repository.get_equipment(list(requested), lock=True),
                booking.studio_id,
            )
            self._ensure_equipment_free(requested, stock, start, end, exclude_booking_id=booking.id)

        if "staff_ids" in fields and patch.staff_ids is not None:
            booking.staff_ids = self._validate_staff(patch.staff_ids)
        booking.room_id = room_id
        booking.start_time = start
        booking.end_time = end
        booking.attendees = attendees
        if "purpose" in fields:
            booking.purpose = patch.purpose
        if "special_requests" in fields:
            booking.special_requests = patch.special_requests
        if requested_update is not None:
            self._replace_equipment_lines(booking, requested_update)

        if target_status is not None:
            self._transition(booking, actor, target_status, patch.cancellation_reason)

    def _replace_equipment_lines(self, booking: Booking, requested: Dict[str, int]) -> None:
        # Update in place; deleting and re-inserting the same equipment id would
        # trip the (booking_id, equipment_id) unique constraint inside one flush.
        existing = {line.equipment_id: line for line in booking.equipment_lines}
        for eid, line in existing.items():
            if eid not in requested:
                booking.equipment_lines.remove(line)
            else:
                line.quantity = requested[eid]
        for eid, qty in requested.items():
            if eid not in existing:
                booking.equipment_lines.append(BookingEquipment(equipment_id=eid, quantity=qty))

    # Transitions

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, actor: ActorContext, booking_id: str) -> BookingResponse:
        actor.require(PermissionName.CONFIRM_BOOKINGS)
        return self._run_transition(actor, booking_id, BookingStatus.CONFIRMED)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, actor: ActorContext, booking_id: str) -> BookingResponse:
        """Mark a confirmed booking completed; only allowed once it has ended."""
        actor.require(PermissionName.COMPLETE_BOOKINGS)
        return self._run_transition(actor, booking_id, BookingStatus.COMPLETED)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, actor: ActorContext, booking_id: str, reason: Optional[str] = None
    ) -> BookingResponse:
        """Cancel a pending or confirmed booking, releasing its room and equipment."""
        return self._run_transition(actor, booking_id, BookingStatus.CANCELLED, reason)

    def _run_transition(
        self,
        actor: ActorContext,
        booking_id: str,
        target: BookingStatus,
        reason: Optional[str] = None,
    ) -> BookingResponse:
        with resource_locks([booking_key(booking_id)]):
            self.db.expire_all()
            with self.transaction():
                booking = self.repository.get_for_update(booking_id)
                if booking is None:
                    raise NotFoundException(
                        f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND"
                    )
                self._require_transition_capability(actor, booking, target)
                validate_status_transition(
                    booking.status_enum, target, end_time=booking.end_time, now=self.now()
                )
                previous = booking.status
                self._transition(booking, actor, target, reason)
                self.db.flush()

        self.log_operation(
            "booking_transition",
            booking_id=booking_id,
            from_status=previous,
            to_status=target.value,
            actor_id=actor.user_id,
        )
        return self._to_response(booking_id)

    def _require_transition_capability(
        self, actor: ActorContext, booking: Booking, target: BookingStatus
    ) -> None:
        if target == BookingStatus.CONFIRMED:
            actor.require(PermissionName.CONFIRM_BOOKINGS)
        elif target == BookingStatus.COMPLETED:
            actor.require(PermissionName.COMPLETE_BOOKINGS)
        elif target == BookingStatus.CANCELLED:
            actor.require_for_owner(
                booking.client_id,
                PermissionName.CANCEL_OWN_BOOKINGS,
                PermissionName.CANCEL_ALL_BOOKINGS,
            )

    def _transition(
        self,
        booking: Booking,
        actor: ActorContext,
        target: BookingStatus,
        reason: Optional[str] = None,
    ) -> None:
        """Set the new status and its timestamp; caller has validated the move."""
        previous = booking.status_enum
        now = self.now()
        booking.status = target.value
        if target == BookingStatus.CONFIRMED:
            booking.confirmed_at = now
        elif target == BookingStatus.COMPLETED:
            booking.completed_at = now
        elif target == BookingStatus.CANCELLED:
            booking.cancelled_at = now
            booking.cancelled_by_id = actor.user_id
            booking.cancellation_reason = reason
        self._add_status_note(booking, actor, previous, target, reason)

    def _add_status_note(
        self,
        booking: Booking,
        actor: ActorContext,
        previous: Optional[BookingStatus],
        target: BookingStatus,
        reason: Optional[str] = None,
    ) -> None:
        if previous is None:
            content = f"Booking created as {target.value} by {actor.role.value} {actor.user_id}"
        else:
            content = (
                f"Status changed from {previous.value} to {target.value} "
                f"by {actor.role.value} {actor.user_id}"
            )
        if reason:
            content = f"{content}: {reason}"
        self.db.add(
            BookingNote(
                booking_id=booking.id,
                author_id=actor.user_id,
                category=NoteCategory.STATUS_CHANGE.value,
                content=content,
                created_at=self.now(),
            )
        )

    # Sub-records

    def _load_for_annotation(self, actor: ActorContext, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id, load_relationships=False)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        actor.require_for_owner(
            booking.client_id,
            PermissionName.ANNOTATE_OWN_BOOKINGS,
            PermissionName.ANNOTATE_ALL_BOOKINGS,
        )
        return booking

    @BaseService.measure_operation("add_note")
    def add_note(
        self, actor: ActorContext, booking_id: str, data: BookingNoteCreate
    ) -> BookingNoteResponse:
        with self.transaction():
            booking = self._load_for_annotation(actor, booking_id)
            note = self.note_repository.create(
                booking_id=booking.id,
                author_id=actor.user_id,
                category=NoteCategory.GENERAL.value,
                content=data.content.strip(),
                created_at=self.now(),
            )
        return BookingNoteResponse.model_validate(note)

    def list_notes(
        self, actor: ActorContext, booking_id: str, category: Optional[NoteCategory] = None
    ) -> List[BookingNoteResponse]:
        booking = self._get_booking_or_404(booking_id)
        actor.require_for_owner(
            booking.client_id, PermissionName.VIEW_OWN_BOOKINGS, PermissionName.VIEW_ALL_BOOKINGS
        )
        notes = self.note_repository.list_for_booking(
            booking_id, category.value if category else None
        )
        return [BookingNoteResponse.model_validate(n) for n in notes]

    @BaseService.measure_operation("add_prep_material")
    def add_prep_material(
        self, actor: ActorContext, booking_id: str, data: PrepMaterialCreate
    ) -> PrepMaterialResponse:
        with self.transaction():
            booking = self._load_for_annotation(actor, booking_id)
            material = BookingPrepMaterial(
                booking_id=booking.id,
                title=data.title,
                description=data.description,
                file_url=data.file_url,
                uploaded_by_id=actor.user_id,
                uploaded_at=self.now(),
            )
            self.db.add(material)
            self.db.flush()
        return PrepMaterialResponse.model_validate(material)

    @BaseService.measure_operation("record_reminder")
    def record_reminder(
        self, actor: ActorContext, booking_id: str, data: ReminderCreate
    ) -> ReminderResponse:
        actor.require(PermissionName.RECORD_REMINDERS)
        sent_at: datetime = ensure_utc(data.sent_at, "sent_at") if data.sent_at else self.now()
        with self.transaction():
            if self.repository.get_by_id(booking_id, load_relationships=False) is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            reminder = BookingReminder(
                booking_id=booking_id,
                channel=data.channel.value,
                status=data.status.value,
                sent_at=sent_at,
            )
            self.db.add(reminder)
            self.db.flush()
        return ReminderResponse.model_validate(reminder)

    # Checks shared by create and update

    def _validate_staff(self, staff_ids: List[str]) -> List[str]:
        if not staff_ids:
            return []
        found = self.user_repository.get_users_with_roles(staff_ids, STAFF_ROLE_VALUES)
        return validate_staff_ids(staff_ids, [u.id for u in found])

    def _ensure_room_free(
        self,
        room_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        conflicts = self.conflict_checker.find_conflicts(room_id, start, end, exclude_booking_id)
        if conflicts:
            prometheus_metrics.record_booking_conflict("room")
            raise BookingConflictException(
                conflicts=[c.model_dump(mode="json") for c in conflicts],
                details={"room_id": room_id},
            )

    def _ensure_equipment_free(
        self,
        requested: Dict[str, int],
        stock: Dict,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        if not requested:
            return
        result = self.equipment_ledger.evaluate(requested, stock, start, end, exclude_booking_id)
        if not result.available:
            prometheus_metrics.record_booking_conflict("equipment")
            raise EquipmentShortageException([s.model_dump() for s in result.shortages])
