"""
Booking lifecycle state machine.

Every status change after creation goes through BookingStateMachine.transition:
the edge lookup, role check, identity check and precondition all run before
anything is written, the status change and its history entry are written
together, and only then are events published and side-effect hooks fired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from .domain import ensure_no_conflict
from .effects import BookingEffects, CeleryBookingEffects
from .exceptions import BookingNotFound, InvalidTransition, TransitionForbidden
from .models import ActorRole, Booking, BookingStateHistory, Transition
from .repository import BookingRepository, DjangoBookingRepository

logger = logging.getLogger(__name__)

Status = Booking.Status
Precondition = Callable[[Booking], bool]


@dataclass(frozen=True)
class TransitionEdge:
    source: str
    name: str
    target: str
    allowed_roles: frozenset[str]
    precondition: Optional[Precondition] = None
    # Tells apart edges sharing (source, name); matched against metadata["resolution"].
    resolution: str = ""


def _has_price_snapshot(booking: Booking) -> bool:
    return booking.total_amount is not None and booking.total_amount > 0


def _rental_not_ended(booking: Booking) -> bool:
    return timezone.now() < booking.end_at


def _dates_still_free(booking: Booking) -> bool:
    """No other booking holds an overlapping period on the listing."""
    try:
        ensure_no_conflict(
            booking.listing, booking.start_at, booking.end_at, exclude_booking_id=booking.pk
        )
    except ValidationError:
        return False
    return True


def _payable(booking: Booking) -> bool:
    return _has_price_snapshot(booking) and _dates_still_free(booking)


def _edge(
    source: str,
    name: str,
    target: str,
    *roles: str,
    precondition: Optional[Precondition] = None,
    resolution: str = "",
) -> TransitionEdge:
    return TransitionEdge(
        source=source,
        name=name,
        target=target,
        allowed_roles=frozenset(roles),
        precondition=precondition,
        resolution=resolution,
    )


R = ActorRole
T = Transition

TRANSITIONS: tuple[TransitionEdge, ...] = (
    _edge(Status.DRAFT, T.SUBMIT_REQUEST, Status.PENDING_OWNER_APPROVAL, R.RENTER),
    _edge(
        Status.PENDING_OWNER_APPROVAL,
        T.OWNER_APPROVE,
        Status.PENDING_PAYMENT,
        R.OWNER,
        precondition=_dates_still_free,
    ),
    _edge(Status.PENDING_OWNER_APPROVAL, T.OWNER_REJECT, Status.CANCELLED, R.OWNER),
    _edge(
        Status.PENDING_PAYMENT,
        T.COMPLETE_PAYMENT,
        Status.CONFIRMED,
        R.RENTER,
        R.SYSTEM,
        precondition=_payable,
    ),
    _edge(Status.PENDING_PAYMENT, T.EXPIRE, Status.CANCELLED, R.SYSTEM),
    _edge(
        Status.CONFIRMED,
        T.START_RENTAL,
        Status.IN_PROGRESS,
        R.OWNER,
        R.RENTER,
        R.SYSTEM,
        precondition=_rental_not_ended,
    ),
    _edge(Status.CONFIRMED, T.CANCEL, Status.CANCELLED, R.RENTER, R.OWNER),
    _edge(
        Status.IN_PROGRESS,
        T.REQUEST_RETURN,
        Status.AWAITING_RETURN_INSPECTION,
        R.RENTER,
        R.SYSTEM,
    ),
    _edge(Status.IN_PROGRESS, T.INITIATE_DISPUTE, Status.DISPUTED, R.RENTER, R.OWNER),
    _edge(Status.AWAITING_RETURN_INSPECTION, T.APPROVE_RETURN, Status.COMPLETED, R.OWNER),
    _edge(Status.AWAITING_RETURN_INSPECTION, T.REJECT_RETURN, Status.DISPUTED, R.OWNER),
    _edge(Status.AWAITING_RETURN_INSPECTION, T.EXPIRE, Status.COMPLETED, R.SYSTEM),
    _edge(Status.COMPLETED, T.SETTLE, Status.SETTLED, R.SYSTEM),
    _edge(Status.CANCELLED, T.REFUND, Status.REFUNDED, R.SYSTEM),
    _edge(
        Status.DISPUTED,
        T.RESOLVE_DISPUTE,
        Status.COMPLETED,
        R.ADMIN,
        R.SYSTEM,
        resolution="completed",
    ),
    _edge(
        Status.DISPUTED,
        T.RESOLVE_DISPUTE,
        Status.REFUNDED,
        R.ADMIN,
        R.SYSTEM,
        resolution="refunded",
    ),
)

TERMINAL_STATUSES = frozenset({Status.SETTLED, Status.REFUNDED, Status.CANCELLED})

# Effect method fired after the booking enters each status.
STATUS_HOOKS: Mapping[str, str] = {
    Status.CONFIRMED: "schedule_reminder",
    Status.IN_PROGRESS: "create_condition_report",
    Status.COMPLETED: "trigger_settlement",
    Status.CANCELLED: "trigger_refund",
    Status.DISPUTED: "notify_admins",
}


@dataclass(frozen=True)
class TransitionResult:
    booking_id: int
    previous_status: str
    new_status: str
    transition: str
    message: str
    success: bool = True


@dataclass
class SweepResult:
    transitioned: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.transitioned)


def get_available_transitions(current_status: str, actor_role: str) -> list[str]:
    """Transition names ``actor_role`` may fire from ``current_status``."""
    names: list[str] = []
    for edge in TRANSITIONS:
        if edge.source == current_status and actor_role in edge.allowed_roles:
            if edge.name not in names:
                names.append(edge.name)
    return names


def is_terminal_state(status: str) -> bool:
    return status in TERMINAL_STATUSES


class BookingStateMachine:
    def __init__(
        self,
        repository: Optional[BookingRepository] = None,
        effects: Optional[BookingEffects] = None,
        *,
        transitions: tuple[TransitionEdge, ...] = TRANSITIONS,
        events_topic: Optional[str] = None,
    ):
        self.repository = repository or DjangoBookingRepository()
        self.effects = effects or CeleryBookingEffects()
        self.transitions = transitions
        self.events_topic = events_topic or settings.BOOKING_EVENTS_TOPIC

    def transition(
        self,
        booking_id: int,
        transition: str,
        actor_id: Optional[int],
        actor_role: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> TransitionResult:
        """
        Fire ``transition`` on a booking on behalf of an actor.

        Raises BookingNotFound, InvalidTransition (no edge, failed precondition,
        or TransitionConflict when a concurrent request won) or
        TransitionForbidden. On any of these the booking is left untouched.
        """
        metadata = dict(metadata or {})

        booking = self.repository.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        previous_status = booking.status

        candidates = [
            edge
            for edge in self.transitions
            if edge.source == previous_status and edge.name == transition
        ]
        if not candidates:
            raise InvalidTransition(f"Invalid transition: {transition} from state {previous_status}")

        authorized = [edge for edge in candidates if actor_role in edge.allowed_roles]
        if not authorized:
            raise TransitionForbidden(f"Role {actor_role} not authorized for transition {transition}")

        self._verify_actor(booking, actor_id, actor_role)
        edge = self._select_edge(authorized, metadata)

        if edge.precondition is not None and not edge.precondition(booking):
            raise InvalidTransition("Preconditions not met for this transition")

        self.repository.apply_transition(
            booking,
            expected_status=previous_status,
            new_status=edge.target,
            transition=edge.name,
            actor_id=actor_id,
            actor_role=actor_role,
            metadata=metadata,
        )
        logger.info(
            "bookings: booking %s %s -> %s via %s by %s:%s",
            booking.pk,
            previous_status,
            edge.target,
            edge.name,
            actor_role,
            actor_id,
        )

        self._publish_state_change(booking, previous_status, edge, metadata)
        self._run_status_hook(booking, edge.target)

        return TransitionResult(
            booking_id=booking.pk,
            previous_status=previous_status,
            new_status=edge.target,
            transition=edge.name,
            message=f"Booking transitioned to {edge.target}",
        )

    def can_transition(self, booking_id: int, transition: str, actor_role: str) -> tuple[bool, str]:
        """Dry-run of the edge and role checks; never writes."""
        booking = self.repository.get(booking_id)
        if booking is None:
            return False, "Booking not found"
        candidates = [
            edge
            for edge in self.transitions
            if edge.source == booking.status and edge.name == transition
        ]
        if not candidates:
            return False, f"No valid transition {transition} from state {booking.status}"
        if not any(actor_role in edge.allowed_roles for edge in candidates):
            return False, f"Role {actor_role} not authorized for transition {transition}"
        return True, ""

    def get_state_history(self, booking_id: int) -> list[BookingStateHistory]:
        return self.repository.history(booking_id)

    def expire_unpaid_bookings(self, now: Optional[datetime] = None) -> SweepResult:
        """Cancel bookings stuck in PENDING_PAYMENT past the payment timeout."""
        return self._sweep(
            Status.PENDING_PAYMENT,
            timedelta(hours=settings.BOOKING_PAYMENT_TIMEOUT_HOURS),
            "Payment timeout",
            now,
        )

    def auto_approve_return_inspections(self, now: Optional[datetime] = None) -> SweepResult:
        """Complete bookings the owner has not inspected within the inspection window."""
        window = settings.BOOKING_INSPECTION_WINDOW_HOURS
        return self._sweep(
            Status.AWAITING_RETURN_INSPECTION,
            timedelta(hours=window),
            f"Auto-approved after {window} hours",
            now,
        )

    def run_sweeps(self, now: Optional[datetime] = None) -> int:
        now = now or timezone.now()
        expired = self.expire_unpaid_bookings(now)
        approved = self.auto_approve_return_inspections(now)
        return expired.count + approved.count

    def _sweep(
        self,
        status: str,
        older_than: timedelta,
        reason: str,
        now: Optional[datetime],
    ) -> SweepResult:
        cutoff = (now or timezone.now()) - older_than
        result = SweepResult()
        for booking_id in self.repository.find_stale_ids(status, cutoff):
            try:
                self.transition(
                    booking_id,
                    Transition.EXPIRE,
                    None,
                    ActorRole.SYSTEM,
                    {"reason": reason},
                )
            except Exception:
                logger.exception("bookings: sweep failed to expire booking %s", booking_id)
                result.failed.append(booking_id)
                continue
            result.transitioned.append(booking_id)
        if result.transitioned or result.failed:
            logger.info(
                "bookings: sweep of %s moved %d booking(s), %d failed",
                status,
                result.count,
                len(result.failed),
            )
        return result

    @staticmethod
    def _verify_actor(booking: Booking, actor_id: Optional[int], actor_role: str) -> None:
        if actor_role == ActorRole.RENTER and str(booking.renter_id) != str(actor_id):
            raise TransitionForbidden("Not the renter of this booking")
        if actor_role == ActorRole.OWNER and str(booking.listing.owner_id) != str(actor_id):
            raise TransitionForbidden("Not the owner of this listing")

    @staticmethod
    def _select_edge(edges: list[TransitionEdge], metadata: Mapping[str, Any]) -> TransitionEdge:
        if len(edges) == 1:
            return edges[0]
        resolution = str(metadata.get("resolution") or "").strip().lower()
        for edge in edges:
            if edge.resolution and edge.resolution == resolution:
                return edge
        choices = ", ".join(edge.resolution for edge in edges if edge.resolution)
        raise InvalidTransition(
            f"Transition {edges[0].name} requires metadata.resolution, one of: {choices}"
        )

    def _publish_state_change(
        self,
        booking: Booking,
        previous_status: str,
        edge: TransitionEdge,
        metadata: Mapping[str, Any],
    ) -> None:
        payload = {
            "booking_id": booking.pk,
            "new_status": edge.target,
            "previous_status": previous_status,
            "transition": edge.name,
            "renter_id": booking.renter_id,
            "owner_id": booking.listing.owner_id,
            "listing_id": booking.listing_id,
            "metadata": dict(metadata),
            "timestamp": timezone.now().isoformat(),
        }
        try:
            self.effects.publish(self.events_topic, payload)
        except Exception:
            logger.exception(
                "bookings: failed to publish state change for booking %s", booking.pk
            )

    def _run_status_hook(self, booking: Booking, new_status: str) -> None:
        hook_name = STATUS_HOOKS.get(new_status)
        if hook_name is None:
            return
        try:
            getattr(self.effects, hook_name)(booking)
        except Exception:
            logger.exception(
                "bookings: %s hook failed for booking %s", hook_name, booking.pk
            )


def get_state_machine() -> BookingStateMachine:
    """State machine wired to the ORM repository and Celery-backed effects."""
    return BookingStateMachine(DjangoBookingRepository(), CeleryBookingEffects())
