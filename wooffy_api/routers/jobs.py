from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from wooffy_api.core.access import PrivilegedAccess, privileged_access, require_cron_secret
from wooffy_api.core.api_docs import error_responses
from wooffy_api.schemas.admin import SideEffectDispatchOut
from wooffy_api.schemas.jobs import ExpireMembershipsOut, ExpiryRemindersOut, NotificationRunOut
from wooffy_api.services import membership_jobs
from wooffy_api.services.side_effects import dispatch_due_side_effects

router = APIRouter(
    prefix="/functions/v1",
    tags=["jobs"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post(
    "/expire-memberships",
    response_model=ExpireMembershipsOut,
    summary="Deactivate memberships past the expiry grace period",
    responses={**error_responses(401, 500)},
)
def expire_memberships_route(
    privileged: PrivilegedAccess = Depends(privileged_access("expire-memberships: all memberships")),
):
    return membership_jobs.expire_memberships(privileged)


@router.post(
    "/notify-expiring-memberships",
    response_model=ExpiryRemindersOut,
    summary="Send renewal reminders for memberships expiring soon",
    responses={**error_responses(401, 500)},
)
def notify_expiring_memberships_route(
    privileged: PrivilegedAccess = Depends(privileged_access("notify-expiring-memberships: all memberships")),
):
    return membership_jobs.notify_expiring_memberships(privileged)


@router.post(
    "/notify-member-anniversaries",
    response_model=NotificationRunOut,
    summary="Congratulate members on their membership anniversary",
    responses={**error_responses(401, 500)},
)
def notify_member_anniversaries_route(
    privileged: PrivilegedAccess = Depends(privileged_access("notify-member-anniversaries: all memberships")),
):
    return membership_jobs.notify_member_anniversaries(privileged)


@router.post(
    "/notify-pet-birthdays",
    response_model=NotificationRunOut,
    summary="Send birthday greetings for pets born on this day",
    responses={**error_responses(401, 500)},
)
def notify_pet_birthdays_route(
    privileged: PrivilegedAccess = Depends(privileged_access("notify-pet-birthdays: all pets")),
):
    return membership_jobs.notify_pet_birthdays(privileged)


@router.post(
    "/notify-business-birthdays",
    response_model=NotificationRunOut,
    summary="Remind businesses about upcoming birthdays of their customers' pets",
    responses={**error_responses(401, 500)},
)
def notify_business_birthdays_route(
    privileged: PrivilegedAccess = Depends(
        privileged_access("notify-business-birthdays: birthday settings, redemptions and pets")
    ),
):
    return membership_jobs.notify_business_birthdays(privileged)


@router.post(
    "/dispatch-side-effects",
    response_model=SideEffectDispatchOut,
    summary="Retry failed side effects that are due",
    responses={**error_responses(401, 500)},
)
def dispatch_side_effects_route(
    limit: int = Query(default=100, ge=1, le=1000),
    privileged: PrivilegedAccess = Depends(privileged_access("dispatch-side-effects: outbox")),
):
    return asdict(dispatch_due_side_effects(privileged.db, limit=limit))
