import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import event, inspect

from wooffy_api.core.security import create_access_token, hash_email_verification_token
from wooffy_api.models.business import Business, BusinessBirthdaySettings
from wooffy_api.models.membership import Membership, Pet
from wooffy_api.models.offer import Offer, OfferRedemption, SentBirthdayOffer
from wooffy_api.models.user import Profile, User, UserRole
from wooffy_api.models.verification import EmailVerificationToken


def _new_id() -> str:
    return str(uuid.uuid4())


class Seeder:
    """Writes fixture rows straight through the ORM and hands back their ids."""

    def __init__(self, session_local):
        self.session_local = session_local

    def _add(self, *rows):
        with self.session_local() as db:
            for row in rows:
                db.add(row)
                # No relationship() mappings, so parents must be flushed before children.
                db.flush()
            db.commit()

    def user(self, email: str, *, full_name: str | None = None, roles: tuple[str, ...] = ()) -> str:
        user_id = _new_id()
        rows = [
            User(id=user_id, email=email),
            Profile(id=_new_id(), user_id=user_id, email=email, full_name=full_name, email_verified=False),
        ]
        rows.extend(UserRole(id=_new_id(), user_id=user_id, role=role) for role in roles)
        self._add(*rows)
        return user_id

    def business(self, owner_user_id: str, *, name: str = "Happy Paws Grooming") -> str:
        business_id = _new_id()
        self._add(
            Business(
                id=business_id,
                owner_user_id=owner_user_id,
                business_name=name,
                verification_status="verified",
            )
        )
        return business_id

    def membership(
        self,
        user_id: str,
        *,
        member_number: str | None = None,
        expires_at: datetime | None = None,
        is_active: bool = True,
        pet_name: str | None = None,
        created_at: datetime | None = None,
    ) -> str:
        membership_id = _new_id()
        row = Membership(
            id=membership_id,
            user_id=user_id,
            member_number=member_number or f"WF-{uuid.uuid4().hex[:8].upper()}",
            plan_type="annual",
            is_active=is_active,
            expires_at=expires_at or datetime.now(timezone.utc) + timedelta(days=200),
            pet_name=pet_name,
        )
        if created_at is not None:
            row.created_at = created_at
        self._add(row)
        return membership_id

    def pet(
        self,
        membership_id: str,
        owner_user_id: str,
        *,
        name: str = "Rex",
        pet_type: str = "dog",
        birthday: date | None = None,
    ) -> str:
        pet_id = _new_id()
        self._add(
            Pet(
                id=pet_id,
                membership_id=membership_id,
                owner_user_id=owner_user_id,
                pet_name=name,
                pet_type=pet_type,
                pet_breed="Beagle" if pet_type == "dog" else None,
                birthday=birthday,
            )
        )
        return pet_id

    def offer(
        self,
        business_id: str,
        *,
        title: str = "10% off grooming",
        discount_value: str = "10",
        discount_type: str = "percentage",
        pet_type: str | None = None,
        max_redemptions: int | None = None,
    ) -> str:
        offer_id = _new_id()
        self._add(
            Offer(
                id=offer_id,
                business_id=business_id,
                title=title,
                discount_value=Decimal(discount_value),
                discount_type=discount_type,
                pet_type=pet_type,
                max_redemptions=max_redemptions,
                is_active=True,
            )
        )
        return offer_id

    def birthday_offer(
        self,
        business_id: str,
        owner_user_id: str,
        *,
        pet_name: str = "Rex",
        discount_value: str = "15",
        discount_type: str = "percentage",
        redeemed_at: datetime | None = None,
        redeemed_by_business_id: str | None = None,
    ) -> str:
        birthday_offer_id = _new_id()
        self._add(
            SentBirthdayOffer(
                id=birthday_offer_id,
                business_id=business_id,
                owner_user_id=owner_user_id,
                pet_name=pet_name,
                owner_name="Maria",
                discount_value=Decimal(discount_value),
                discount_type=discount_type,
                message="Happy birthday!",
                redeemed_at=redeemed_at,
                redeemed_by_business_id=redeemed_by_business_id,
            )
        )
        return birthday_offer_id

    def verification_token(
        self,
        user_id: str,
        email: str,
        raw_token: str,
        *,
        expires_at: datetime | None = None,
    ) -> str:
        token_id = _new_id()
        self._add(
            EmailVerificationToken(
                id=token_id,
                user_id=user_id,
                email=email,
                token_hash=hash_email_verification_token(raw_token),
                expires_at=expires_at or datetime.now(timezone.utc) + timedelta(hours=24),
            )
        )
        return token_id

    def birthday_settings(self, business_id: str, *, enabled: bool = True) -> str:
        settings_id = _new_id()
        self._add(BusinessBirthdaySettings(id=settings_id, business_id=business_id, enabled=enabled))
        return settings_id

    def redemption(self, membership_id: str, offer_id: str, business_id: str, redeemed_by_user_id: str) -> str:
        redemption_id = _new_id()
        self._add(
            OfferRedemption(
                id=redemption_id,
                membership_id=membership_id,
                offer_id=offer_id,
                business_id=business_id,
                redeemed_by_user_id=redeemed_by_user_id,
            )
        )
        return redemption_id


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def _first_statement_hook(session_local, entity, matches, handle) -> None:
    mapper = inspect(entity)
    fired: list[bool] = []

    def on_execute(state):
        if fired or not matches(state) or mapper not in state.all_mappers:
            return None
        fired.append(True)
        return handle(state)

    event.listen(session_local, "do_orm_execute", on_execute)


def write_after_first_select(session_local, entity, write) -> None:
    """Run ``write(connection)`` inside the request's transaction right after it first reads ``entity``.

    Stands in for a concurrent writer that lands between a pre-check and the write it guards.
    """

    def handle(state):
        frozen = state.invoke_statement().freeze()
        write(state.session.connection())
        return frozen()

    _first_statement_hook(session_local, entity, lambda state: state.is_select, handle)


def write_before_first_update(session_local, entity, write) -> None:
    """Run ``write(connection)`` inside the request's transaction just before it first updates ``entity``."""

    def handle(state):
        write(state.session.connection())
        return None

    _first_statement_hook(session_local, entity, lambda state: state.is_update, handle)
