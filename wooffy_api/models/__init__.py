from wooffy_api.models.user import Profile, User, UserRole
from wooffy_api.models.business import Business, BusinessBirthdaySettings
from wooffy_api.models.membership import Membership, MembershipExpiryNotification, Pet
from wooffy_api.models.offer import Offer, OfferRedemption, RatingPrompt, SentBirthdayOffer
from wooffy_api.models.notification import AnalyticsEvent, Notification
from wooffy_api.models.verification import EmailVerificationToken, VerificationAttempt
from wooffy_api.models.audit_log import AuditLog
from wooffy_api.models.side_effect import SideEffectTask
