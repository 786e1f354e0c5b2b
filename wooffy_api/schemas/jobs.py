from pydantic import BaseModel


class DeactivatedMembershipOut(BaseModel):
    id: str
    member_number: str
    expired_at: str


class ExpireMembershipsOut(BaseModel):
    success: bool = True
    message: str
    count: int
    deactivated: list[DeactivatedMembershipOut]


class ExpiryRemindersOut(BaseModel):
    success: bool = True
    totalExpiring: int
    notificationsSent: int
    timestamp: str


class NotificationRunOut(BaseModel):
    message: str
    notificationsSent: int
