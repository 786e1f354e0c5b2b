from fastapi import APIRouter, Body, Depends

from wooffy_api.core.access import AdminContext, require_admin
from wooffy_api.core.api_docs import error_responses
from wooffy_api.schemas.admin import DeleteAllUsersIn, DeleteAllUsersOut
from wooffy_api.services.user_admin_service import IdentityAdmin, delete_all_users, get_identity_admin

router = APIRouter(prefix="/functions/v1", tags=["admin"])


@router.post(
    "/delete-all-users",
    response_model=DeleteAllUsersOut,
    summary="Delete every user account (admins kept unless includeAdmins)",
    responses={**error_responses(400, 401, 403, 500)},
)
def delete_all_users_route(
    payload: DeleteAllUsersIn | None = Body(default=None),
    admin: AdminContext = Depends(require_admin("delete-all-users: enumerate and delete accounts")),
    identity_admin: IdentityAdmin = Depends(get_identity_admin),
):
    payload = payload or DeleteAllUsersIn()
    return delete_all_users(
        admin,
        identity_admin,
        confirmation_token=payload.confirmation_token,
        include_admins=payload.include_admins,
    )
