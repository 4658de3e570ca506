"""
users.py

로그인한 사용자 본인의 계정 관리 API 모음.

주요 기능:
- 본인 프로필 조회 / 이름 수정
- 비밀번호 변경 (모든 세션 무효화)
- 회원 본인 탈퇴 (Soft Delete)

설계 원칙:
- 이메일 인증 전(UNVERIFIED) 계정도 본인 정보는 조회 가능
- 탈퇴한 계정은 USER_NOT_FOUND
- 비밀번호 변경 / 탈퇴 시 인증 쿠키 삭제

관련 파일:
- app.services.accounts    : 계정 비즈니스 로직
- app.core.deps            : 인증 의존성(get_current_identity)
"""

from fastapi import APIRouter, Depends, Response

from app.core.config import Settings
from app.core.cookies import clear_auth_cookies
from app.core.deps import get_account_service, get_current_identity, get_settings
from app.core.security import AccessClaims
from app.schemas.user import ChangePasswordRequest, DeleteMeRequest, EditProfileRequest, UserResponse
from app.services.accounts import AccountService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/me")
def profile(
    identity: AccessClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
):
    return {"data": UserResponse.model_validate(accounts.get_profile(identity.sub))}


@router.patch("/me")
def edit_profile(
    data: EditProfileRequest,
    identity: AccessClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.update_profile(identity.sub, name=data.name)
    return {"data": UserResponse.model_validate(user)}


"""
비밀번호 변경 API

- 현재 비밀번호 확인 필수
- 새 비밀번호는 기존 비밀번호와 달라야 함
- 변경 시 모든 Refresh Token family 무효화 → 다시 로그인 필요

"""

@router.patch("/me/password")
def change_password(
    data: ChangePasswordRequest,
    response: Response,
    identity: AccessClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    accounts.change_password(
        identity.sub,
        current_password=data.current_password,
        new_password=data.new_password,
    )
    clear_auth_cookies(response, settings)
    return {"data": {"status": "password_updated"}}


"""
회원 본인 탈퇴 API

- 본인 비밀번호 확인 후 탈퇴 처리
- 어떤 그룹의 유일한 ADMIN이면 탈퇴 불가
- Soft Delete 방식으로 처리, 모든 Refresh Token 무효화

"""

@router.delete("/me")
def delete_me(
    data: DeleteMeRequest,
    response: Response,
    identity: AccessClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    accounts.delete_account(identity.sub, password=data.password)
    clear_auth_cookies(response, settings)
    return {"data": {"status": "deleted"}}
