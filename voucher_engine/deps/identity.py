from fastapi import Header, HTTPException

from voucher_engine.errors import parse_uuid


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    if not x_user_id:
        raise HTTPException(
            status_code=401,
            detail="Missing user context. Provide X-User-Id header.",
        )
    return parse_uuid(x_user_id, "user ID")


def get_optional_business_id(
    x_business_id: str | None = Header(default=None, alias="X-Business-Id"),
):
    if not x_business_id:
        return None
    return parse_uuid(x_business_id, "business ID")


def get_optional_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
):
    if not x_user_id:
        return None
    return parse_uuid(x_user_id, "user ID")
