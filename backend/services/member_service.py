"""Family member management for an account"""

from typing import Any, Dict, List, Optional

from core import AuthorizationError, ConflictError, NotFoundError, ValidationError, get_logger
from core.validators import normalize_phone, validate_email, validate_role
from services.account_service import AccountContext, upsert_owner_membership
from services.profile_service import find_profile_by_email

logger = get_logger(__name__)

MEMBERS_SELECT = """
    SELECT am.id, am.account_id, am.profile_id, am.role, am.accepted, am.invited_email,
           am.spending_limit, am.phone_number, am.joined_at, am.created_at,
           p.email, p.full_name, p.avatar_url, p.phone_number AS profile_phone
    FROM account_members am
    LEFT JOIN profiles p ON p.id = am.profile_id
"""


def fetch_members(db, account_id: int) -> List[Dict[str, Any]]:
    return db.execute(
        f"{MEMBERS_SELECT} WHERE am.account_id = %s ORDER BY am.created_at ASC, am.id ASC",
        (account_id,),
    ).fetchall()


def fetch_member(db, account_id: int, member_id) -> Optional[Dict[str, Any]]:
    return db.execute(
        f"{MEMBERS_SELECT} WHERE am.account_id = %s AND am.id = %s",
        (account_id, member_id),
    ).fetchone()


def member_name(row: Dict[str, Any]) -> str:
    return row.get("full_name") or row.get("email") or row.get("invited_email") or "Unknown"


def member_phone(row: Dict[str, Any]) -> Optional[str]:
    return row.get("phone_number") or row.get("profile_phone")


def _require_manager(ctx: AccountContext, action: str) -> None:
    if not ctx.can_manage:
        raise AuthorizationError(f"Only owners and admins can {action}")


def format_member(row: Dict[str, Any]) -> Dict[str, Any]:
    joined = row.get("joined_at") or row.get("created_at")
    return {
        "id": row["id"],
        "profileId": row.get("profile_id"),
        "role": row["role"],
        "accepted": bool(row.get("accepted")),
        "email": row.get("email") or row.get("invited_email") or "—",
        "name": row.get("full_name"),
        "avatar": row.get("avatar_url"),
        "phoneNumber": member_phone(row),
        "spendingLimit": float(row["spending_limit"]) if row.get("spending_limit") is not None else None,
        "joinedAt": joined.isoformat() if joined else None,
    }


def list_members(db, ctx: AccountContext) -> Dict[str, Any]:
    return {
        "account": {
            "id": ctx.account_id,
            "name": ctx.account.get("name"),
            "mode": ctx.account.get("mode"),
        },
        "currentUserRole": ctx.role,
        "members": [format_member(r) for r in fetch_members(db, ctx.account_id)],
    }


def invite_member(db, ctx: AccountContext, email: Optional[str], role: Optional[str]) -> Dict[str, Any]:
    email = validate_email(email)
    _require_manager(ctx, "invite members")
    role = validate_role(role)

    already_invited = db.execute(
        "SELECT id FROM account_members WHERE account_id = %s AND lower(invited_email) = %s",
        (ctx.account_id, email),
    ).fetchone()
    if already_invited:
        raise ConflictError("This email has already been invited")

    existing_profile = find_profile_by_email(db, email)
    if existing_profile:
        already_member = db.execute(
            "SELECT id FROM account_members WHERE account_id = %s AND profile_id = %s",
            (ctx.account_id, existing_profile["id"]),
        ).fetchone()
        if already_member:
            raise ConflictError("This person is already a member of this account")

    # Inviting someone turns a personal ledger into a family one
    if ctx.account.get("mode") == "individual":
        db.execute(
            "UPDATE accounts SET mode = 'family', name = 'Family Account', "
            "updated_at = CURRENT_TIMESTAMP WHERE id = %s",
            (ctx.account_id,),
        )
        db.commit()
        upsert_owner_membership(db, ctx.account_id, ctx.account["owner_id"])
        ctx.account["mode"] = "family"
        ctx.account["name"] = "Family Account"

    auto_accept = existing_profile is not None
    row = db.execute(
        """
        INSERT INTO account_members
            (account_id, profile_id, role, invited_email, accepted, joined_at)
        VALUES (%s, %s, %s, %s, %s, CASE WHEN %s THEN CURRENT_TIMESTAMP END)
        RETURNING id
        """,
        (
            ctx.account_id,
            existing_profile["id"] if existing_profile else None,
            role,
            email,
            auto_accept,
            auto_accept,
        ),
    ).fetchone()
    db.commit()

    logger.info(
        "member_invited",
        account_id=ctx.account_id,
        member_id=row["id"],
        role=role,
        auto_accepted=auto_accept,
    )
    message = (
        f"{email} has been added to your account"
        if auto_accept
        else f"Invitation sent to {email}. They will join when they sign up."
    )
    return {
        "success": True,
        "memberId": row["id"],
        "autoAccepted": auto_accept,
        "message": message,
    }


def remove_member(db, ctx: AccountContext, member_id) -> Dict[str, Any]:
    if not member_id:
        raise ValidationError("memberId is required", field="memberId")
    _require_manager(ctx, "remove members")

    member = fetch_member(db, ctx.account_id, member_id)
    if not member:
        raise NotFoundError("Member")
    if member["role"] == "owner":
        raise AuthorizationError("The account owner cannot be removed")

    db.execute(
        "DELETE FROM account_members WHERE id = %s AND account_id = %s",
        (member["id"], ctx.account_id),
    )
    db.commit()
    logger.info("member_removed", account_id=ctx.account_id, member_id=member["id"])
    return {"success": True}


def update_member(db, ctx: AccountContext, data: Dict[str, Any]) -> Dict[str, Any]:
    member_id = data.get("memberId")
    if not member_id:
        raise ValidationError("memberId is required", field="memberId")
    _require_manager(ctx, "edit members")

    member = fetch_member(db, ctx.account_id, member_id)
    if not member:
        raise NotFoundError("Member")

    if "name" in data and member.get("profile_id"):
        name = (data.get("name") or "").strip() or None
        db.execute(
            "UPDATE profiles SET full_name = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
            (name, member["profile_id"]),
        )

    if data.get("role"):
        if member["role"] == "owner":
            raise AuthorizationError("The owner's role cannot be changed")
        role = validate_role(data["role"])
        db.execute("UPDATE account_members SET role = %s WHERE id = %s", (role, member["id"]))

    if "phoneNumber" in data:
        phone = normalize_phone(data["phoneNumber"]) if data.get("phoneNumber") else None
        db.execute(
            "UPDATE account_members SET phone_number = %s WHERE id = %s", (phone, member["id"])
        )

    db.commit()
    logger.info(
        "member_updated",
        account_id=ctx.account_id,
        member_id=member["id"],
        fields=sorted(k for k in data if k != "memberId"),
    )
    return {"success": True}
