"""Account resolution and provisioning

Every authenticated request operates against exactly one account. The
resolver picks it in this order:

1. an accepted membership in somebody else's account (an invitation),
2. an account the profile owns,
3. any other accepted membership,
4. nothing, in which case a personal account is created.

Within each step family/shop accounts win over individual ones, then the
oldest row wins.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core import ProvisioningError, ValidationError, get_logger
from core.validators import ACCOUNT_MODES
from services.profile_service import get_or_create_profile, link_pending_invitations

logger = get_logger(__name__)

SHARED_MODES = ("family", "shop")
DEFAULT_ACCOUNT_NAME = "Personal Account"


@dataclass
class AccountContext:
    """The profile, account and role a request acts with."""

    profile: Dict[str, Any]
    account: Dict[str, Any]
    role: str

    @property
    def profile_id(self) -> int:
        return self.profile["id"]

    @property
    def account_id(self) -> int:
        return self.account["id"]

    @property
    def can_write(self) -> bool:
        return self.role != "viewer"

    @property
    def can_manage(self) -> bool:
        return self.role in ("owner", "admin")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profileId": self.profile_id,
            "accountId": self.account_id,
            "accountName": self.account.get("name"),
            "mode": self.account.get("mode"),
            "role": self.role,
        }


# === Queries ===


def find_accepted_memberships(db, profile_id: int) -> List[Dict[str, Any]]:
    return db.execute(
        """
        SELECT a.id, a.name, a.mode, a.owner_id, a.monthly_budget, a.created_at,
               am.role
        FROM account_members am
        JOIN accounts a ON a.id = am.account_id
        WHERE am.profile_id = %s AND am.accepted = TRUE
        ORDER BY am.created_at ASC, am.id ASC
        """,
        (profile_id,),
    ).fetchall()


def find_owned_accounts(db, profile_id: int) -> List[Dict[str, Any]]:
    return db.execute(
        "SELECT * FROM accounts WHERE owner_id = %s ORDER BY created_at ASC, id ASC",
        (profile_id,),
    ).fetchall()


def insert_account(db, owner_id: int, name: str, mode: str) -> Dict[str, Any]:
    row = db.execute(
        "INSERT INTO accounts (name, mode, owner_id) VALUES (%s, %s, %s) RETURNING *",
        (name, mode, owner_id),
    ).fetchone()
    db.commit()
    return row


def upsert_owner_membership(db, account_id: int, profile_id: int) -> None:
    db.execute(
        """
        INSERT INTO account_members (account_id, profile_id, role, accepted, joined_at)
        VALUES (%s, %s, 'owner', TRUE, CURRENT_TIMESTAMP)
        ON CONFLICT (account_id, profile_id)
        DO UPDATE SET role = 'owner', accepted = TRUE
        """,
        (account_id, profile_id),
    )
    db.commit()


# === Resolution ===


def _prefer_shared(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not rows:
        return None
    return next((r for r in rows if r.get("mode") in SHARED_MODES), rows[0])


def _account_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in row.items() if k != "role"}


def resolve_account(db, profile: Dict[str, Any]) -> AccountContext:
    memberships = find_accepted_memberships(db, profile["id"])

    invited = _prefer_shared([m for m in memberships if m["role"] != "owner"])
    if invited:
        return AccountContext(profile, _account_fields(invited), invited["role"])

    owned = _prefer_shared(find_owned_accounts(db, profile["id"]))
    if owned:
        return AccountContext(profile, owned, "owner")

    member = _prefer_shared(memberships)
    if member:
        return AccountContext(profile, _account_fields(member), member["role"])

    try:
        account = insert_account(db, profile["id"], DEFAULT_ACCOUNT_NAME, "individual")
    except Exception as e:
        db.rollback()
        logger.error("account_create_failed", exc=e, profile_id=profile["id"])
        raise ProvisioningError("Failed to create account", details=str(e))

    try:
        upsert_owner_membership(db, account["id"], profile["id"])
    except Exception as e:
        db.rollback()
        logger.warning("owner_membership_failed", account_id=account["id"], error=str(e))

    logger.info("account_auto_created", profile_id=profile["id"], account_id=account["id"])
    return AccountContext(profile, account, "owner")


def get_account_for_user(db, clerk_user_id: str) -> AccountContext:
    """Resolve (provisioning as needed) the account a Clerk user works in."""
    profile = get_or_create_profile(db, clerk_user_id)
    return resolve_account(db, profile)


def create_account(db, profile_id: int, name: Optional[str], mode: str) -> Dict[str, Any]:
    """Create an account and its owner membership."""
    if mode not in ACCOUNT_MODES:
        raise ValidationError(
            f"Mode must be one of: {', '.join(ACCOUNT_MODES)}", field="mode"
        )
    account = insert_account(db, profile_id, (name or "").strip() or "My Account", mode)
    upsert_owner_membership(db, account["id"], profile_id)
    logger.info("account_created", profile_id=profile_id, account_id=account["id"], mode=mode)
    return account


def ensure_profile(db, clerk_user_id: str) -> Dict[str, Any]:
    """First-login bootstrap: profile, pending invitations, then an account."""
    profile = get_or_create_profile(db, clerk_user_id)
    link_pending_invitations(db, profile)

    owned = find_owned_accounts(db, profile["id"])
    if owned:
        for account in owned:
            upsert_owner_membership(db, account["id"], profile["id"])
    elif not find_accepted_memberships(db, profile["id"]):
        create_account(db, profile["id"], "My Account", "individual")

    return {"success": True, "profileId": profile["id"]}
