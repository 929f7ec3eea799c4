"""Profile resolution and provisioning

Maps a Clerk user id to a row in ``profiles``, creating it from the Clerk
Backend API on first sight, and keeps profiles in sync with Clerk webhooks.
"""

from typing import Any, Dict, Optional

from auth import fetch_clerk_user
from core import AppError, NotFoundError, ProvisioningError, ValidationError, get_logger
from core.validators import LANGUAGES

logger = get_logger(__name__)


def _primary_email(clerk_user: Dict[str, Any]) -> Optional[str]:
    addresses = clerk_user.get("email_addresses") or []
    primary_id = clerk_user.get("primary_email_address_id")
    chosen = next((a for a in addresses if a.get("id") == primary_id), None)
    if chosen is None and addresses:
        chosen = addresses[0]
    email = (chosen or {}).get("email_address")
    return email.lower() if email else None


def _full_name(clerk_user: Dict[str, Any]) -> Optional[str]:
    name = " ".join(
        part for part in (clerk_user.get("first_name"), clerk_user.get("last_name")) if part
    ).strip()
    return name or None


def profile_fields_from_clerk(clerk_user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "email": _primary_email(clerk_user),
        "full_name": _full_name(clerk_user),
        "avatar_url": clerk_user.get("image_url"),
    }


def find_profile(db, clerk_user_id: str) -> Optional[Dict[str, Any]]:
    return db.execute(
        "SELECT * FROM profiles WHERE clerk_user_id = %s", (clerk_user_id,)
    ).fetchone()


def find_profile_by_email(db, email: str) -> Optional[Dict[str, Any]]:
    return db.execute(
        "SELECT * FROM profiles WHERE lower(email) = %s", (email.lower(),)
    ).fetchone()


def insert_profile(db, clerk_user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    row = db.execute(
        """
        INSERT INTO profiles (clerk_user_id, email, full_name, avatar_url, preferred_language)
        VALUES (%s, %s, %s, %s, 'en')
        RETURNING *
        """,
        (clerk_user_id, fields.get("email"), fields.get("full_name"), fields.get("avatar_url")),
    ).fetchone()
    db.commit()
    return row


def get_or_create_profile(db, clerk_user_id: str) -> Dict[str, Any]:
    """Return the local profile for a Clerk user, provisioning it if needed."""
    profile = find_profile(db, clerk_user_id)
    if profile:
        return profile

    try:
        clerk_user = fetch_clerk_user(clerk_user_id)
        profile = insert_profile(db, clerk_user_id, profile_fields_from_clerk(clerk_user))
    except AppError as e:
        raise ProvisioningError("Failed to create profile", details=e.details or e.message)
    except Exception as e:
        db.rollback()
        logger.error("profile_create_failed", exc=e, clerk_user_id=clerk_user_id)
        raise ProvisioningError("Failed to create profile", details=str(e))

    logger.info("profile_created", clerk_user_id=clerk_user_id, profile_id=profile["id"])
    return profile


def link_pending_invitations(db, profile: Dict[str, Any]) -> int:
    """Attach invitations sent to this profile's email and accept them."""
    if not profile.get("email"):
        return 0
    cur = db.execute(
        """
        UPDATE account_members
        SET profile_id = %s, accepted = TRUE, joined_at = CURRENT_TIMESTAMP
        WHERE lower(invited_email) = %s AND profile_id IS NULL
        """,
        (profile["id"], profile["email"].lower()),
    )
    linked = cur.rowcount or 0
    db.commit()
    if linked:
        logger.info("invitations_linked", profile_id=profile["id"], count=linked)
    return linked


def set_language(db, clerk_user_id: str, language: str) -> None:
    if language not in LANGUAGES:
        raise ValidationError("Language must be 'en' or 'ur'", field="language")
    profile = find_profile(db, clerk_user_id)
    if not profile:
        raise NotFoundError("Profile")
    db.execute(
        "UPDATE profiles SET preferred_language = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
        (language, profile["id"]),
    )
    db.commit()


# === Clerk webhook events ===


def handle_clerk_event(db, event: Dict[str, Any]) -> None:
    event_type = event.get("type")
    data = event.get("data") or {}
    clerk_user_id = data.get("id")

    if event_type == "user.created":
        try:
            insert_profile(db, clerk_user_id, profile_fields_from_clerk(data))
        except Exception as e:
            db.rollback()
            logger.error("webhook_profile_create_failed", exc=e, clerk_user_id=clerk_user_id)
            raise AppError(
                "Error creating profile", code="PROFILE_CREATE_FAILED", status_code=500, details=str(e)
            )
        logger.info("webhook_profile_created", clerk_user_id=clerk_user_id)

    elif event_type == "user.updated":
        fields = profile_fields_from_clerk(data)
        db.execute(
            """
            UPDATE profiles
            SET email = %s, full_name = %s, avatar_url = %s, updated_at = CURRENT_TIMESTAMP
            WHERE clerk_user_id = %s
            """,
            (fields["email"], fields["full_name"], fields["avatar_url"], clerk_user_id),
        )
        db.commit()
        logger.info("webhook_profile_updated", clerk_user_id=clerk_user_id)

    elif event_type == "user.deleted":
        db.execute("DELETE FROM profiles WHERE clerk_user_id = %s", (clerk_user_id,))
        db.commit()
        logger.info("webhook_profile_deleted", clerk_user_id=clerk_user_id)

    else:
        logger.debug("webhook_event_ignored", event_type=event_type)
