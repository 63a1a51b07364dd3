#!/usr/bin/env python3
"""
Gives a user a role (customer | admin | delivery).

The role is written to the Firestore profile (used for the next OTP login) and,
when the user already exists in Firebase Auth, as the `role` custom claim.

Usage: python set_role_claim.py <role> <phone|email|uid>
"""

import sys

from firebase_admin import auth

from app.config import get_db, get_firebase_app, settings
from app.repositories.firestore import FirestoreUserRepository
from app.schemas.user import normalize_phone

ROLES = ("customer", "admin", "delivery")


def resolve_uid(who: str) -> str | None:
    if "@" in who:
        return auth.get_user_by_email(who, app=get_firebase_app()).uid
    phone = normalize_phone(who)
    if phone:
        user = FirestoreUserRepository(get_db(), settings).get_by_phone(phone)
        return user.id if user else None
    return who


def set_role_claim(role: str, who: str) -> bool:
    try:
        uid = resolve_uid(who)
    except auth.UserNotFoundError:
        uid = None
    if not uid:
        print(f"❌ User not found: {who}")
        return False

    get_db().collection(settings.collection("users")).document(uid).set({"role": role}, merge=True)
    print(f"✅ Profile role set: {uid} -> {role}")

    try:
        auth.set_custom_user_claims(uid, {"role": role, "admin": role == "admin"}, app=get_firebase_app())
        claims = auth.get_user(uid, app=get_firebase_app()).custom_claims
        print(f"✅ Custom claims: {claims}")
    except auth.UserNotFoundError:
        print("ℹ️  No Firebase Auth account yet; the role applies from the next login.")
    return True


if __name__ == "__main__":
    if len(sys.argv) != 3 or sys.argv[1] not in ROLES:
        print("Usage: python set_role_claim.py <customer|admin|delivery> <phone|email|uid>")
        print("Example: python set_role_claim.py delivery 9876543211")
        sys.exit(1)

    role, who = sys.argv[1], sys.argv[2]
    print(f"Setting role {role!r} for: {who}")

    if set_role_claim(role, who):
        print("🎉 Role set successfully!")
        print("The user will need to sign out and sign in again for the changes to take effect.")
    else:
        print("💥 Failed to set role")
        sys.exit(1)
