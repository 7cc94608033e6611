#!/usr/bin/env python3
import argparse
import json
import os

import firebase_admin
from firebase_admin import auth, credentials


def init_firebase():
    if os.path.exists("firebase-credentials.json"):
        cred = credentials.Certificate("firebase-credentials.json")
    else:
        raw = (os.getenv("FIREBASE_CREDENTIALS", "") or "").strip()
        if not raw:
            raise RuntimeError("Missing firebase-credentials.json and FIREBASE_CREDENTIALS env var.")
        cred = credentials.Certificate(json.loads(raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)


def updated_claims(current_claims, revoke):
    claims = dict(current_claims or {})
    if revoke:
        claims.pop("admin", None)
    else:
        claims["admin"] = True
    return claims


def main():
    parser = argparse.ArgumentParser(description="Grant or revoke the admin custom claim for a Firebase user.")
    parser.add_argument("email", help="E-mail address of the Firebase user")
    parser.add_argument("--revoke", action="store_true", help="Remove the admin claim instead of granting it.")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes. Without this flag, the script runs in dry-run mode.",
    )
    args = parser.parse_args()

    init_firebase()
    user = auth.get_user_by_email(args.email.strip().lower())
    before = dict(user.custom_claims or {})
    after = updated_claims(before, revoke=args.revoke)
    mode = "APPLY" if args.apply else "DRY-RUN"
    print(f"[{mode}] uid={user.uid} email={user.email} claims_before={before} claims_after={after}")
    if not args.apply:
        print("No changes were written. Re-run with --apply to persist.")
        return
    auth.set_custom_user_claims(user.uid, after)
    print("Claims updated. The user must refresh their ID token for the change to take effect.")


if __name__ == "__main__":
    main()
