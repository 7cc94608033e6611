#!/usr/bin/env python3
"""Print tier, team and usage details for one user.

Usage:
  ./venv/bin/python scripts/check_user_tier.py someone@example.com
"""

import argparse
import json
import os
import sys
import time
from datetime import datetime, timezone

import firebase_admin
from firebase_admin import credentials, firestore

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from linkstream.repositories import teams_repo, users_repo  # noqa: E402
from linkstream.services import tier_service, usage_service  # noqa: E402


def init_firestore():
    if os.path.exists("firebase-credentials.json"):
        cred = credentials.Certificate("firebase-credentials.json")
    else:
        raw = (os.getenv("FIREBASE_CREDENTIALS", "") or "").strip()
        if not raw:
            raise RuntimeError("Missing firebase-credentials.json and FIREBASE_CREDENTIALS env var.")
        cred = credentials.Certificate(json.loads(raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
    return firestore.client()


def describe_reminder(tier, user):
    last_backup_ts = user.get("lastBackupAt")
    if not isinstance(last_backup_ts, (int, float)):
        return "no backups recorded"
    last_backup = datetime.fromtimestamp(last_backup_ts, tz=timezone.utc)
    next_due = tier_service.get_next_reminder_date(tier, last_backup)
    should_send, reminder_type = tier_service.should_send_reminder(tier, last_backup)
    state = f"reminder due ({reminder_type})" if should_send else "no reminder today"
    return f"next backup due {next_due:%Y-%m-%d}, {state}"


def main():
    parser = argparse.ArgumentParser(description="Show subscription tier, team and usage for a user.")
    parser.add_argument("email", help="E-mail address stored on the user profile")
    args = parser.parse_args()

    db = init_firestore()
    doc = users_repo.find_by_email(db, args.email.strip().lower())
    if doc is None:
        print(f"No user profile found for {args.email}")
        raise SystemExit(1)

    user = doc.to_dict() or {}
    tier = tier_service.normalize_tier(user.get("tier"))
    used = usage_service.get_backups_this_month(doc.id, db=db, time_module=time)
    summary = usage_service.usage_summary(tier, used)
    print(f"uid={doc.id} tier={tier} subscriptionStatus={user.get('subscriptionStatus', '-')}")
    limit = summary["backupsPerMonth"]
    print(f"backups this month: {used} / {'unlimited' if limit == tier_service.UNLIMITED else limit}")
    print(describe_reminder(tier, user))

    team_id = user.get("teamId")
    if team_id:
        team_doc = teams_repo.get_doc(db, team_id)
        team = (team_doc.to_dict() or {}) if team_doc.exists else {}
        role = "owner" if team.get("ownerId") == doc.id else "member"
        print(f"team={team_id} role={role} members={len(team.get('memberIds') or [])} maxSeats={team.get('maxSeats', '-')}")
    else:
        print("team=-")


if __name__ == "__main__":
    main()
