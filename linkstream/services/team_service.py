"""Team membership, seat accounting and invite lifecycle."""

import re
import secrets
import string

from linkstream.repositories import teams_repo, users_repo
from linkstream.services import tier_service


INVITE_TOKEN_LENGTH = 32
INVITE_TOKEN_ALPHABET = string.ascii_letters + string.digits
INVITE_STATUSES = ('pending', 'accepted', 'expired')
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class TeamError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def generate_invite_token():
    return ''.join(secrets.choice(INVITE_TOKEN_ALPHABET) for _ in range(INVITE_TOKEN_LENGTH))


def is_valid_email(email):
    return bool(EMAIL_RE.match(str(email or '')))


def normalize_email(email):
    return str(email or '').strip().lower()


def pending_invites(team):
    return [invite for invite in (team.get('invites') or []) if invite.get('status') == 'pending']


def get_used_seats(team):
    return len(team.get('memberIds') or []) + len(pending_invites(team))


def has_available_seats(team):
    max_seats = int(team.get('maxSeats', 0) or 0)
    if max_seats == tier_service.UNLIMITED:
        return True
    return get_used_seats(team) < max_seats


def max_seats_for_tier(tier):
    return tier_service.get_user_tier_limits(tier)['maxTeamMembers']


def create_team(owner_uid, owner_email, tier, *, db, time_module, subscription_id=''):
    """Create a team owned by ``owner_uid`` and link the owner's profile to it."""
    if tier_service.normalize_tier(tier) not in tier_service.TEAM_TIERS:
        raise TeamError('Team management requires a Business or Enterprise subscription', 403)
    now_ts = time_module.time()
    team_ref = teams_repo.new_doc_ref(db)
    team = {
        'ownerId': owner_uid,
        'ownerEmail': normalize_email(owner_email),
        'subscriptionId': subscription_id or '',
        'maxSeats': max_seats_for_tier(tier),
        'memberIds': [owner_uid],
        'invites': [],
        'createdAt': now_ts,
        'updatedAt': now_ts,
    }
    team_ref.set(team)
    users_repo.set_doc(db, owner_uid, {'teamId': team_ref.id, 'teamJoinedAt': now_ts, 'updatedAt': now_ts}, merge=True)
    return team_ref.id, team


def create_invite(team_id, owner_uid, email, *, db, firestore_module, time_module, existing_member_uid=''):
    """Append a pending invite after re-checking ownership and seats atomically.

    ``existing_member_uid`` is the uid registered under ``email``, if any, so
    an invite to someone who already belongs to the team can be refused.
    """
    safe_email = normalize_email(email)
    team_ref = teams_repo.doc_ref(db, team_id)
    transaction = db.transaction()
    now_ts = time_module.time()

    @firestore_module.transactional
    def _txn(txn):
        snapshot = team_ref.get(transaction=txn)
        if not snapshot.exists:
            raise TeamError('Team not found', 404)
        team = snapshot.to_dict() or {}
        if team.get('ownerId') != owner_uid:
            raise TeamError('Only team owner can send invites', 403)
        if normalize_email(team.get('ownerEmail')) == safe_email:
            raise TeamError('Cannot invite yourself', 400)
        if not has_available_seats(team):
            raise TeamError('No available seats. Maximum team size reached.', 400)
        if existing_member_uid and existing_member_uid in (team.get('memberIds') or []):
            raise TeamError('User is already a team member', 400)
        if any(normalize_email(invite.get('email')) == safe_email for invite in pending_invites(team)):
            raise TeamError('Invite already sent to this email', 400)

        invite = {
            'email': safe_email,
            'token': generate_invite_token(),
            'status': 'pending',
            'invitedAt': now_ts,
            'invitedBy': owner_uid,
        }
        invites = list(team.get('invites') or []) + [invite]
        txn.update(team_ref, {'invites': invites, 'updatedAt': now_ts})
        return invite, team

    return _txn(transaction)


def find_team_by_invite_token(db, token):
    """Return ``(team_id, team, invite)`` for ``token`` or ``None``.

    Invites are embedded in team documents, so this scans every team.
    """
    safe_token = str(token or '').strip()
    if not safe_token:
        return None
    for doc in teams_repo.stream_all(db):
        team = doc.to_dict() or {}
        for invite in team.get('invites') or []:
            if invite.get('token') == safe_token:
                return doc.id, team, invite
    return None


def accept_invite(token, uid, email, *, db, firestore_module, time_module):
    found = find_team_by_invite_token(db, token)
    if found is None:
        raise TeamError('Invalid or expired invite', 404)
    team_id = found[0]
    team_ref = teams_repo.doc_ref(db, team_id)
    user_ref = users_repo.doc_ref(db, uid)
    safe_email = normalize_email(email)
    transaction = db.transaction()
    now_ts = time_module.time()

    @firestore_module.transactional
    def _txn(txn):
        snapshot = team_ref.get(transaction=txn)
        if not snapshot.exists:
            raise TeamError('Invalid or expired invite', 404)
        team = snapshot.to_dict() or {}
        invites = [dict(invite) for invite in (team.get('invites') or [])]
        invite = next((item for item in invites if item.get('token') == token), None)
        if invite is None:
            raise TeamError('Invalid or expired invite', 404)
        if invite.get('status') == 'expired':
            raise TeamError('Invite has expired', 400)
        if invite.get('status') != 'pending':
            raise TeamError('Invite has already been used', 400)
        invite_email = normalize_email(invite.get('email'))
        if invite_email and safe_email and invite_email != safe_email:
            raise TeamError('This invitation was sent to a different email address', 403)

        member_ids = list(team.get('memberIds') or [])
        if uid not in member_ids:
            max_seats = int(team.get('maxSeats', 0) or 0)
            if max_seats != tier_service.UNLIMITED and len(member_ids) + 1 > max_seats:
                raise TeamError('No available seats. Maximum team size reached.', 400)
            member_ids.append(uid)
        invite['status'] = 'accepted'
        invite['acceptedAt'] = now_ts
        invite['acceptedBy'] = uid
        txn.update(team_ref, {'memberIds': member_ids, 'invites': invites, 'updatedAt': now_ts})
        txn.set(user_ref, {
            'teamId': team_id,
            'tier': 'business',
            'teamJoinedAt': now_ts,
            'updatedAt': now_ts,
        }, merge=True)
        return team_id

    return _txn(transaction)


def remove_member_or_invite(team_id, owner_uid, target, *, db, time_module):
    """Remove a member uid, or cancel a pending invite by token or email."""
    snapshot = teams_repo.get_doc(db, team_id)
    if not snapshot.exists:
        raise TeamError('Team not found', 404)
    team = snapshot.to_dict() or {}
    if team.get('ownerId') != owner_uid:
        raise TeamError('Only team owner can remove members', 403)
    safe_target = str(target or '').strip()
    if not safe_target:
        raise TeamError('Member id is required', 400)
    if safe_target == owner_uid:
        raise TeamError('Cannot remove yourself from the team', 400)

    now_ts = time_module.time()
    member_ids = list(team.get('memberIds') or [])
    if safe_target in member_ids:
        member_ids.remove(safe_target)
        teams_repo.update_doc(db, team_id, {'memberIds': member_ids, 'updatedAt': now_ts})
        users_repo.set_doc(db, safe_target, {'teamId': None, 'tier': 'free', 'updatedAt': now_ts}, merge=True)
        return {'removed': 'member', 'uid': safe_target}

    invites = list(team.get('invites') or [])
    target_email = normalize_email(safe_target)
    kept = [
        invite for invite in invites
        if not (invite.get('status') == 'pending'
                and (invite.get('token') == safe_target or normalize_email(invite.get('email')) == target_email))
    ]
    if len(kept) == len(invites):
        raise TeamError('Member or invite not found', 404)
    teams_repo.update_doc(db, team_id, {'invites': kept, 'updatedAt': now_ts})
    return {'removed': 'invite', 'target': safe_target}


def validate_invite(db, token):
    found = find_team_by_invite_token(db, token)
    if found is None:
        raise TeamError('Invalid or expired invite', 404)
    team_id, team, invite = found
    if invite.get('status') != 'pending':
        raise TeamError('Invite has already been used' if invite.get('status') == 'accepted' else 'Invite has expired', 400)
    return {
        'teamId': team_id,
        'email': invite.get('email', ''),
        'ownerEmail': team.get('ownerEmail', ''),
        'invitedAt': invite.get('invitedAt'),
    }


def team_payload(team_id, team, members, viewer_uid):
    return {
        'id': team_id,
        'ownerId': team.get('ownerId', ''),
        'ownerEmail': team.get('ownerEmail', ''),
        'maxSeats': team.get('maxSeats', 0),
        'usedSeats': get_used_seats(team),
        'members': members,
        'invites': [
            {
                'email': invite.get('email', ''),
                'token': invite.get('token', '') if viewer_uid == team.get('ownerId') else '',
                'status': invite.get('status', ''),
                'invitedAt': invite.get('invitedAt'),
            }
            for invite in (team.get('invites') or [])
        ],
        'isOwner': viewer_uid == team.get('ownerId'),
    }
