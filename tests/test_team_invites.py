import pytest

from linkstream.services import team_service
from linkstream.services.team_service import TeamError


class _Clock:
    def __init__(self, now=1_790_000_000.0):
        self.now = now

    def time(self):
        return self.now


@pytest.fixture()
def team(fake_db):
    team_id, _ = team_service.create_team("owner-1", "Owner@Example.com", "business", db=fake_db, time_module=_Clock())
    return team_id


def _invite(fake_db, fake_firestore_module, team_id, email, owner_uid="owner-1"):
    return team_service.create_invite(
        team_id,
        owner_uid,
        email,
        db=fake_db,
        firestore_module=fake_firestore_module,
        time_module=_Clock(),
    )


def _accept(fake_db, fake_firestore_module, token, uid, email):
    return team_service.accept_invite(
        token,
        uid,
        email,
        db=fake_db,
        firestore_module=fake_firestore_module,
        time_module=_Clock(),
    )


def test_create_team_requires_team_tier(fake_db):
    with pytest.raises(TeamError) as excinfo:
        team_service.create_team("u1", "u1@example.com", "pro", db=fake_db, time_module=_Clock())

    assert excinfo.value.status_code == 403


def test_create_team_links_owner(fake_db, team):
    stored = fake_db.data(f"teams/{team}")

    assert stored["memberIds"] == ["owner-1"]
    assert stored["maxSeats"] == 10
    assert stored["ownerEmail"] == "owner@example.com"
    assert fake_db.data("users/owner-1")["teamId"] == team


def test_generate_invite_token_is_32_alphanumeric_chars():
    token = team_service.generate_invite_token()

    assert len(token) == 32
    assert token.isalnum()


def test_create_invite_appends_pending_record(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, " New@Example.com ")

    stored = fake_db.data(f"teams/{team}")
    assert invite["email"] == "new@example.com"
    assert invite["status"] == "pending"
    assert stored["invites"][0]["token"] == invite["token"]


def test_duplicate_pending_invite_rejected(fake_db, fake_firestore_module, team):
    _invite(fake_db, fake_firestore_module, team, "new@example.com")

    with pytest.raises(TeamError) as excinfo:
        _invite(fake_db, fake_firestore_module, team, "NEW@example.com")

    assert "already sent" in excinfo.value.message


def test_non_owner_cannot_invite(fake_db, fake_firestore_module, team):
    with pytest.raises(TeamError) as excinfo:
        _invite(fake_db, fake_firestore_module, team, "x@example.com", owner_uid="someone-else")

    assert excinfo.value.status_code == 403


def test_pending_invites_count_against_seat_limit(fake_db, fake_firestore_module, team):
    fake_db.collection("teams").document(team).update({"maxSeats": 3})
    _invite(fake_db, fake_firestore_module, team, "a@example.com")
    _invite(fake_db, fake_firestore_module, team, "b@example.com")

    with pytest.raises(TeamError) as excinfo:
        _invite(fake_db, fake_firestore_module, team, "c@example.com")

    assert "No available seats" in excinfo.value.message


def test_accept_invite_joins_team_and_upgrades_member(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")

    team_id = _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "Member@Example.com")

    stored = fake_db.data(f"teams/{team}")
    assert team_id == team
    assert stored["memberIds"] == ["owner-1", "member-1"]
    assert stored["invites"][0]["status"] == "accepted"
    assert fake_db.data("users/member-1")["tier"] == "business"
    assert fake_db.data("users/member-1")["teamId"] == team


def test_accepting_used_invite_fails(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")
    _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "member@example.com")

    with pytest.raises(TeamError) as excinfo:
        _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "member@example.com")

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Invite has already been used"


def test_accept_invite_rejects_other_email(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")

    with pytest.raises(TeamError) as excinfo:
        _accept(fake_db, fake_firestore_module, invite["token"], "intruder", "intruder@example.com")

    assert excinfo.value.status_code == 403
    assert fake_db.data(f"teams/{team}")["memberIds"] == ["owner-1"]


def test_accept_unknown_token_is_not_found(fake_db, fake_firestore_module, team):
    with pytest.raises(TeamError) as excinfo:
        _accept(fake_db, fake_firestore_module, "missing-token", "u9", "u9@example.com")

    assert excinfo.value.status_code == 404


def test_remove_pending_invite_by_email(fake_db, fake_firestore_module, team):
    _invite(fake_db, fake_firestore_module, team, "gone@example.com")

    result = team_service.remove_member_or_invite(team, "owner-1", "gone@example.com", db=fake_db, time_module=_Clock())

    assert result["removed"] == "invite"
    assert fake_db.data(f"teams/{team}")["invites"] == []


def test_remove_member_resets_their_tier(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")
    _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "member@example.com")

    result = team_service.remove_member_or_invite(team, "owner-1", "member-1", db=fake_db, time_module=_Clock())

    assert result == {"removed": "member", "uid": "member-1"}
    assert fake_db.data(f"teams/{team}")["memberIds"] == ["owner-1"]
    assert fake_db.data("users/member-1")["tier"] == "free"
    assert fake_db.data("users/member-1")["teamId"] is None


def test_validate_invite_reports_owner(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")

    details = team_service.validate_invite(fake_db, invite["token"])

    assert details["teamId"] == team
    assert details["ownerEmail"] == "owner@example.com"


def _set_invite_status(fake_db, team_id, status):
    stored = fake_db.data(f"teams/{team_id}")
    invites = [dict(invite, status=status) for invite in stored["invites"]]
    fake_db.collection("teams").document(team_id).update({"invites": invites})


def test_accept_invite_rejects_when_team_is_full(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")
    fake_db.collection("teams").document(team).update({"maxSeats": 1})

    with pytest.raises(TeamError) as excinfo:
        _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "member@example.com")

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "No available seats. Maximum team size reached."
    assert fake_db.data(f"teams/{team}")["memberIds"] == ["owner-1"]
    assert fake_db.data("users/member-1") is None


def test_accept_invite_without_caller_email_skips_email_match(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")

    team_id = _accept(fake_db, fake_firestore_module, invite["token"], "phone-user", "")

    assert team_id == team
    assert "phone-user" in fake_db.data(f"teams/{team}")["memberIds"]


def test_accept_expired_invite_fails(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")
    _set_invite_status(fake_db, team, "expired")

    with pytest.raises(TeamError) as excinfo:
        _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "member@example.com")

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Invite has expired"


def test_validate_expired_invite_fails(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")
    _set_invite_status(fake_db, team, "expired")

    with pytest.raises(TeamError) as excinfo:
        team_service.validate_invite(fake_db, invite["token"])

    assert excinfo.value.message == "Invite has expired"


def test_remove_pending_invite_by_token(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "gone@example.com")
    _invite(fake_db, fake_firestore_module, team, "stays@example.com")

    result = team_service.remove_member_or_invite(team, "owner-1", invite["token"], db=fake_db, time_module=_Clock())

    assert result["removed"] == "invite"
    assert [item["email"] for item in fake_db.data(f"teams/{team}")["invites"]] == ["stays@example.com"]


def test_owner_cannot_remove_themselves(fake_db, team):
    with pytest.raises(TeamError) as excinfo:
        team_service.remove_member_or_invite(team, "owner-1", "owner-1", db=fake_db, time_module=_Clock())

    assert excinfo.value.status_code == 400
    assert fake_db.data(f"teams/{team}")["memberIds"] == ["owner-1"]


def test_invite_refused_for_existing_member(fake_db, fake_firestore_module, team):
    invite, _ = _invite(fake_db, fake_firestore_module, team, "member@example.com")
    _accept(fake_db, fake_firestore_module, invite["token"], "member-1", "member@example.com")

    with pytest.raises(TeamError) as excinfo:
        team_service.create_invite(
            team,
            "owner-1",
            "member@example.com",
            db=fake_db,
            firestore_module=fake_firestore_module,
            time_module=_Clock(),
            existing_member_uid="member-1",
        )

    assert excinfo.value.message == "User is already a team member"


def test_owner_cannot_invite_themselves(fake_db, fake_firestore_module, team):
    with pytest.raises(TeamError) as excinfo:
        _invite(fake_db, fake_firestore_module, team, "OWNER@example.com")

    assert excinfo.value.message == "Cannot invite yourself"
