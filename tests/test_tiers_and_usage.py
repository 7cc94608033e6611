from datetime import datetime, timezone

from linkstream.services import tier_service, usage_service


NOW_TS = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc).timestamp()


class FrozenTime:
    def __init__(self, now):
        self.now = now

    def time(self):
        return self.now


def test_can_user_create_backup_respects_monthly_limit():
    assert tier_service.can_user_create_backup("free", 0) is True
    assert tier_service.can_user_create_backup("free", 1) is False
    assert tier_service.can_user_create_backup("pro", 3) is True
    assert tier_service.can_user_create_backup("pro", 4) is False


def test_unlimited_tiers_always_allow_backups():
    assert tier_service.can_user_create_backup("business", 10_000) is True
    assert tier_service.can_user_create_backup("enterprise", 10_000) is True
    assert tier_service.remaining_backups("business", 50) is None


def test_unknown_tier_falls_back_to_free():
    assert tier_service.normalize_tier(" PRO ") == "pro"
    assert tier_service.normalize_tier("platinum") == "free"
    assert tier_service.get_user_tier_limits(None)["backupsPerMonth"] == 1


def test_add_months_clamps_to_end_of_month():
    assert tier_service.add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
    assert tier_service.add_months(datetime(2026, 12, 15), 1) == datetime(2027, 1, 15)


def test_should_send_reminder_on_configured_days():
    last_backup = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert tier_service.should_send_reminder("free", last_backup, now=datetime(2026, 1, 31, tzinfo=timezone.utc)) == (True, "urgent")
    assert tier_service.should_send_reminder("free", last_backup, now=datetime(2026, 1, 25, tzinfo=timezone.utc)) == (True, "upcoming")
    assert tier_service.should_send_reminder("pro", last_backup, now=datetime(2026, 1, 5, tzinfo=timezone.utc)) == (True, "soon")
    assert tier_service.should_send_reminder("free", last_backup, now=datetime(2026, 1, 20, tzinfo=timezone.utc)) == (False, "")


def test_should_send_reminder_once_per_day_and_weekly_when_overdue():
    last_backup = datetime(2026, 1, 1, tzinfo=timezone.utc)
    now = datetime(2026, 1, 31, tzinfo=timezone.utc)

    assert tier_service.should_send_reminder("free", last_backup, last_reminder_sent=now, now=now) == (False, "")
    assert tier_service.should_send_reminder("free", last_backup, now=datetime(2026, 2, 8, tzinfo=timezone.utc)) == (True, "overdue")


def test_tier_for_price_id_maps_configured_prices(monkeypatch):
    monkeypatch.setenv("STRIPE_PRICE_PRO", "price_pro")
    monkeypatch.setenv("STRIPE_PRICE_BUSINESS", "price_biz")

    assert tier_service.tier_for_price_id("price_biz") == "business"
    assert tier_service.tier_for_price_id("price_unknown") == ""
    assert tier_service.tier_for_price_id("") == ""


def test_record_backup_usage_increments_month_and_user_counter(fake_db, fake_firestore_module):
    clock = FrozenTime(NOW_TS)

    first = usage_service.record_backup_usage("u1", db=fake_db, firestore_module=fake_firestore_module, time_module=clock)
    second = usage_service.record_backup_usage("u1", db=fake_db, firestore_module=fake_firestore_module, time_module=clock)

    assert (first, second) == (1, 2)
    assert fake_db.data("usage/u1/months/2026-10")["count"] == 2
    assert fake_db.data("users/u1")["backupsThisMonth"] == 2
    assert usage_service.get_backups_this_month("u1", db=fake_db, time_module=clock) == 2


def test_usage_counter_resets_for_new_month(fake_db, fake_firestore_module):
    usage_service.record_backup_usage("u1", db=fake_db, firestore_module=fake_firestore_module, time_module=FrozenTime(NOW_TS))

    next_month = FrozenTime(datetime(2026, 11, 2, tzinfo=timezone.utc).timestamp())

    assert usage_service.get_backups_this_month("u1", db=fake_db, time_module=next_month) == 0


def test_reserve_backup_slot_blocks_at_limit_and_release_frees_it(fake_db, fake_firestore_module):
    clock = FrozenTime(NOW_TS)
    kwargs = {"db": fake_db, "firestore_module": fake_firestore_module, "time_module": clock}

    assert usage_service.reserve_backup_slot("u1", "free", **kwargs) == (True, 1)
    assert usage_service.reserve_backup_slot("u1", "free", **kwargs) == (False, 1)

    assert usage_service.release_backup_slot("u1", **kwargs) == 0
    assert usage_service.reserve_backup_slot("u1", "free", **kwargs) == (True, 1)


def test_usage_summary_reports_remaining():
    summary = usage_service.usage_summary("pro", 1)

    assert summary == {
        "tier": "pro",
        "backupsThisMonth": 1,
        "backupsPerMonth": 4,
        "remaining": 3,
        "canCreateBackup": True,
    }
