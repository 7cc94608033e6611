import io
import logging
import urllib.error

from linkstream.services import email_service, report_service, retention_service


class _Blob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def exists(self):
        return self.name in self.bucket.files

    def delete(self):
        self.bucket.files.discard(self.name)
        self.bucket.deleted.append(self.name)


class _Bucket:
    def __init__(self, files):
        self.files = set(files)
        self.deleted = []

    def blob(self, name):
        return _Blob(self, name)

    def list_blobs(self, prefix=""):
        return [_Blob(self, name) for name in sorted(self.files) if name.startswith(prefix)]


def _seed_backup(fake_db, backup_id, raw_expires, derived_expires, keep_raw=False):
    prefix = f"users/u1/linkedin-exports/{backup_id}/"
    fake_db.collection("backups").document(backup_id).set({
        "uid": "u1",
        "storagePaths": {"raw": prefix + "raw.zip", "processed": prefix + "processed.txt"},
        "retention": {"rawExpiresAt": raw_expires, "derivedExpiresAt": derived_expires, "keepRawForever": keep_raw},
    })
    return [prefix + "raw.zip", prefix + "processed.txt"]


def test_cleanup_deletes_expired_raw_archives_only(fake_db):
    files = _seed_backup(fake_db, "old-raw", raw_expires=100.0, derived_expires=10_000.0)
    files += _seed_backup(fake_db, "fresh", raw_expires=5_000.0, derived_expires=10_000.0)
    bucket = _Bucket(files)

    result = retention_service.cleanup_expired_backups(fake_db, bucket, 1_000.0, limit=50, logger=logging.getLogger("test"))

    assert result["deletedRawFiles"] == 1
    assert result["deletedBackups"] == 0
    assert bucket.deleted == ["users/u1/linkedin-exports/old-raw/raw.zip"]
    assert fake_db.data("backups/old-raw")["storagePaths"]["raw"] is None
    assert fake_db.data("backups/old-raw")["storagePaths"]["processed"].endswith("processed.txt")


def test_cleanup_honours_keep_raw_forever(fake_db):
    files = _seed_backup(fake_db, "kept", raw_expires=100.0, derived_expires=10_000.0, keep_raw=True)
    bucket = _Bucket(files)

    result = retention_service.cleanup_expired_backups(fake_db, bucket, 1_000.0, limit=50, logger=logging.getLogger("test"))

    assert result["deletedRawFiles"] == 0
    assert bucket.deleted == []


def test_cleared_raw_rows_do_not_starve_later_expiries(fake_db):
    for backup_id in ("done-1", "done-2", "done-3"):
        fake_db.collection("backups").document(backup_id).set({
            "uid": "u1",
            "storagePaths": {"raw": None},
            "retention": {"rawExpiresAt": 10.0, "derivedExpiresAt": 10_000.0, "keepRawForever": False},
        })
    fake_db.collection("backups").document("kept").set({
        "uid": "u1",
        "storagePaths": {"raw": "users/u1/linkedin-exports/kept/raw.zip"},
        "retention": {"rawExpiresAt": 20.0, "derivedExpiresAt": 10_000.0, "keepRawForever": True},
    })
    files = _seed_backup(fake_db, "new", raw_expires=500.0, derived_expires=10_000.0)
    bucket = _Bucket(files + ["users/u1/linkedin-exports/kept/raw.zip"])
    logger = logging.getLogger("test")

    first = retention_service.cleanup_expired_backups(fake_db, bucket, 1_000.0, limit=3, logger=logger)
    second = retention_service.cleanup_expired_backups(fake_db, bucket, 1_000.0, limit=3, logger=logger)

    assert first["deletedRawFiles"] + second["deletedRawFiles"] == 1
    assert bucket.deleted == ["users/u1/linkedin-exports/new/raw.zip"]
    assert fake_db.data("backups/done-1")["retention"]["rawExpiresAt"] is None
    assert fake_db.data("backups/new")["retention"]["rawExpiresAt"] is None
    assert fake_db.data("backups/kept")["retention"]["rawExpiresAt"] == 20.0


def test_cleanup_removes_backups_past_derived_retention(fake_db):
    files = _seed_backup(fake_db, "ancient", raw_expires=50.0, derived_expires=100.0)
    fake_db.collection("backupSnapshots").document("u1").collection("snapshots").document("s1").set({"backupId": "ancient"})
    bucket = _Bucket(files)

    result = retention_service.cleanup_expired_backups(fake_db, bucket, 1_000.0, limit=50, logger=logging.getLogger("test"))

    assert result["deletedBackups"] == 1
    assert result["errors"] == []
    assert fake_db.data("backups/ancient") is None
    assert fake_db.data("backupSnapshots/u1/snapshots/s1") is None
    assert bucket.files == set()


def test_report_pdf_is_generated_for_processed_backup():
    buffer = report_service.build_backup_report_pdf({
        "backupId": "b1",
        "createdAt": 1_790_000_000.0,
        "stats": {"connections": 1200, "messages": 40},
        "analytics": {"topCompanies": {"Acme & Co": 12}, "industries": {"Software": 300}},
        "insights": ["You have 1,200 professional connections, placing you above average for LinkedIn professionals"],
        "profileCompleteness": {"overall": 50, "breakdown": {"headline": 100}},
        "summary": "Steady growth <with> markup-like text.",
    })

    assert isinstance(buffer, io.BytesIO)
    assert buffer.getvalue().startswith(b"%PDF")


class _Response:
    def __init__(self, code):
        self.code = code

    def getcode(self):
        return self.code

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        return False


def test_send_email_requires_configuration():
    assert email_service.send_email("a@example.com", "Hi", "Body", api_key="", from_address="") == "Email sending is not configured."


def test_send_email_posts_to_resend():
    captured = {}

    def _urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["auth"] = req.get_header("Authorization")
        captured["timeout"] = timeout
        return _Response(200)

    error = email_service.send_email(
        "A@Example.com", "Hi", "Body", api_key="re_test", from_address="team@linkstream.test", urlopen=_urlopen,
    )

    assert error is None
    assert captured["url"] == email_service.RESEND_API_URL
    assert captured["auth"] == "Bearer re_test"


def test_send_email_reports_network_failures():
    def _urlopen(_req, timeout):
        raise urllib.error.URLError("offline")

    error = email_service.send_email("a@example.com", "Hi", "Body", api_key="k", from_address="f@x.test", urlopen=_urlopen)

    assert error.startswith("Email request failed")


def test_invite_email_links_accept_page():
    url = email_service.build_invite_accept_url("https://app.linkstream.test/", "tok123")
    subject, text_body, html_body = email_service.build_team_invite_email("owner@example.com", url)

    assert url == "https://app.linkstream.test/team/accept?token=tok123"
    assert "invited" in subject
    assert url in text_body
    assert "owner@example.com" in html_body
