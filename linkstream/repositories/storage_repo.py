"""Cloud Storage accessors for raw and derived export artefacts."""

from datetime import timedelta


def raw_archive_path(uid, backup_id):
    return f"users/{uid}/linkedin-exports/{backup_id}/raw.zip"


def processed_text_path(uid, backup_id):
    return f"users/{uid}/linkedin-exports/{backup_id}/processed.txt"


def backup_prefix(uid, backup_id):
    return f"users/{uid}/linkedin-exports/{backup_id}/"


def user_prefix(uid):
    return f"users/{uid}/"


def download_bytes(bucket, path):
    return bucket.blob(path).download_as_bytes()


def upload_text(bucket, path, text, content_type='text/plain; charset=utf-8'):
    bucket.blob(path).upload_from_string(text, content_type=content_type)
    return path


def exists(bucket, path):
    return bool(bucket.blob(path).exists())


def delete(bucket, path):
    blob = bucket.blob(path)
    if not blob.exists():
        return False
    blob.delete()
    return True


def delete_prefix(bucket, prefix):
    deleted = 0
    for blob in bucket.list_blobs(prefix=prefix):
        blob.delete()
        deleted += 1
    return deleted


def generate_upload_url(bucket, path, content_type, expires_seconds):
    return bucket.blob(path).generate_signed_url(
        version='v4',
        expiration=timedelta(seconds=int(expires_seconds)),
        method='PUT',
        content_type=content_type,
    )
