"""Expire raw archives and derived artefacts past their retention dates."""

from linkstream.repositories import backups_repo, storage_repo


def delete_expired_raw(db, bucket, now_ts, limit, logger):
    deleted = 0
    errors = []
    # Cleared rows drop their rawExpiresAt so they stop filling the query limit.
    for doc in backups_repo.query_expiring(db, 'retention.rawExpiresAt', now_ts, limit, exclude_keep_raw=True):
        backup = doc.to_dict() or {}
        if (backup.get('retention', {}) or {}).get('keepRawForever'):
            continue
        raw_path = (backup.get('storagePaths', {}) or {}).get('raw')
        try:
            if raw_path and storage_repo.delete(bucket, raw_path):
                deleted += 1
            backups_repo.update_doc(db, doc.id, {
                'storagePaths.raw': None,
                'retention.rawExpiresAt': None,
                'updatedAt': now_ts,
            })
        except Exception as exc:
            logger.error(f"❌ Could not delete raw archive for backup {doc.id}: {exc}")
            errors.append(f"Backup {doc.id}: {exc}")
    return deleted, errors


def delete_expired_derived(db, bucket, now_ts, limit, logger):
    deleted_files = 0
    deleted_backups = 0
    errors = []
    for doc in backups_repo.query_expiring(db, 'retention.derivedExpiresAt', now_ts, limit):
        backup = doc.to_dict() or {}
        uid = backup.get('uid', '')
        try:
            if uid:
                deleted_files += storage_repo.delete_prefix(bucket, storage_repo.backup_prefix(uid, doc.id))
                for snapshot in backups_repo.list_snapshots_for_backup(db, uid, doc.id):
                    snapshot.reference.delete()
            backups_repo.delete_doc(db, doc.id)
            deleted_backups += 1
        except Exception as exc:
            logger.error(f"❌ Could not delete derived artefacts for backup {doc.id}: {exc}")
            errors.append(f"Backup {doc.id}: {exc}")
    return deleted_files, deleted_backups, errors


def cleanup_expired_backups(db, bucket, now_ts, *, limit, logger):
    deleted_raw, raw_errors = delete_expired_raw(db, bucket, now_ts, limit, logger)
    deleted_files, deleted_backups, derived_errors = delete_expired_derived(db, bucket, now_ts, limit, logger)
    errors = raw_errors + derived_errors
    logger.info(
        f"🧹 Retention cleanup: raw={deleted_raw} derived_files={deleted_files} backups={deleted_backups} errors={len(errors)}"
    )
    return {
        'deletedRawFiles': deleted_raw,
        'deletedDerivedFiles': deleted_files,
        'deletedBackups': deleted_backups,
        'errors': errors,
    }
