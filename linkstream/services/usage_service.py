"""Monthly backup usage counters kept in Firestore transactions."""

from linkstream.repositories import usage_repo, users_repo
from linkstream.services import tier_service


def _count_from(snapshot):
    if not snapshot.exists:
        return 0
    return int((snapshot.to_dict() or {}).get('count', 0) or 0)


def get_backups_this_month(uid, *, db, time_module):
    key = tier_service.month_key(time_module.time())
    return _count_from(usage_repo.get_month_doc(db, uid, key))


def _bump_usage(uid, *, db, firestore_module, time_module, tier=None, delta=1):
    now_ts = time_module.time()
    key = tier_service.month_key(now_ts)
    month_ref = usage_repo.month_doc_ref(db, uid, key)
    user_ref = users_repo.doc_ref(db, uid)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        count = _count_from(month_ref.get(transaction=txn))
        if tier is not None and delta > 0 and not tier_service.can_user_create_backup(tier, count):
            return False, count
        new_count = max(0, count + delta)
        txn.set(month_ref, {'count': new_count, 'month': key, 'updatedAt': now_ts}, merge=True)
        user_updates = {'backupsThisMonth': new_count, 'backupsMonth': key, 'updatedAt': now_ts}
        if delta > 0:
            user_updates['lastBackupAt'] = now_ts
        txn.set(user_ref, user_updates, merge=True)
        return True, new_count

    return _txn(transaction)


def record_backup_usage(uid, *, db, firestore_module, time_module):
    """Increment this month's counter unconditionally and return the new count."""
    _, count = _bump_usage(uid, db=db, firestore_module=firestore_module, time_module=time_module)
    return count


def reserve_backup_slot(uid, tier, *, db, firestore_module, time_module):
    """Check the tier limit and consume one slot in the same transaction.

    Returns ``(allowed, count)``; ``count`` is the counter after the call.
    """
    return _bump_usage(uid, db=db, firestore_module=firestore_module, time_module=time_module, tier=tier)


def release_backup_slot(uid, *, db, firestore_module, time_module):
    _, count = _bump_usage(uid, db=db, firestore_module=firestore_module, time_module=time_module, delta=-1)
    return count


def usage_summary(tier, count):
    limits = tier_service.get_user_tier_limits(tier)
    return {
        'tier': limits['tier'],
        'backupsThisMonth': int(count or 0),
        'backupsPerMonth': limits['backupsPerMonth'],
        'remaining': tier_service.remaining_backups(tier, count),
        'canCreateBackup': tier_service.can_user_create_backup(tier, count),
    }
