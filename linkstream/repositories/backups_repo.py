"""Firestore accessors for backups and their analytics snapshots."""

from .query_utils import apply_where


def doc_ref(db, backup_id):
    return db.collection('backups').document(backup_id)


def get_doc(db, backup_id):
    return doc_ref(db, backup_id).get()


def set_doc(db, backup_id, data, merge=False):
    return doc_ref(db, backup_id).set(data, merge=merge)


def update_doc(db, backup_id, updates):
    return doc_ref(db, backup_id).update(updates)


def list_by_uid_recent(db, uid, limit, firestore_module=None):
    query = apply_where(db.collection('backups'), 'uid', '==', uid)
    if firestore_module is not None:
        query = query.order_by('createdAt', direction=firestore_module.Query.DESCENDING)
    return list(query.limit(limit).stream())


def query_expiring(db, expiry_field, now_ts, limit, exclude_keep_raw=False):
    query = db.collection('backups')
    if exclude_keep_raw:
        query = apply_where(query, 'retention.keepRawForever', '==', False)
    query = apply_where(query, expiry_field, '<=', now_ts)
    return list(query.limit(limit).stream())


def snapshot_doc_ref(db, uid, snapshot_id):
    return db.collection('backupSnapshots').document(uid).collection('snapshots').document(snapshot_id)


def list_snapshots(db, uid, limit=500):
    return list(db.collection('backupSnapshots').document(uid).collection('snapshots').limit(limit).stream())


def list_snapshots_for_backup(db, uid, backup_id):
    collection = db.collection('backupSnapshots').document(uid).collection('snapshots')
    return list(apply_where(collection, 'backupId', '==', backup_id).stream())


def delete_doc(db, backup_id):
    return doc_ref(db, backup_id).delete()
