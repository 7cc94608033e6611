"""Firestore accessors for admin audit logs."""


def add_entry(db, entry):
    return db.collection('adminAuditLogs').add(entry)


def list_recent(db, limit, firestore_module=None):
    query = db.collection('adminAuditLogs')
    if firestore_module is not None:
        query = query.order_by('timestamp', direction=firestore_module.Query.DESCENDING)
    return list(query.limit(limit).stream())
