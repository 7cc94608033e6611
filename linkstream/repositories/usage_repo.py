"""Firestore accessors for monthly backup usage counters."""


def month_doc_ref(db, uid, month_key):
    return db.collection('usage').document(uid).collection('months').document(month_key)


def get_month_doc(db, uid, month_key):
    return month_doc_ref(db, uid, month_key).get()


def list_months(db, uid, limit=24):
    return list(db.collection('usage').document(uid).collection('months').limit(limit).stream())


def delete_months(db, uid, limit=240):
    deleted = 0
    for doc in db.collection('usage').document(uid).collection('months').limit(limit).stream():
        doc.reference.delete()
        deleted += 1
    return deleted
