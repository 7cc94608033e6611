"""Firestore accessors for users collection."""

from .query_utils import apply_where, first_doc


def doc_ref(db, uid):
    return db.collection('users').document(uid)


def get_doc(db, uid):
    return doc_ref(db, uid).get()


def set_doc(db, uid, data, merge=False):
    return doc_ref(db, uid).set(data, merge=merge)


def update_doc(db, uid, updates):
    return doc_ref(db, uid).update(updates)


def delete_doc(db, uid):
    return doc_ref(db, uid).delete()


def find_by_email(db, email):
    return first_doc(apply_where(db.collection('users'), 'email', '==', email))


def find_by_stripe_customer(db, customer_id):
    return first_doc(apply_where(db.collection('users'), 'stripeCustomerId', '==', customer_id))


def list_users(db, limit, tier='', firestore_module=None):
    query = db.collection('users')
    if tier:
        query = apply_where(query, 'tier', '==', tier)
    if firestore_module is not None:
        query = query.order_by('createdAt', direction=firestore_module.Query.DESCENDING)
    return list(query.limit(limit).stream())


def stream_all(db):
    return db.collection('users').stream()
