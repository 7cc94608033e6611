"""Firestore accessors for authenticated session records."""


def set_session(db, session_id, data):
    return db.collection('authSessions').document(session_id).set(data)
