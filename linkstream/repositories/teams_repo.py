"""Firestore accessors for teams collection."""


def doc_ref(db, team_id):
    return db.collection('teams').document(team_id)


def get_doc(db, team_id):
    return doc_ref(db, team_id).get()


def new_doc_ref(db):
    return db.collection('teams').document()


def update_doc(db, team_id, updates):
    return doc_ref(db, team_id).update(updates)


def stream_all(db):
    return db.collection('teams').stream()
