"""Rate limiting helpers with Firestore-first fallback strategy."""

import hashlib
import re

from linkstream.repositories import rate_limit_repo


KNOWN_LIMIT_NAMES = {'upload', 'checkout', 'ai_analysis', 'account_delete', 'admin_list', 'admin_modify', 'team_invite'}


def window_counter_id(key, window_seconds, window_start):
    raw = f"{key}|{window_seconds}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


def normalize_key_part(value, fallback='anon', max_len=120):
    raw = str(value or '').strip().lower()
    if not raw:
        return fallback
    safe = re.sub(r'[^a-z0-9_.:@-]+', '_', raw)
    return safe[:max_len] if safe else fallback


def check_rate_limit_firestore(
    key,
    limit,
    window_seconds,
    now_ts,
    *,
    firestore_enabled,
    db,
    firestore_module,
    counter_collection,
):
    if not firestore_enabled or db is None:
        return None
    try:
        window_start = int(now_ts // window_seconds) * int(window_seconds)
        retry_after = max(1, int((window_start + window_seconds) - now_ts))
        counter_id = window_counter_id(key, window_seconds, window_start)
        counter_ref = rate_limit_repo.counter_doc_ref(db, counter_collection, counter_id)
        transaction = db.transaction()

        @firestore_module.transactional
        def _txn(txn):
            snapshot = counter_ref.get(transaction=txn)
            count = 0
            if snapshot.exists:
                count = int((snapshot.to_dict() or {}).get('count', 0) or 0)
            if count >= limit:
                return False, retry_after
            txn.set(counter_ref, {
                'key': key,
                'count': count + 1,
                'window_start': window_start,
                'window_seconds': int(window_seconds),
                'updated_at': now_ts,
                'expires_at': window_start + (window_seconds * 3),
            }, merge=True)
            return True, 0

        return _txn(transaction)
    except Exception:
        return None


def check_rate_limit(
    key,
    limit,
    window_seconds,
    *,
    firestore_enabled,
    db,
    firestore_module,
    counter_collection,
    in_memory_events,
    in_memory_lock,
    time_module,
):
    now_ts = time_module.time()
    firestore_result = check_rate_limit_firestore(
        key,
        limit,
        window_seconds,
        now_ts,
        firestore_enabled=firestore_enabled,
        db=db,
        firestore_module=firestore_module,
        counter_collection=counter_collection,
    )
    if firestore_result is not None:
        return firestore_result

    with in_memory_lock:
        timestamps = in_memory_events.get(key, [])
        cutoff = now_ts - window_seconds
        kept = [ts for ts in timestamps if ts >= cutoff]
        if len(kept) >= limit:
            oldest = kept[0]
            retry_after = max(1, int((oldest + window_seconds) - now_ts))
            in_memory_events[key] = kept
            return False, retry_after
        kept.append(now_ts)
        in_memory_events[key] = kept

    return True, 0


def log_rate_limit_hit(limit_name, retry_after=0, *, db, logger, time_module):
    safe_name = str(limit_name or '').strip().lower()
    if safe_name not in KNOWN_LIMIT_NAMES:
        return False
    try:
        retry_after_seconds = max(1, int(float(retry_after)))
    except (TypeError, ValueError):
        retry_after_seconds = 1
    if db is None:
        return False
    try:
        rate_limit_repo.add_hit_log(db, {
            'limit_name': safe_name,
            'retry_after_seconds': retry_after_seconds,
            'created_at': time_module.time(),
        })
        return True
    except Exception as exc:
        if logger is not None:
            logger.info(f"⚠️ Could not store rate limit log ({safe_name}): {exc}")
        return False
