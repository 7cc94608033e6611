"""Aggregate network statistics from the CSV files of a LinkedIn export."""

import csv
import io
import re
from collections import Counter
from datetime import datetime

from linkstream.services import archive_service


TOP_N = 10

SENIORITY_PATTERNS = (
    ('C-Level/Founder', re.compile(r'\b(ceo|cto|cfo|coo|cmo|cio|chief|founder|co-founder|cofounder|owner|president|partner)\b', re.I)),
    ('Senior Leadership', re.compile(r'\b(vp|vice president|svp|evp|director|head of|principal|general manager)\b', re.I)),
    ('Management', re.compile(r'\b(manager|lead|supervisor|team lead)\b', re.I)),
)
DEFAULT_SENIORITY = 'Individual Contributor'


def strip_notes_preamble(text):
    # Some exports prefix the header row with a "Notes:" block ended by a blank line.
    if not text.lstrip().lower().startswith('notes:'):
        return text
    lines = text.splitlines()
    for idx, line in enumerate(lines):
        if not line.strip():
            return '\n'.join(lines[idx + 1:])
    return ''


def parse_csv_rows(text):
    body = strip_notes_preamble(str(text or '').lstrip('\ufeff'))
    if not body.strip():
        return []
    reader = csv.DictReader(io.StringIO(body))
    rows = []
    for row in reader:
        cleaned = {str(k or '').strip(): str(v or '').strip() for k, v in row.items() if k is not None}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows


def classify_seniority(position):
    title = str(position or '').strip()
    if not title:
        return ''
    for label, pattern in SENIORITY_PATTERNS:
        if pattern.search(title):
            return label
    return DEFAULT_SENIORITY


def connected_month(raw_value):
    raw = str(raw_value or '').strip()
    for fmt in ('%d %b %Y', '%Y-%m-%d', '%m/%d/%Y', '%m/%d/%y'):
        try:
            return datetime.strptime(raw, fmt).strftime('%Y-%m')
        except ValueError:
            continue
    return ''


def top_counts(counter, limit=TOP_N):
    return dict(counter.most_common(limit))


def _count_by(rows, column):
    counter = Counter()
    for row in rows:
        value = row.get(column, '')
        if value:
            counter[value] += 1
    return counter


def _read_rows(archive, file_name):
    return parse_csv_rows(archive_service.read_entry_text(archive, file_name))


def compute_profile_completeness(profile, positions, education, skills, recommendations):
    scores = {
        'headline': 100 if profile.get('Headline') else 0,
        'summary': 100 if profile.get('Summary') else 0,
        'experience': min(100, round(len(positions) / 3 * 100)),
        'education': min(100, round(len(education) / 2 * 100)),
        'skills': min(100, round(len(skills) / 10 * 100)),
        'recommendations': min(100, round(len(recommendations) / 3 * 100)),
    }
    overall = round(sum(scores.values()) / len(scores))
    return {'overall': overall, 'breakdown': scores}


def compute_export_stats(zip_bytes):
    """Return ``{'stats', 'analytics', 'contains', 'completeness'}`` for an export."""
    archive = archive_service.open_archive(zip_bytes)

    connections = _read_rows(archive, 'Connections.csv')
    messages = _read_rows(archive, 'messages.csv')
    shares = _read_rows(archive, 'Shares.csv')
    comments = _read_rows(archive, 'Comments.csv')
    reactions = _read_rows(archive, 'Reactions.csv')
    company_follows = _read_rows(archive, 'Company Follows.csv')
    invitations = _read_rows(archive, 'Invitations.csv')
    skills = _read_rows(archive, 'Skills.csv')
    positions = _read_rows(archive, 'Positions.csv')
    education = _read_rows(archive, 'Education.csv')
    recommendations = _read_rows(archive, 'Recommendations_Received.csv')
    profile_rows = _read_rows(archive, 'Profile.csv')
    profile = profile_rows[0] if profile_rows else {}
    has_profile_json = bool(archive_service.read_entry_text(archive, 'Profile.json').strip())

    conversation_ids = {row.get('CONVERSATION ID', '') for row in messages if row.get('CONVERSATION ID')}
    message_count = len(conversation_ids) if conversation_ids else len(messages)

    seniority = Counter()
    by_month = Counter()
    for row in connections:
        level = classify_seniority(row.get('Position', ''))
        if level:
            seniority[level] += 1
        month = connected_month(row.get('Connected On', ''))
        if month:
            by_month[month] += 1

    companies = _count_by(connections, 'Company')
    stats = {
        'connections': len(connections),
        'messages': message_count,
        'posts': len(shares),
        'comments': len(comments),
        'reactions': len(reactions),
        'companies': len(company_follows) or len(companies),
        'invitations': len(invitations),
    }
    analytics = {
        'industries': top_counts(_count_by(connections, 'Industry')),
        'locations': top_counts(_count_by(connections, 'Location')),
        'topCompanies': top_counts(companies),
        'positions': top_counts(_count_by(connections, 'Position')),
        'skillsCount': len(skills),
        'connectionsByMonth': dict(sorted(by_month.items())),
        'networkQuality': {'topSeniorityLevels': dict(seniority.most_common())},
    }
    contains = {
        'connections': bool(connections),
        'profile': bool(profile) or has_profile_json,
        'messages': bool(messages),
        'positions': bool(positions),
        'education': bool(education),
        'skills': bool(skills),
        'recommendations': bool(recommendations),
    }
    return {
        'stats': stats,
        'analytics': analytics,
        'contains': contains,
        'completeness': compute_profile_completeness(profile, positions, education, skills, recommendations),
    }


def build_snapshot(result, backup_id, uid, created_at):
    analytics = result.get('analytics', {}) or {}
    return {
        'backupId': backup_id,
        'uid': uid,
        'createdAt': created_at,
        'totalConnections': int((result.get('stats', {}) or {}).get('connections', 0) or 0),
        'connectionsByIndustry': analytics.get('industries', {}),
        'connectionsByLocation': analytics.get('locations', {}),
        'connectionsByCompany': analytics.get('topCompanies', {}),
        'connectionsBySeniority': (analytics.get('networkQuality', {}) or {}).get('topSeniorityLevels', {}),
        'profileCompletenessScore': result.get('completeness', {}),
    }
