"""Subscription tier table and the pure rules derived from it."""

import calendar
import os
from datetime import datetime, timedelta, timezone


UNLIMITED = -1
DEFAULT_TIER = 'free'

SUBSCRIPTION_TIERS = {
    'free': {
        'tier': 'free',
        'name': 'Free',
        'backupsPerMonth': 1,
        'backupFrequency': 'monthly',
        'reminderDays': [30, 7, 1],
        'features': [
            '1 backup per month',
            'Basic AI insights',
            'Profile completeness score',
            'Standard dashboard',
            'CSV export',
        ],
        'price': 0,
        'maxTeamMembers': 1,
        'aiInsights': 'basic',
        'teamFeatures': False,
        'exportFormats': ['csv'],
    },
    'pro': {
        'tier': 'pro',
        'name': 'Pro',
        'backupsPerMonth': 4,
        'backupFrequency': 'weekly',
        'reminderDays': [7, 3, 1],
        'features': [
            'Weekly backups',
            'Advanced AI insights',
            'Network analysis',
            'Connection trends',
            'Strategic recommendations',
            'Multiple export formats',
            'Priority support',
        ],
        'price': 10,
        'maxTeamMembers': 1,
        'aiInsights': 'advanced',
        'teamFeatures': False,
        'exportFormats': ['csv', 'json', 'pdf'],
    },
    'business': {
        'tier': 'business',
        'name': 'Business',
        'backupsPerMonth': UNLIMITED,
        'backupFrequency': 'unlimited',
        'reminderDays': [7, 3],
        'features': [
            'Everything in Pro',
            'Unlimited backups per user',
            'Team management (up to 10 members)',
            'Shared team analytics',
            'Centralized backup management',
            'Premium AI insights',
        ],
        'price': 29,
        'priceLabel': '/month',
        'maxTeamMembers': 10,
        'aiInsights': 'premium',
        'teamFeatures': True,
        'exportFormats': ['csv', 'json', 'pdf'],
    },
    'enterprise': {
        'tier': 'enterprise',
        'name': 'Enterprise',
        'backupsPerMonth': UNLIMITED,
        'backupFrequency': 'unlimited',
        'reminderDays': [7, 3],
        'features': [
            'Everything in Business',
            'Unlimited team members',
            'Custom retention policies',
            'Audit logs & compliance',
            'Dedicated support',
        ],
        'price': 0,
        'priceLabel': 'Custom',
        'maxTeamMembers': UNLIMITED,
        'aiInsights': 'premium',
        'teamFeatures': True,
        'exportFormats': ['csv', 'json', 'pdf'],
    },
}
VALID_TIERS = tuple(SUBSCRIPTION_TIERS.keys())
PURCHASABLE_TIERS = ('pro', 'business')
TEAM_TIERS = ('business', 'enterprise')


def normalize_tier(tier):
    safe = str(tier or '').strip().lower()
    return safe if safe in SUBSCRIPTION_TIERS else DEFAULT_TIER


def get_user_tier_limits(tier):
    return SUBSCRIPTION_TIERS[normalize_tier(tier)]


def can_user_create_backup(tier, backups_this_month):
    limit = get_user_tier_limits(tier)['backupsPerMonth']
    if limit == UNLIMITED:
        return True
    return int(backups_this_month or 0) < limit


def remaining_backups(tier, backups_this_month):
    limit = get_user_tier_limits(tier)['backupsPerMonth']
    if limit == UNLIMITED:
        return None
    return max(0, limit - int(backups_this_month or 0))


def month_key(now_ts):
    return datetime.fromtimestamp(now_ts, tz=timezone.utc).strftime('%Y-%m')


def add_months(value, months):
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def get_next_reminder_date(tier, last_backup):
    frequency = get_user_tier_limits(tier)['backupFrequency']
    if frequency == 'weekly':
        return last_backup + timedelta(days=7)
    return add_months(last_backup, 1)


def _reminder_type(reminder_day):
    if reminder_day == 1:
        return 'urgent'
    if reminder_day <= 3:
        return 'soon'
    return 'upcoming'


def should_send_reminder(tier, last_backup, last_reminder_sent=None, now=None):
    """Return ``(should_send, reminder_type)`` for a backup reminder.

    Reminders fire on the tier's configured day offsets before the next
    backup is due, at most once per calendar day, and weekly once overdue.
    """
    now = now or datetime.now(timezone.utc)
    next_backup = get_next_reminder_date(tier, last_backup)
    seconds_left = (next_backup - now).total_seconds()
    days_until = int(-(-seconds_left // 86400))

    for reminder_day in get_user_tier_limits(tier)['reminderDays']:
        if days_until != reminder_day:
            continue
        if last_reminder_sent is None or last_reminder_sent.date() != now.date():
            return True, _reminder_type(reminder_day)

    if days_until < 0 and abs(days_until) % 7 == 0:
        return True, 'overdue'
    return False, ''


def price_ids_by_tier():
    return {
        'pro': (os.getenv('STRIPE_PRICE_PRO', '') or '').strip(),
        'business': (os.getenv('STRIPE_PRICE_BUSINESS', '') or '').strip(),
    }


def tier_for_price_id(price_id):
    safe = str(price_id or '').strip()
    if not safe:
        return ''
    for tier, configured in price_ids_by_tier().items():
        if configured and configured == safe:
            return tier
    return ''


def public_tier_payload(tier):
    limits = get_user_tier_limits(tier)
    return {
        'tier': limits['tier'],
        'name': limits['name'],
        'price': limits['price'],
        'priceLabel': limits.get('priceLabel', ''),
        'backupsPerMonth': limits['backupsPerMonth'],
        'backupFrequency': limits['backupFrequency'],
        'maxTeamMembers': limits['maxTeamMembers'],
        'features': list(limits['features']),
    }
