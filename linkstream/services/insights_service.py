"""Threshold-based narrative insights over export statistics.

Every function here is pure: the same statistics always produce the same list
of sentences in the same order.
"""

SENIOR_LEVELS = ('C-Level/Founder', 'Senior Leadership')


def _as_int(value):
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _connections_insight(connections):
    if connections > 5000:
        benchmark = 'placing you in the top 5% of LinkedIn users'
    elif connections > 2000:
        benchmark = 'placing you in the top 15% of LinkedIn users'
    elif connections > 1000:
        benchmark = 'placing you above average for LinkedIn professionals'
    else:
        benchmark = 'providing a solid foundation for professional networking'
    return f"You have {connections:,} professional connections, {benchmark}"


def _top_entries(mapping, limit):
    items = [(str(name), _as_int(count)) for name, count in (mapping or {}).items()]
    items.sort(key=lambda item: item[1], reverse=True)
    return items[:limit]


def generate_insights(results):
    """Return human-readable insight sentences for ``{'stats', 'analytics'}``."""
    results = results or {}
    stats = results.get('stats', {}) or {}
    analytics = results.get('analytics', {}) or {}
    insights = []

    insights.append(_connections_insight(_as_int(stats.get('connections'))))

    industries = analytics.get('industries', {}) or {}
    top_industry = _top_entries(industries, 1)
    if top_industry and top_industry[0][1] > 100:
        name, count = top_industry[0]
        insights.append(
            f"Strong presence in {name} ({count:,} connections) gives you significant influence in this sector"
        )

    industry_count = len(industries)
    if industry_count >= 7:
        insights.append(f"Your network spans {industry_count} industries, putting you in the top 15% for professional diversity")
    elif industry_count >= 5:
        insights.append(f"Your network spans {industry_count} industries, showing good professional diversity")

    companies = _as_int(stats.get('companies'))
    if companies > 3000:
        insights.append(f"Connected to {companies:,} different companies, providing exceptional business reach")
    elif companies > 1000:
        insights.append(f"Connected to {companies:,} different companies, offering strong business development potential")

    posts = _as_int(stats.get('posts'))
    if posts > 300:
        insights.append(f"{posts} posts demonstrate exceptional thought leadership and content creation")
    elif posts > 100:
        insights.append(f"{posts} posts show strong professional content creation above average for LinkedIn users")

    messages = _as_int(stats.get('messages'))
    if messages > 3000:
        insights.append(f"{messages:,} message conversations indicate highly active networking and relationship building")
    elif messages > 1000:
        insights.append(f"{messages:,} message conversations show strong engagement with your professional network")

    skills = _as_int(analytics.get('skillsCount'))
    if skills > 20:
        insights.append(f"{skills} endorsed skills demonstrate comprehensive professional expertise")
    elif skills > 10:
        insights.append(f"{skills} endorsed skills show solid professional credibility")

    seniority = ((analytics.get('networkQuality', {}) or {}).get('topSeniorityLevels', {}) or {})
    total_mapped = sum(_as_int(count) for count in seniority.values())
    if total_mapped > 0:
        senior = sum(_as_int(seniority.get(level)) for level in SENIOR_LEVELS)
        senior_pct = int(senior * 100 / total_mapped + 0.5)
        if senior_pct > 30:
            insights.append(
                f"{senior_pct}% of your network holds senior leadership positions, indicating exceptional access to decision-makers"
            )
        elif senior_pct > 15:
            insights.append(
                f"{senior_pct}% of your network holds senior leadership positions, providing good access to industry leaders"
            )

    top_companies = _top_entries(analytics.get('topCompanies', {}), 3)
    if top_companies and top_companies[0][1] > 10:
        listed = ', '.join(f"{name} ({count})" for name, count in top_companies)
        insights.append(f"Strongest company connections include: {listed}")

    return insights
