# analytics/__init__.py

"""
Moteur d'agrégation : fonctions pures, sans I/O ni état.

    from analytics import resolve_period, group_by_status, compute_forecast

    window = resolve_period("month", now)
    stages, forecast = compute_forecast(leads, weights)

Tout ce qui touche au record store vit dans store/,
tout ce qui assemble un payload vit dans reports/.
"""

from analytics.periods import (
    PERIODS, Bucket, PeriodWindow, resolve_period, trend_buckets
)
from analytics.rollups import (
    Group, Rollup, group_by_key, group_by_status, group_by_channel,
    group_by_person, group_by_month
)
from analytics.rates import (
    Ratio, Engagement, engagement, conversion_rate,
    success_rate, evolution_pct, roi, roas, cost_per_lead,
    avg_payment_delay, avg_close_days, percentage, defined_ratio
)
from analytics.forecast import StageForecast, compute_forecast
from analytics.attribution import (
    Attribution, attribute_by_channel, attribute_by_campaign,
    campaign_performance, channel_roi
)
from analytics.leaderboard import LeaderboardEntry, build_leaderboard
