"""
Interaction-to-weight update rule and lazy time decay.

Every tracked interaction nudges the weight of the article's category and
source by a fixed delta:

    save = +0.15, share = +0.12, read = +0.08, skip = -0.05

    weight_new = clamp(weight_old + delta, 0, 1)

Touching one category decays every other category that has gone more
than a week without interaction:

    weight *= decay ^ floor(days_since_last_interaction / 7)

Decay is lazy: it runs on the next write, never on a timer and never on a
ranking read. Each preference remembers how many weeks of decay it has
already absorbed, so repeated writes inside the same week bucket do not
compound.

All functions mutate the passed profile and return it. Persistence is the
caller's job (remote store adapter or offline mirror).
"""

import math
from datetime import datetime
from typing import List, Optional, Union

from config.constants import DEFAULT_WEIGHT_RULE, WeightRuleConfig
from core.utils import clamp, ensure_utc, utc_now
from personalization.models import (
    BehaviorUpdate,
    CategoryPreference,
    InteractionType,
    PersonalizationConfig,
    SourcePreference,
    SwipeDirection,
    UserProfile,
)


def get_weight_change(
    interaction_type: Union[InteractionType, str],
    rule: WeightRuleConfig = DEFAULT_WEIGHT_RULE,
) -> float:
    """Weight delta for an interaction; unknown types move nothing."""
    key = getattr(interaction_type, "value", interaction_type)
    return rule.INTERACTION_DELTAS.get(key, 0.0)


def _touch(
    pref: Union[CategoryPreference, SourcePreference],
    delta: float,
    now: datetime,
    rule: WeightRuleConfig,
) -> None:
    pref.weight = clamp(pref.weight + delta, rule.MIN_WEIGHT, rule.MAX_WEIGHT)
    pref.interaction_count += 1
    pref.last_interaction = now
    pref.decay_weeks_applied = 0


def decay_weeks(
    last_interaction: datetime,
    now: datetime,
    rule: WeightRuleConfig = DEFAULT_WEIGHT_RULE,
) -> int:
    """Whole decay periods elapsed, or 0 inside the grace window."""
    days = (ensure_utc(now) - ensure_utc(last_interaction)).total_seconds() / 86400.0
    if days <= rule.DECAY_GRACE_DAYS:
        return 0
    return int(math.floor(days / rule.DECAY_PERIOD_DAYS))


def apply_time_decay(
    preferences: List[CategoryPreference],
    decay: float,
    exclude_category: Optional[str] = None,
    now: Optional[datetime] = None,
    rule: WeightRuleConfig = DEFAULT_WEIGHT_RULE,
) -> None:
    """
    Decay stale category weights in place.

    Only the weeks not yet absorbed by a previous call are applied, which
    makes the decay idempotent within a week bucket.
    """
    now = ensure_utc(now or utc_now())
    for pref in preferences:
        if pref.category == exclude_category:
            continue
        weeks = decay_weeks(pref.last_interaction, now, rule)
        pending = weeks - pref.decay_weeks_applied
        if pending > 0:
            pref.weight = clamp(pref.weight * decay ** pending, rule.MIN_WEIGHT, rule.MAX_WEIGHT)
            pref.decay_weeks_applied = weeks


def update_category_preference(
    profile: UserProfile,
    category: str,
    interaction_type: Union[InteractionType, str],
    config: Optional[PersonalizationConfig] = None,
    now: Optional[datetime] = None,
    rule: WeightRuleConfig = DEFAULT_WEIGHT_RULE,
) -> UserProfile:
    """Apply one interaction to a category weight, then decay the others."""
    config = config or PersonalizationConfig()
    now = ensure_utc(now or utc_now())

    pref = profile.get_category_preference(category)
    if pref is None:
        pref = CategoryPreference(category=category, weight=rule.SEED_WEIGHT, last_interaction=now)
        profile.category_preferences.append(pref)

    _touch(pref, get_weight_change(interaction_type, rule), now, rule)
    apply_time_decay(
        profile.category_preferences,
        config.category_weight_decay,
        exclude_category=category,
        now=now,
        rule=rule,
    )
    profile.updated_at = now
    return profile


def update_source_preference(
    profile: UserProfile,
    source_id: str,
    interaction_type: Union[InteractionType, str],
    now: Optional[datetime] = None,
    rule: WeightRuleConfig = DEFAULT_WEIGHT_RULE,
) -> UserProfile:
    """Apply one interaction to a source weight. Sources do not decay."""
    now = ensure_utc(now or utc_now())

    pref = profile.get_source_preference(source_id)
    if pref is None:
        pref = SourcePreference(source_id=source_id, weight=rule.SEED_WEIGHT, last_interaction=now)
        profile.source_preferences.append(pref)

    _touch(pref, get_weight_change(interaction_type, rule), now, rule)
    profile.updated_at = now
    return profile


def apply_interaction(
    profile: UserProfile,
    category: str,
    source_id: Optional[str],
    interaction_type: Union[InteractionType, str],
    config: Optional[PersonalizationConfig] = None,
    now: Optional[datetime] = None,
) -> UserProfile:
    """
    Apply one interaction to both the category and the source weight.

    Total over well-formed input: out-of-range results are clamped.
    An empty source_id only updates the category.
    """
    now = ensure_utc(now or utc_now())
    update_category_preference(profile, category, interaction_type, config=config, now=now)
    if source_id:
        update_source_preference(profile, source_id, interaction_type, now=now)
    return profile


# =============================================================================
# Behavior updates (kept separate from preference weights)
# =============================================================================

def behavior_update_for(
    interaction_type: Union[InteractionType, str],
    reading_time: Optional[float] = None,
) -> BehaviorUpdate:
    """Behavior counters implied by a tracked interaction."""
    kind = InteractionType(interaction_type)
    if kind is InteractionType.READ:
        return BehaviorUpdate(articles_read=1, reading_time=reading_time)
    if kind is InteractionType.SAVE:
        return BehaviorUpdate(articles_saved=1)
    if kind is InteractionType.SHARE:
        return BehaviorUpdate(articles_shared=1)
    return BehaviorUpdate()


def apply_behavior_update(
    profile: UserProfile,
    update: BehaviorUpdate,
    now: Optional[datetime] = None,
) -> UserProfile:
    """
    Fold a behavior update into the profile's aggregates.

    The reading-time running mean is taken over total reads, counting the
    read carried by this update. The hour of `now` joins the preferred
    reading times.
    """
    now = ensure_utc(now or utc_now())
    behavior = profile.behavior_data

    behavior.total_articles_read += update.articles_read
    behavior.total_articles_saved += update.articles_saved
    behavior.total_articles_shared += update.articles_shared

    if update.reading_time is not None:
        total_reads = behavior.total_articles_read
        if total_reads > 0:
            behavior.average_reading_time = (
                behavior.average_reading_time * (total_reads - 1) + update.reading_time
            ) / total_reads

    if now.hour not in behavior.preferred_reading_times:
        behavior.preferred_reading_times = sorted(behavior.preferred_reading_times + [now.hour])

    profile.updated_at = now
    return profile


def record_swipe(
    profile: UserProfile,
    direction: Union[SwipeDirection, str],
    now: Optional[datetime] = None,
) -> UserProfile:
    """Count a swipe gesture."""
    if SwipeDirection(direction) is SwipeDirection.UP:
        profile.behavior_data.swipe_patterns.up_swipes += 1
    else:
        profile.behavior_data.swipe_patterns.down_swipes += 1
    profile.updated_at = ensure_utc(now or utc_now())
    return profile
