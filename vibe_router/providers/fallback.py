"""
Fallback Ordering Engine

Ranks candidate backends for ``ProviderRouter.chat_with_fallback``.

Each FallbackStrategy maps to one sort-key function. Keys are tuples of
booleans where False sorts first, and ``sorted`` is stable, so backends the
strategy cannot tell apart keep their registration order. The same inputs
always produce the same order.

Strategies:
    free-first     backends with a free-tier model first
    local-first    backends that need no credential first
    speed-first    backends offering a fast-tier model first
    quality-first  backends offering a max-tier model first
    paid-first     credential-requiring backends first
    balanced       configured backends first, then balanced-tier offerers
"""

from enum import Enum
from typing import Callable, Sequence, Union

from vibe_router.models.chat import ModelTier, ProviderConfig

ConfiguredCheck = Callable[[str], bool]
SortKey = Callable[[ProviderConfig, ConfiguredCheck], tuple[bool, ...]]


class FallbackStrategy(str, Enum):
    FREE_FIRST = "free-first"
    LOCAL_FIRST = "local-first"
    SPEED_FIRST = "speed-first"
    QUALITY_FIRST = "quality-first"
    PAID_FIRST = "paid-first"
    BALANCED = "balanced"


def _free_first(config: ProviderConfig, is_configured: ConfiguredCheck) -> tuple[bool, ...]:
    return (not config.has_free_tier,)


def _local_first(config: ProviderConfig, is_configured: ConfiguredCheck) -> tuple[bool, ...]:
    return (config.requires_api_key,)


def _speed_first(config: ProviderConfig, is_configured: ConfiguredCheck) -> tuple[bool, ...]:
    return (not config.offers_tier(ModelTier.FAST),)


def _quality_first(config: ProviderConfig, is_configured: ConfiguredCheck) -> tuple[bool, ...]:
    return (not config.offers_tier(ModelTier.MAX),)


def _paid_first(config: ProviderConfig, is_configured: ConfiguredCheck) -> tuple[bool, ...]:
    return (not config.requires_api_key,)


def _balanced(config: ProviderConfig, is_configured: ConfiguredCheck) -> tuple[bool, ...]:
    return (not is_configured(config.id), not config.offers_tier(ModelTier.BALANCED))


STRATEGY_KEYS: dict[FallbackStrategy, SortKey] = {
    FallbackStrategy.FREE_FIRST: _free_first,
    FallbackStrategy.LOCAL_FIRST: _local_first,
    FallbackStrategy.SPEED_FIRST: _speed_first,
    FallbackStrategy.QUALITY_FIRST: _quality_first,
    FallbackStrategy.PAID_FIRST: _paid_first,
    FallbackStrategy.BALANCED: _balanced,
}


def order_candidates(
    candidates: Sequence[ProviderConfig],
    strategy: Union[FallbackStrategy, str],
    is_configured: ConfiguredCheck,
) -> list[ProviderConfig]:
    """
    Order ``candidates`` (given in registration order) for a strategy.

    Args:
        candidates: Backends eligible for fallback.
        strategy: Strategy member or its string value.
        is_configured: Live credential check by backend id.

    Raises:
        ValueError: Unknown strategy name.
    """
    key = STRATEGY_KEYS[FallbackStrategy(strategy)]
    return sorted(candidates, key=lambda config: key(config, is_configured))
