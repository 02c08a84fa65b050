"""
Company seed and context classification
Deterministic, offline helpers every synthesizer and collector builds on
"""

import math
from typing import Dict, List, Tuple

from models.schemas import CompanyContext, Industry, MarketPosition

INT32_RANGE = 2147483647

# (keywords, industry, base_risk) - first match wins
INDUSTRY_RULES: List[Tuple[Tuple[str, ...], Industry, float]] = [
    (("bank", "financial", "capital"), Industry.FINANCIAL, 0.7),
    (("pharma", "bio", "health"), Industry.HEALTHCARE, 0.6),
    (("energy", "oil", "gas"), Industry.ENERGY, 0.8),
    (("retail", "consumer"), Industry.RETAIL, 0.4),
    (("auto", "motor"), Industry.AUTOMOTIVE, 0.6),
]
DEFAULT_INDUSTRY = Industry.TECHNOLOGY
DEFAULT_BASE_RISK = 0.5

MARKET_POSITION_RULES: List[Tuple[Tuple[str, ...], MarketPosition]] = [
    (("global", "international", "corp"), MarketPosition.DOMINANT),
    (("tech", "innovation", "digital"), MarketPosition.GROWTH),
]
DEFAULT_MARKET_POSITION = MarketPosition.ESTABLISHED

CRISIS_BASE_DAY: Dict[Industry, int] = {
    Industry.TECHNOLOGY: 180,
    Industry.FINANCIAL: 120,
    Industry.HEALTHCARE: 200,
    Industry.ENERGY: 150,
}
DEFAULT_CRISIS_BASE_DAY = 160
CRISIS_DAY_MIN = 30
CRISIS_DAY_MAX = 300
CRISIS_DAY_JITTER = 120  # +/- 60 days

RECOVERY_RATE: Dict[Industry, float] = {
    Industry.TECHNOLOGY: 1.2,
    Industry.FINANCIAL: 0.8,
}
DEFAULT_RECOVERY_RATE = 1.0


def _utf16_code_units(text: str) -> List[int]:
    data = text.encode("utf-16-le")
    return [int.from_bytes(data[i:i + 2], "little") for i in range(0, len(data), 2)]


def company_seed(name: str) -> float:
    """
    Map a company name to a reproducible value in [0, 1).

    Rolling hash h = h*31 + code over UTF-16 code units, wrapped to a signed
    32-bit integer after every step, then abs(h) / (2**31 - 1). Case-sensitive.
    """
    h = 0
    for code in _utf16_code_units(name):
        h = (h * 31 + code) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
    value = abs(h) / INT32_RANGE
    # abs(-2**31) is the one hash that lands on or above 1.0
    return value % 1.0


def classify_company(name: str) -> CompanyContext:
    """Classify a company by keyword rules. Total over all strings."""
    lowered = (name or "").lower()

    industry, base_risk = DEFAULT_INDUSTRY, DEFAULT_BASE_RISK
    for keywords, rule_industry, rule_risk in INDUSTRY_RULES:
        if any(keyword in lowered for keyword in keywords):
            industry, base_risk = rule_industry, rule_risk
            break

    market_position = DEFAULT_MARKET_POSITION
    for keywords, position in MARKET_POSITION_RULES:
        if any(keyword in lowered for keyword in keywords):
            market_position = position
            break

    return CompanyContext(industry=industry, base_risk=base_risk, market_position=market_position)


def crisis_day(name: str) -> int:
    """Day index (from the data epoch) of the company's crisis genesis, in [30, 300]."""
    context = classify_company(name)
    base_day = CRISIS_BASE_DAY.get(context.industry, DEFAULT_CRISIS_BASE_DAY)
    variation = math.floor((company_seed(name) - 0.5) * CRISIS_DAY_JITTER)
    return max(CRISIS_DAY_MIN, min(CRISIS_DAY_MAX, base_day + variation))


def recovery_rate(industry: Industry) -> float:
    return RECOVERY_RATE.get(industry, DEFAULT_RECOVERY_RATE)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp_sentiment(value: float) -> int:
    """Round and clamp to the [-100, 100] sentiment scale"""
    return round_half_up(clamp(value, -100, 100))


def clamp_percent(value: float) -> int:
    return round_half_up(clamp(value, 0, 100))


__all__ = [
    'INDUSTRY_RULES', 'MARKET_POSITION_RULES', 'CRISIS_BASE_DAY',
    'company_seed', 'classify_company', 'crisis_day', 'recovery_rate',
    'clamp', 'round_half_up', 'clamp_sentiment', 'clamp_percent',
]
