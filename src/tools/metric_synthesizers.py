"""
Company-seeded metric synthesizers
Reproducible sentiment series, KPIs, entity records and crisis timelines
derived from the company name alone
"""

import math
import random
from typing import Dict, List, Optional
from datetime import datetime, timedelta

from models.schemas import (
    CompanyMetrics, CompetitorData, CrisisEvent, CrisisEventType, GeographicData,
    Industry, KPIMetrics, MarketPosition, PlatformMetrics, SentimentDataPoint,
    StakeholderSegment, ValidationResult
)
from tools.company_context import (
    clamp, clamp_percent, clamp_sentiment, classify_company, company_seed,
    crisis_day, recovery_rate
)
from tools.date_range import DATA_START_DATE, utc_now
from tools.threat_intelligence import generate_validated_threats_opportunities

CRISIS_PEAK_DAYS = 7
RECOVERY_DAYS = 60
CRISIS_VOLUME_WINDOW = 14
HOURLY_POINTS = 25

BASE_DAILY_VOLUME: Dict[MarketPosition, int] = {
    MarketPosition.DOMINANT: 2000,
    MarketPosition.GROWTH: 1200,
    MarketPosition.ESTABLISHED: 800,
}

KPI_MULTIPLIERS: Dict[Industry, Dict[str, float]] = {
    Industry.TECHNOLOGY: {"sentiment": 1.1, "velocity": 1.2, "confidence": 1.0, "advantage": 1.1, "momentum": 1.3},
    Industry.FINANCIAL: {"sentiment": 0.8, "velocity": 0.9, "confidence": 0.7, "advantage": 0.9, "momentum": 0.8},
    Industry.HEALTHCARE: {"sentiment": 0.9, "velocity": 1.0, "confidence": 0.8, "advantage": 1.0, "momentum": 1.0},
    Industry.ENERGY: {"sentiment": 0.7, "velocity": 0.8, "confidence": 0.6, "advantage": 0.8, "momentum": 0.7},
    Industry.RETAIL: {"sentiment": 1.0, "velocity": 1.1, "confidence": 0.9, "advantage": 1.0, "momentum": 1.2},
    Industry.AUTOMOTIVE: {"sentiment": 0.9, "velocity": 1.0, "confidence": 0.8, "advantage": 0.9, "momentum": 0.9},
}

COMPETITOR_NAMES: Dict[Industry, List[str]] = {
    Industry.TECHNOLOGY: ["TechCorp", "InnovateInc", "DigitalDyne", "CloudTech"],
    Industry.FINANCIAL: ["CapitalOne Bank", "Global Finance", "Premier Capital", "Apex Financial"],
    Industry.HEALTHCARE: ["MedTech Solutions", "HealthCorp", "BioInnovate", "Pharma Global"],
    Industry.ENERGY: ["Energy Solutions", "PowerCorp", "Global Energy", "Renewable Tech"],
    Industry.RETAIL: ["RetailMax", "Consumer Choice", "Market Leaders", "Retail Solutions"],
    Industry.AUTOMOTIVE: ["AutoTech", "Motor Innovations", "Drive Solutions", "Automotive Corp"],
}

# (title, type, impact) per industry: genesis crisis, secondary crisis, external scrutiny
CRISIS_SCENARIOS: Dict[Industry, List[tuple]] = {
    Industry.TECHNOLOGY: [
        ("Data Security Incident", CrisisEventType.CRISIS, -85),
        ("Product Recall Announcement", CrisisEventType.CRISIS, -45),
        ("AI Ethics Investigation", CrisisEventType.EXTERNAL, -35),
    ],
    Industry.FINANCIAL: [
        ("Regulatory Compliance Violation", CrisisEventType.CRISIS, -90),
        ("Trading Algorithm Malfunction", CrisisEventType.CRISIS, -65),
        ("Federal Reserve Investigation", CrisisEventType.EXTERNAL, -40),
    ],
    Industry.HEALTHCARE: [
        ("Clinical Trial Safety Concerns", CrisisEventType.CRISIS, -80),
        ("FDA Warning Letter", CrisisEventType.EXTERNAL, -50),
        ("Patient Data Breach", CrisisEventType.CRISIS, -70),
    ],
    Industry.ENERGY: [
        ("Environmental Incident", CrisisEventType.CRISIS, -95),
        ("Safety Protocol Violation", CrisisEventType.CRISIS, -60),
        ("EPA Investigation", CrisisEventType.EXTERNAL, -45),
    ],
    Industry.RETAIL: [
        ("Supply Chain Disruption", CrisisEventType.CRISIS, -55),
        ("Customer Data Breach", CrisisEventType.CRISIS, -70),
        ("Product Safety Recall", CrisisEventType.CRISIS, -40),
    ],
    Industry.AUTOMOTIVE: [
        ("Vehicle Safety Defect", CrisisEventType.CRISIS, -75),
        ("Manufacturing Quality Issues", CrisisEventType.CRISIS, -50),
        ("NHTSA Investigation", CrisisEventType.EXTERNAL, -35),
    ],
}


def _noise(company_name: str, stream: str) -> random.Random:
    """Per-company, per-synthesizer random stream"""
    return random.Random(f"{stream}:{company_name}")


def days_since_start(now: Optional[datetime] = None) -> int:
    now = now or utc_now()
    return math.ceil((now - DATA_START_DATE).total_seconds() / 86400)


def sentiment_base_score(day_index: int, company_name: str) -> float:
    """Phase score before weekly pattern and noise"""
    context = classify_company(company_name)
    seed = company_seed(company_name)
    days_since_crisis = day_index - crisis_day(company_name)

    if days_since_crisis < 0:
        return 15 + seed * 30 - context.base_risk * 20
    if days_since_crisis < CRISIS_PEAK_DAYS:
        return -75 - context.base_risk * 20 + seed * 10

    progress = min(1.0, (days_since_crisis - CRISIS_PEAK_DAYS) / RECOVERY_DAYS)
    target = -10 + seed * 20 - context.base_risk * 15
    return -65 + progress * (target + 65) * recovery_rate(context.industry)


def generate_sentiment_series(company_name: str, days: int = 365) -> List[SentimentDataPoint]:
    """Daily aggregate sentiment from DATA_START_DATE: pre-crisis, crisis peak, recovery"""
    context = classify_company(company_name)
    seed = company_seed(company_name)
    genesis = crisis_day(company_name)
    rng = _noise(company_name, "daily")
    base_volume = BASE_DAILY_VOLUME[context.market_position]

    series = []
    for day_index in range(days):
        weekly_pattern = math.sin((day_index % 7) * math.pi / 3.5) * 3
        score = sentiment_base_score(day_index, company_name) + weekly_pattern + (rng.random() - 0.5) * 8

        crisis_multiplier = 3 if abs(day_index - genesis) < CRISIS_VOLUME_WINDOW else 1
        volume = base_volume * crisis_multiplier * (0.8 + seed * 0.4) + rng.random() * 500

        series.append(SentimentDataPoint(
            timestamp=DATA_START_DATE + timedelta(days=day_index),
            sentiment=clamp_sentiment(score),
            volume=math.floor(volume),
            platform="aggregate",
            confidence=min(1.0, 0.82 + seed * 0.15 + rng.random() * 0.08),
        ))
    return series


def generate_hourly_series(company_name: str, now: Optional[datetime] = None) -> List[SentimentDataPoint]:
    """25 hourly points ending now, busier during 09:00-17:00 UTC"""
    now = now or utc_now()
    context = classify_company(company_name)
    seed = company_seed(company_name)
    rng = _noise(company_name, "hourly")
    baseline = -15 + seed * 25 - context.base_risk * 20

    series = []
    for hours_ago in range(HOURLY_POINTS - 1, -1, -1):
        moment = now - timedelta(hours=hours_ago)
        business_hours = 1.3 if 9 <= moment.hour <= 17 else 0.7
        series.append(SentimentDataPoint(
            timestamp=moment,
            sentiment=clamp_sentiment(baseline + (rng.random() - 0.5) * 15),
            volume=math.floor((100 + seed * 200) * business_hours + rng.random() * 150),
            platform="aggregate",
            confidence=min(1.0, 0.85 + seed * 0.1 + rng.random() * 0.08),
        ))
    return series


def generate_kpis(company_name: str) -> KPIMetrics:
    context = classify_company(company_name)
    seed = company_seed(company_name)
    multipliers = KPI_MULTIPLIERS.get(context.industry, KPI_MULTIPLIERS[Industry.TECHNOLOGY])

    return KPIMetrics(
        overall_sentiment=clamp_sentiment((-30 + seed * 40) * multipliers["sentiment"]),
        recovery_velocity=clamp_percent((50 + seed * 30) * multipliers["velocity"]),
        stakeholder_confidence=clamp_percent((25 + seed * 40) * multipliers["confidence"]),
        competitive_advantage=clamp_sentiment((-20 + seed * 35) * multipliers["advantage"]),
        media_momentum=clamp_percent((35 + seed * 40) * multipliers["momentum"]),
    )


def generate_platform_metrics(company_name: str) -> List[PlatformMetrics]:
    context = classify_company(company_name)
    seed = company_seed(company_name)
    industry = context.industry

    platforms = [
        ("Twitter/X", 18000 if industry == Industry.TECHNOLOGY else 12000,
         -10 if industry == Industry.FINANCIAL else 0),
        ("LinkedIn", 8000 if industry == Industry.FINANCIAL else 3000,
         5 if industry == Industry.TECHNOLOGY else 0),
        ("Facebook", 15000 if industry == Industry.RETAIL else 8000,
         -5 if industry == Industry.HEALTHCARE else 0),
        ("Reddit", 15000 if industry == Industry.TECHNOLOGY else 8000,
         -15 if industry == Industry.ENERGY else -5),
        ("YouTube", 2000, 0),
        ("News Media", 1200, -8 if industry == Industry.FINANCIAL else -3),
    ]
    reach_multiplier = 1.5 if context.market_position == MarketPosition.DOMINANT else 1.0

    metrics = []
    for index, (platform, base_volume, sentiment_modifier) in enumerate(platforms):
        platform_seed = (seed + index * 0.1) % 1
        base_sentiment = -25 + seed * 30 + sentiment_modifier
        metrics.append(PlatformMetrics(
            platform=platform,
            sentiment=clamp_sentiment(base_sentiment + (platform_seed - 0.5) * 20),
            volume=max(0, math.floor(base_volume * (0.7 + seed * 0.6))),
            engagement=clamp(round(1.5 + platform_seed * 8, 1), 0, 100),
            reach=max(0, math.floor((400000 + platform_seed * 1600000) * reach_multiplier)),
            confidence=clamp(round(0.82 + platform_seed * 0.15, 2), 0, 1),
        ))
    return metrics


def generate_stakeholder_segments(company_name: str) -> List[StakeholderSegment]:
    context = classify_company(company_name)
    seed = company_seed(company_name)
    industry = context.industry
    regulated = industry in (Industry.FINANCIAL, Industry.ENERGY)

    segments = [
        ("Customers", 25000 if industry == Industry.RETAIL else 18000,
         "critical" if industry == Industry.RETAIL else "high",
         5 if industry == Industry.TECHNOLOGY else 0),
        ("Investors", 6000 if context.market_position == MarketPosition.DOMINANT else 4000, "critical", 0),
        ("Employees", 3500, "medium", 0),
        ("Regulators", 800 if industry == Industry.FINANCIAL else 300,
         "critical" if regulated else "high",
         -15 if regulated else 0),
        ("Partners", 2000, "medium", 0),
        ("Media", 1200, "high", 0),
    ]

    records = []
    for index, (segment, base_volume, priority, adjustment) in enumerate(segments):
        segment_seed = (seed + index * 0.15) % 1
        base_sentiment = -30 + seed * 40
        records.append(StakeholderSegment(
            segment=segment,
            sentiment=clamp_sentiment(base_sentiment + adjustment + (segment_seed - 0.5) * 25),
            volume=max(0, math.floor(base_volume * (0.6 + seed * 0.8))),
            trend=clamp_sentiment((segment_seed - 0.5) * 30),
            priority=priority,
        ))
    return records


def generate_geographic_data(company_name: str) -> List[GeographicData]:
    context = classify_company(company_name)
    seed = company_seed(company_name)
    industry = context.industry

    regions = [
        ("North America", 35000, 0),
        ("Europe", 20000, -5 if industry == Industry.TECHNOLOGY else 5),
        ("Asia Pacific", 18000, 10 if industry == Industry.FINANCIAL else 0),
        ("Latin America", 6000, 0),
        ("Middle East", 3000, -10 if industry == Industry.ENERGY else 5),
        ("Africa", 2500, -5),
    ]

    records = []
    for index, (region, base_volume, risk_modifier) in enumerate(regions):
        region_seed = (seed + index * 0.2) % 1
        base_sentiment = -25 + seed * 35
        base_risk = 60 + context.base_risk * 20 + risk_modifier
        records.append(GeographicData(
            region=region,
            sentiment=clamp_sentiment(base_sentiment + (region_seed - 0.5) * 20),
            volume=max(0, math.floor(base_volume * (0.5 + seed))),
            risk=int(clamp(math.floor(base_risk + (region_seed - 0.5) * 25), 0, 100)),
        ))
    return records


def generate_competitor_data(company_name: str) -> List[CompetitorData]:
    context = classify_company(company_name)
    seed = company_seed(company_name)
    names = COMPETITOR_NAMES.get(context.industry, COMPETITOR_NAMES[Industry.TECHNOLOGY])
    our_sentiment = -25 + seed * 35

    records = []
    for index, name in enumerate(names):
        competitor_seed = (seed + index * 0.25) % 1
        sentiment = clamp_sentiment(-10 + competitor_seed * 35)
        records.append(CompetitorData(
            name=name,
            sentiment=sentiment,
            market_share=int(clamp(math.floor(15 + competitor_seed * 25), 5, 40)),
            trend=clamp_sentiment((competitor_seed - 0.5) * 20),
            advantage=clamp_sentiment(sentiment - our_sentiment),
        ))
    return records


def generate_fallback_crisis_events(company_name: str) -> List[CrisisEvent]:
    """
    Crisis timeline anchored on crisis_day(company_name).

    Genesis crisis, leadership response (+2), external scrutiny (+8), reform
    package (+15), independent audit (+30) and, for seeds above 0.4, industry
    recognition (+50).
    """
    context = classify_company(company_name)
    seed = company_seed(company_name)
    scenarios = CRISIS_SCENARIOS.get(context.industry, CRISIS_SCENARIOS[Industry.TECHNOLOGY])
    genesis = crisis_day(company_name)
    industry = context.industry.value

    def on_day(offset: int) -> datetime:
        return DATA_START_DATE + timedelta(days=genesis + offset)

    genesis_title, genesis_type, genesis_impact = scenarios[0]
    events = [
        CrisisEvent(
            date=on_day(0),
            title=f"{company_name} {genesis_title}",
            type=genesis_type,
            impact=genesis_impact,
            description=f"Major {industry} sector incident affecting {company_name} operations",
        ),
        CrisisEvent(
            date=on_day(2),
            title=f"{company_name} Executive Leadership Response",
            type=CrisisEventType.RESPONSE,
            impact=clamp_sentiment(15 + seed * 20),
            description=f"{company_name} leadership announces comprehensive action plan and accountability measures",
        ),
    ]

    if len(scenarios) > 2:
        scrutiny_title, scrutiny_type, scrutiny_impact = scenarios[2]
        events.append(CrisisEvent(
            date=on_day(8),
            title=f"{company_name} {scrutiny_title}",
            type=scrutiny_type,
            impact=scrutiny_impact,
            description=f"Government agency announces formal investigation into {company_name} practices",
        ))

    events.append(CrisisEvent(
        date=on_day(15),
        title=f"{company_name} Comprehensive Reform Package",
        type=CrisisEventType.ANNOUNCEMENT,
        impact=clamp_sentiment(25 + seed * 15),
        description=f"{company_name} implements multi-phase corrective action plan with third-party oversight",
    ))
    events.append(CrisisEvent(
        date=on_day(30),
        title=f"{company_name} Independent Audit Results",
        type=CrisisEventType.EXTERNAL,
        impact=clamp_sentiment(18 + seed * 12),
        description=f"Third-party audit confirms {company_name} implementation of corrective measures",
    ))

    if seed > 0.4:
        events.append(CrisisEvent(
            date=on_day(50),
            title=f"{company_name} Industry Leadership Recognition",
            type=CrisisEventType.EXTERNAL,
            impact=clamp_sentiment(20 + seed * 15),
            description=f"Industry association recognizes {company_name} transparency and accountability efforts",
        ))

    return events


def synthesize_company_metrics(company_name: str, now: Optional[datetime] = None) -> CompanyMetrics:
    """Full synthetic CompanyMetrics; validation is left to the caller"""
    now = now or utc_now()
    return CompanyMetrics(
        sentiment_data=generate_sentiment_series(company_name, days_since_start(now)),
        hourly_data=generate_hourly_series(company_name, now),
        kpi_metrics=generate_kpis(company_name),
        platform_metrics=generate_platform_metrics(company_name),
        stakeholder_segments=generate_stakeholder_segments(company_name),
        geographic_data=generate_geographic_data(company_name),
        competitor_data=generate_competitor_data(company_name),
        crisis_events=generate_fallback_crisis_events(company_name),
        threats_opportunities=generate_validated_threats_opportunities(company_name, 6),
        validation=ValidationResult(),
    )


__all__ = [
    'days_since_start', 'sentiment_base_score', 'generate_sentiment_series',
    'generate_hourly_series', 'generate_kpis', 'generate_platform_metrics',
    'generate_stakeholder_segments', 'generate_geographic_data',
    'generate_competitor_data', 'generate_fallback_crisis_events',
    'synthesize_company_metrics',
]
