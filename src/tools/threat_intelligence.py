"""
Threat and opportunity intelligence
Business-relevance scoring against a company profile, industry templates for
validated items, and categorization of publisher news into threats/opportunities
"""

from typing import Dict, List, Sequence, Tuple
from datetime import datetime

from models.schemas import (
    CompanyProfile, Priority, RelevanceAssessment, ThreatOpportunity,
    ThreatOpportunityType, VerifiedNewsArticle
)
from tools.company_context import company_seed
from tools.company_profiles import get_company_profile

MIN_RELEVANCE_SCORE = 50
GENERATED_VALIDATION_SCORE = 95

IRRELEVANT_KEYWORDS = [
    'sports', 'game', 'match', 'tournament', 'player', 'team', 'coach',
    'entertainment', 'celebrity', 'movie', 'music', 'fashion', 'dating',
    'restaurant', 'food', 'recipe', 'travel', 'vacation', 'weather',
]

TIME_WINDOWS: Dict[str, str] = {
    Priority.CRITICAL.value: '24-48 hours',
    Priority.HIGH.value: '3-7 days',
    Priority.MEDIUM.value: '1-2 weeks',
}
DEFAULT_TIME_WINDOW = '2-4 weeks'

# Industry templates. Title suffix, description with {name}/{s0..s2}/{reg0},
# priority, probability base and seed weight, impact, business relevance.
THREAT_TEMPLATES: Dict[str, List[dict]] = {
    "Technology": [
        {
            "title": "Cybersecurity Vulnerability Assessment",
            "description": "Security researchers identify potential vulnerabilities in {name}'s infrastructure "
                           "that could compromise {s0} operations and expose sensitive customer data.",
            "priority": "critical", "probability": (0.6, 0.2), "impact": -60,
            "business_relevance": ["Cybersecurity", "Data Protection", "Customer Trust"],
        },
        {
            "title": "Regulatory Compliance Challenge",
            "description": "New technology oversight legislation specifically impacts companies like {name}, "
                           "requiring significant investments in {s1} compliance protocols.",
            "priority": "high", "probability": (0.5, 0.3), "impact": -45,
            "business_relevance": ["Regulatory Compliance", "Operational Costs", "Market Access"],
        },
        {
            "title": "Supply Chain Security Risk",
            "description": "Third-party software dependencies used in {name}'s {s0} solutions face potential "
                           "security compromises affecting service delivery.",
            "priority": "high", "probability": (0.4, 0.4), "impact": -40,
            "business_relevance": ["Supply Chain", "Service Reliability", "Customer Impact"],
        },
    ],
    "Financial Services": [
        {
            "title": "Regulatory Audit Intensification",
            "description": "{reg0} announces enhanced scrutiny of {name}'s {s0} operations, potentially leading "
                           "to operational restrictions.",
            "priority": "critical", "probability": (0.7, 0.2), "impact": -70,
            "business_relevance": ["Regulatory Compliance", "Banking Operations", "Market Reputation"],
        },
        {
            "title": "Interest Rate Exposure Risk",
            "description": "Federal Reserve policy changes specifically impact {name}'s {s1} portfolio and "
                           "lending operations.",
            "priority": "high", "probability": (0.6, 0.3), "impact": -50,
            "business_relevance": ["Interest Rate Risk", "Portfolio Management", "Profitability"],
        },
    ],
    "Healthcare": [
        {
            "title": "FDA Compliance Review",
            "description": "FDA announces enhanced oversight of {name}'s {s0} development processes, potentially "
                           "delaying product approvals.",
            "priority": "critical", "probability": (0.5, 0.3), "impact": -65,
            "business_relevance": ["FDA Compliance", "Product Development", "Market Access"],
        },
        {
            "title": "Clinical Trial Oversight",
            "description": "New clinical trial regulations specifically impact {name}'s research methodology "
                           "for {s1} development.",
            "priority": "high", "probability": (0.4, 0.4), "impact": -45,
            "business_relevance": ["Clinical Research", "Drug Development", "Regulatory Approval"],
        },
    ],
}

OPPORTUNITY_TEMPLATES: Dict[str, List[dict]] = {
    "Technology": [
        {
            "title": "Government Contract Opportunity",
            "description": "Federal technology modernization initiative specifically aligns with {name}'s {s0} "
                           "capabilities, presenting significant revenue opportunities.",
            "priority": "high", "probability": (0.6, 0.2), "impact": 55,
            "business_relevance": ["Government Contracts", "Revenue Growth", "Market Expansion"],
        },
        {
            "title": "Strategic Acquisition Target",
            "description": "Industry consolidation trends position {name} as an attractive acquisition target "
                           "for companies seeking {s1} capabilities.",
            "priority": "medium", "probability": (0.4, 0.4), "impact": 45,
            "business_relevance": ["Strategic Partnerships", "Market Valuation", "Growth Opportunities"],
        },
        {
            "title": "AI Innovation Partnership",
            "description": "Leading technology companies announce partnership programs that could provide {name} "
                           "with access to AI technologies for {s2} enhancement.",
            "priority": "medium", "probability": (0.5, 0.3), "impact": 40,
            "business_relevance": ["Technology Innovation", "Product Enhancement", "Competitive Advantage"],
        },
    ],
    "Financial Services": [
        {
            "title": "Fintech Partnership Initiative",
            "description": "Emerging fintech partnerships offer {name} opportunities to enhance {s0} through "
                           "digital transformation and new service offerings.",
            "priority": "high", "probability": (0.5, 0.3), "impact": 50,
            "business_relevance": ["Digital Transformation", "Service Innovation", "Customer Experience"],
        },
        {
            "title": "ESG Investment Opportunity",
            "description": "Growing ESG investment trends favor {name}'s sustainable {s1} practices and "
                           "governance structures.",
            "priority": "medium", "probability": (0.6, 0.2), "impact": 35,
            "business_relevance": ["ESG Compliance", "Investment Attraction", "Brand Reputation"],
        },
    ],
    "Healthcare": [
        {
            "title": "Breakthrough Therapy Designation",
            "description": "FDA fast-track opportunities for {name}'s innovative {s0} align with accelerated "
                           "approval pathways.",
            "priority": "high", "probability": (0.4, 0.4), "impact": 60,
            "business_relevance": ["FDA Approval", "Market Access", "Revenue Acceleration"],
        },
        {
            "title": "Global Health Partnership",
            "description": "International health organizations offer {name} opportunities for global expansion "
                           "of {s1} in emerging markets.",
            "priority": "medium", "probability": (0.5, 0.3), "impact": 40,
            "business_relevance": ["Global Expansion", "Market Access", "Partnership Development"],
        },
    ],
}

# Publisher news classification
NEWS_BUSINESS_KEYWORDS = [
    'regulation', 'compliance', 'cybersecurity', 'data breach', 'lawsuit',
    'partnership', 'acquisition', 'merger', 'investment', 'funding',
    'technology', 'innovation', 'market', 'competition', 'growth',
]

NEWS_INDUSTRY_KEYWORDS: List[Tuple[Tuple[str, ...], List[str]]] = [
    (('tech', 'software', 'kaseya'),
     ['technology', 'software', 'cybersecurity', 'IT', 'cloud', 'SaaS', 'MSP', 'managed services']),
    (('bank', 'financial'), ['banking', 'financial', 'fintech', 'investment', 'trading', 'securities']),
    (('health', 'pharma'), ['healthcare', 'pharmaceutical', 'medical', 'biotech', 'clinical']),
    (('energy', 'oil'), ['energy', 'oil', 'gas', 'renewable', 'power', 'utilities']),
]
DEFAULT_NEWS_INDUSTRY_KEYWORDS = ['business', 'corporate', 'enterprise', 'industry']

NEWS_THREAT_KEYWORDS = [
    'lawsuit', 'investigation', 'breach', 'hack', 'scandal', 'crisis',
    'violation', 'fine', 'penalty', 'regulatory', 'compliance', 'risk',
    'decline', 'loss', 'bankruptcy', 'closure', 'layoffs', 'downturn',
]
NEWS_OPPORTUNITY_KEYWORDS = [
    'partnership', 'acquisition', 'merger', 'investment', 'funding',
    'growth', 'expansion', 'innovation', 'award', 'contract', 'deal',
    'breakthrough', 'success', 'profit', 'revenue', 'market share',
]

# (trigger keywords, priority, absolute impact, probability); first match wins
NEWS_PRIORITY_RULES: List[Tuple[Tuple[str, ...], Priority, int, float]] = [
    (('investigation', 'lawsuit', 'breach'), Priority.CRITICAL, 60, 0.8),
    (('regulatory', 'compliance', 'acquisition'), Priority.HIGH, 45, 0.7),
    (('partnership', 'investment', 'risk'), Priority.MEDIUM, 30, 0.6),
]
DEFAULT_NEWS_PRIORITY = (Priority.MEDIUM, 30, 0.5)


def calculate_time_window(priority: str) -> str:
    return TIME_WINDOWS.get(str(getattr(priority, "value", priority)), DEFAULT_TIME_WINDOW)


def priority_from_probability(probability: float) -> Priority:
    if probability > 0.7:
        return Priority.CRITICAL
    if probability > 0.4:
        return Priority.HIGH
    return Priority.MEDIUM


def _count_matches(content: str, keywords: Sequence[str]) -> int:
    return sum(1 for keyword in keywords if keyword.lower() in content)


def validate_threat_opportunity(title: str, description: str, profile: CompanyProfile) -> RelevanceAssessment:
    """
    Score how relevant an item is to the company's business, 0-100.

    Company name 30, industry keywords 5 each (max 25), services 7 each
    (max 20), known risks 5 each (max 15), regulators 3 each (max 10),
    minus 20 per off-topic keyword. Valid at 50 and above.
    """
    content = f"{(title or '').lower()} {(description or '').lower()}"
    score = 0
    reasons: List[str] = []
    suggestions: List[str] = []

    if profile.name.lower() in content:
        score += 30
        reasons.append('Contains company name')
    else:
        suggestions.append('Should specifically mention the company name')

    industry_keywords = [profile.industry, profile.sector, *profile.business_keywords]
    industry_matches = _count_matches(content, industry_keywords)
    if industry_matches:
        score += min(25, industry_matches * 5)
        reasons.append(f'Matches {industry_matches} industry keywords')
    else:
        suggestions.append(
            f"Should include industry-specific terms: {', '.join(profile.business_keywords[:3])}")

    service_matches = _count_matches(content, profile.primary_services)
    if service_matches:
        score += min(20, service_matches * 7)
        reasons.append(f'Relates to {service_matches} business services')
    else:
        suggestions.append(f"Should relate to company services: {', '.join(profile.primary_services[:2])}")

    risk_matches = _count_matches(content, profile.key_risks)
    if risk_matches:
        score += min(15, risk_matches * 5)
        reasons.append(f'Addresses {risk_matches} known business risks')

    regulatory_matches = _count_matches(content, profile.regulatory_bodies)
    if regulatory_matches:
        score += min(10, regulatory_matches * 3)
        reasons.append(f'Mentions {regulatory_matches} relevant regulatory bodies')

    irrelevant_matches = _count_matches(content, IRRELEVANT_KEYWORDS)
    if irrelevant_matches:
        score -= irrelevant_matches * 20
        reasons.append(f'Contains {irrelevant_matches} irrelevant keywords')
        suggestions.append('Remove non-business related content')

    is_valid = score >= MIN_RELEVANCE_SCORE
    if not is_valid:
        suggestions.append(
            'Increase business relevance by focusing on company-specific risks and opportunities')

    return RelevanceAssessment(
        is_valid=is_valid,
        relevance_score=max(0, min(100, score)),
        reasons=reasons,
        suggestions=suggestions,
    )


def _render_template(template: dict, kind: ThreatOpportunityType, index: int,
                     profile: CompanyProfile, seed: float) -> ThreatOpportunity:
    services = list(profile.primary_services) + [""] * 3
    base, weight = template["probability"]
    description = template["description"].format(
        name=profile.name, s0=services[0], s1=services[1], s2=services[2],
        reg0=(profile.regulatory_bodies or [""])[0],
    )
    return ThreatOpportunity(
        id=f"validated-{kind.value}-{index}",
        type=kind.value,
        title=f"{profile.name} {template['title']}",
        description=description,
        priority=template["priority"],
        probability=round(base + seed * weight, 2),
        impact=template["impact"],
        time_window=calculate_time_window(template["priority"]),
        validation_score=GENERATED_VALIDATION_SCORE,
        business_relevance=list(template["business_relevance"]),
    )


def generate_validated_threats_opportunities(company_name: str, count: int = 6) -> List[ThreatOpportunity]:
    """
    Industry-templated threats (first ceil(count/2)) then opportunities (floor(count/2)).

    Industries without templates yield no items.
    """
    profile = get_company_profile(company_name)
    seed = company_seed(company_name)

    threat_slots = (count + 1) // 2
    opportunity_slots = count // 2

    items = [
        _render_template(template, ThreatOpportunityType.THREAT, index, profile, seed)
        for index, template in enumerate(THREAT_TEMPLATES.get(profile.industry, [])[:threat_slots])
    ]
    items.extend(
        _render_template(template, ThreatOpportunityType.OPPORTUNITY, index, profile, seed)
        for index, template in enumerate(OPPORTUNITY_TEMPLATES.get(profile.industry, [])[:opportunity_slots])
    )
    return items


def filter_and_validate_items(items: Sequence[ThreatOpportunity], company_name: str,
                              min_validation_score: int = MIN_RELEVANCE_SCORE) -> List[ThreatOpportunity]:
    """Keep items relevant to the company, best score first"""
    profile = get_company_profile(company_name)
    validated: List[ThreatOpportunity] = []

    for index, item in enumerate(items):
        assessment = validate_threat_opportunity(item.title, item.description, profile)
        if assessment.is_valid and assessment.relevance_score >= min_validation_score:
            validated.append(item.model_copy(update={
                "id": item.id or f"validated-{index}",
                "validation_score": assessment.relevance_score,
                "business_relevance": assessment.reasons,
            }))

    return sorted(validated, key=lambda item: item.validation_score, reverse=True)


# Publisher news


def news_industry_keywords(company_name: str) -> List[str]:
    lowered = company_name.lower()
    for triggers, keywords in NEWS_INDUSTRY_KEYWORDS:
        if any(trigger in lowered for trigger in triggers):
            return keywords
    return DEFAULT_NEWS_INDUSTRY_KEYWORDS


def calculate_news_relevance(title: str, description: str, company_name: str) -> float:
    """Company mention 0.8, industry keyword 0.2 each, business keyword 0.1 each, capped at 1"""
    text = f"{title} {description}".lower()
    relevance = 0.0

    if company_name.lower() in text:
        relevance += 0.8
    relevance += 0.2 * _count_matches(text, news_industry_keywords(company_name))
    relevance += 0.1 * _count_matches(text, NEWS_BUSINESS_KEYWORDS)

    return min(1.0, round(relevance, 4))


def categorize_article(title: str, description: str) -> ThreatOpportunityType:
    text = f"{title} {description}".lower()
    threat_score = _count_matches(text, NEWS_THREAT_KEYWORDS)
    opportunity_score = _count_matches(text, NEWS_OPPORTUNITY_KEYWORDS)
    if threat_score > opportunity_score:
        return ThreatOpportunityType.THREAT
    return ThreatOpportunityType.OPPORTUNITY


def assess_threat_opportunity(title: str, description: str,
                              category: ThreatOpportunityType) -> Tuple[Priority, int, float]:
    """Priority, signed impact and probability from trigger keywords"""
    text = f"{title} {description}".lower()
    priority, magnitude, probability = DEFAULT_NEWS_PRIORITY
    for triggers, rule_priority, rule_magnitude, rule_probability in NEWS_PRIORITY_RULES:
        if any(trigger in text for trigger in triggers):
            priority, magnitude, probability = rule_priority, rule_magnitude, rule_probability
            break

    impact = -magnitude if category == ThreatOpportunityType.THREAT else magnitude
    return priority, impact, probability


def fallback_news_articles(company_name: str, now: datetime) -> List[VerifiedNewsArticle]:
    """Placeholder articles used when every publisher feed failed; never marked verified"""
    query_name = company_name.replace(" ", "+")
    return [
        VerifiedNewsArticle(
            id="fallback-threat-1",
            title=f"Regulatory Compliance Review for {company_name}",
            description=f"Industry regulatory bodies announce enhanced compliance requirements "
                        f"that may impact {company_name} operations.",
            url=f'https://www.google.com/search?q="{query_name}"+regulatory+compliance+news&tbm=nws',
            published_at=now,
            source_name="Business Intelligence",
            source_url="https://www.google.com/search",
            category=ThreatOpportunityType.THREAT,
            priority=Priority.HIGH,
            impact=-40,
            probability=0.6,
            company_relevance=0.8,
            confidence=0.5,
            verified=False,
        ),
        VerifiedNewsArticle(
            id="fallback-opportunity-1",
            title=f"Strategic Partnership Opportunities for {company_name}",
            description=f"Market analysis indicates potential strategic partnership opportunities "
                        f"for {company_name} in emerging technology sectors.",
            url=f'https://www.google.com/search?q="{query_name}"+partnership+opportunity+news&tbm=nws',
            published_at=now,
            source_name="Market Analysis",
            source_url="https://www.google.com/search",
            category=ThreatOpportunityType.OPPORTUNITY,
            priority=Priority.MEDIUM,
            impact=35,
            probability=0.5,
            company_relevance=0.7,
            confidence=0.5,
            verified=False,
        ),
    ]


def article_to_threat_opportunity(article: VerifiedNewsArticle, index: int) -> ThreatOpportunity:
    category = article.category.value
    return ThreatOpportunity(
        id=f"verified-{category}-{index}",
        type=category,
        title=article.title,
        description=article.description,
        priority=article.priority.value,
        probability=article.probability,
        impact=article.impact,
        time_window=calculate_time_window(article.priority),
        verified_url=article.url or None,
        source=article.source_name,
        published_at=article.published_at,
        validation_score=round(article.company_relevance * 100),
    )


__all__ = [
    'IRRELEVANT_KEYWORDS', 'calculate_time_window', 'priority_from_probability',
    'validate_threat_opportunity', 'generate_validated_threats_opportunities',
    'filter_and_validate_items', 'news_industry_keywords', 'calculate_news_relevance',
    'categorize_article', 'assess_threat_opportunity', 'fallback_news_articles',
    'article_to_threat_opportunity',
]
