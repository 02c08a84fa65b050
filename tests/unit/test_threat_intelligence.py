"""
Unit tests for business-relevance scoring and threat/opportunity generation.
"""
from models.schemas import Priority, ThreatOpportunityType, VerifiedNewsArticle
from tools.company_profiles import find_known_profile, get_company_profile
from tools.threat_intelligence import (
    article_to_threat_opportunity, assess_threat_opportunity, calculate_news_relevance,
    calculate_time_window, categorize_article, fallback_news_articles,
    filter_and_validate_items, generate_validated_threats_opportunities,
    priority_from_probability, validate_threat_opportunity
)
from fakes import NOW


class TestCompanyProfiles:

    def test_known_profile_by_containment(self):
        assert find_known_profile("Kaseya Limited").name == "Kaseya"
        assert find_known_profile("JP Morgan").name == "JPMorgan Chase"

    def test_dynamic_profile(self):
        profile = get_company_profile("First National Bank")
        assert profile.name == "First National Bank"
        assert profile.industry == "Financial Services"
        assert find_known_profile("Acme Corp") is None


class TestValidateThreatOpportunity:

    def setup_method(self):
        self.profile = get_company_profile("Kaseya")

    def test_relevant_item(self):
        assessment = validate_threat_opportunity(
            "Kaseya cybersecurity risk for MSP backup customers",
            "SEC reviews Kaseya remote monitoring after cybersecurity breaches",
            self.profile,
        )
        assert assessment.is_valid
        assert assessment.relevance_score >= 50
        assert 'Contains company name' in assessment.reasons

    def test_off_topic_item(self):
        assessment = validate_threat_opportunity("Kaseya team wins football match", "", self.profile)
        assert not assessment.is_valid
        assert assessment.relevance_score == 0
        assert 'Remove non-business related content' in assessment.suggestions

    def test_missing_company_name(self):
        assessment = validate_threat_opportunity("Generic market update", "", self.profile)
        assert not assessment.is_valid
        assert 'Should specifically mention the company name' in assessment.suggestions


class TestGeneratedItems:

    def test_threats_before_opportunities(self):
        items = generate_validated_threats_opportunities("Kaseya", 6)
        kinds = [item.type for item in items]
        assert kinds == ["threat"] * 3 + ["opportunity"] * 3
        assert all(item.title.startswith("Kaseya ") for item in items)
        assert all(item.validation_score == 95 for item in items)
        assert items[0].id == "validated-threat-0"

    def test_odd_count_favours_threats(self):
        items = generate_validated_threats_opportunities("Kaseya", 3)
        assert [item.type for item in items] == ["threat", "threat", "opportunity"]

    def test_industry_without_templates(self):
        assert generate_validated_threats_opportunities("Consumer Goods Ltd", 6) == []

    def test_items_are_well_formed(self):
        for item in generate_validated_threats_opportunities("First National Bank", 8):
            assert 0 <= item.probability <= 1
            assert -100 <= item.impact <= 100
            assert item.time_window == calculate_time_window(item.priority)

    def test_filter_sorts_by_score(self):
        items = generate_validated_threats_opportunities("Kaseya", 6)
        filtered = filter_and_validate_items(items, "Kaseya")
        scores = [item.validation_score for item in filtered]
        assert scores == sorted(scores, reverse=True)
        assert all(score >= 50 for score in scores)


class TestNewsClassification:

    def test_relevance(self):
        assert calculate_news_relevance("Kaseya expands", "", "Kaseya") >= 0.8
        assert calculate_news_relevance("Kaseya MSP cloud software partnership", "", "Kaseya") == 1.0
        assert calculate_news_relevance("Weather update", "", "Acme") == 0.0

    def test_categorize(self):
        assert categorize_article("Lawsuit filed over breach", "") == ThreatOpportunityType.THREAT
        assert categorize_article("New partnership", "") == ThreatOpportunityType.OPPORTUNITY
        # ties are opportunities
        assert categorize_article("Lawsuit and partnership", "") == ThreatOpportunityType.OPPORTUNITY

    def test_assess(self):
        priority, impact, probability = assess_threat_opportunity(
            "Lawsuit filed", "", ThreatOpportunityType.THREAT)
        assert (priority, impact, probability) == (Priority.CRITICAL, -60, 0.8)

        priority, impact, probability = assess_threat_opportunity(
            "Quiet quarter", "", ThreatOpportunityType.OPPORTUNITY)
        assert (priority, impact, probability) == (Priority.MEDIUM, 30, 0.5)

    def test_time_windows(self):
        assert calculate_time_window("critical") == '24-48 hours'
        assert calculate_time_window(Priority.HIGH) == '3-7 days'
        assert calculate_time_window("low") == '2-4 weeks'

    def test_priority_from_probability(self):
        assert priority_from_probability(0.8) == Priority.CRITICAL
        assert priority_from_probability(0.5) == Priority.HIGH
        assert priority_from_probability(0.4) == Priority.MEDIUM


class TestVerifiedArticles:

    def test_fallback_articles_are_unverified(self):
        articles = fallback_news_articles("Acme Corp", NOW)
        assert [a.id for a in articles] == ["fallback-threat-1", "fallback-opportunity-1"]
        assert not any(a.verified for a in articles)

    def test_article_to_item(self):
        article = VerifiedNewsArticle(
            id="alpha-wire-0", title="Kaseya lawsuit", description="Lawsuit filed", url="https://alpha.test/1",
            published_at=NOW, source_name="Alpha Wire", source_url="https://alpha.test",
            category=ThreatOpportunityType.THREAT, priority=Priority.CRITICAL, impact=-60,
            probability=0.8, company_relevance=0.9,
        )
        item = article_to_threat_opportunity(article, 2)
        assert item.id == "verified-threat-2"
        assert item.source == "Alpha Wire"
        assert item.validation_score == 90
        assert item.time_window == '24-48 hours'
