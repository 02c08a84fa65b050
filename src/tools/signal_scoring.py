"""
Keyword sentiment scoring over collected signal records
"""

from typing import Sequence

from models.schemas import (
    ForumPostRecord, NewsArticleRecord, ProfessionalPostRecord, StockQuoteRecord,
    ThreatOpportunityType, VerifiedNewsArticle
)
from tools.company_context import clamp

NEWS_POSITIVE_WORDS = ['growth', 'success', 'innovation', 'partnership', 'expansion',
                       'profit', 'strong', 'positive', 'award', 'leader']
NEWS_NEGATIVE_WORDS = ['crisis', 'investigation', 'lawsuit', 'scandal', 'breach',
                       'decline', 'loss', 'controversy', 'failure', 'weak']

COMPETITOR_POSITIVE_WORDS = ['growth', 'success', 'innovation', 'leader', 'strong', 'profit']
COMPETITOR_NEGATIVE_WORDS = ['decline', 'loss', 'crisis', 'weak', 'failure', 'scandal']

REGIONAL_POSITIVE_WORDS = ['expansion', 'growth', 'investment', 'success', 'partnership']
REGIONAL_NEGATIVE_WORDS = ['closure', 'layoffs', 'investigation', 'decline', 'controversy']


def _keyword_score(text: str, positive: Sequence[str], negative: Sequence[str],
                   positive_weight: float, negative_weight: float) -> float:
    lowered = text.lower()
    score = sum(positive_weight for word in positive if word in lowered)
    score -= sum(negative_weight for word in negative if word in lowered)
    return clamp(score, -100, 100)


def article_text(article: NewsArticleRecord) -> str:
    return f"{article.title} {article.description}"


def news_article_sentiment(article: NewsArticleRecord) -> float:
    return _keyword_score(article_text(article), NEWS_POSITIVE_WORDS, NEWS_NEGATIVE_WORDS, 10, 15)


def news_sentiment(articles: Sequence[NewsArticleRecord]) -> float:
    """Mean keyword sentiment of the articles, 0 when there are none"""
    if not articles:
        return 0.0
    return sum(news_article_sentiment(article) for article in articles) / len(articles)


def forum_post_sentiment(post: ForumPostRecord) -> float:
    return clamp((post.score - 10) * 2, -100, 100)


def forum_sentiment(posts: Sequence[ForumPostRecord]) -> float:
    if not posts:
        return 0.0
    return sum(forum_post_sentiment(post) for post in posts) / len(posts)


def verified_article_sentiment(article: VerifiedNewsArticle) -> float:
    if article.category == ThreatOpportunityType.THREAT:
        return float(article.impact)
    return float(abs(article.impact))


def verified_news_sentiment(articles: Sequence[VerifiedNewsArticle]) -> float:
    if not articles:
        return 0.0
    return sum(verified_article_sentiment(article) for article in articles) / len(articles)


def engagement_weight(post: ProfessionalPostRecord) -> float:
    engagement = post.engagement
    raw = engagement.likes + engagement.comments * 2 + engagement.shares * 3
    return raw * post.relevance_score * post.weight_multiplier


def professional_sentiment(posts: Sequence[ProfessionalPostRecord]) -> float:
    """Engagement-weighted mean; 0 when there is no weight at all"""
    total_weight = sum(engagement_weight(post) for post in posts)
    if total_weight <= 0:
        return 0.0
    return sum(post.sentiment * engagement_weight(post) for post in posts) / total_weight


def quote_sentiment(quotes: Sequence[StockQuoteRecord]) -> float:
    """Latest daily move, ten sentiment points per percent, capped at +/-50"""
    if not quotes:
        return 0.0
    return clamp(quotes[-1].change_percent * 10, -50, 50)


def competitor_sentiment(text: str) -> float:
    return _keyword_score(text, COMPETITOR_POSITIVE_WORDS, COMPETITOR_NEGATIVE_WORDS, 10, 10)


def regional_sentiment(text: str, company_name: str) -> float:
    """0 unless the company itself is mentioned"""
    if company_name.lower() not in text.lower():
        return 0.0
    return _keyword_score(text, REGIONAL_POSITIVE_WORDS, REGIONAL_NEGATIVE_WORDS, 15, 15)


__all__ = [
    'news_article_sentiment', 'news_sentiment', 'forum_post_sentiment', 'forum_sentiment',
    'verified_article_sentiment', 'verified_news_sentiment', 'engagement_weight',
    'professional_sentiment', 'quote_sentiment', 'competitor_sentiment', 'regional_sentiment',
]
