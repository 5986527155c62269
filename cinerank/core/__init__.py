"""Core module containing taste analysis, rating protocol and recommendation engine."""

from cinerank.core.contracts import (
    CatalogItem,
    CompletionClient,
    KeyValueStore,
    MediaKind,
    MetadataProvider,
    NegativeFeedbackEntry,
    NewItem,
    QuotaTracker,
    RatedItem,
    RatingCategoryKey,
    Recommendation,
    Winner,
)
from cinerank.core.taste_profile import (
    TasteProfile,
    TasteProfileAnalyzer,
    analyze_taste_profile,
)
from cinerank.core.categories import (
    RatingCategory,
    category_for_rating,
    dynamic_categories,
    midpoint_for_range,
)
from cinerank.core.comparison import rank_best_matches, select_candidates, similarity_score
from cinerank.core.protocol import (
    ComparisonSession,
    ComparisonSessionError,
    record_comparison_choice,
    start_comparison_session,
)
from cinerank.core.rating_flow import (
    ComparisonSessionRegistry,
    RatingPlan,
    finalize_rating,
    plan_rating,
)
from cinerank.core.matching import enhanced_score, parse_titles, title_confidence
from cinerank.core.recommender import (
    QuotaExceededError,
    RecommendationService,
    filter_unseen,
)

__all__ = [
    # Contracts/Types
    "CatalogItem",
    "CompletionClient",
    "KeyValueStore",
    "MediaKind",
    "MetadataProvider",
    "NegativeFeedbackEntry",
    "NewItem",
    "QuotaTracker",
    "RatedItem",
    "RatingCategoryKey",
    "Recommendation",
    "Winner",
    # Taste profile
    "TasteProfile",
    "TasteProfileAnalyzer",
    "analyze_taste_profile",
    # Categories
    "RatingCategory",
    "category_for_rating",
    "dynamic_categories",
    "midpoint_for_range",
    # Comparison
    "rank_best_matches",
    "select_candidates",
    "similarity_score",
    "ComparisonSession",
    "ComparisonSessionError",
    "record_comparison_choice",
    "start_comparison_session",
    # Rating flow
    "ComparisonSessionRegistry",
    "RatingPlan",
    "finalize_rating",
    "plan_rating",
    # Recommendations
    "enhanced_score",
    "parse_titles",
    "title_confidence",
    "QuotaExceededError",
    "RecommendationService",
    "filter_unseen",
]
