"""
Recommendations Module Summary
==============================

Ranks community content for a feed request.

1. ScoringService - engagement, recency and the two ranking strategies
2. FeedPage / ScoreBreakdown DTOs returned to the API layer
3. REST endpoints for the recommended feed and its score breakdown
"""
