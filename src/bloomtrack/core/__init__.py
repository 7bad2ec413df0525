"""Core business logic.

Modules:
- blooms: Bloom's Taxonomy levels and metadata
- mastery_calculator: Per-topic mastery, weighting and decay
- mastery_analytics: Student, class and leaderboard roll-ups
- mastery_service: Persistence-backed orchestration
"""

__all__ = [
    "blooms",
    "mastery_calculator",
    "mastery_analytics",
    "mastery_service",
]
