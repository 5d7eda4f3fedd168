"""Analytics modules for habit progress, achievements, insights and dependencies."""

from .streaks import (
    HabitStats,
    StreakTracker,
    calculate_streak,
    calculate_longest_streak,
    completion_rate,
    consistency_score,
    weekly_average,
    monthly_average,
    calculate_habit_stats,
)
from .achievements import (
    ACHIEVEMENT_DEFINITIONS,
    ICON_CATEGORIES,
    Achievement,
    calculate_achievements,
    get_next_achievement,
    get_recent_achievements,
    get_overall_progress,
)
from .insights import (
    OverallStats,
    StreakBreak,
    StreakLeader,
    TrendPoint,
    get_streak_leaders,
    get_completion_counts,
    calculate_overall_stats,
    get_top_performing_habits,
    generate_trend_data,
    detect_streak_break,
)
from .dependencies import (
    ChainSuggestion,
    DependencyGraph,
    DependencyService,
    DependencyValidation,
    suggest_habit_chains,
)
from .recommendations import (
    HabitInsight,
    PatternAnalysis,
    Recommendation,
    analyze_patterns,
    generate_insights,
    generate_recommendations,
)

__all__ = [
    'HabitStats',
    'StreakTracker',
    'calculate_streak',
    'calculate_longest_streak',
    'completion_rate',
    'consistency_score',
    'weekly_average',
    'monthly_average',
    'calculate_habit_stats',
    'ACHIEVEMENT_DEFINITIONS',
    'ICON_CATEGORIES',
    'Achievement',
    'calculate_achievements',
    'get_next_achievement',
    'get_recent_achievements',
    'get_overall_progress',
    'OverallStats',
    'StreakBreak',
    'StreakLeader',
    'TrendPoint',
    'get_streak_leaders',
    'get_completion_counts',
    'calculate_overall_stats',
    'get_top_performing_habits',
    'generate_trend_data',
    'detect_streak_break',
    'ChainSuggestion',
    'DependencyGraph',
    'DependencyService',
    'DependencyValidation',
    'suggest_habit_chains',
    'HabitInsight',
    'PatternAnalysis',
    'Recommendation',
    'analyze_patterns',
    'generate_insights',
    'generate_recommendations',
]
