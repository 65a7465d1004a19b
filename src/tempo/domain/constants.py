"""Centralized constants for the Tempo scheduling engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Time ----------
MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

# ---------- SM-2 ----------
DEFAULT_REPETITION = 0
DEFAULT_EASE_FACTOR = 2.5
DEFAULT_INTERVAL = 1
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 3.0
MIN_QUALITY = 0
MAX_QUALITY = 5
SUCCESS_QUALITY = 3
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6

# ---------- Personalization ----------
EASY_EASE_THRESHOLD = 2.2
HARD_EASE_THRESHOLD = 1.8
MIN_SLOT_SAMPLES = 5
SLOT_BASELINE_SUCCESS = 0.75
SLOT_EASE_WEIGHT = 0.2
STRUGGLING_SUCCESS_RATE = 0.6
MASTERED_SUCCESS_RATE = 0.9
DIFFICULTY_EASE_STEP = 0.1
FAST_LEARNER_VELOCITY = 1.5
SLOW_LEARNER_VELOCITY = 0.5
FAST_LEARNER_MULTIPLIER = 1.1
SLOW_LEARNER_MULTIPLIER = 0.9
MAX_EASE_BIAS = 0.5
DEFAULT_CONFIDENCE = 0.5

# ---------- Concept Mastery ----------
MASTERY_EASE_CAP = 0.3
MASTERY_EXPERT_LEVEL = 0.95
MASTERY_ADVANCED_LEVEL = 0.8
MASTERY_INTERMEDIATE_LEVEL = 0.6
MASTERY_BEGINNER_LEVEL = 0.3
MASTERY_MIN_INTERVAL_MULTIPLIER = 0.5
MASTERY_MAX_INTERVAL_MULTIPLIER = 2.0
MIN_REVIEWS_FOR_MASTERY = 5
MASTERY_LOOKBACK_DAYS = 30
MASTERY_REVIEW_LIMIT = 1000
MAX_CONCEPTS_PER_CARD = 5
MASTERY_TREND_WINDOW = 10
MASTERY_TREND_DELTA = 0.1

# ---------- Pattern Analysis ----------
PATTERN_LOOKBACK_DAYS = 30
PATTERN_HISTORY_LIMIT = 100
MIN_REVIEWS_FOR_PATTERN = 20
MASTERED_REPETITION = 3
OPTIMAL_SLOT_COUNT = 2
INCONSISTENCY_MIN_SAMPLES = 10
INCONSISTENCY_MAX_WINDOW = 5
INCONSISTENCY_THRESHOLD = 0.3
PLATEAU_THRESHOLD_DAYS = 14
PLATEAU_MIN_IMPROVEMENT = 0.1
TOPIC_MIN_WORD_LENGTH = 4
TOPIC_KEYWORDS_PER_CARD = 3
TOPIC_MIN_CARDS = 3
TREND_SHORT_DAYS = 7
TREND_LONG_DAYS = 14

# ---------- Priority ----------
OVERDUE_CAP_DAYS = 30
OVERDUE_WEIGHT = 0.4
EASE_DEFICIT_WEIGHT = 0.3
NEWNESS_WEIGHT = 0.2
RECENT_FAILURE_WEIGHT = 0.1
EASE_DEFICIT_SPAN = 1.2
NEWNESS_REPETITIONS = 3
RECENT_REVIEW_WINDOW = 5
DECLINE_TREND_PERCENT = -10.0
IMPROVE_TREND_PERCENT = 20.0
DECLINE_BOOST = 1.15
IMPROVE_DAMPEN = 0.9
DEFAULT_SRS_WEIGHT = 0.7
DEFAULT_PATTERN_WEIGHT = 0.3
DEFAULT_INCONSISTENCY_BOOST = 1.5
DEFAULT_PLATEAU_BOOST = 1.3
DEFAULT_TIME_OF_DAY_BOOST = 1.2
DEFAULT_DIFFICULTY_ADAPTATION = 0.2

# ---------- Study Queue ----------
DAILY_NEW_CARD_LIMIT = 20
MIN_NEW_CARDS = 5
QUEUE_REVIEW_LOOKBACK_DAYS = 7
QUEUE_REVIEW_LIMIT = 200
REGENERATION_QUEUE_SIZE = 50

# ---------- Cache ----------
CACHE_VERSION = 1
CACHE_CLEANUP_BATCH_SIZE = 100
CACHE_METRICS_RETENTION_DAYS = 7
CACHE_ANALYTICS_WINDOW_HOURS = 24

# ---------- Real-time Updates ----------
DEBOUNCE_DELAY_MS = 2000
MIN_UPDATE_INTERVAL_MS = 30 * 1000
FOLD_BATCH_SIZE = 50
SIGNIFICANCE_WINDOW_MS = 5 * MS_PER_MINUTE
ROLLING_WINDOW_SIZE = 10
MIN_SIGNIFICANCE_SAMPLES = 3
SIGNIFICANT_CHANGE_THRESHOLD = 0.15
SNAPSHOT_FRESHNESS_MS = 30 * MS_PER_MINUTE
MAX_BLEND_WEIGHT = 0.3
BLEND_SAMPLE_DIVISOR = 20
MIN_FOLD_INCONSISTENCY_ANSWERS = 3
FOLD_VARIANCE_THRESHOLD = 0.2
SUCCESS_RATE_CHANGE_REPORT = 0.1
TREND_CHANGE_REPORT_PERCENT = 15.0
TOP_PRIORITY_PREVIEW = 5
