"""
Constants and shared data for cycle-related services.
"""
from typing import Dict, List

from src.models.phase import CyclePhaseType

# Pain pattern model
PAIN_SYMPTOMS = frozenset({"cramps", "headache", "backache", "abdominal_pain"})
PAIN_ALPHA = 0.3
MAX_TRACKED_CYCLE_DAY = 35
NEIGHBOUR_DECAY = 0.9
HIGH_PAIN_THRESHOLD = 7
MEDIUM_PAIN_THRESHOLD = 4

# Known slots per quality point, and the 1-6 quality scale bounds
QUALITY_POINTS_DIVISOR = 5
MIN_PREDICTION_QUALITY = 1
MAX_PREDICTION_QUALITY = 6

# Known slot counts that must be exceeded for each confidence label
HIGH_CONFIDENCE_POINTS = 20
MEDIUM_CONFIDENCE_POINTS = 10

# Learned model quality scores for each confidence label
ML_HIGH_QUALITY = 7
ML_MEDIUM_QUALITY = 4

# Cycle tracker
ROLLING_AVERAGE_WINDOW = 6
FOLLICULAR_LAST_DAY = 14
OVULATORY_FIRST_DAY = 14
OVULATORY_LAST_DAY = 16

# Symptom aggregator
ANALYSIS_SYMPTOM_LIMIT = 200
ANALYSIS_CYCLE_LIMIT = 6

# Optimistic concurrency
PROFILE_WRITE_ATTEMPTS = 3

# Mood garden
PLANT_SPAWN_INTERVAL_DAYS = 3
DEFAULT_ACTIVITY_POINTS = 5
HIGH_MOOD_THRESHOLD = 7
MEDIUM_MOOD_THRESHOLD = 4

# (minimum score, plant names), checked top-down
PLANT_BANDS: List[tuple] = [
    (8, ["sunflower", "tulip", "rose", "hibiscus", "daisy"]),
    (6, ["fern", "basil", "mint", "bamboo", "lily"]),
    (4, ["snake_plant", "pothos", "zz_plant", "prayer_plant", "monstera"]),
    (2, ["succulent", "cactus", "aloe", "jade", "haworthia"]),
    (1, ["air_plant", "moss", "desert_rose", "lithops", "stone_crop"]),
]

PHASE_DESCRIPTIONS: Dict[CyclePhaseType, str] = {
    CyclePhaseType.MENSTRUAL: "Period days; the uterine lining is shed",
    CyclePhaseType.FOLLICULAR: "Estrogen rises as follicles mature",
    CyclePhaseType.OVULATORY: "An egg is released around mid-cycle",
    CyclePhaseType.LUTEAL: "Progesterone dominates until the next period",
}
