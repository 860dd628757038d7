"""
Phase model definition for menstrual cycle phases.
"""
from enum import Enum

class CyclePhaseType(str, Enum):
    """
    Menstrual cycle phases reported by the current cycle stats.
    """
    MENSTRUAL = "menstrual"
    FOLLICULAR = "follicular"
    OVULATORY = "ovulatory"
    LUTEAL = "luteal"
