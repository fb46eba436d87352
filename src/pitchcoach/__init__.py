"""Pitch practice engine: pitch detection, score following and scoring."""

from .config import EngineConfig, load_config
from .engine import PracticeEngine, SessionState
from .estimator import FrequencyEstimator
from .follower import ScoreFollower
from .loader import load_song
from .models import ComparisonResult, Measure, Note, PracticeScore, PracticeSession, Song
from .pipeline import PitchPipeline
from .scoring import ScoreCalculator
from .smoother import FrequencySmoother

__all__ = [
    "ComparisonResult",
    "EngineConfig",
    "FrequencyEstimator",
    "FrequencySmoother",
    "Measure",
    "Note",
    "PitchPipeline",
    "PracticeEngine",
    "PracticeScore",
    "PracticeSession",
    "ScoreCalculator",
    "ScoreFollower",
    "SessionState",
    "Song",
    "load_config",
    "load_song",
]
