"""Engine package running the verification, envelope, dip and energy analytics."""

from .analyze import AnalysisResult, analyze

__all__ = ["analyze", "AnalysisResult"]
