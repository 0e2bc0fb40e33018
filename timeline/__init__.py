"""
Keyframe timeline, playback clock and the export sampler.
"""

__all__ = [
    "interpolator",
    "baking",
]
