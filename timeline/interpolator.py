"""
Keyframe Timeline & Interpolator

Authored keyframes form a closed loop: each keyframe's duration is the time
taken to reach it from the previous one, and the frame after the last is
the first. Interpolation is plain componentwise linear blending of bone
angles and prop transform scalars; it knows nothing about IK.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple

from scene.props import PropTransform

DEFAULT_DURATION = 500.0


@dataclass(frozen=True)
class Keyframe:
    """An authored pose + prop snapshot."""
    id: str
    duration: float
    pose: Dict[str, float]
    prop_transforms: Dict[str, PropTransform] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "duration": self.duration,
            "pose": dict(self.pose),
            "propTransforms": {pid: tr.to_dict() for pid, tr in self.prop_transforms.items()},
        }


def new_keyframe_id() -> str:
    return str(uuid.uuid4())


def total_duration(keyframes: Sequence[Keyframe]) -> float:
    return sum(kf.duration for kf in keyframes)


def _lerp(a: float, b: float, t: float) -> float:
    return a * (1.0 - t) + b * t


def interpolate(
    keyframes: Sequence[Keyframe],
    index: int,
    progress: float,
    live_transforms: Mapping[str, PropTransform],
) -> Tuple[Dict[str, float], Dict[str, PropTransform]]:
    """
    Blend keyframe `index` toward the next one (wrapping after the last).

    Args:
        keyframes: Ordered keyframes (at least one)
        index: Active keyframe index
        progress: Fraction in [0, 1] toward the next keyframe
        live_transforms: Live transform of every prop; stands in for a prop
            missing from either endpoint

    Returns:
        (pose, prop transforms)
    """
    start = keyframes[index]
    end = keyframes[(index + 1) % len(keyframes)]

    pose: Dict[str, float] = {}
    for bone_id, a in start.pose.items():
        b = end.pose.get(bone_id, a)
        pose[bone_id] = _lerp(a, b, progress)

    transforms: Dict[str, PropTransform] = {}
    for prop_id, live in live_transforms.items():
        tr_start = start.prop_transforms.get(prop_id, live)
        tr_end = end.prop_transforms.get(prop_id, live)
        transforms[prop_id] = tr_start.lerp(tr_end, progress)

    return pose, transforms


def locate(keyframes: Sequence[Keyframe], time_ms: float) -> Tuple[int, float]:
    """
    Find the active keyframe and progress at a loop time.

    Times at or past the loop end resolve to the last keyframe at progress 1
    (which interpolates to the first keyframe).
    """
    accumulated = 0.0
    for i, kf in enumerate(keyframes):
        if time_ms < accumulated + kf.duration:
            progress = (time_ms - accumulated) / kf.duration
            return i, min(1.0, max(0.0, progress))
        accumulated += kf.duration
    return len(keyframes) - 1, 1.0


@dataclass(frozen=True)
class PlaybackClock:
    """Which keyframe is playing and how far into it we are (ms)."""
    index: int = 0
    elapsed: float = 0.0

    def progress(self, keyframes: Sequence[Keyframe]) -> float:
        duration = keyframes[self.index].duration
        return min(1.0, max(0.0, self.elapsed / duration))

    def advance(self, keyframes: Sequence[Keyframe], dt: float) -> "PlaybackClock":
        """Move forward by `dt` ms, rolling over into following keyframes."""
        if not keyframes:
            return PlaybackClock()
        index = self.index % len(keyframes)
        elapsed = self.elapsed + max(0.0, dt)
        loop = total_duration(keyframes)
        if loop > 0 and elapsed >= loop:
            # A whole loop lands back on the same keyframe
            elapsed %= loop
        while elapsed >= keyframes[index].duration:
            elapsed -= keyframes[index].duration
            index = (index + 1) % len(keyframes)
        return PlaybackClock(index=index, elapsed=elapsed)


def keyframe_index(keyframes: List[Keyframe], frame_id: str) -> int:
    """Index of `frame_id`, or -1."""
    return next((i for i, kf in enumerate(keyframes) if kf.id == frame_id), -1)
