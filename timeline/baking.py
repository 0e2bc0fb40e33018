"""
Baking / Export Sampler

Turns the authored loop into time-stamped frames for the encoders.

ACCURATE mode walks the loop every SAMPLE_INTERVAL_MS and re-solves IK for
every attached hand against the interpolated prop anchors, so a hand riding
a barbell that moves in a straight line traces the arc the arm really
makes. INTERPOLATED mode emits one frame per keyframe (plus the wrap frame)
and leaves the in-between to the player's linear blending.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from rig.skeleton import Pose, Rig
from scene.attachments import Attachments, pin_attached_hands
from scene.props import Prop, PropTransform

from .interpolator import Keyframe, interpolate, locate, total_duration

logger = logging.getLogger(__name__)

SAMPLE_INTERVAL_MS = 30.0


class BakeMode(Enum):
    ACCURATE = "accurate"
    INTERPOLATED = "interpolated"


@dataclass(frozen=True)
class BakeSnapshot:
    """Frozen copy of everything a bake reads."""
    rig: Rig
    keyframes: Tuple[Keyframe, ...]
    props: Tuple[Prop, ...]
    attachments: Attachments
    arms_in_front: bool = False

    @classmethod
    def from_session(cls, state) -> "BakeSnapshot":
        # Keyframes hold mutable dicts; copy them so later edits cannot leak in
        return cls(
            rig=state.rig,
            keyframes=tuple(copy.deepcopy(list(state.keyframes))),
            props=tuple(state.props),
            attachments=dict(state.attachments),
            arms_in_front=state.arms_in_front,
        )

    def live_transforms(self) -> Dict[str, PropTransform]:
        return {p.id: p.transform for p in self.props}


@dataclass(frozen=True)
class BakedFrame:
    time: float
    pose: Pose
    props: Dict[str, PropTransform]


@dataclass
class BakeResult:
    """Sampled loop plus per-track curve views."""
    total_duration: float
    mode: BakeMode
    frames: List[BakedFrame] = field(default_factory=list)

    def percent(self, time: float) -> float:
        """Time as a percentage of the loop."""
        if self.total_duration <= 0:
            return 0.0
        return time / self.total_duration * 100.0

    def bone_curves(self) -> Dict[str, List[Tuple[float, float]]]:
        curves: Dict[str, List[Tuple[float, float]]] = {}
        for frame in self.frames:
            for bone_id, angle in frame.pose.items():
                curves.setdefault(bone_id, []).append((frame.time, angle))
        return curves

    def prop_curves(self) -> Dict[str, List[Tuple[float, PropTransform]]]:
        curves: Dict[str, List[Tuple[float, PropTransform]]] = {}
        for frame in self.frames:
            for prop_id, transform in frame.props.items():
                curves.setdefault(prop_id, []).append((frame.time, transform))
        return curves


def resolve_sample(snapshot: BakeSnapshot, index: int, progress: float) -> Tuple[Pose, Dict[str, PropTransform]]:
    """
    Interpolated pose/props at (keyframe index, progress), with every
    attached hand re-solved onto its prop anchor.
    """
    pose, transforms = interpolate(snapshot.keyframes, index, progress, snapshot.live_transforms())
    pose = pin_attached_hands(
        snapshot.rig, pose, list(snapshot.props), snapshot.attachments, transforms=transforms
    )
    return pose, transforms


def sample_times(loop: float, interval: float = SAMPLE_INTERVAL_MS) -> List[float]:
    """0, interval, 2*interval, ... and always the loop end itself."""
    if not math.isfinite(loop):
        raise ValueError(f"Cannot sample a loop of {loop} ms")
    times: List[float] = []
    step = 0
    while step * interval < loop:
        times.append(step * interval)
        step += 1
    times.append(loop)
    return times


def bake(snapshot: BakeSnapshot, mode: BakeMode = BakeMode.ACCURATE) -> BakeResult:
    """
    Sample the loop.

    Args:
        snapshot: Frozen session data (see BakeSnapshot.from_session)
        mode: ACCURATE or INTERPOLATED

    Returns:
        BakeResult spanning [0, total duration]
    """
    keyframes = snapshot.keyframes
    loop = total_duration(keyframes)
    result = BakeResult(total_duration=loop, mode=mode)

    if mode is BakeMode.ACCURATE:
        for time in sample_times(loop):
            index, progress = locate(keyframes, time)
            pose, transforms = resolve_sample(snapshot, index, progress)
            result.frames.append(BakedFrame(time=time, pose=pose, props=transforms))
    else:
        live = snapshot.live_transforms()
        accumulated = 0.0
        for kf in keyframes:
            result.frames.append(_keyframe_sample(accumulated, kf, live))
            accumulated += kf.duration
        result.frames.append(_keyframe_sample(loop, keyframes[0], live))

    logger.info(f"Baked {len(result.frames)} frames ({mode.value}, {loop:.0f} ms loop)")
    return result


def _keyframe_sample(time: float, kf: Keyframe, live: Dict[str, PropTransform]) -> BakedFrame:
    props = {prop_id: kf.prop_transforms.get(prop_id, tr) for prop_id, tr in live.items()}
    return BakedFrame(time=time, pose=dict(kf.pose), props=props)
