"""
Two-Bone IK

Analytic solver for a two-link chain (shoulder-elbow-hand, hip-knee-foot)
using the law of cosines. Results are local-angle patches for the upper and
lower bones; the rest of the pose is never touched.
"""

from __future__ import annotations

import math
from typing import Dict, Mapping, Optional, Tuple

from .skeleton import Rig, normalize_angle

Point = Tuple[float, float]

# Fraction of full reach the end effector may be placed at. Full extension
# (1.0) makes the elbow angle numerically unstable.
MAX_REACH_RATIO = 0.999


def chain_start(rig: Rig, upper_id: str, pose: Mapping[str, float]) -> Point:
    """World position of the upper bone's pivot (shoulder or hip)."""
    start = rig.global_transform(upper_id, pose)
    return start.x, start.y


def clamp_to_reach(start: Point, target: Point, reach: float) -> Point:
    """Pull `target` in to MAX_REACH_RATIO * reach if it lies beyond it."""
    dx = target[0] - start[0]
    dy = target[1] - start[1]
    dist = math.hypot(dx, dy)
    max_dist = reach * MAX_REACH_RATIO
    scale = max_dist / dist if dist > max_dist else 1.0
    return start[0] + dx * scale, start[1] + dy * scale


def solve_two_bone_ik(
    rig: Rig,
    upper_id: str,
    lower_id: str,
    target: Point,
    pose: Mapping[str, float],
) -> Optional[Dict[str, float]]:
    """
    Solve local angles that put the chain's end at `target`.

    Args:
        rig: Rig holding the bone definitions
        upper_id: Upper bone of the chain (upper arm / thigh)
        lower_id: Lower bone of the chain (forearm / calf)
        target: World-space goal for the end of the lower bone
        pose: Current full pose (the parent chain above `upper_id` is read from it)

    Returns:
        {upper_id: angle, lower_id: angle} in degrees, or None if either bone is missing
    """
    upper = rig.bone(upper_id)
    lower = rig.bone(lower_id)
    if upper is None or lower is None:
        return None

    parent_angle = rig.global_transform(upper.parent_id, pose).angle
    start_x, start_y = chain_start(rig, upper_id, pose)

    l1 = upper.length
    l2 = lower.length
    tx, ty = clamp_to_reach((start_x, start_y), target, l1 + l2)

    cdx = tx - start_x
    cdy = ty - start_y
    c_dist = math.hypot(cdx, cdy)

    # Law of cosines at the shoulder. A target sitting on the shoulder has
    # no defined triangle; treat it as a straight chain.
    denominator = 2 * l1 * c_dist
    if denominator == 0:
        cos_alpha = 1.0
    else:
        cos_alpha = (l1 * l1 + c_dist * c_dist - l2 * l2) / denominator
    alpha = math.acos(max(-1.0, min(1.0, cos_alpha)))

    theta = math.atan2(cdy, cdx)
    bend_sign = rig.bend_sign(upper_id)

    upper_global_math = theta + bend_sign * alpha
    elbow_x = start_x + l1 * math.cos(upper_global_math)
    elbow_y = start_y + l1 * math.sin(upper_global_math)
    lower_global_math = math.atan2(ty - elbow_y, tx - elbow_x)

    # Math angles (0 = +X) to rig angles (0 = +Y)
    upper_global = math.degrees(upper_global_math) - 90
    lower_global = math.degrees(lower_global_math) - 90

    return {
        upper_id: normalize_angle(upper_global - parent_angle),
        lower_id: normalize_angle(lower_global - upper_global),
    }


def aim_angle(rig: Rig, bone_id: str, point: Point, pose: Mapping[str, float]) -> Optional[float]:
    """
    Local angle that points `bone_id` toward `point`, measured from the
    parent pivot (how a free bone follows the pointer while dragged).

    Returns None for unknown or root bones.
    """
    bone = rig.bone(bone_id)
    if bone is None or bone.parent_id is None:
        return None
    parent = rig.global_transform(bone.parent_id, pose)
    target_global = math.degrees(math.atan2(point[1] - parent.y, point[0] - parent.x)) - 90
    return normalize_angle(target_global - parent.angle)
