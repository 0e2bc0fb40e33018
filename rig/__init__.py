"""
Skeleton definition, forward kinematics and two-bone IK for 2D figures.
"""

from .skeleton import BoneDef, GlobalTransform, IKChain, Pose, Rig, normalize_angle, rotate_point
from .human_rig import create_human_rig, get_human_rig
from .ik import solve_two_bone_ik

__all__ = [
    "BoneDef",
    "GlobalTransform",
    "IKChain",
    "Pose",
    "Rig",
    "normalize_angle",
    "rotate_point",
    "create_human_rig",
    "get_human_rig",
    "solve_two_bone_ik",
]
