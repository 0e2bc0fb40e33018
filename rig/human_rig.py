"""
Built-in rig for the gym figure.

Bone ids follow the `<part>_<L|R>` convention used by the Spine exporter
("upper_arm_L", "lower_leg_R", ...). Pivot offsets are expressed in the
parent's frame with the figure standing upright in a 400x500 canvas.

Three static tables live here:

    HUMAN_BONES   - the bone definitions (immutable, defined once)
    MIRROR_MAP    - left <-> right partners for mirrored edits
    IK_CHAINS     - two-link chains for hands and feet, each with a fixed
                    bend sign so elbows point backward/down and knees
                    point outward by default
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .skeleton import BoneDef, IKChain, Rig

SKIN = "#fca5a5"
SHORTS = "#1f2937"

HUMAN_BONES: List[BoneDef] = [
    BoneDef("root", None, 200, 320, draw_order=15, name="Waist", color="#d97706",
            path="M-17,-6 L17,-6 L17,6 L-17,6 Z"),
    BoneDef("torso", "root", 0, 0, draw_order=10, name="Torso", color="#3b82f6",
            path="M-15,0 C-15,0 -30,-45 -36,-75 L36,-75 C30,-45 15,0 15,0 Z"),
    BoneDef("neck", "torso", 0, -75, draw_order=9, name="Neck", color=SKIN,
            path="M-7,0 L7,0 L7,-12 L-7,-12 Z"),
    BoneDef("head", "neck", 0, -12, draw_order=20, name="Head", color=SKIN,
            path="M-9,10 L9,10 L13,-5 L14,-25 C14,-45 8,-50 0,-50 C-8,-50 -14,-45 -14,-25 L-13,-5 Z"),
    BoneDef("hips", "root", 0, 0, draw_order=12, name="Hips", color=SHORTS,
            path="M-16,0 L16,0 C16,0 20,20 14,25 L-14,25 C-20,20 -16,0 -16,0 Z"),

    # Left arm
    BoneDef("upper_arm_L", "torso", -30, -70, length=60, draw_order=5, rest_angle=45,
            name="Upper Arm L", color=SKIN,
            path="M-12,0 C-17,15 -17,40 -10,60 L10,60 C17,40 17,15 12,0 Z"),
    BoneDef("lower_arm_L", "upper_arm_L", 0, 60, length=50, draw_order=4, rest_angle=10,
            name="Lower Arm L", color=SKIN,
            path="M-10,0 C-13,10 -12,35 -7,50 L7,50 C12,35 13,10 10,0 Z"),
    BoneDef("hand_L", "lower_arm_L", 0, 50, length=15, draw_order=3,
            name="Hand L", color=SKIN, path="M-6,0 L6,0 L6,0 L5,15 L-5,15 Z"),

    # Right arm
    BoneDef("upper_arm_R", "torso", 30, -70, length=60, draw_order=5, rest_angle=-45,
            name="Upper Arm R", color=SKIN,
            path="M-12,0 C-17,15 -17,40 -10,60 L10,60 C17,40 17,15 12,0 Z"),
    BoneDef("lower_arm_R", "upper_arm_R", 0, 60, length=50, draw_order=4, rest_angle=-10,
            name="Lower Arm R", color=SKIN,
            path="M-10,0 C-13,10 -12,35 -7,50 L7,50 C12,35 13,10 10,0 Z"),
    BoneDef("hand_R", "lower_arm_R", 0, 50, length=15, draw_order=3,
            name="Hand R", color=SKIN, path="M-6,0 L6,0 L6,0 L5,15 L-5,15 Z"),

    # Legs (parented to hips)
    BoneDef("upper_leg_L", "hips", -10, 20, length=70, draw_order=6, rest_angle=10,
            name="Thigh L", color=SHORTS,
            path="M-13,0 C-20,20 -18,50 -10,70 L10,70 C18,50 20,20 13,0 Z"),
    BoneDef("lower_leg_L", "upper_leg_L", 0, 70, length=60, draw_order=5,
            name="Calf L", color=SKIN,
            path="M-10,0 C-14,15 -13,45 -7,60 L7,60 C13,45 14,15 10,0 Z"),
    BoneDef("foot_L", "lower_leg_L", 0, 60, length=20, draw_order=4, rest_angle=90,
            name="Foot L", color="#ffffff", path="M-6,0 L6,0 L6,8 C6,18 2,22 -4,22 L-6,22 Z"),

    BoneDef("upper_leg_R", "hips", 10, 20, length=70, draw_order=6, rest_angle=-10,
            name="Thigh R", color=SHORTS,
            path="M-13,0 C-20,20 -18,50 -10,70 L10,70 C18,50 20,20 13,0 Z"),
    BoneDef("lower_leg_R", "upper_leg_R", 0, 70, length=60, draw_order=5,
            name="Calf R", color=SKIN,
            path="M-10,0 C-14,15 -13,45 -7,60 L7,60 C13,45 14,15 10,0 Z"),
    BoneDef("foot_R", "lower_leg_R", 0, 60, length=20, draw_order=4, rest_angle=-90,
            name="Foot R", color="#ffffff", path="M-6,0 L6,0 L6,8 C6,18 2,22 -4,22 L-6,22 Z"),
]


def _pair(left: str, right: str) -> Dict[str, str]:
    return {left: right, right: left}


# Spine, torso, neck, head, hips and root have no partner.
MIRROR_MAP: Dict[str, str] = {}
for _part in ("upper_arm", "lower_arm", "hand", "upper_leg", "lower_leg", "foot"):
    MIRROR_MAP.update(_pair(f"{_part}_L", f"{_part}_R"))


IK_CHAINS: List[IKChain] = [
    IKChain(upper="upper_arm_L", lower="lower_arm_L", end="hand_L", bend_sign=-1),
    IKChain(upper="upper_arm_R", lower="lower_arm_R", end="hand_R", bend_sign=1),
    IKChain(upper="upper_leg_L", lower="lower_leg_L", end="foot_L", bend_sign=1),
    IKChain(upper="upper_leg_R", lower="lower_leg_R", end="foot_R", bend_sign=-1),
]

HAND_BONES = ("hand_L", "hand_R")

# Bones lifted by the "arms in front" draw-order toggle
ARM_BONES = tuple(f"{part}_{side}" for side in ("L", "R") for part in ("upper_arm", "lower_arm", "hand"))


_default_rig: Optional[Rig] = None


def create_human_rig() -> Rig:
    """Build a fresh humanoid rig from the static tables."""
    return Rig(HUMAN_BONES, IK_CHAINS, MIRROR_MAP, grip_bones=HAND_BONES, arm_bones=ARM_BONES)


def get_human_rig() -> Rig:
    """Get the shared humanoid rig instance."""
    global _default_rig
    if _default_rig is None:
        _default_rig = create_human_rig()
    return _default_rig
