"""
Skeleton Model

Static bone hierarchy plus forward kinematics for a 2D rig.

Coordinates are screen-like (x right, y down). A bone's local angle is
relative to its parent; 0 degrees means the bone points along +Y of its
parent's frame (straight down for an unrotated root).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

Pose = Dict[str, float]

# Draw-order lift applied to arm bones when arms are drawn in front of the body
ARMS_IN_FRONT_BOOST = 20


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees into (-180, 180]."""
    a = math.fmod(angle, 360.0)
    if a > 180.0:
        a -= 360.0
    elif a <= -180.0:
        a += 360.0
    return a


def rotate_point(x: float, y: float, angle_degrees: float) -> Tuple[float, float]:
    """Rotates a point (x,y) around (0,0)."""
    rad = math.radians(angle_degrees)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    new_x = x * cos_a - y * sin_a
    new_y = x * sin_a + y * cos_a
    return new_x, new_y


@dataclass(frozen=True)
class GlobalTransform:
    """World-space pivot position and orientation of a bone."""
    x: float
    y: float
    angle: float


ORIGIN = GlobalTransform(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class BoneDef:
    """
    Immutable bone definition.

    Attributes:
        id: Stable bone identifier, e.g. "upper_arm_L".
        parent_id: Parent bone id, or None for a root bone.
        pivot_x, pivot_y: Pivot offset in the parent's frame.
        length: Nominal link length used by IK.
        draw_order: Painter's order for renderers (higher draws on top).
        rest_angle: Local angle used when a pose does not set one.
        name: Display name.
        path: SVG path data for the bone shape (opaque to the core).
        color: Fill colour (opaque to the core).
    """
    id: str
    parent_id: Optional[str]
    pivot_x: float
    pivot_y: float
    length: float = 0.0
    draw_order: int = 0
    rest_angle: float = 0.0
    name: str = ""
    path: str = ""
    color: str = "#fca5a5"


@dataclass(frozen=True)
class IKChain:
    """Two-link chain driven by an end effector (hand or foot)."""
    upper: str
    lower: str
    end: str
    bend_sign: int = 1


class Rig:
    """
    A validated forest of bones with its IK chain and mirror tables.
    """

    def __init__(
        self,
        bones: Iterable[BoneDef],
        ik_chains: Iterable[IKChain] = (),
        mirror_map: Optional[Mapping[str, str]] = None,
        grip_bones: Iterable[str] = (),
        arm_bones: Iterable[str] = (),
    ):
        self.bones: Dict[str, BoneDef] = {}
        for bone in bones:
            if bone.id in self.bones:
                raise ValueError(f"Duplicate bone id: {bone.id}")
            self.bones[bone.id] = bone

        for bone in self.bones.values():
            if bone.parent_id is not None and bone.parent_id not in self.bones:
                raise ValueError(f"Bone '{bone.id}' references unknown parent '{bone.parent_id}'")
        self._check_acyclic()

        self.ik_chains: Dict[str, IKChain] = {}
        for chain in ik_chains:
            for bone_id in (chain.upper, chain.lower, chain.end):
                if bone_id not in self.bones:
                    raise ValueError(f"IK chain references unknown bone '{bone_id}'")
            self.ik_chains[chain.end] = chain

        self.mirror_map: Dict[str, str] = dict(mirror_map or {})
        for source, partner in self.mirror_map.items():
            if source not in self.bones or partner not in self.bones:
                raise ValueError(f"Mirror pair {source}<->{partner} references unknown bone")

        # Bones allowed to grab snap points (hands)
        self.grip_bones = frozenset(grip_bones)
        for bone_id in self.grip_bones:
            if bone_id not in self.bones:
                raise ValueError(f"Grip bone '{bone_id}' is not part of the rig")

        self.arm_bones = frozenset(arm_bones)
        for bone_id in self.arm_bones:
            if bone_id not in self.bones:
                raise ValueError(f"Arm bone '{bone_id}' is not part of the rig")

    def _check_acyclic(self):
        for bone in self.bones.values():
            seen = {bone.id}
            parent_id = bone.parent_id
            while parent_id is not None:
                if parent_id in seen:
                    raise ValueError(f"Bone hierarchy has a cycle through '{parent_id}'")
                seen.add(parent_id)
                parent_id = self.bones[parent_id].parent_id

    # --- Lookups ---

    def bone(self, bone_id: str) -> Optional[BoneDef]:
        return self.bones.get(bone_id)

    @property
    def roots(self) -> List[BoneDef]:
        return [b for b in self.bones.values() if b.parent_id is None]

    def chain_for(self, end_id: str) -> Optional[IKChain]:
        """Get the IK chain whose end effector is `end_id`."""
        return self.ik_chains.get(end_id)

    def bend_sign(self, upper_id: str) -> int:
        for chain in self.ik_chains.values():
            if chain.upper == upper_id:
                return chain.bend_sign
        return 1

    def mirror_of(self, bone_id: str) -> Optional[str]:
        return self.mirror_map.get(bone_id)

    def draw_sequence(self, arms_in_front: bool = False) -> List[BoneDef]:
        """
        Bones sorted back-to-front.

        With `arms_in_front`, arm bones are lifted by ARMS_IN_FRONT_BOOST so
        they paint over the torso and head.
        """
        def depth(bone: BoneDef) -> int:
            if arms_in_front and bone.id in self.arm_bones:
                return bone.draw_order + ARMS_IN_FRONT_BOOST
            return bone.draw_order

        return sorted(self.bones.values(), key=depth)

    # --- Poses ---

    def rest_pose(self) -> Pose:
        return {bone_id: bone.rest_angle for bone_id, bone in self.bones.items()}

    def complete_pose(self, partial: Mapping[str, float]) -> Pose:
        """Fill a partial pose with rest angles and drop unknown bone ids."""
        pose = self.rest_pose()
        for bone_id, angle in partial.items():
            if bone_id in pose:
                pose[bone_id] = float(angle)
        return pose

    # --- Forward kinematics ---

    def global_transform(self, bone_id: Optional[str], pose: Mapping[str, float]) -> GlobalTransform:
        """
        Compose parent transforms down to `bone_id`.

        Unknown ids (and None) resolve to the origin.
        """
        if bone_id is None:
            return ORIGIN
        bone = self.bones.get(bone_id)
        if bone is None:
            return ORIGIN
        parent = self.global_transform(bone.parent_id, pose)
        return self._compose(parent, bone, pose)

    def global_transforms(self, pose: Mapping[str, float]) -> Dict[str, GlobalTransform]:
        """Evaluate every bone once, reusing each parent's result."""
        cache: Dict[str, GlobalTransform] = {}

        def resolve(bone_id: str) -> GlobalTransform:
            if bone_id in cache:
                return cache[bone_id]
            bone = self.bones[bone_id]
            parent = resolve(bone.parent_id) if bone.parent_id is not None else ORIGIN
            cache[bone_id] = self._compose(parent, bone, pose)
            return cache[bone_id]

        for bone_id in self.bones:
            resolve(bone_id)
        return cache

    @staticmethod
    def _compose(parent: GlobalTransform, bone: BoneDef, pose: Mapping[str, float]) -> GlobalTransform:
        # The pivot offset lives in the parent's rotated frame
        rx, ry = rotate_point(bone.pivot_x, bone.pivot_y, parent.angle)
        return GlobalTransform(
            x=parent.x + rx,
            y=parent.y + ry,
            angle=parent.angle + pose.get(bone.id, bone.rest_angle),
        )
