"""
Animation Engine

Spine animation model plus the bridge from baked gym loops to Spine 4.1
skeleton JSON.

The rig works in screen space (y down, a bone at angle 0 points down its
parent's +Y). Spine is y-up with angle 0 along +X, so every value crossing
the bridge is flipped:

    world rotation   spine = -90 - rig
    local rotation   spine = -rig
    pivot offset     spine (x, y) = rig (py, px)  (parent's bone axis is its +X)
    prop position    spine (x, y) = (x, -y)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from rig.skeleton import Rig
from scene.props import Prop
from timeline.baking import SAMPLE_INTERVAL_MS, BakeResult

SPINE_VERSION = "4.1.0"


@dataclass
class Keyframe:
    """Represents a single keyframe in an animation (linear curve)."""
    time: float
    value: Union[float, List[float]]


@dataclass
class BoneTimeline:
    """Animation timeline for a single bone."""
    bone_name: str
    rotate_keys: List[Keyframe] = field(default_factory=list)
    translate_keys: List[Keyframe] = field(default_factory=list)
    scale_keys: List[Keyframe] = field(default_factory=list)

    def add_rotation(self, time: float, angle: float):
        """Add a rotation keyframe."""
        self.rotate_keys.append(Keyframe(time=time, value=angle))
        self.rotate_keys.sort(key=lambda k: k.time)

    def add_translation(self, time: float, x: float, y: float):
        """Add a translation keyframe."""
        self.translate_keys.append(Keyframe(time=time, value=[x, y]))
        self.translate_keys.sort(key=lambda k: k.time)

    def add_scale(self, time: float, scale_x: float, scale_y: float):
        """Add a scale keyframe."""
        self.scale_keys.append(Keyframe(time=time, value=[scale_x, scale_y]))
        self.scale_keys.sort(key=lambda k: k.time)


@dataclass
class Animation:
    """Represents a complete animation (times in seconds)."""
    name: str
    duration: float
    bone_timelines: Dict[str, BoneTimeline] = field(default_factory=dict)

    def get_or_create_bone_timeline(self, bone_name: str) -> BoneTimeline:
        """Get existing timeline or create a new one for a bone."""
        if bone_name not in self.bone_timelines:
            self.bone_timelines[bone_name] = BoneTimeline(bone_name=bone_name)
        return self.bone_timelines[bone_name]


class AnimationEngine:
    """
    Collects animations and exports them to Spine JSON format.
    """

    def __init__(self):
        self.animations: Dict[str, Animation] = {}

    def add_animation(self, animation: Animation) -> Animation:
        self.animations[animation.name] = animation
        return animation

    def export_to_spine_json(self) -> Dict[str, Any]:
        """
        Export all animations to Spine JSON format.

        Returns:
            Dict in Spine animation format ready to be added to skeleton JSON
        """
        animations_json = {}

        for anim_name, animation in self.animations.items():
            anim_data = {"bones": {}}

            for bone_name, timeline in animation.bone_timelines.items():
                bone_data = {}

                if timeline.rotate_keys:
                    bone_data["rotate"] = [
                        self._export_keyframe(kf, "rotate")
                        for kf in timeline.rotate_keys
                    ]

                if timeline.translate_keys:
                    bone_data["translate"] = [
                        self._export_keyframe(kf, "translate")
                        for kf in timeline.translate_keys
                    ]

                if timeline.scale_keys:
                    bone_data["scale"] = [
                        self._export_keyframe(kf, "scale")
                        for kf in timeline.scale_keys
                    ]

                if bone_data:
                    anim_data["bones"][bone_name] = bone_data

            animations_json[anim_name] = anim_data

        return animations_json

    def _export_keyframe(self, keyframe: Keyframe, timeline_type: str) -> Dict[str, Any]:
        """
        Export a single keyframe to Spine JSON format. Linear is Spine's
        default curve, so no "curve" key is written.
        """
        kf_data = {"time": round(keyframe.time, 4)}

        if timeline_type == "rotate":
            kf_data["value"] = round(keyframe.value, 2)
        elif timeline_type == "translate":
            kf_data["x"] = round(keyframe.value[0], 2)
            kf_data["y"] = round(keyframe.value[1], 2)
        elif timeline_type == "scale":
            kf_data["x"] = round(keyframe.value[0], 4)
            kf_data["y"] = round(keyframe.value[1], 4)

        return kf_data


# --- Baked loop -> Spine ---

def prop_bone_name(prop_id: str) -> str:
    return f"prop_{prop_id}"


def parent_first(rig: Rig) -> List[str]:
    """Bone ids ordered so every parent precedes its children."""
    children: Dict[Optional[str], List[str]] = {}
    for bone in rig.bones.values():
        if bone.parent_id is not None:
            children.setdefault(bone.parent_id, []).append(bone.id)

    ordered: List[str] = []
    queue = [root.id for root in rig.roots]
    while queue:
        bone_id = queue.pop(0)
        ordered.append(bone_id)
        queue.extend(children.get(bone_id, []))
    return ordered


def animation_from_bake(
    rig: Rig,
    props: Sequence[Prop],
    result: BakeResult,
    name: str = "animation",
) -> Animation:
    """
    Convert baked frames into Spine timelines.

    Rotate keys are offsets from each bone's setup (rest) rotation. Prop
    bones have an identity setup pose, so their keys are absolute.
    """
    animation = Animation(name=name, duration=result.total_duration / 1000.0)

    for bone_id, curve in result.bone_curves().items():
        bone = rig.bone(bone_id)
        if bone is None:
            continue
        timeline = animation.get_or_create_bone_timeline(bone_id)
        for time_ms, angle in curve:
            timeline.add_rotation(time_ms / 1000.0, bone.rest_angle - angle)

    known = {p.id for p in props}
    for prop_id, curve in result.prop_curves().items():
        if prop_id not in known:
            continue
        timeline = animation.get_or_create_bone_timeline(prop_bone_name(prop_id))
        for time_ms, tr in curve:
            t = time_ms / 1000.0
            timeline.add_translation(t, tr.x, -tr.y)
            timeline.add_rotation(t, -tr.rotation)
            timeline.add_scale(t, tr.scale_x, tr.scale_y)

    return animation


def _bone_setup(rig: Rig, bone_id: str) -> Dict[str, Any]:
    bone = rig.bones[bone_id]
    if bone.parent_id is None:
        data = {
            "name": bone.id,
            "x": round(bone.pivot_x, 2),
            "y": round(-bone.pivot_y, 2),
            "rotation": round(-90.0 - bone.rest_angle, 2),
        }
    else:
        data = {
            "name": bone.id,
            "parent": bone.parent_id,
            "x": round(bone.pivot_y, 2),
            "y": round(bone.pivot_x, 2),
            "rotation": round(-bone.rest_angle, 2),
        }
    if bone.length:
        data["length"] = round(bone.length, 2)
    return data


def build_skeleton_json(
    rig: Rig,
    props: Sequence[Prop],
    result: BakeResult,
    name: str = "animation",
) -> Dict[str, Any]:
    """
    Full Spine skeleton JSON: rig bones, one root-level bone per prop and a
    single animation built from `result`.
    """
    bones = [_bone_setup(rig, bone_id) for bone_id in parent_first(rig)]
    bones.extend({"name": prop_bone_name(p.id), "x": 0, "y": 0, "rotation": 0} for p in props)

    engine = AnimationEngine()
    engine.add_animation(animation_from_bake(rig, props, result, name))

    return {
        "skeleton": {"spine": SPINE_VERSION, "fps": round(1000.0 / SAMPLE_INTERVAL_MS, 2)},
        "bones": bones,
        "slots": [],
        "skins": [{"name": "default", "attachments": {}}],
        "animations": engine.export_to_spine_json(),
    }
