"""
Editing Session

The whole mutable scene (pose, props, attachments, keyframes, playback) is
one SessionState value. Every edit is a function `edit(state, ...) -> state`
that returns a new state and never mutates its input, so the caller can
swap the result in atomically and an edit is never observed half-applied.

Edits that touch the pose or props also write the result into the current
keyframe, which is how authoring works: you pose the figure and the
selected frame records it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from rig.human_rig import get_human_rig
from rig.ik import aim_angle, solve_two_bone_ik
from rig.skeleton import Pose, Rig
from timeline.baking import BakeSnapshot, resolve_sample
from timeline.interpolator import (
    DEFAULT_DURATION,
    Keyframe,
    PlaybackClock,
    keyframe_index,
    new_keyframe_id,
)

from .attachments import Attachments, pin_attached_hands, pin_hand_rotation, resolve_drag_target
from .co_motion import apply_mirror, sync_hand_driven_props
from .props import (
    Prop,
    PropCategory,
    PropTransform,
    SnapPoint,
    TRANSFORM_KEYS,
    find_prop,
    new_prop_id,
    prop_from_preset,
    PROP_PRESETS,
)

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


class EditError(ValueError):
    """An edit command referenced something that does not exist or was malformed."""


@dataclass(frozen=True)
class SessionState:
    rig: Rig
    pose: Dict[str, float]
    props: List[Prop] = field(default_factory=list)
    attachments: Attachments = field(default_factory=dict)
    keyframes: List[Keyframe] = field(default_factory=list)
    current_frame_id: str = ""
    mirror_mode: bool = False
    arms_in_front: bool = False
    playback: Optional[PlaybackClock] = None

    @property
    def is_playing(self) -> bool:
        return self.playback is not None

    @property
    def current_frame(self) -> Keyframe:
        index = keyframe_index(self.keyframes, self.current_frame_id)
        return self.keyframes[index if index >= 0 else 0]

    def to_dict(self) -> Dict[str, object]:
        return {
            "pose": dict(self.pose),
            "props": [p.to_dict() for p in self.props],
            "attachments": {hand: a.to_dict() for hand, a in self.attachments.items()},
            "keyframes": [kf.to_dict() for kf in self.keyframes],
            "currentFrameId": self.current_frame_id,
            "mirrorMode": self.mirror_mode,
            "armsInFront": self.arms_in_front,
            "isPlaying": self.is_playing,
        }


def new_session(rig: Optional[Rig] = None) -> SessionState:
    """Fresh session: one keyframe holding the rest pose, no props."""
    rig = rig or get_human_rig()
    pose = rig.rest_pose()
    first = Keyframe(id=new_keyframe_id(), duration=DEFAULT_DURATION, pose=dict(pose))
    return SessionState(rig=rig, pose=pose, keyframes=[first], current_frame_id=first.id)


# --- Internal helpers ---

def _require_bone(state: SessionState, bone_id: str):
    bone = state.rig.bone(bone_id)
    if bone is None:
        raise EditError(f"Unknown bone: {bone_id}")
    return bone


def _require_prop(state: SessionState, prop_id: str) -> Prop:
    prop = find_prop(state.props, prop_id)
    if prop is None:
        raise EditError(f"Unknown prop: {prop_id}")
    return prop


def _require_frame(state: SessionState, frame_id: str) -> int:
    index = keyframe_index(state.keyframes, frame_id)
    if index < 0:
        raise EditError(f"Unknown keyframe: {frame_id}")
    return index


def _finite(value: Any, name: str) -> float:
    """Coerce to float, rejecting NaN and infinities."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EditError(f"{name} must be a number")
    if not math.isfinite(number):
        raise EditError(f"{name} must be finite, got {value!r}")
    return number


def _finite_point(point: Point) -> Point:
    return _finite(point[0], "x"), _finite(point[1], "y")


def _positive_duration(duration: Any) -> float:
    duration = _finite(duration, "Keyframe duration")
    if duration <= 0:
        raise EditError("Keyframe duration must be positive")
    return duration


def _blocked_by_playback(state: SessionState, action: str) -> bool:
    if state.is_playing:
        logger.info(f"Ignoring {action} while playing")
        return True
    return False


def _commit(
    state: SessionState,
    pose: Pose,
    props: Optional[List[Prop]] = None,
    attachments: Optional[Attachments] = None,
) -> SessionState:
    """Swap in new live pose/props/attachments and record them in the current keyframe."""
    props = state.props if props is None else props
    attachments = state.attachments if attachments is None else attachments

    frame = state.current_frame
    transforms = dict(frame.prop_transforms)
    for prop in props:
        transforms[prop.id] = prop.transform
    new_frame = replace(frame, pose=dict(pose), prop_transforms=transforms)

    keyframes = [new_frame if kf.id == frame.id else kf for kf in state.keyframes]
    return replace(state, pose=dict(pose), props=list(props), attachments=dict(attachments), keyframes=keyframes)


def _after_pose_change(
    state: SessionState,
    pose: Pose,
    edited: Iterable[str],
    attachments: Optional[Attachments] = None,
) -> SessionState:
    """Mirror, then re-glue held free weights, then commit."""
    attachments = state.attachments if attachments is None else attachments
    if state.mirror_mode:
        pose = apply_mirror(state.rig, pose, edited)
    props, _ = sync_hand_driven_props(state.rig, pose, state.props, attachments)
    return _commit(state, pose, props, attachments)


# --- Pose edits ---

def drag_end_effector(state: SessionState, bone_id: str, point: Point) -> SessionState:
    """
    One drag tick of an IK end effector (hand or foot) toward `point`.

    Hands go through the snap engine first; a hand pinned to a prop is
    solved onto the anchor and keeps its captured grip angle.
    """
    if _blocked_by_playback(state, "drag"):
        return state
    _require_bone(state, bone_id)
    point = _finite_point(point)
    chain = state.rig.chain_for(bone_id)
    if chain is None:
        raise EditError(f"{bone_id} is not the end of an IK chain")

    target = point
    attachments = state.attachments
    pinned = False
    if bone_id in state.rig.grip_bones:
        resolution = resolve_drag_target(state.rig, state.pose, state.props, state.attachments, bone_id, point)
        target = resolution.target
        attachments = resolution.attachments
        pinned = resolution.pinned

    pose = dict(state.pose)
    edited = []
    result = solve_two_bone_ik(state.rig, chain.upper, chain.lower, target, pose)
    if result:
        pose.update(result)
        edited.extend([chain.upper, chain.lower])

    if pinned:
        attachment = attachments[bone_id]
        prop = find_prop(state.props, attachment.prop_id)
        pose = pin_hand_rotation(state.rig, pose, bone_id, prop.transform.rotation, attachment)

    return _after_pose_change(state, pose, edited, attachments)


def aim_bone(state: SessionState, bone_id: str, point: Point) -> SessionState:
    """Rotate a free (non-IK) bone so it points at `point`."""
    if _blocked_by_playback(state, "aim"):
        return state
    _require_bone(state, bone_id)
    angle = aim_angle(state.rig, bone_id, _finite_point(point), state.pose)
    if angle is None:
        return state
    pose = dict(state.pose)
    pose[bone_id] = angle
    return _after_pose_change(state, pose, [bone_id])


def set_bone_angle(state: SessionState, bone_id: str, angle: float) -> SessionState:
    """Slider edit of one bone's local angle."""
    if _blocked_by_playback(state, "rotation change"):
        return state
    _require_bone(state, bone_id)
    pose = dict(state.pose)
    pose[bone_id] = _finite(angle, "Angle")
    return _after_pose_change(state, pose, [bone_id])


def detach_hand(state: SessionState, hand_id: str) -> SessionState:
    if hand_id not in state.attachments:
        return state
    attachments = dict(state.attachments)
    del attachments[hand_id]
    return replace(state, attachments=attachments)


def set_mirror_mode(state: SessionState, enabled: bool) -> SessionState:
    return replace(state, mirror_mode=bool(enabled))


def set_arms_in_front(state: SessionState, enabled: bool) -> SessionState:
    """Toggle drawing the arms over the torso; affects rendering and SVG export only."""
    return replace(state, arms_in_front=bool(enabled))


# --- Prop edits ---

def update_prop_transform(state: SessionState, prop_id: str, **fields) -> SessionState:
    """
    Change any of x, y, rotation, scale_x, scale_y of a prop.

    Hands holding the prop are re-solved onto its new anchors in the same edit.
    """
    if _blocked_by_playback(state, "prop edit"):
        return state
    prop = _require_prop(state, prop_id)
    unknown = set(fields) - {"x", "y", "rotation", "scale_x", "scale_y"}
    if unknown:
        raise EditError(f"Unknown transform fields: {sorted(unknown)}")

    transform = replace(prop.transform, **{k: _finite(v, k) for k, v in fields.items()})
    return _place_prop(state, prop_id, transform)


def apply_prop_transform(state: SessionState, prop_id: str, data: Mapping[str, Any]) -> SessionState:
    """
    Same as update_prop_transform, but takes a transform dict as produced by
    PropTransform.to_dict (camelCase scale keys; snake_case is accepted too).
    Missing keys keep the prop's current values.
    """
    if _blocked_by_playback(state, "prop edit"):
        return state
    prop = _require_prop(state, prop_id)
    if not isinstance(data, Mapping):
        raise EditError("Transform must be an object")
    unknown = set(data) - TRANSFORM_KEYS
    if unknown:
        raise EditError(f"Unknown transform fields: {sorted(unknown)}")

    transform = PropTransform.from_dict(data, base=prop.transform)
    for name in ("x", "y", "rotation", "scale_x", "scale_y"):
        _finite(getattr(transform, name), name)
    return _place_prop(state, prop_id, transform)


def _place_prop(state: SessionState, prop_id: str, transform: PropTransform) -> SessionState:
    props = [p.with_transform(transform) if p.id == prop_id else p for p in state.props]
    pose = pin_attached_hands(state.rig, state.pose, props, state.attachments, prop_id=prop_id)
    return _commit(state, pose, props)


def move_prop(state: SessionState, prop_id: str, x: float, y: float) -> SessionState:
    return update_prop_transform(state, prop_id, x=x, y=y)


def add_prop(state: SessionState, prop: Prop) -> SessionState:
    """Register a prop and record its transform in every keyframe."""
    if find_prop(state.props, prop.id) is not None:
        raise EditError(f"Prop id already in use: {prop.id}")
    keyframes = [
        replace(kf, prop_transforms={**kf.prop_transforms, prop.id: prop.transform})
        for kf in state.keyframes
    ]
    return replace(state, props=state.props + [prop], keyframes=keyframes)


def add_preset_prop(state: SessionState, preset_key: str) -> SessionState:
    if preset_key not in PROP_PRESETS:
        raise EditError(f"Unknown preset: {preset_key}")
    return add_prop(state, prop_from_preset(preset_key))


def register_generated_prop(state: SessionState, result) -> SessionState:
    """
    Apply the outcome of a prop-generation request.

    A failed result leaves the state untouched. A successful one becomes a
    new prop with a single "center" snap point at its origin.
    """
    if not result.ok:
        logger.warning(f"Prop generation failed, scene unchanged: {result.error}")
        return state
    prop = Prop(
        id=new_prop_id(),
        name=result.name,
        category=result.category or PropCategory.FIXTURE,
        transform=PropTransform(),
        snap_points=(SnapPoint("center", "Center", 0, 0),),
        path=result.path,
        view_box=result.view_box,
        color="#cccccc",
    )
    return add_prop(state, prop)


def delete_prop(state: SessionState, prop_id: str) -> SessionState:
    """Remove a prop, any hands holding it, and its entries in every keyframe."""
    _require_prop(state, prop_id)
    attachments = {h: a for h, a in state.attachments.items() if a.prop_id != prop_id}
    keyframes = [
        replace(kf, prop_transforms={pid: tr for pid, tr in kf.prop_transforms.items() if pid != prop_id})
        for kf in state.keyframes
    ]
    props = [p for p in state.props if p.id != prop_id]
    return replace(state, props=props, attachments=attachments, keyframes=keyframes)


# --- Keyframe edits ---

def add_keyframe(state: SessionState, duration: float = DEFAULT_DURATION) -> SessionState:
    """Append a copy of the current keyframe and select it."""
    duration = _positive_duration(duration)
    frame = state.current_frame
    new_frame = Keyframe(
        id=new_keyframe_id(),
        duration=duration,
        pose=dict(frame.pose),
        prop_transforms=dict(frame.prop_transforms),
    )
    return replace(state, keyframes=state.keyframes + [new_frame], current_frame_id=new_frame.id)


def delete_keyframe(state: SessionState, frame_id: str) -> SessionState:
    """Delete a keyframe. Refused (state returned as-is) for the last remaining one."""
    _require_frame(state, frame_id)
    if len(state.keyframes) <= 1:
        logger.info("Refusing to delete the only keyframe")
        return state
    keyframes = [kf for kf in state.keyframes if kf.id != frame_id]
    new_state = replace(state, keyframes=keyframes)
    if state.current_frame_id == frame_id:
        new_state = _load_frame(new_state, keyframes[-1].id)
    return new_state


def set_keyframe_duration(state: SessionState, frame_id: str, duration: float) -> SessionState:
    index = _require_frame(state, frame_id)
    duration = _positive_duration(duration)
    keyframes = list(state.keyframes)
    keyframes[index] = replace(keyframes[index], duration=duration)
    return replace(state, keyframes=keyframes)


def _load_frame(state: SessionState, frame_id: str) -> SessionState:
    frame = state.keyframes[_require_frame(state, frame_id)]
    props = [
        p.with_transform(frame.prop_transforms[p.id]) if p.id in frame.prop_transforms else p
        for p in state.props
    ]
    return replace(
        state,
        current_frame_id=frame.id,
        pose=state.rig.complete_pose(frame.pose),
        props=props,
    )


def select_keyframe(state: SessionState, frame_id: str) -> SessionState:
    """Stop playback and load a keyframe into the live pose/props."""
    return _load_frame(replace(state, playback=None), frame_id)


# --- Playback ---

def start_playback(state: SessionState) -> SessionState:
    return replace(state, playback=PlaybackClock())


def stop_playback(state: SessionState) -> SessionState:
    """Discard the in-flight playback position and show the selected keyframe again."""
    if not state.is_playing:
        return state
    return _load_frame(replace(state, playback=None), state.current_frame_id)


def tick(state: SessionState, dt: float) -> SessionState:
    """
    Advance playback by `dt` ms and resolve the live pose/props for the new time.

    Authoring data (keyframes) is not touched.
    """
    if not state.is_playing:
        return state
    clock = state.playback.advance(state.keyframes, _finite(dt, "dt"))
    snapshot = BakeSnapshot(
        rig=state.rig,
        keyframes=tuple(state.keyframes),
        props=tuple(state.props),
        attachments=state.attachments,
    )
    pose, transforms = resolve_sample(snapshot, clock.index, clock.progress(state.keyframes))
    props = [p.with_transform(transforms.get(p.id, p.transform)) for p in state.props]
    return replace(state, playback=clock, pose=pose, props=props)
