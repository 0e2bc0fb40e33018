"""
Attachment / Snap Engine

Each grip bone (hand) is either FREE or ATTACHED to one snap point of one
prop. Snapping only happens while the hand is being dragged; an attached
hand lets go once the pointer is pulled further than UNSNAP_THRESHOLD from
its anchor. The gap between the two thresholds keeps the hand from
flickering on and off at the boundary.

While attached, free weights follow the hand (see co_motion), every other
prop pins the hand: the arm is solved onto the anchor and the hand keeps
the grip angle captured when it snapped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from rig.ik import solve_two_bone_ik
from rig.skeleton import Pose, Rig, normalize_angle

from .props import Prop, PropTransform, find_prop, transform_point

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

SNAP_THRESHOLD = 20.0
UNSNAP_THRESHOLD = 50.0


@dataclass(frozen=True)
class Attachment:
    """Binding of a hand to a prop snap point, with the grip angle frozen at snap time."""
    prop_id: str
    snap_point_id: str
    rotation_offset: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "propId": self.prop_id,
            "snapPointId": self.snap_point_id,
            "rotationOffset": self.rotation_offset,
        }


Attachments = Dict[str, Attachment]


@dataclass(frozen=True)
class SnapCandidate:
    prop_id: str
    snap_point_id: str
    position: Point
    distance: float


@dataclass(frozen=True)
class DragResolution:
    """Where a dragged hand should go and the attachment map after the drag tick."""
    target: Point
    attachments: Attachments
    pinned: bool = False


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def find_nearest_snap(props: List[Prop], point: Point) -> Optional[SnapCandidate]:
    """Scan every visible snap point of every prop for the one nearest `point`."""
    best: Optional[SnapCandidate] = None
    for prop in props:
        for sp in prop.snap_points:
            if not sp.visible:
                continue
            position = transform_point(sp.x, sp.y, prop.transform)
            dist = _distance(position, point)
            if best is None or dist < best.distance:
                best = SnapCandidate(prop.id, sp.id, position, dist)
    return best


def resolve_anchor(
    props: List[Prop],
    attachment: Attachment,
    transform: Optional[PropTransform] = None,
) -> Optional[Point]:
    """
    World position of an attachment's snap point.

    `transform` overrides the prop's live transform (used while sampling
    interpolated frames). Returns None if the prop or snap point is gone.
    """
    prop = find_prop(props, attachment.prop_id)
    if prop is None:
        return None
    sp = prop.snap_point(attachment.snap_point_id)
    if sp is None:
        return None
    return transform_point(sp.x, sp.y, transform or prop.transform)


def capture_rotation_offset(rig: Rig, pose: Mapping[str, float], hand_id: str, prop: Prop) -> float:
    """Grip angle of the hand relative to the prop: handGlobal - propRotation."""
    hand = rig.global_transform(hand_id, pose)
    return normalize_angle(hand.angle - prop.transform.rotation)


def resolve_drag_target(
    rig: Rig,
    pose: Mapping[str, float],
    props: List[Prop],
    attachments: Attachments,
    hand_id: str,
    pointer: Point,
) -> DragResolution:
    """
    Run one tick of the snap state machine for a dragged hand.

    Args:
        rig: Rig definition
        pose: Pose before this drag tick (the grip angle is captured from it)
        props: Live props
        attachments: Current attachment map (not modified)
        hand_id: Hand being dragged
        pointer: Drag position in rig space

    Returns:
        DragResolution with the IK target and the new attachment map
    """
    new_attachments = dict(attachments)
    current = attachments.get(hand_id)

    if current is not None:
        anchor = resolve_anchor(props, current)
        if anchor is None:
            # Prop or snap point deleted: behave as a free hand for this tick
            logger.info(f"Attachment of {hand_id} references a missing prop/snap point; treating as free")
            return DragResolution(pointer, new_attachments)

        if _distance(anchor, pointer) > UNSNAP_THRESHOLD:
            del new_attachments[hand_id]
            logger.info(f"{hand_id} released from {current.prop_id}:{current.snap_point_id}")
            return DragResolution(pointer, new_attachments)

        prop = find_prop(props, current.prop_id)
        if prop.category.hand_driven:
            return DragResolution(pointer, new_attachments)
        return DragResolution(anchor, new_attachments, pinned=True)

    candidate = find_nearest_snap(props, pointer)
    if candidate is not None and candidate.distance <= SNAP_THRESHOLD:
        prop = find_prop(props, candidate.prop_id)
        new_attachments[hand_id] = Attachment(
            prop_id=candidate.prop_id,
            snap_point_id=candidate.snap_point_id,
            rotation_offset=capture_rotation_offset(rig, pose, hand_id, prop),
        )
        logger.info(f"{hand_id} snapped to {candidate.prop_id}:{candidate.snap_point_id}")
        return DragResolution(candidate.position, new_attachments, pinned=not prop.category.hand_driven)

    return DragResolution(pointer, new_attachments)


def pin_hand_rotation(
    rig: Rig,
    pose: Pose,
    hand_id: str,
    prop_rotation: float,
    attachment: Attachment,
) -> Pose:
    """Force the hand's global angle to propRotation + offset, written in its parent's frame."""
    hand = rig.bone(hand_id)
    if hand is None or hand.parent_id is None:
        return pose
    parent = rig.global_transform(hand.parent_id, pose)
    new_pose = dict(pose)
    new_pose[hand_id] = normalize_angle(prop_rotation + attachment.rotation_offset - parent.angle)
    return new_pose


def pin_hand(
    rig: Rig,
    pose: Pose,
    hand_id: str,
    anchor: Point,
    prop_rotation: float,
    attachment: Attachment,
) -> Pose:
    """
    Prop-drives-hand rule: solve the hand's chain onto `anchor`, then
    restore the captured grip angle.
    """
    new_pose = dict(pose)
    chain = rig.chain_for(hand_id)
    if chain is not None:
        result = solve_two_bone_ik(rig, chain.upper, chain.lower, anchor, new_pose)
        if result:
            new_pose.update(result)
    return pin_hand_rotation(rig, new_pose, hand_id, prop_rotation, attachment)


def pin_attached_hands(
    rig: Rig,
    pose: Pose,
    props: List[Prop],
    attachments: Attachments,
    transforms: Optional[Mapping[str, PropTransform]] = None,
    prop_id: Optional[str] = None,
) -> Pose:
    """
    Apply the pin rule for every attachment.

    Args:
        rig: Rig definition
        pose: Pose to start from (not modified)
        props: Props (for snap point lookup and live transforms)
        attachments: Hand -> attachment map
        transforms: Optional prop transforms overriding the live ones
        prop_id: Only re-pin hands holding this prop

    Returns:
        New pose
    """
    new_pose = dict(pose)
    for hand_id, attachment in attachments.items():
        if prop_id is not None and attachment.prop_id != prop_id:
            continue
        prop = find_prop(props, attachment.prop_id)
        if prop is None:
            continue
        transform = (transforms or {}).get(prop.id, prop.transform)
        anchor = resolve_anchor(props, attachment, transform)
        if anchor is None:
            continue
        new_pose = pin_hand(rig, new_pose, hand_id, anchor, transform.rotation, attachment)
    return new_pose
