"""
Mirror & Co-Motion

Two pose-edit side effects:

- mirror mode copies each edited limb angle, negated, onto its left/right
  partner;
- free weights held in a hand are re-glued to that hand after every pose
  change, so the dumbbell rotates and travels with the grip.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Tuple

from rig.skeleton import Pose, Rig, rotate_point

from .attachments import Attachments
from .props import Prop, PropTransform

SYNC_EPSILON = 0.1


def apply_mirror(rig: Rig, pose: Mapping[str, float], bone_ids: Iterable[str]) -> Pose:
    """
    Write -angle to the mirror partner of every bone in `bone_ids`.

    Partners are resolved from the edited set only, so a mirrored write
    never triggers a second mirror step.
    """
    new_pose = dict(pose)
    for bone_id in list(bone_ids):
        partner = rig.mirror_of(bone_id)
        if partner is not None and bone_id in pose:
            new_pose[partner] = -pose[bone_id]
    return new_pose


def glued_transform(
    rig: Rig,
    pose: Mapping[str, float],
    hand_id: str,
    prop: Prop,
    snap_point_id: str,
    rotation_offset: float,
) -> PropTransform:
    """Transform that puts the prop's snap point on the hand pivot at the held grip angle."""
    hand = rig.global_transform(hand_id, pose)
    sp = prop.snap_point(snap_point_id)
    sx, sy = (sp.x, sp.y) if sp is not None else (0.0, 0.0)

    rotation = hand.angle - rotation_offset
    current = prop.transform
    rx, ry = rotate_point(sx * current.scale_x, sy * current.scale_y, rotation)
    return PropTransform(
        x=hand.x - rx,
        y=hand.y - ry,
        rotation=rotation,
        scale_x=current.scale_x,
        scale_y=current.scale_y,
    )


def _differs(a: PropTransform, b: PropTransform) -> bool:
    return (
        abs(a.x - b.x) > SYNC_EPSILON
        or abs(a.y - b.y) > SYNC_EPSILON
        or abs(a.rotation - b.rotation) > SYNC_EPSILON
    )


def sync_hand_driven_props(
    rig: Rig,
    pose: Mapping[str, float],
    props: List[Prop],
    attachments: Attachments,
) -> Tuple[List[Prop], bool]:
    """
    Re-glue every hand-held free weight to its hand.

    Returns:
        (props, changed). When nothing moved beyond SYNC_EPSILON the input
        list itself is returned.
    """
    updated = list(props)
    changed = False
    for hand_id, attachment in attachments.items():
        index = next((i for i, p in enumerate(updated) if p.id == attachment.prop_id), None)
        if index is None:
            continue
        prop = updated[index]
        if not prop.category.hand_driven:
            continue

        target = glued_transform(
            rig, pose, hand_id, prop, attachment.snap_point_id, attachment.rotation_offset
        )
        if _differs(prop.transform, target):
            updated[index] = prop.with_transform(target)
            changed = True

    return (updated, True) if changed else (props, False)
