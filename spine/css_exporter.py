"""
CSS/SVG Exporter

Renders a baked loop as a single self-contained animated SVG. Every bone
and prop is a flat group whose world transform is driven by a CSS
@keyframes rule, so the file plays in any browser without script.

Bones are emitted in draw order with world (not parent-relative)
transforms; props on the "back" layer go under the figure and everything
else on top.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Dict, List, Sequence

from rig.skeleton import GlobalTransform, Rig
from scene.props import Prop
from timeline.baking import BakeResult


@dataclass(frozen=True)
class SvgLayout:
    """Canvas settings for the exported SVG."""
    width: int = 400
    height: int = 500
    background: str = "#f3f4f6"
    border: str = "#e5e7eb"


DEFAULT_LAYOUT = SvgLayout()


def _bone_keyframes(bone_id: str, result: BakeResult, transforms: List[Dict[str, GlobalTransform]]) -> str:
    lines = [f"@keyframes anim-bone-{bone_id} {{"]
    for frame, world in zip(result.frames, transforms):
        gt = world[bone_id]
        lines.append(
            f"  {result.percent(frame.time):.2f}% {{ transform: translate({gt.x:.2f}px, {gt.y:.2f}px) "
            f"rotate({gt.angle:.2f}deg); }}"
        )
    lines.append("}")
    return "\n".join(lines)


def _prop_keyframes(prop: Prop, result: BakeResult) -> str:
    lines = [f"@keyframes anim-prop-{prop.id} {{"]
    for frame in result.frames:
        tr = frame.props.get(prop.id, prop.transform)
        lines.append(
            f"  {result.percent(frame.time):.2f}% {{ transform: translate({tr.x:.1f}px, {tr.y:.1f}px) "
            f"rotate({tr.rotation:.1f}deg) scale({tr.scale_x:.2f}, {tr.scale_y:.2f}); }}"
        )
    lines.append("}")
    return "\n".join(lines)


def _animation_rule(selector: str, anim_name: str, duration: float) -> str:
    return (
        f"{selector} {{ animation: {anim_name} {duration:.0f}ms linear infinite; "
        f"transform-origin: 0px 0px; }}"
    )


def _prop_group(prop: Prop) -> str:
    return (
        f'<g id="prop-{escape(prop.id)}">'
        f'<path d="{escape(prop.path)}" fill="{escape(prop.color)}" stroke="#111827" stroke-width="1"/>'
        f"</g>"
    )


def export_svg(
    rig: Rig,
    props: Sequence[Prop],
    result: BakeResult,
    layout: SvgLayout = DEFAULT_LAYOUT,
    arms_in_front: bool = False,
) -> str:
    """
    Build the animated SVG document.

    Args:
        rig: Rig the frames were baked for
        props: Props present in the scene
        result: Baked loop (accurate or interpolated)
        layout: Canvas size and colours
        arms_in_front: Paint arm bones over the torso (same stacking as the editor toggle)

    Returns:
        SVG document as a string
    """
    world = [rig.global_transforms(frame.pose) for frame in result.frames]
    duration = result.total_duration
    bones = rig.draw_sequence(arms_in_front)

    css: List[str] = []
    for bone in bones:
        css.append(_bone_keyframes(bone.id, result, world))
        css.append(_animation_rule(f"#bone-{bone.id}", f"anim-bone-{bone.id}", duration))
    for prop in props:
        css.append(_prop_keyframes(prop, result))
        css.append(_animation_rule(f"#prop-{prop.id}", f"anim-prop-{prop.id}", duration))

    body: List[str] = [
        f'<rect width="{layout.width}" height="{layout.height}" fill="{layout.background}" '
        f'stroke="{layout.border}" stroke-width="2"/>'
    ]
    body.extend(_prop_group(p) for p in props if p.layer == "back")
    for bone in bones:
        shape = (
            f'<path d="{escape(bone.path)}" fill="{escape(bone.color)}" stroke="#111827" stroke-width="1"/>'
            if bone.path else ""
        )
        body.append(f'<g id="bone-{escape(bone.id)}">{shape}</g>')
    body.extend(_prop_group(p) for p in props if p.layer != "back")

    style = "\n".join(css)
    content = "\n".join(body)
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {layout.width} {layout.height}">\n'
        f"<style>\n{style}\n</style>\n"
        f"{content}\n"
        f"</svg>\n"
    )
