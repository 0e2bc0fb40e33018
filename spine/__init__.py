"""
Export encoders for baked gym loops.

Turns a BakeResult into Spine skeleton JSON or a standalone animated SVG.
"""

__all__ = [
    "animation_engine",
    "css_exporter",
]
