"""
Flat point awards for recycling a scanned material.
"""

# Checked in order, the first substring match wins.
MATERIAL_POINTS = (
    ("battery", 30),
    ("plastic", 18),
    ("glass", 14),
    ("metal", 12),
    ("aluminum", 12),
    ("paper", 8),
    ("cardboard", 8),
    ("unrecyclable", 4),
)

DEFAULT_MATERIAL_POINTS = 3


def points_for_material(material) -> int:
    lowered = str(material or "").strip().lower()
    for key, points in MATERIAL_POINTS:
        if key in lowered:
            return points
    return DEFAULT_MATERIAL_POINTS
