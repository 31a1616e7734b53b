"""
Marker blob classification.

Filters raw contour geometry into valid marker candidates using the area,
aspect-ratio and solidity limits of the configured shape profile. Zero
survivors is a normal result.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from marker2pitch.app_config import SHAPE_PROFILES, SHAPE_ROUND, ShapeProfile
from .base import ContourGeometry


@dataclass(frozen=True)
class BlobCandidate:
    """A contour that passed classification, tagged with its centroid."""
    x: float
    y: float
    width: float
    height: float
    area: float
    centroid_x: float
    centroid_y: float
    aspect_ratio: float
    solidity: float


class BlobClassifier:
    """Applies a ShapeProfile to the contours of one frame."""

    def __init__(self, profile: Optional[ShapeProfile] = None):
        self.profile = profile or SHAPE_PROFILES[SHAPE_ROUND]
        self.logger = logging.getLogger(f"{__name__}.BlobClassifier")

    def classify(self, contours: Iterable[ContourGeometry]) -> List[BlobCandidate]:
        """
        Keep the contours that look like a marker.

        Args:
            contours: Raw contour geometries for the current frame

        Returns:
            Surviving candidates in input order
        """
        candidates = []
        rejected = 0
        for geometry in contours:
            candidate = self._classify_one(geometry)
            if candidate is None:
                rejected += 1
            else:
                candidates.append(candidate)

        if rejected:
            self.logger.debug(f"[CLASSIFY] kept {len(candidates)}, rejected {rejected}")
        return candidates

    def _classify_one(self, geometry: ContourGeometry) -> Optional[BlobCandidate]:
        profile = self.profile
        area = geometry.area

        # Area gate first, independent of every other attribute
        if area < profile.area_min or area > profile.area_max:
            return None

        if geometry.height <= 0 or geometry.width <= 0:
            return None
        aspect_ratio = geometry.width / geometry.height
        if aspect_ratio < profile.aspect_min or aspect_ratio > profile.aspect_max:
            return None

        if geometry.hull_area <= 0:
            return None
        solidity = area / geometry.hull_area
        if solidity < profile.solidity_min:
            return None

        return BlobCandidate(
            x=geometry.x,
            y=geometry.y,
            width=geometry.width,
            height=geometry.height,
            area=area,
            centroid_x=geometry.x + geometry.width / 2,
            centroid_y=geometry.y + geometry.height / 2,
            aspect_ratio=aspect_ratio,
            solidity=solidity,
        )
