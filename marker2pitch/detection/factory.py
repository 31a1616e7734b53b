"""
Factory for creating contour extraction strategies based on configuration.

Provides a clean interface for selecting and configuring strategies
without tight coupling to specific implementations.
"""
import logging
from typing import Any, Dict, List, Optional

from marker2pitch.app_config import DETECTION_COLOR, DETECTION_GRAYSCALE
from .base import ContourExtractor, DetectionConfigError
from .color_mask import HueMaskExtractor
from .grayscale import GrayscaleThresholdExtractor


class DetectionFactory:
    """
    Factory for creating contour extractors based on configuration.

    Makes it easy to switch between preprocessing strategies and handles
    strategy-specific configuration.
    """

    # Registry of available strategies
    _methods = {
        DETECTION_GRAYSCALE: GrayscaleThresholdExtractor,
        DETECTION_COLOR: HueMaskExtractor,
    }

    @classmethod
    def get_available_methods(cls) -> List[str]:
        """Get list of available strategy names."""
        return list(cls._methods.keys())

    @classmethod
    def create_extractor(cls, method_name: str, **kwargs) -> ContourExtractor:
        """
        Create an extractor by strategy name.

        Args:
            method_name: Name of the strategy ('grayscale' or 'color')
            **kwargs: Strategy-specific constructor parameters

        Returns:
            Configured extractor instance

        Raises:
            DetectionConfigError: If strategy unknown or configuration invalid
        """
        if method_name not in cls._methods:
            available = ', '.join(cls.get_available_methods())
            raise DetectionConfigError(
                f"Unknown detection method '{method_name}'. Available: {available}"
            )

        method_class = cls._methods[method_name]
        try:
            return method_class(**kwargs)
        except DetectionConfigError:
            raise
        except Exception as e:
            raise DetectionConfigError(f"Failed to create {method_name} extractor: {e}") from e

    @classmethod
    def create_from_app_state(cls, app_state) -> ContourExtractor:
        """
        Create an extractor from the detection settings of the app state.

        Args:
            app_state: Application state with detection settings

        Returns:
            Configured extractor for the selected strategy
        """
        logger = logging.getLogger(f"{__name__}.DetectionFactory")
        detection = app_state.detection

        if detection.strategy == DETECTION_COLOR:
            extractor = cls.create_extractor(
                DETECTION_COLOR,
                hue_ranges=detection.hue_ranges,
                saturation_min=detection.saturation_min,
                value_min=detection.value_min,
                morph_kernel=detection.morph_kernel,
            )
        else:
            extractor = cls.create_extractor(
                detection.strategy,
                threshold=detection.gray_threshold,
                erode_kernel=detection.erode_kernel,
            )

        logger.debug(f"[DETECTION-FACTORY] Created {extractor.get_name()} extractor")
        return extractor

    @classmethod
    def get_method_info(cls, method_name: str) -> Optional[Dict[str, Any]]:
        """
        Get information about a specific strategy with default parameters.

        Args:
            method_name: Name of strategy

        Returns:
            Strategy information dictionary or None if strategy unknown
        """
        if method_name not in cls._methods:
            return None
        return cls._methods[method_name]().get_method_info()
