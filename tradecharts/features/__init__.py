"""
Feature engineering sub-package.

- `indicators`       : pure numpy indicator functions over a price window
- `build_features`   : fixed 15-feature vector per timeframe bucket
"""

from tradecharts.features.vectors import FeatureBucket, FeatureVector, build_features

__all__ = ["FeatureBucket", "FeatureVector", "build_features"]
