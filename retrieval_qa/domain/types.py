from collections.abc import Mapping

Vector = tuple[float, ...]  # dimension is fixed per index, validated at the index boundary
Score = float
MetadataValue = str | int | float | bool
Metadata = Mapping[str, MetadataValue]
MetadataFilter = Mapping[str, MetadataValue]  # equality on every pair
