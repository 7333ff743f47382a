"""Sample sources for healthsync.

Each source implements the SampleSource ABC and yields RawSample records
for a date range.

Available sources:
    AppleHealthExportSource - Apple Health XML / JSON export
    InMemorySampleSource    - samples held in memory (tests, embedding)
"""

from healthsync.wearables.adapters.apple_health import AppleHealthExportSource
from healthsync.wearables.base import InMemorySampleSource, SampleSource

__all__ = [
    "AppleHealthExportSource",
    "InMemorySampleSource",
]

# Registry: source_id → source class
SOURCE_REGISTRY: dict[str, type[SampleSource]] = {
    "apple_health": AppleHealthExportSource,
    "memory": InMemorySampleSource,
}


def get_source(source_id: str) -> type[SampleSource]:
    """Return the source class for a given source slug.

    Args:
        source_id: e.g. 'apple_health', 'memory'

    Returns:
        The source class (not an instance).

    Raises:
        KeyError: If the source_id is not registered.
    """
    if source_id not in SOURCE_REGISTRY:
        raise KeyError(
            f"No sample source registered for '{source_id}'. "
            f"Available: {list(SOURCE_REGISTRY)}"
        )
    return SOURCE_REGISTRY[source_id]
