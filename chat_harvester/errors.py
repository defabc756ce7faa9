class HarvestError(Exception):
    """Base class for errors raised inside the harvesting core."""


class SurfaceUnavailable(HarvestError):
    """The rendering surface is gone (page closed, context torn down, session invalidated)."""
