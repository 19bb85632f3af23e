"""avindex - index, thumbnail and face-score an audiovisual library."""

__version__ = "0.1.0"
