"""Project stickies: turn raw bullet-point notes into a dependency-aware task list."""

__version__ = "0.1.0"
