"""Col Profiles - elevation profile regeneration for catalogued mountain passes."""

__version_date__ = "2026-10-19"
