"""Elevation profile chart export."""

import io
import logging
from pathlib import Path

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for batch runs
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection

from col_profiles.models import Col, ElevationProfile

logger = logging.getLogger(__name__)

CLASSIFICATION_COLORS = {
    "easy": '#8acbef',
    "moderate": '#ffb399',
    "challenging": '#ff7f33',
    "difficult": '#cc4400',
    "extreme": '#660000',
}
UNSEGMENTED_COLOR = '#cccccc'


def render_profile_chart(profile: ElevationProfile, title: str = "", aspect_ratio: float = 3.0) -> bytes:
    """Draw elevation against distance, filled by segment difficulty.

    Steps not covered by any segment (a dropped trailing residual) are grey.

    Returns PNG image as bytes.
    """
    distances = [p.distance or 0.0 for p in profile.points]
    elevations = [p.elevation for p in profile.points]

    step_colors = [UNSEGMENTED_COLOR] * max(len(distances) - 1, 0)
    for segment in profile.segments:
        color = CLASSIFICATION_COLORS.get(segment.classification, UNSEGMENTED_COLOR)
        for i in range(segment.start_index, segment.end_index):
            step_colors[i] = color

    fig_height = 4
    fig_width = fig_height * aspect_ratio
    fig, ax = plt.subplots(figsize=(fig_width, fig_height), facecolor='white')

    polygons = []
    for i in range(len(step_colors)):
        d0, d1 = distances[i], distances[i + 1]
        e0, e1 = elevations[i], elevations[i + 1]
        polygons.append([(d0, 0), (d1, 0), (d1, e1), (d0, e0)])

    coll = PolyCollection(polygons, facecolors=step_colors, edgecolors='none', linewidths=0)
    ax.add_collection(coll)
    ax.plot(distances, elevations, color='#333333', linewidth=0.5)

    # Gradient label over the middle of each segment
    max_elev = max(elevations) * 1.1 if elevations else 1.0
    for segment in profile.segments:
        mid = (segment.start_distance + segment.end_distance) / 2
        ax.text(mid, max_elev * 0.95, f"{segment.avg_gradient:.1f}%",
                fontsize=8, color='#333333', ha='center', va='center')

    ax.set_xlim(0, distances[-1] if distances and distances[-1] > 0 else 1.0)
    ax.set_ylim(0, max_elev)
    ax.set_xlabel('Distance (km)', fontsize=10)
    ax.set_ylabel('Elevation (m)', fontsize=10)
    if title:
        ax.set_title(title, fontsize=11)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)
    ax.grid(axis='y', alpha=0.3, linestyle='-', linewidth=0.5)

    buf = io.BytesIO()
    fig.savefig(buf, format='png', dpi=100, facecolor='white', edgecolor='none')
    plt.close(fig)
    buf.seek(0)
    return buf.getvalue()


def save_profile_chart(profile: ElevationProfile, col: Col, charts_dir: Path) -> Path:
    """Render a col's profile to ``<charts_dir>/<col id>.png``."""
    charts_dir = Path(charts_dir)
    charts_dir.mkdir(parents=True, exist_ok=True)
    path = charts_dir / f"{col.id}.png"
    path.write_bytes(render_profile_chart(profile, title=col.name))
    logger.debug("Wrote profile chart %s", path)
    return path
