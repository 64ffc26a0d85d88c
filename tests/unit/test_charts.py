from conftest import make_col, make_points
from col_profiles.charts import render_profile_chart, save_profile_chart
from col_profiles.profile import build_profile, summarize_points

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class TestRenderProfileChart:
    def test_returns_png(self, climb_points):
        profile = build_profile(summarize_points(climb_points))
        image = render_profile_chart(profile, title="Col du Galibier")
        assert image.startswith(PNG_SIGNATURE)

    def test_profile_with_unsegmented_tail(self):
        # Flat 2 km then a short 300 m ramp too short to stand alone
        elevations = [1000.0] * 21 + [1000.0 + 20 * i for i in range(1, 4)]
        profile = build_profile(summarize_points(make_points(elevations)))
        assert render_profile_chart(profile).startswith(PNG_SIGNATURE)

    def test_single_point_profile(self):
        profile = build_profile(summarize_points(make_points([1500.0])))
        assert render_profile_chart(profile).startswith(PNG_SIGNATURE)


class TestSaveProfileChart:
    def test_writes_file_named_after_col(self, tmp_path, climb_points):
        profile = build_profile(summarize_points(climb_points))
        path = save_profile_chart(profile, make_col("12", "Col de la Loze"), tmp_path / "charts")
        assert path == tmp_path / "charts" / "12.png"
        assert path.read_bytes().startswith(PNG_SIGNATURE)
