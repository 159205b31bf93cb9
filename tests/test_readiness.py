from cmm.readiness import ReadinessMarker


def test_mark_ready_creates_parent_directories(tmp_path):
    marker = ReadinessMarker(str(tmp_path / "healthcheck" / "nested" / "manager-ready"))
    assert not marker.is_ready()

    marker.mark_ready()
    marker.mark_ready()

    assert marker.is_ready()
    assert (tmp_path / "healthcheck" / "nested" / "manager-ready").read_bytes() == b""


def test_clear_removes_stale_marker(tmp_path):
    path = tmp_path / "manager-ready"
    path.write_text("")
    marker = ReadinessMarker(str(path))

    marker.clear()

    assert not marker.is_ready()


def test_clear_without_marker_is_harmless(tmp_path):
    ReadinessMarker(str(tmp_path / "missing" / "manager-ready")).clear()


def test_clear_ignores_os_errors(tmp_path):
    # A directory in place of the marker cannot be removed with os.remove.
    path = tmp_path / "manager-ready"
    path.mkdir()

    ReadinessMarker(str(path)).clear()

    assert path.is_dir()
