"""Tests for panel extraction to disk."""

import json

import numpy as np
import pytest

from comicpanels.config import SegmenterConfig
from comicpanels.detector import OutputPanel
from comicpanels.exceptions import ImageDecodeError, OutputConflictError
from comicpanels.extract import (
    MANIFEST_NAME,
    check_output_owner,
    crop_panels,
    draw_overlay,
    extract_panels,
)
from comicpanels.image_utils import RasterBuffer, load_raster


def leftovers(directory):
    return [p.name for p in directory.iterdir() if p.name.startswith(".")]


class TestExtractPanels:

    def test_grid_page_writes_numbered_crops(self, grid_page, write_page, tmp_path):
        page = write_page(grid_page, "p01.png")
        out = tmp_path / "out"
        result = extract_panels(page, out)

        assert result.success
        assert result.error is None
        assert result.panels == 4
        panels_dir = out / "p01"
        assert result.panels_dir == str(panels_dir)
        assert sorted(p.name for p in panels_dir.iterdir()) == [
            "1.png", "2.png", "3.png", "4.png", MANIFEST_NAME,
        ]
        assert (out / "p01_annotated.png").is_file()
        assert result.annotated == str(out / "p01_annotated.png")
        assert leftovers(out) == []

        crop = load_raster(panels_dir / "1.png")
        assert 160 <= crop.width <= 200 and 160 <= crop.height <= 200

    def test_manifest_lists_panels_in_order(self, grid_page, write_page, tmp_path):
        page = write_page(grid_page, "p02.png")
        extract_panels(page, tmp_path / "out")

        with open(tmp_path / "out" / "p02" / MANIFEST_NAME, encoding="utf-8") as f:
            manifest = json.load(f)
        assert manifest["page"] == "p02.png"
        assert manifest["panel_count"] == 4
        assert [p["file"] for p in manifest["panels"]] == ["1.png", "2.png", "3.png", "4.png"]
        first, second, third = manifest["panels"][:3]
        assert first["left"] < second["left"]
        assert first["top"] < third["top"]

    def test_default_output_is_next_to_page(self, grid_page, write_page):
        page = write_page(grid_page, "p03.png")
        result = extract_panels(page)
        assert (page.parent / "p03" / "1.png").is_file()
        assert result.panels_dir == str(page.parent / "p03")

    def test_blank_page_succeeds_with_no_output(self, white_page, write_page, tmp_path):
        page = write_page(white_page, "blank.png")
        out = tmp_path / "out"
        result = extract_panels(page, out)

        assert result.success
        assert result.panels == 0
        assert result.panels_dir is None
        assert not out.exists()

    def test_missing_file_fails_softly(self, tmp_path):
        result = extract_panels(tmp_path / "nope.png", tmp_path / "out")
        assert not result.success
        assert result.panels == 0
        assert "not found" in result.error

    def test_malformed_file_fails_softly(self, tmp_path):
        bad = tmp_path / "broken.png"
        bad.write_bytes(b"not an image at all")
        result = extract_panels(bad, tmp_path)

        assert not result.success
        assert result.error
        assert not (tmp_path / "broken").exists()
        assert leftovers(tmp_path) == []

    def test_panel_format_override(self, grid_page, write_page, tmp_path):
        page = write_page(grid_page, "p04.png")
        config = SegmenterConfig(panel_format="jpg").validate()
        result = extract_panels(page, tmp_path / "out", config)

        assert result.success
        names = sorted(p.name for p in (tmp_path / "out" / "p04").glob("*.jpg"))
        assert names == ["1.jpg", "2.jpg", "3.jpg", "4.jpg"]

    def test_no_annotate(self, grid_page, write_page, tmp_path):
        page = write_page(grid_page, "p05.png")
        result = extract_panels(page, tmp_path / "out", SegmenterConfig(annotate=False))
        assert result.annotated is None
        assert not (tmp_path / "out" / "p05_annotated.png").exists()

    def test_delete_original(self, grid_page, write_page, tmp_path):
        page = write_page(grid_page, "p06.png")
        result = extract_panels(page, tmp_path / "out", SegmenterConfig(delete_original=True))
        assert result.success
        assert not page.exists()

    def test_original_kept_when_page_fails(self, tmp_path):
        bad = tmp_path / "broken.png"
        bad.write_bytes(b"\x89PNG garbage")
        extract_panels(bad, tmp_path / "out", SegmenterConfig(delete_original=True))
        assert bad.exists()

    def test_rerun_replaces_previous_panels(self, grid_page, write_page, tmp_path):
        page = write_page(grid_page, "p07.png")
        out = tmp_path / "out"
        extract_panels(page, out)
        (out / "p07" / "9.png").write_bytes(b"stale")

        result = extract_panels(page, out)
        assert result.panels == 4
        assert not (out / "p07" / "9.png").exists()
        assert leftovers(out) == []

    def test_foreign_directory_left_alone(self, grid_page, write_page):
        page = write_page(grid_page, "chapter.png")
        folder = page.parent / "chapter"
        folder.mkdir()
        (folder / "notes.txt").write_text("keep me", encoding="utf-8")

        result = extract_panels(page)

        assert not result.success
        assert "not written by comicpanels" in result.error
        assert (folder / "notes.txt").read_text(encoding="utf-8") == "keep me"
        assert sorted(p.name for p in folder.iterdir()) == ["notes.txt"]
        assert not (page.parent / "chapter_annotated.png").exists()
        assert leftovers(page.parent) == []
        assert page.exists()

    def test_same_stem_page_does_not_replace_panels(self, grid_page, write_page, tmp_path):
        out = tmp_path / "out"
        first = extract_panels(write_page(grid_page, "p.png"), out)
        second = extract_panels(write_page(grid_page, "p.bmp"), out)

        assert first.success and first.panels == 4
        assert not second.success
        assert "p.png" in second.error
        assert sorted(p.name for p in (out / "p").iterdir()) == [
            "1.png", "2.png", "3.png", "4.png", MANIFEST_NAME,
        ]


class TestCheckOutputOwner:

    def test_missing_directory_is_free(self, tmp_path):
        check_output_owner(tmp_path / "p01", "p01.png")

    def test_own_manifest_accepted(self, tmp_path):
        panels_dir = tmp_path / "p01"
        panels_dir.mkdir()
        (panels_dir / MANIFEST_NAME).write_text(json.dumps({"page": "p01.png"}), encoding="utf-8")
        check_output_owner(panels_dir, "p01.png")

    @pytest.mark.parametrize("manifest", [None, "{broken", json.dumps({"page": "other.png"})])
    def test_foreign_directory_rejected(self, tmp_path, manifest):
        panels_dir = tmp_path / "p01"
        panels_dir.mkdir()
        if manifest is not None:
            (panels_dir / MANIFEST_NAME).write_text(manifest, encoding="utf-8")
        with pytest.raises(OutputConflictError) as exc:
            check_output_owner(panels_dir, "p01.png")
        assert exc.value.path == str(panels_dir)

    def test_plain_file_rejected(self, tmp_path):
        (tmp_path / "p01").write_bytes(b"")
        with pytest.raises(OutputConflictError):
            check_output_owner(tmp_path / "p01", "p01.png")


class TestCropAndOverlay:

    def test_crop_skips_empty_panels(self, grid_page, tmp_path):
        raster = RasterBuffer.from_array(grid_page)
        panels = [
            OutputPanel(10, 10, 50, 40),
            OutputPanel(400, 0, 10, 10),     # outside the page
            OutputPanel(100, 100, 20, 30),
        ]
        files = crop_panels(raster, panels, tmp_path, ".png")

        assert [f.name for f in files] == ["1.png", "2.png"]
        first = load_raster(files[0])
        second = load_raster(files[1])
        assert (first.width, first.height) == (50, 40)
        assert (second.width, second.height) == (20, 30)

    def test_overlay_is_bgr_copy(self, grid_page):
        raster = RasterBuffer.from_array(grid_page)
        overlay = draw_overlay(raster, [OutputPanel(20, 20, 170, 170)])

        assert overlay.shape == (400, 400, 3)
        assert not np.array_equal(overlay, grid_page)
        # outline colour #ff3366 in BGR on the top edge
        assert tuple(overlay[20, 100]) == (102, 51, 255)
        assert np.array_equal(raster.pixels, grid_page)

    def test_overlay_accepts_gray_and_rgba(self, page_factory, grid_rects):
        for channels in (1, 4):
            raster = RasterBuffer.from_array(page_factory(400, 400, grid_rects, channels=channels))
            assert draw_overlay(raster, []).shape == (400, 400, 3)


def test_load_raster_rejects_garbage(tmp_path):
    bad = tmp_path / "x.png"
    bad.write_bytes(b"")
    with pytest.raises(ImageDecodeError):
        load_raster(bad)
