"""Tests for point cloud loading."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import numpy as np

from patchgraph.pipeline.loader import PointCloudLoadError, adapt_points, load_point_cloud
from tests.helpers import TWO_CLUSTERS, write_obj


class AdaptPointsTests(unittest.TestCase):
    def test_flat_stream_grouped_into_rows(self) -> None:
        flat = np.arange(9, dtype=np.float32)
        points = adapt_points(flat, dims=3)
        self.assertEqual(points.shape, (3, 3))
        self.assertEqual(points.dtype, np.float64)
        np.testing.assert_array_equal(points[1], [3.0, 4.0, 5.0])

    def test_count_not_multiple_of_dims_rejected(self) -> None:
        with self.assertRaises(ValueError):
            adapt_points(np.arange(7, dtype=np.float64), dims=3)

    def test_two_dimensional_input_kept(self) -> None:
        points = adapt_points(TWO_CLUSTERS, dims=3)
        np.testing.assert_array_equal(points, TWO_CLUSTERS)


class LoadPointCloudTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def test_missing_file_reports_error(self) -> None:
        result = load_point_cloud(self.root / "absent.obj")
        self.assertFalse(result.ok)
        self.assertEqual(result.points.shape[0], 0)
        self.assertTrue(any("does not exist" in message for message in result.errors))

    def test_vertex_only_obj(self) -> None:
        path = write_obj(self.root / "cloud.obj", TWO_CLUSTERS)
        result = load_point_cloud(path)
        self.assertTrue(result.ok, result.errors)
        self.assertEqual(result.points.shape, (5, 3))
        np.testing.assert_allclose(result.points, TWO_CLUSTERS)

    def test_obj_faces_are_ignored_with_warning(self) -> None:
        square = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
        path = write_obj(self.root / "square.obj", square, faces=[(0, 1, 2), (0, 2, 3)])
        result = load_point_cloud(path)
        self.assertTrue(result.ok, result.errors)
        self.assertEqual(result.points.shape[0], 4)
        loaded = sorted(map(tuple, result.points.tolist()))
        self.assertEqual(loaded, sorted(map(tuple, square.tolist())))
        self.assertTrue(any("faces ignored" in message for message in result.warnings))

    def test_text_flat_stream(self) -> None:
        path = self.root / "cloud.xyz"
        path.write_text("0 0 0 1 0 0\n", encoding="utf-8")
        result = load_point_cloud(path)
        self.assertTrue(result.ok, result.errors)
        self.assertEqual(result.points.shape, (2, 3))

    def test_text_incomplete_tuple_is_load_error(self) -> None:
        path = self.root / "broken.xyz"
        path.write_text("0 0 0 1 0\n", encoding="utf-8")
        result = load_point_cloud(path)
        self.assertFalse(result.ok)
        self.assertTrue(any("multiple of dims" in message for message in result.errors))

    def test_text_with_normal_columns_keeps_coordinates(self) -> None:
        path = self.root / "with_normals.xyz"
        normals = np.tile([0.0, 0.0, 1.0], (TWO_CLUSTERS.shape[0], 1))
        np.savetxt(path, np.hstack([TWO_CLUSTERS, normals]))
        result = load_point_cloud(path)
        self.assertTrue(result.ok, result.errors)
        self.assertEqual(result.points.shape, (5, 3))
        np.testing.assert_allclose(result.points, TWO_CLUSTERS)
        self.assertTrue(any("only the first 3" in message for message in result.warnings))

    def test_npy_with_too_few_columns_rejected(self) -> None:
        path = self.root / "planar.npy"
        np.save(path, TWO_CLUSTERS[:, :2])
        result = load_point_cloud(path)
        self.assertFalse(result.ok)
        self.assertTrue(any("coordinate columns" in message for message in result.errors))

    def test_adapt_points_rejects_wrong_column_count(self) -> None:
        with self.assertRaises(ValueError):
            adapt_points(np.zeros((4, 6)), dims=3)

    def test_unknown_suffix_read_as_text(self) -> None:
        path = self.root / "cloud.dat"
        np.savetxt(path, TWO_CLUSTERS[:3])
        result = load_point_cloud(path)
        self.assertTrue(result.ok, result.errors)
        np.testing.assert_allclose(result.points, TWO_CLUSTERS[:3])

    def test_npy_round_trip(self) -> None:
        path = self.root / "cloud.npy"
        np.save(path, TWO_CLUSTERS)
        result = load_point_cloud(path)
        self.assertTrue(result.ok)
        np.testing.assert_array_equal(result.points, TWO_CLUSTERS)

    def test_npz_without_points_key(self) -> None:
        path = self.root / "cloud.npz"
        np.savez(path, other=TWO_CLUSTERS)
        result = load_point_cloud(path)
        self.assertFalse(result.ok)

    def test_non_finite_coordinates_rejected(self) -> None:
        path = self.root / "nan.npy"
        data = TWO_CLUSTERS.copy()
        data[2, 1] = np.nan
        np.save(path, data)
        result = load_point_cloud(path)
        self.assertFalse(result.ok)
        self.assertTrue(any("non-finite" in message for message in result.errors))

    def test_empty_file_rejected(self) -> None:
        path = self.root / "empty.npy"
        np.save(path, np.empty((0, 3)))
        result = load_point_cloud(path)
        self.assertFalse(result.ok)
        self.assertTrue(any("no vertices" in message for message in result.errors))

    def test_load_error_message_lists_errors(self) -> None:
        error = PointCloudLoadError(Path("x.obj"), ["first", "second"])
        self.assertIn("first; second", str(error))
        self.assertEqual(error.errors, ["first", "second"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
