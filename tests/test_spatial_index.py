"""Tests for the Open3D-backed spatial index."""

from __future__ import annotations

import unittest

import numpy as np

from patchgraph.pipeline.spatial_index import SpatialIndex
from tests.helpers import TWO_CLUSTERS, TWO_CLUSTERS_RADIUS


class SpatialIndexTests(unittest.TestCase):
    def setUp(self) -> None:
        rng = np.random.default_rng(7)
        self.cloud = rng.uniform(-5.0, 5.0, size=(200, 3))

    def test_self_included_in_every_query(self) -> None:
        index = SpatialIndex.build(self.cloud)
        for i, point in enumerate(self.cloud):
            neighbors = index.query_radius(point, 0.25)
            self.assertGreaterEqual(neighbors.count, 1)
            self.assertIn(i, neighbors.tags.tolist())

    def test_isolated_point_returns_only_itself(self) -> None:
        points = np.array([[0.0, 0.0, 0.0], [100.0, 0.0, 0.0]])
        neighbors = SpatialIndex.build(points).query_radius(points[1], 1.0)
        self.assertEqual(neighbors.count, 1)
        np.testing.assert_array_equal(neighbors.points[0], points[1])

    def test_radius_query_matches_brute_force(self) -> None:
        index = SpatialIndex.build(self.cloud)
        query = self.cloud[11]
        radius = 2.0
        neighbors = index.query_radius(query, radius)
        expected = np.nonzero(np.linalg.norm(self.cloud - query, axis=1) <= radius)[0]
        self.assertEqual(sorted(neighbors.tags.tolist()), expected.tolist())
        np.testing.assert_array_equal(neighbors.points, self.cloud[neighbors.tags])

    def test_boundary_distance_is_inclusive(self) -> None:
        points = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [2.5, 0.0, 0.0]])
        neighbors = SpatialIndex.build(points).query_radius(points[0], 2.0)
        self.assertEqual(sorted(neighbors.tags.tolist()), [0, 1])

    def test_tag_round_trip(self) -> None:
        tags = np.arange(self.cloud.shape[0])
        index = SpatialIndex.build_tagged(self.cloud, tags)
        self.assertTrue(index.tagged)
        for i in (0, 42, 199):
            neighbors = index.query_radius(self.cloud[i], 1.5)
            for row, tag in zip(neighbors.points, neighbors.tags):
                np.testing.assert_array_equal(row, self.cloud[tag])

    def test_tags_decoupled_from_positions(self) -> None:
        subset = TWO_CLUSTERS[[1, 3, 4]]
        index = SpatialIndex.build_tagged(subset, [1, 3, 4])
        neighbors = index.query_radius(TWO_CLUSTERS[3], TWO_CLUSTERS_RADIUS)
        self.assertEqual(sorted(neighbors.tags.tolist()), [3, 4])

    def test_invalid_tags_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SpatialIndex.build_tagged(TWO_CLUSTERS, [0, 1, 2])
        with self.assertRaises(ValueError):
            SpatialIndex.build_tagged(TWO_CLUSTERS, [0, 1, 1, 2, 3])
        with self.assertRaises(ValueError):
            SpatialIndex.build_tagged(TWO_CLUSTERS, [0.0, 1.5, 2.0, 3.0, 4.0])

    def test_invalid_inputs_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SpatialIndex.build(np.empty((0, 3)))
        index = SpatialIndex.build(TWO_CLUSTERS)
        with self.assertRaises(ValueError):
            index.query_radius(TWO_CLUSTERS[0], 0.0)
        with self.assertRaises(ValueError):
            index.query_radius(np.zeros(2), 1.0)

    def test_index_keeps_its_own_copy(self) -> None:
        points = TWO_CLUSTERS.copy()
        index = SpatialIndex.build(points)
        points[:] = 99.0
        neighbors = index.query_radius(TWO_CLUSTERS[0], TWO_CLUSTERS_RADIUS)
        self.assertEqual(neighbors.count, 3)
        self.assertFalse(index.points.flags.writeable)

    def test_higher_dimensional_index(self) -> None:
        points = np.array([[0.0, 0.0, 0.0, 0.0], [0.5, 0.0, 0.0, 0.0], [3.0, 0.0, 0.0, 0.0]])
        index = SpatialIndex.build(points)
        self.assertEqual(index.dims, 4)
        neighbors = index.query_radius(points[0], 1.0)
        self.assertEqual(sorted(neighbors.tags.tolist()), [0, 1])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
