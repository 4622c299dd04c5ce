import logging

import numpy as np

from ..toolbox_logic import get_bounding_box, bounding_box_slices

logger = logging.getLogger(__name__)

# Offsets of the 3x3x3 neighbourhood in column-major order (row offset varies fastest).
# Position k corresponds to cell k of the flattened neighbourhood, the centre sits at k = 13
# and the first 13 offsets hold one representative of every antipodal pair.
NEIGHBOURHOOD_OFFSETS = np.array([(dr, dc, ds)
                                  for ds in (-1, 0, 1)
                                  for dc in (-1, 0, 1)
                                  for dr in (-1, 0, 1)], dtype=int)
CENTRE_INDEX = 13
CANONICAL_DIRECTIONS = NEIGHBOURHOOD_OFFSETS[:CENTRE_INDEX]

_NEIGHBOUR_INDICES = np.array([k for k in range(27) if k != CENTRE_INDEX])
_FACE_INDICES = np.array([k for k in range(27) if np.count_nonzero(NEIGHBOURHOOD_OFFSETS[k]) == 1])


class ConnectivityMap:
    """
    Bounding box and per-voxel neighbourhood connectivity of an ROI.

    The map is computed once from the full-size ROI mask. All coordinates stored on the
    instance refer to the cropped sub-volume (the bounding box), not to the input volume.

    Attributes:
        bounding_box (np.ndarray): (3, 2) inclusive [min, max] indices per axis in the input volume.
        roi (np.ndarray): Cropped boolean ROI.
        support (np.ndarray): Cropped boolean mask of voxels a neighbour may come from.
            Identical to ``roi`` unless a wider support was requested.
        voxel_coords (np.ndarray): (V, 3) sub-volume coordinates of the ROI voxels.
        adjacency (np.ndarray): (V, 3, 3, 3) boolean; ``adjacency[v, dr + 1, dc + 1, ds + 1]`` is
            True when the voxel at that offset is inside the sub-volume and inside the support.
        neighbors_6 (list): Per voxel, (k, 3) array of its face-connected neighbour coordinates.
        neighbors_26 (list): Per voxel, (k, 3) array of its 26-connected neighbour coordinates.
    """

    def __init__(self, roi_mask, support_mask=None):
        roi_mask = np.asarray(roi_mask, dtype=bool)
        if support_mask is None:
            support_mask = roi_mask
        else:
            support_mask = np.asarray(support_mask, dtype=bool) | roi_mask

        self.bounding_box = get_bounding_box(support_mask)
        self.slices = bounding_box_slices(self.bounding_box)
        self.roi = roi_mask[self.slices]
        self.support = support_mask[self.slices]
        self.shape = self.roi.shape

        self.voxel_coords = np.argwhere(self.roi)
        self.no_of_roi_voxels = len(self.voxel_coords)

        self.adjacency = self._calc_adjacency()
        self.neighbors_6 = self._calc_neighbour_lists(_FACE_INDICES)
        self.neighbors_26 = self._calc_neighbour_lists(_NEIGHBOUR_INDICES)

        logger.debug(f"ROI of {self.no_of_roi_voxels} voxels in a {self.shape} sub-volume, "
                     f"{np.count_nonzero(self.full_neighbourhood)} with a complete 26-neighbourhood.")

    def _calc_adjacency(self):
        padded = np.pad(self.support, 1, mode='constant', constant_values=False)
        rows, cols, slcs = (self.voxel_coords + 1).T

        flat = np.zeros((self.no_of_roi_voxels, 27), dtype=bool)
        for k, (dr, dc, ds) in enumerate(NEIGHBOURHOOD_OFFSETS):
            flat[:, k] = padded[rows + dr, cols + dc, slcs + ds]

        # Column-major flattening, so reshape in Fortran order to index as [v, dr, dc, ds].
        return flat.reshape((self.no_of_roi_voxels, 3, 3, 3), order='F')

    def _calc_neighbour_lists(self, offset_indices):
        flat = self.adjacency.reshape((self.no_of_roi_voxels, 27), order='F')[:, offset_indices]
        coords = self.voxel_coords[:, np.newaxis, :] + NEIGHBOURHOOD_OFFSETS[offset_indices][np.newaxis, :, :]
        split_points = np.cumsum(np.count_nonzero(flat, axis=1))[:-1]
        return np.split(coords[flat], split_points)

    @property
    def full_neighbourhood(self):
        """Boolean (V,) flag of voxels whose whole 3x3x3 neighbourhood lies inside the support."""
        return self.adjacency.reshape((self.no_of_roi_voxels, 27)).all(axis=1)

    def offset_connected(self, offset):
        """Boolean (V,) flag of voxels whose neighbour at ``offset`` lies inside the support."""
        dr, dc, ds = offset
        return self.adjacency[:, dr + 1, dc + 1, ds + 1]

    def crop(self, array):
        """Crops a full-size array to the bounding box of this map."""
        return np.asarray(array)[self.slices]


def analyze_roi_connectivity(roi_mask, support_mask=None):
    return ConnectivityMap(roi_mask, support_mask)
