from typing import Union
from logging import getLogger
from numpy import arange
from shapely import union_all
from shapely.geometry.base import BaseGeometry
from geopandas import GeoDataFrame, GeoSeries, sjoin

from censuskit.tiger import Area

logger = getLogger(__name__)

# CONUS Albers equal area; centroids of lon/lat polygons are distorted
EQUAL_AREA_CRS = 'EPSG:5070'


def _boundary_geometry(boundary: Union[Area, GeoDataFrame, GeoSeries, BaseGeometry], crs) -> BaseGeometry:
    if isinstance(boundary, Area):
        boundary = boundary.to_gdf()

    if isinstance(boundary, (GeoDataFrame, GeoSeries)):
        if len(boundary) == 0:
            raise ValueError('the boundary is empty')
        if boundary.crs is None:
            raise ValueError('the boundary must have a CRS')
        geoms = boundary.geometry if isinstance(boundary, GeoDataFrame) else boundary
        return union_all(geoms.to_crs(crs).values)

    if isinstance(boundary, BaseGeometry):
        # bare geometries are taken to be in the features' CRS
        return boundary

    raise TypeError('boundary must be an Area, a GeoDataFrame, a GeoSeries or a shapely geometry')


def centroids(features: GeoDataFrame, crs: str = EQUAL_AREA_CRS) -> GeoDataFrame:
    """
    Replaces each feature's geometry with its centroid. Centroids are computed in
    ``crs`` (an equal-area projection by default) and returned in the features'
    original CRS.
    """
    if features.crs is None:
        raise ValueError('features must have a CRS')
    points = features.to_crs(crs)
    points = points.set_geometry(points.centroid)
    return points.to_crs(features.crs)


def filter_by_boundary(features: GeoDataFrame, boundary: Union[Area, GeoDataFrame, GeoSeries, BaseGeometry], how: str = 'centroid') -> GeoDataFrame:
    """
    Keeps the features (for example tracts) that belong to a boundary (for example a
    place).

    Parameters
    ==========
    features : :class:`geopandas.GeoDataFrame`
        The features to filter.
    boundary : :class:`.Area` or :class:`geopandas.GeoDataFrame` or :class:`shapely.Geometry`
        The boundary. Multi-row frames are dissolved into one shape. A bare shapely
        geometry must be in the CRS of ``features``.
    how : :obj:`str` = 'centroid'
        ``intersects`` keeps every feature that touches or overlaps the boundary.
        ``centroid`` keeps, among those, the features whose centroid lies within the
        boundary, which drops slivers that only share an edge.

    Returns
    =======
    :class:`geopandas.GeoDataFrame`
        The kept rows of ``features``, unchanged and in their original order.
    """
    if how not in ('centroid', 'intersects'):
        raise ValueError("how must be either 'centroid' or 'intersects'")
    if features.crs is None:
        raise ValueError('features must have a CRS')

    shape = _boundary_geometry(boundary, features.crs)
    candidates = features[features.intersects(shape).values]

    if how == 'centroid' and len(candidates) > 0:
        projected_boundary = GeoDataFrame(geometry=GeoSeries([shape], crs=features.crs)).to_crs(EQUAL_AREA_CRS)
        points = candidates.to_crs(EQUAL_AREA_CRS).centroid
        points = GeoDataFrame(geometry=points.values, index=arange(len(points)), crs=EQUAL_AREA_CRS)
        joined = sjoin(points, projected_boundary, how='inner', predicate='within')
        keep = points.index.isin(joined.index)
        candidates = candidates[keep]

    logger.info('kept %d of %d features (%s)', len(candidates), len(features), how)
    return candidates
