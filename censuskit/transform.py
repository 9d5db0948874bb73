from typing import Dict, Tuple
from shapely import affinity, union_all
from geopandas import GeoDataFrame

# US National Atlas Equal Area; the offsets below are in its metres
SHIFT_CRS = 'EPSG:9311'

# state FIPS -> (scale, x offset, y offset, rotation)
CONTINENTAL_EA_BELOW = {
    '02': (1, 600000, -5250000, 45),
    '15': (1, 5000000, -1100000, 45),
    '72': (1, -2500000, 300000, 0)
}

CONTINENTAL_SCALED_BELOW = {
    '02': (0.4, 700000, -4750000, 45),
    '15': (1, 5000000, -1100000, 45),
    '72': (1, -2500000, 300000, 0)
}

CONTINENTAL_EA_OUTSIDE = {
    '02': (1, 550000, -1250000, 45),
    '15': (1, 3100000, -75000, 45),
    '72': (1, -1300000, 200000, 0)
}

CONTINENTAL_SCALED_OUTSIDE = {
    '02': (0.4, 550000, -1750000, 45),
    '15': (1, 3100000, -75000, 45),
    '72': (1, -1300000, 200000, 0)
}


def _transform_geometry(geometry, scale, center, x_offset, y_offset, rotation):
    geometry = affinity.scale(geometry, scale, scale, scale, origin=center)
    geometry = affinity.rotate(geometry, rotation, origin=center)
    geometry = affinity.translate(geometry, x_offset, y_offset)
    return geometry


def _transform(data: GeoDataFrame, region_col: str, transformations: Dict[str, Tuple]) -> GeoDataFrame:
    geometry_col = data.geometry.name
    for s, (scale, x_offset, y_offset, rotation) in transformations.items():
        mask = data[region_col] == s
        if not mask.any():
            continue
        centroid = union_all(data.loc[mask, geometry_col].values).centroid
        data.loc[mask, geometry_col] = data.loc[mask, geometry_col].apply(_transform_geometry, args=(scale, centroid, x_offset, y_offset, rotation))

    return data


def shift_geometry(data: GeoDataFrame, position: str = 'below', preserve_area: bool = False, state_col: str = 'state', custom_transformations: Dict[str, Tuple] = None) -> GeoDataFrame:
    """
    Moves (and optionally shrinks) Alaska, Hawaii and Puerto Rico so that a national
    map fits the continental United States. The result is returned in the CRS of
    ``data``.

    Parameters
    ==========
    data : :class:`geopandas.GeoDataFrame`
        Areas with a ``state`` column or a ``GEOID`` column to derive it from.
    position : :obj:`str` = 'below'
        ``below`` places the shifted states under the continental US, ``outside``
        places them to its lower left and right.
    preserve_area : :obj:`bool` = False
        Keep Alaska at its true size instead of scaling it to 40%.
    state_col : :obj:`str` = 'state'
        The column holding two-digit state FIPS codes.
    custom_transformations : dict of :obj:`str`: :obj:`tuple` = None
        ``{state FIPS: (scale, x offset, y offset, rotation)}`` in metres of
        EPSG:9311, used instead of the built-in layouts.
    """
    if custom_transformations:
        transformations = custom_transformations
    elif position == 'below':
        transformations = CONTINENTAL_EA_BELOW if preserve_area else CONTINENTAL_SCALED_BELOW
    elif position == 'outside':
        transformations = CONTINENTAL_EA_OUTSIDE if preserve_area else CONTINENTAL_SCALED_OUTSIDE
    else:
        raise ValueError("position must be either 'below' or 'outside', or you may use custom_transformations.")

    if data.crs is None:
        raise ValueError('data must have a CRS to be shifted')

    data = data.copy()
    added_state_col = False
    if state_col not in data.columns:
        if 'GEOID' not in data.columns:
            raise ValueError(f"data needs a '{state_col}' or 'GEOID' column")
        data[state_col] = data['GEOID'].astype(str).str[:2]
        added_state_col = True

    original_crs = data.crs
    data = data.to_crs(crs=SHIFT_CRS)
    data = _transform(data, state_col, transformations)
    data = data.to_crs(crs=original_crs)

    if added_state_col:
        data = data.drop(columns=[state_col])
    return data
