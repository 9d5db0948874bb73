"""
Reshaping and comparing fetched Census tables.

Tidy tables have one row per area and variable (``GEOID``, ``NAME``,
``variable``, ``estimate``, ``moe``, or ``value`` for Decennial counts). Wide
tables have one row per area, with ``<variable>E`` / ``<variable>M`` columns.

The margin of error helpers follow the approximations in the Census Bureau's
*Understanding and Using American Community Survey Data*, chapter 8. They accept
scalars, :mod:`numpy` arrays or :class:`pandas.Series`.
"""
from typing import List, Sequence, Tuple, Union
from logging import getLogger
from numpy import abs as np_abs, append, asarray, errstate, isnan, nan, nanmax, sqrt, where
from pandas import DataFrame, Series, concat
from geopandas import GeoDataFrame
from scipy.stats import norm

from censuskit.constants import MOE_Z_SCORES

logger = getLogger(__name__)

ID_COLUMNS = ('GEOID', 'NAME')
TIDY_SUFFIXES = {'estimate': 'E', 'moe': 'M', 'value': ''}


def _split_geometry(data: DataFrame) -> Tuple[DataFrame, Union[GeoDataFrame, None]]:
    if not isinstance(data, GeoDataFrame):
        return data, None
    geometry_col = data.geometry.name
    geometries = data[['GEOID', geometry_col]].drop_duplicates(subset='GEOID')
    return DataFrame(data.drop(columns=[geometry_col])), geometries


def _restore_geometry(data: DataFrame, geometries: Union[GeoDataFrame, None]) -> DataFrame:
    if geometries is None:
        return data
    merged = data.merge(geometries, on='GEOID', how='left')
    return GeoDataFrame(merged, geometry=geometries.geometry.name, crs=geometries.crs)


def to_wide(tidy: DataFrame) -> DataFrame:
    """
    Pivots a tidy table into one row per area. ACS estimates and margins of error
    become ``<variable>E`` and ``<variable>M`` columns; Decennial values keep the
    variable name. Geometry, if any, is carried over.
    """
    value_cols = [c for c in TIDY_SUFFIXES if c in tidy.columns]
    if 'variable' not in tidy.columns or not value_cols:
        raise ValueError("a tidy table needs a 'variable' column and an 'estimate', 'moe' or 'value' column")

    tidy, geometries = _split_geometry(tidy)
    id_cols = [c for c in ID_COLUMNS if c in tidy.columns]

    variables = list(tidy['variable'].unique())
    wide = tidy.pivot(index=id_cols, columns='variable', values=value_cols)
    wide = wide[[(vc, v) for v in variables for vc in value_cols]]
    wide.columns = [f'{v}{TIDY_SUFFIXES[vc]}' for vc, v in wide.columns]
    wide = wide.reset_index()

    return _restore_geometry(wide, geometries)


def to_tidy(wide: DataFrame) -> DataFrame:
    """
    Melts a wide table into one row per area and variable. Column pairs ending in
    ``E`` and ``M`` become ``estimate`` and ``moe``; when the table has no such pairs
    every other column becomes a ``value``.
    """
    wide, geometries = _split_geometry(wide)
    id_cols = [c for c in ID_COLUMNS if c in wide.columns]
    data_cols = [c for c in wide.columns if c not in id_cols]

    pairs = [c[:-1] for c in data_cols if c.endswith('E') and f'{c[:-1]}M' in wide.columns]
    paired = set(f'{p}E' for p in pairs) | set(f'{p}M' for p in pairs)

    frames = []
    if pairs:
        for c in data_cols:
            if c in paired and c.endswith('M'):
                continue
            frame = wide[id_cols].copy()
            if c in paired:
                frame['variable'] = c[:-1]
                frame['estimate'] = wide[c].values
                frame['moe'] = wide[f'{c[:-1]}M'].values
            else:
                frame['variable'] = c
                frame['estimate'] = wide[c].values
                frame['moe'] = nan
            frames.append(frame)
    else:
        for c in data_cols:
            frame = wide[id_cols].copy()
            frame['variable'] = c
            frame['value'] = wide[c].values
            frames.append(frame)

    if not frames:
        raise ValueError('the wide table has no variable columns')

    tidy = concat(frames, ignore_index=True)
    if 'GEOID' in tidy.columns:
        tidy = tidy.sort_values(by='GEOID', kind='stable').reset_index(drop=True)
    return _restore_geometry(tidy, geometries)


def compare_estimates(one_year: DataFrame, five_year: DataFrame, on: Union[str, List[str]] = 'GEOID', value: str = 'estimate', suffixes: Tuple[str, str] = ('_1yr', '_5yr')) -> DataFrame:
    """
    Joins a 1-year and a 5-year table and computes how far the 1-year value departs
    from the 5-year one:

    ``relative_diff = one_year / five_year - 1``

    Only areas present in both tables are kept. ``relative_diff`` is ``NaN`` where
    the 5-year value is missing, zero or negative.

    Parameters
    ==========
    one_year : :class:`pandas.DataFrame`
        The 1-year table (tidy or wide).
    five_year : :class:`pandas.DataFrame`
        The 5-year table, in the same shape.
    on : :obj:`str` or :obj:`list` of :obj:`str` = 'GEOID'
        The join key. For tidy tables ``variable`` is added to the key
        automatically.
    value : :obj:`str` = 'estimate'
        The column to compare. For wide tables use the estimate column, for
        example ``B19013_001E``.
    suffixes : :obj:`tuple` of :obj:`str` = ('_1yr', '_5yr')
        Appended to the compared columns of each table.

    Examples
    ========
    >>> compare_estimates(get_acs('county', 'B19013_001', state='WA', survey='acs1'),
    ...                   get_acs('county', 'B19013_001', state='WA', survey='acs5'))
    """
    keys = [on] if isinstance(on, str) else list(on)
    if 'variable' in one_year.columns and 'variable' in five_year.columns and 'variable' not in keys:
        keys.append('variable')

    for name, table in (('one_year', one_year), ('five_year', five_year)):
        missing = [c for c in keys + [value] if c not in table.columns]
        if missing:
            raise ValueError(f'{name} is missing the columns {missing}')

    moe_col = 'moe' if value == 'estimate' else (f'{value[:-1]}M' if value.endswith('E') else None)
    carried = [c for c in (value, moe_col) if c is not None and c in one_year.columns and c in five_year.columns]

    left_extra = [c for c in ('NAME',) if c in one_year.columns and c not in keys]
    left, geometries = _split_geometry(one_year)
    right, _ = _split_geometry(five_year)
    left = left[keys + left_extra + carried]
    right = right[keys + carried]

    joined = left.merge(right, on=keys, how='inner', suffixes=suffixes, validate='one_to_one')

    dropped_left = len(left) - len(joined)
    dropped_right = len(right) - len(joined)
    if dropped_left or dropped_right:
        logger.warning('join kept %d rows; dropped %d 1-year and %d 5-year rows without a match', len(joined), dropped_left, dropped_right)

    one = joined[f'{value}{suffixes[0]}'].astype(float)
    five = joined[f'{value}{suffixes[1]}'].astype(float)
    joined['relative_diff'] = one / five.where(five > 0) - 1

    return _restore_geometry(joined, geometries)


def moe_sum(moe: Sequence[float], estimate: Sequence[float] = None, na_rm: bool = False) -> float:
    """
    The margin of error of a sum of estimates: the square root of the sum of
    squared margins. When ``estimate`` is given, only the largest margin among
    zero-valued estimates is counted.
    """
    moe = asarray(moe, dtype=float)
    if estimate is not None:
        zeros = asarray(estimate, dtype=float) == 0
        if zeros.sum() > 1:
            moe = append(moe[~zeros], nanmax(moe[zeros]))

    if na_rm:
        moe = moe[~isnan(moe)]
    elif isnan(moe).any():
        return nan
    return float(sqrt((moe ** 2).sum()))


def moe_ratio(num, denom, moe_num, moe_denom):
    """
    The margin of error of a ratio of two estimates that are not nested.
    """
    with errstate(divide='ignore', invalid='ignore'):
        ratio = num / denom
        return sqrt(moe_num ** 2 + ratio ** 2 * moe_denom ** 2) / denom


def moe_prop(num, denom, moe_num, moe_denom):
    """
    The margin of error of a proportion, where the numerator is a subset of the
    denominator. Falls back to the ratio formula when the value under the square
    root would be negative.
    """
    with errstate(divide='ignore', invalid='ignore'):
        prop = num / denom
        x = moe_num ** 2 - prop ** 2 * moe_denom ** 2
        x = where(x < 0, moe_num ** 2 + prop ** 2 * moe_denom ** 2, x)
        result = sqrt(x) / denom
    if isinstance(num, Series):
        return Series(result, index=num.index)
    return result


def moe_product(est1, est2, moe1, moe2):
    """
    The margin of error of the product of two estimates.
    """
    return sqrt(est1 ** 2 * moe2 ** 2 + est2 ** 2 * moe1 ** 2)


def significance(est1, est2, moe1, moe2, clevel: float = 0.90):
    """
    Whether two estimates differ significantly at confidence level ``clevel``.
    Margins of error are assumed to be published at 90%.
    """
    if not 0 < clevel < 1:
        raise ValueError('clevel must be between 0 and 1')
    se1 = moe1 / MOE_Z_SCORES[90]
    se2 = moe2 / MOE_Z_SCORES[90]
    with errstate(divide='ignore', invalid='ignore'):
        test = np_abs(est1 - est2) / sqrt(se1 ** 2 + se2 ** 2)
    critical = norm.ppf(1 - (1 - clevel) / 2)
    return test > critical
