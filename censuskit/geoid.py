"""
Helpers for Census geographic identifiers (GEOIDs).

A GEOID is the concatenation of the FIPS codes of every level above and
including the geography it identifies, so its length encodes the level:

   + state: ``SS`` (2)
   + county: ``SSCCC`` (5)
   + tract: ``SSCCCTTTTTT`` (11)
   + block group: ``SSCCCTTTTTTG`` (12)
   + block: ``SSCCCTTTTTTBBBB`` (15), where the first block digit is the block
     group

Places sit outside that chain: ``SSPPPPP`` (7).
"""
from typing import Dict
from pandas import DataFrame

COMPONENT_WIDTHS = {
    'state': 2,
    'county': 3,
    'tract': 6,
    'block group': 1,
    'block': 4,
    'place': 5,
}

GEOID_LENGTHS = {
    'state': 2,
    'county': 5,
    'tract': 11,
    'block group': 12,
    'block': 15,
    'place': 7,
}

HIERARCHY = ['state', 'county', 'tract', 'block group', 'block']

_LENGTH_TO_LEVEL = {length: level for level, length in GEOID_LENGTHS.items()}


class InvalidGEOID(ValueError):
    pass


def _pad(value, width: int) -> str:
    value = str(value).strip()
    if not value.isdigit():
        raise InvalidGEOID(f"'{value}' is not a numeric FIPS code")
    if len(value) > width:
        raise InvalidGEOID(f"'{value}' is longer than {width} digits")
    return value.zfill(width)


def build_geoid(state, county=None, tract=None, block_group=None, block=None) -> str:
    """
    Builds a GEOID from its FIPS components, zero-padding each one. Components must
    be given from the top of the hierarchy down without gaps. A ``block`` already
    carries its block group as its first digit, so ``block_group`` is ignored when
    ``block`` is given (but must agree with it if both are supplied).
    """
    components = [('state', state), ('county', county), ('tract', tract)]
    if block is not None:
        block = _pad(block, COMPONENT_WIDTHS['block'])
        if block_group is not None and str(block_group) != block[0]:
            raise InvalidGEOID(f"block '{block}' does not belong to block group '{block_group}'")
        components.append(('block', block))
    else:
        components.append(('block group', block_group))

    geoid = ''
    missing = None
    for level, value in components:
        if value is None:
            missing = level
            continue
        if missing is not None:
            raise InvalidGEOID(f"cannot build a GEOID with '{level}' but without '{missing}'")
        geoid += _pad(value, COMPONENT_WIDTHS[level])
    return geoid


def geoid_level(geoid: str) -> str:
    """
    Returns the geography level of a GEOID, inferred from its length.
    """
    geoid = str(geoid)
    if not geoid.isdigit() or len(geoid) not in _LENGTH_TO_LEVEL:
        raise InvalidGEOID(f"'{geoid}' is not a valid GEOID")
    return _LENGTH_TO_LEVEL[len(geoid)]


def is_valid_geoid(geoid: str, level: str) -> bool:
    if level not in GEOID_LENGTHS:
        raise ValueError(f"unknown geography level '{level}'; expected one of {list(GEOID_LENGTHS)}")
    geoid = str(geoid)
    return geoid.isdigit() and len(geoid) == GEOID_LENGTHS[level]


def parent_geoid(geoid: str, level: str) -> str:
    """
    Truncates a GEOID to the identifier of the enclosing area at a coarser level.
    For example, the tract ``53033005100`` sits in the county ``53033``.
    """
    own_level = geoid_level(geoid)
    if own_level == 'place':
        if level != 'state':
            raise InvalidGEOID('places only nest within states')
        return geoid[:GEOID_LENGTHS['state']]
    if level not in HIERARCHY or HIERARCHY.index(level) >= HIERARCHY.index(own_level):
        raise InvalidGEOID(f"'{level}' is not coarser than '{own_level}'")
    return geoid[:GEOID_LENGTHS[level]]


def split_geoid(geoid: str) -> Dict[str, str]:
    """
    Splits a GEOID into its FIPS components.
    """
    level = geoid_level(geoid)
    if level == 'place':
        return {'state': geoid[:2], 'place': geoid[2:]}

    parts = {}
    start = 0
    for l in HIERARCHY[:HIERARCHY.index(level) + 1]:
        if l == 'block':
            parts['block group'] = geoid[11]
            start = 11
        width = COMPONENT_WIDTHS[l]
        parts[l] = geoid[start:start + width]
        start += width
    return parts


def add_geoid(data: DataFrame, column: str = 'GEOID') -> DataFrame:
    """
    Adds a GEOID column to a Census API result. The GEOID is the part of the
    ``GEO_ID`` column (``1400000US53033005100``) after ``US``, which covers every
    geography level. Without a usable ``GEO_ID``, it is built by concatenating the
    geography columns.
    """
    if 'GEO_ID' in data.columns:
        geoids = data['GEO_ID'].astype(str).str.split('US', n=1).str[-1]
        if len(geoids) and (geoids != '').all():
            data[column] = geoids
            return data

    if 'place' in data.columns and 'state' in data.columns:
        data[column] = data['state'].astype(str) + data['place'].astype(str)
        return data

    if 'state' in data.columns:
        chain = [l for l in HIERARCHY if l in data.columns]
        if 'block' in chain and 'block group' in chain:
            chain.remove('block group')
        data[column] = data[chain].astype(str).agg(''.join, axis=1)
        return data

    geo_cols = [c for c in data.columns if c in ('us', 'region', 'division', 'zip code tabulation area')]
    if geo_cols:
        data[column] = data[geo_cols[-1]].astype(str)
        return data

    raise ValueError('the data has no geography columns to build a GEOID from')
