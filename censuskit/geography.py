from collections import defaultdict
from typing import Any, Dict, List, Set, Union
from pandas import DataFrame

from censuskit.geoid import COMPONENT_WIDTHS


class UnknownGeography(Exception):
    pass


class InvalidGeographyHierarchy(Exception):
    pass


def pad_geography_filters(geo_filters: Dict[str, str]) -> Dict[str, str]:
    """
    Pads (with zeros) a set of geography filters to their appropriate lengths.

    Parameters
    ==========
    geo_filters : :obj:`dict` of :obj:`str`: :obj:`str`
        The geography filters to pad, for example ``{'state': 6, 'county': '1'}``.
    """
    padded = {}
    for g, value in geo_filters.items():
        value = str(value)
        if value != '*' and value.isdigit():
            if g in COMPONENT_WIDTHS:
                value = str(int(value)).zfill(COMPONENT_WIDTHS[g])
            elif g == 'metropolitan statistical area/micropolitan statistical area':
                value = str(int(value)).zfill(5)
            elif g == 'combined statistical area':
                value = str(int(value)).zfill(3)
            elif g == 'congressional district':
                value = str(int(value)).zfill(2)
            elif g == 'zip code tabulation area':
                value = str(int(value)).zfill(5)
        padded[g] = value

    return padded


class Geography:
    """
    An object representing a single Census geography hierarchy, as listed in a
    dataset's ``geography.json``.

    Parameters
    ==========
    params : :obj:`dict` of :obj:`str`: :obj:`Any`
        A set of parameters detailing the attributes of the Census geography hierarchy.

    Attributes
    ==========
    name : :obj:`str` or None
        The name of the geography hierarchy. For example, ``us``, ``state``,
        ``county``, ``tract``, etc.
    level : :obj:`str` or None
        The summary level code of the hierarchy (``140`` for tracts).
    requires : :obj:`list` of :obj:`str`
        The parent geographies that must be given when requesting this one. For
        example, ``tract`` requires ``state`` and ``county``.
    wildcard : :obj:`list` of :obj:`str`
        The required parents that may be given as a wildcard (``*``).
    path : :obj:`tuple` of :obj:`str`
        The hierarchy, for example ``(state, county, tract)``.
    readable_path : :obj:`str`
        The elements of the path joined by " -> ".
    """
    def __init__(self, params: Dict[str, Any]) -> None:
        self.params = params
        self.name = params.get('name', None)
        self.level = params.get('geoLevelDisplay', None)
        self.requires = params.get('requires', []) or []
        self.wildcard = params.get('wildcard', []) or []
        self.optional_wildcard = params.get('optionalWithWCFor', [])
        if isinstance(self.optional_wildcard, str):
            self.optional_wildcard = [self.optional_wildcard]

        self.path = tuple(self.requires) + (self.name,)
        self.parent_path = self.path[:-1]
        self.readable_path = ' -> '.join(self.path)

    def __repr__(self) -> str:
        return f'{self.name} ({self.level})\n  requires: {self.requires}\n  wildcards: {self.wildcard}\n  path: [{self.readable_path}]\n'

    def _build_geography_params(self, geo_filters: Dict[str, str]) -> Dict[str, List[str]]:
        geo_filters = pad_geography_filters(geo_filters=geo_filters)
        geo_params = defaultdict(list)

        has_specified_geo = False
        if self.name in geo_filters and geo_filters[self.name] != '*':
            geo_params['for'].append(f'{self.name}:{geo_filters[self.name]}')
            has_specified_geo = True
        else:
            geo_params['for'].append(f'{self.name}:*')

        unused = set(geo_filters.keys()) - {self.name}
        reverse_requires = self.requires[::-1]
        for i, g in enumerate(reverse_requires):
            if g in geo_filters:
                value = geo_filters[g]
            elif g in self.wildcard:
                value = '*'
            else:
                raise InvalidGeographyHierarchy(f"'{g}' must be supplied when requesting '{self.name}'")

            if value == '*':
                if g not in self.wildcard:
                    raise InvalidGeographyHierarchy(f"'{g}' must be specified and cannot be a wildcard")
                if has_specified_geo is True:
                    raise InvalidGeographyHierarchy(f"cannot use wildcard for '{g}' because one of {reverse_requires[:i] + [self.name]} is already specified")
            else:
                has_specified_geo = True

            geo_params['in'].append(f'{g}:{value}')
            unused.discard(g)

        if unused:
            raise InvalidGeographyHierarchy(f"'{self.name}' cannot be filtered by {sorted(unused)}")

        geo_params['in'] = geo_params['in'][::-1]
        if not geo_params['in']:
            del geo_params['in']
        return dict(geo_params)


class GeographyCollection:
    """
    An object representing a collection of available Census geography hierarchies.

    Parameters
    ==========
    supported_geographies_json : :obj:`list` of (dict of :obj:`str`: :obj:`Any`)
        The ``fips`` entries of a dataset's ``geography.json``.
    """
    def __init__(self, supported_geographies_json: List[Dict[str, Any]]) -> None:
        self._geography_map : Dict[str, Geography] = {}
        self._geography_tree : Dict[tuple, Set[tuple]] = {}

        for g in supported_geographies_json:
            geo = Geography(g)
            self._geography_map[geo.level] = geo
            self._geography_tree[geo.path] = set()

        for g in self._geography_map.values():
            if g.parent_path in self._geography_tree:
                self._geography_tree[g.parent_path].add(g.path)

    def __iter__(self):
        return iter(self._geography_map.values())

    def __len__(self):
        return len(self._geography_map)

    def __repr__(self):
        return f'GeographyCollection of {len(self)} geographies'

    def get(self, level: str = None, name: str = None) -> Union[Geography, List[Geography]]:
        """
        Returns the requested :class:`.Geography` object, or a list of
        :class:`.Geography` objects if several hierarchies share a name. Raises
        :class:`.UnknownGeography` when nothing matches. Search by level or name.

        Parameters
        ==========
        level : :obj:`str`
            The summary level code, e.g. ``050``.
        name : :obj:`str`
            The name, e.g. ``county``.
        """
        if not ((level and not name) or (not level and name)):
            raise ValueError("must only provide a 'level' or a 'name'.")
        if level:
            if level in self._geography_map:
                return self._geography_map[level]
            raise UnknownGeography(f'The requested geographic level ({level}) is not available for this dataset.')

        matches = [g for g in self._geography_map.values() if g.name == name]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            return matches
        raise UnknownGeography(f"The current dataset does not have geography '{name}'. Available geographies are: {sorted(set(g.name for g in self))}")

    def _build_geography_params(self, name: str, geo_filters: Dict[str, str] = None):
        geo_filters = geo_filters or {}
        matches = self.get(name=name)
        if isinstance(matches, Geography):
            matches = [matches]

        exceptions = []
        for match in matches:
            try:
                return match, match._build_geography_params(dict(geo_filters))
            except InvalidGeographyHierarchy as e:
                exceptions.append(e)

        if len(matches) == 1:
            raise exceptions[0]

        exception_str = f'{len(matches)} geographies match the name you specified, but none match the filters you specified. Here are the matches and the corresponding errors:\n\n'
        for g, e in zip(matches, exceptions):
            exception_str += str(g)
            exception_str += f'error: {e}\n\n'

        raise InvalidGeographyHierarchy(exception_str)

    def to_df(self) -> DataFrame:
        """
        Converts the collection into a :class:`pandas.DataFrame` detailing each
        geography's name, level, and requirements.
        """
        geo_dicts = [{'name': g.name, 'level': g.level, 'requirements': g.requires} for g in self._geography_map.values()]
        return DataFrame(geo_dicts, columns=['name', 'level', 'requirements']).sort_values(by='level').reset_index(drop=True)

    def to_list(self) -> List[Geography]:
        return list(self._geography_map.values())
