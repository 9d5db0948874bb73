from typing import Callable, Dict, Iterable, List, Set, Tuple, Union
from types import MethodType
from collections import defaultdict
from logging import getLogger
from re import finditer, split, sub
from json.decoder import JSONDecodeError
from httpx import AsyncBaseTransport
from shapely.geometry import shape
from shapely.geometry.polygon import Polygon
from shapely.geometry.multipolygon import MultiPolygon
from pandas import DataFrame, Series, concat
from geopandas import GeoDataFrame, read_file
from thefuzz import process
from Levenshtein import distance, ratio
from scipy.optimize import linear_sum_assignment
from numpy import log
from fiona.errors import DriverError, FionaValueError
from matplotlib.pyplot import fill, axis

from censuskit.api import TIGERClient, TIGERWebAPIError
from censuskit.recode import validate_state, validate_county
from censuskit.constants import (
    ABBR_TO_FULL, ABBR_TO_FULL_REGEX, FIPS_TO_FULL, CARTOGRAPHIC_ROOT, CARTOGRAPHIC_FILES,
    FEATURE_ATTRIBUTE_MAP, GEOGRAPHY_LAYER_MAP, LAYER_RESULT_COUNT_MAP,
)

logger = getLogger(__name__)

TIGERWEB_CRS = 'EPSG:4326'

CARTOGRAPHIC_ATTRIBUTE_MAP = {
    'STATEFP': 'state',
    'COUNTYFP': 'county',
    'TRACTCE': 'tract',
    'BLKGRPCE': 'block group',
    'PLACEFP': 'place',
}


class AreaNotFound(Exception):
    pass


def parse_name(name: str) -> str:
    """
    Parses the name of a geographic area. Replaces state abbreviations with full state
    names and removes any leading zeros.

    Parameters
    ==========
    name : :obj:`str`
        The name to parse.
    """
    for match in finditer(pattern=ABBR_TO_FULL_REGEX, string=name):
        state_abbr = match.group(0)
        name = name.replace(state_abbr, ABBR_TO_FULL[state_abbr.upper()])

    name = sub(pattern=r'(?<!\d)0+(?=\d)', repl='', string=name)

    return name


def generate_detailed_name(feature: Series, layer_name: str) -> str:
    """
    Generates a detailed name of a geographic area: the parsed name followed by the
    state, if the area is not itself a state.

    Parameters
    ==========
    feature : :class:`pandas.Series`
        A :class:`pandas.Series` representing the geographic area.
    layer_name : :obj:`str`
        The layer the geographic area comes from.
    """
    feature_attributes = feature.to_dict()

    detailed_name = parse_name(name=feature_attributes['NAME'])

    if 'state' in feature_attributes and layer_name != 'States' and feature_attributes['state'] in FIPS_TO_FULL:
        state_full = FIPS_TO_FULL[feature_attributes['state']]
        detailed_name += f', {state_full}'

    return detailed_name


def tokenize_feature_name(feature_name: str) -> set:
    """
    Splits a detailed name of a geographic area into tokens.
    """
    return set(t for t in split(pattern=r'\W+', string=feature_name) if t != '')


def build_custom_scorer(count_map: Dict[str, int], N: int) -> Tuple[Callable[[str, str], float], Dict[str, float]]:
    """
    Constructs a custom scoring function for edit distance. The custom scorer is mostly
    based on Normalized Setwise Levenshtein Distance, proposed in
    https://arxiv.org/pdf/1903.09238.pdf, with additions to account for word importance
    (tokens that appear in few names, like "Seattle", weigh more than ones that appear
    in many, like "city").

    Parameters
    ==========
    count_map : :obj:`dict` of :obj:`str`: :obj:`int`
        The number of names each unique token appears in.
    N : :obj:`int`
        The total number of names.
    """
    idf_map = {k: log(N/v) for k, v in count_map.items()}

    def token_distance_idf(s1t: str, s2t: str) -> float:
        if s1t == '' or s2t == '':
            non_empty_t = s1t if s1t != '' else s2t
            if non_empty_t in idf_map:
                return idf_map[non_empty_t]/2
        return distance(s1t, s2t)

    def set_distance(s1ts: Set[str], s2ts: Set[str]) -> float:
        s1tl = list(s1ts)
        s2tl = list(s2ts)

        ls1t = sum(len(s1t) for s1t in s1ts)
        ls2t = sum(len(s2t) for s2t in s2ts)

        n = len(s1ts)
        m = len(s2ts)
        k = max(n, m)

        s1tl = s1tl + ['']*(k-n)
        s2tl = s2tl + ['']*(k-m)

        ld_arr = [[token_distance_idf(s1t, s2t) for s2t in s2tl] for s1t in s1tl]
        row_assignments, col_assignments = linear_sum_assignment(ld_arr)
        sld = sum(ld_arr[r][c] for r, c in zip(row_assignments, col_assignments))
        if ls1t + ls2t + sld == 0:
            return 0.0
        return (2*sld)/(ls1t + ls2t + sld)

    def custom_scorer(s1: str, s2: str) -> float:
        s1ts = tokenize_feature_name(s1.lower())
        s2ts = tokenize_feature_name(s2.lower())

        if len(s1ts) == 1 and len(s2ts) == 1:
            return ratio(s1.lower(), s2.lower())
        return 1 - set_distance(s1ts=s1ts, s2ts=s2ts)

    return custom_scorer, idf_map


def _normalize_columns(gdf: DataFrame, attribute_map: Dict[str, str]) -> DataFrame:
    gdf = gdf.rename(columns=attribute_map)
    if 'GEOID' in gdf.columns:
        gdf['GEOID'] = gdf['GEOID'].astype(str)
    return gdf


class Area:
    """
    An object representing a single geographic area, such as a place boundary used
    to filter tracts.

    Attributes
    ==========
    name : :obj:`str`
        The name of the geographic area.
    layer_name : :obj:`str` or None
        The TIGERweb layer the area comes from, if any.
    attributes : :obj:`dict` of :obj:`str`: :obj:`str`
        The attributes of the geographic area (``state``, ``place``, ``GEOID``, ...).
    geometry : :class:`shapely.Polygon` or :class:`shapely.MultiPolygon`
        The boundary of the geographic area.
    crs : :obj:`str`
        The coordinate reference system of ``geometry``.
    """
    def __init__(self) -> None:
        self.name : str = None
        self._attributes_are_set = False
        self.layer_name : str = None
        self.attributes : Dict[str, str] = {}
        self.geometry : Union[Polygon, MultiPolygon] = None
        self.crs = TIGERWEB_CRS

    def __repr__(self) -> str:
        if self._attributes_are_set is False:
            self._set_attributes()
        area_str = f'Name: {self.name}\nAttributes:\n'
        if len(self.attributes) == 0:
            area_str += '  None'
        for attr, val in self.attributes.items():
            area_str += f'  - {attr}: {val}\n'
        return area_str

    def _set_attributes(self) -> None:
        ...

    def to_gdf(self) -> GeoDataFrame:
        """
        Returns the area as a one-row :class:`geopandas.GeoDataFrame`.
        """
        if self._attributes_are_set is False:
            self._set_attributes()
        record = {'NAME': self.name}
        record.update({k: v for k, v in self.attributes.items() if k != 'geometry'})
        return GeoDataFrame([record], geometry=[self.geometry], crs=self.crs)

    def plot(self, **kwargs) -> None:
        """
        Generates a plot of the geographic area using ``matplotlib``.

        Parameters
        ==========
        **kwargs
            Any additional plotting parameters to pass to ``matplotlib`` when calling
            ``matplotlib.pyplot.fill()``.
        """
        if self._attributes_are_set is False:
            self._set_attributes()
        if isinstance(self.geometry, Polygon):
            x, y = self.geometry.exterior.xy
            fill(x, y, **kwargs)
        elif isinstance(self.geometry, MultiPolygon):
            for g in self.geometry.geoms:
                x, y = g.exterior.xy
                fill(x, y, **kwargs)
        axis('equal')

    @classmethod
    def from_tiger(cls, geo_id: str, layer_id: int, layer_name: str, tiger_client: TIGERClient) -> 'Area':
        """
        Constructs an :class:`.Area` object from TIGERweb. The boundary is only
        requested the first time it is needed.

        Parameters
        ==========
        geo_id : :obj:`str`
            The geographic identifier of the area.
        layer_id : :obj:`int`
            The identifier of the layer the area is derived from.
        layer_name : :obj:`str`
            The name of the layer the area is derived from.
        tiger_client : :class:`.TIGERClient`
            A client to use to interface with TIGERweb.
        """
        def _set_attributes(self: Area):
            if self._attributes_are_set is True:
                return

            params = {
                'where': f"GEOID='{geo_id}'",
                'outFields': '*',
                'returnGeometry': 'true',
                'geometryPrecision': '6',
                'outSR': '4326'
            }
            area_resp = tiger_client.get_sync(f'{layer_id}/query', params=params, return_type='geojson')
            features = area_resp.json()['features']
            if len(features) == 0:
                raise AreaNotFound(f"No feature with GEOID '{geo_id}' in layer '{layer_name}'.")
            feature = features[0]

            for attr, val in feature['properties'].items():
                if attr == 'NAME':
                    self.name = val
                    continue
                attr = FEATURE_ATTRIBUTE_MAP.get(attr, attr)
                self.attributes[attr] = val

            self.layer_name = layer_name
            self.geometry = shape(feature['geometry'])
            self.crs = TIGERWEB_CRS
            self._attributes_are_set = True

        area = cls()
        area._set_attributes = MethodType(_set_attributes, area)

        return area

    @classmethod
    def from_url(cls, name: str, url: str, geo_col: str = 'geometry') -> 'Area':
        """
        Constructs an :class:`.Area` object from a URL pointing to a file with exactly
        one feature.
        """
        return cls._from_file_or_url(name=name, path=url, kind='URL', geo_col=geo_col)

    @classmethod
    def from_file(cls, name: str, filename: str, geo_col: str = 'geometry') -> 'Area':
        """
        Constructs an :class:`.Area` object from a file with exactly one feature.
        """
        return cls._from_file_or_url(name=name, path=filename, kind='filename', geo_col=geo_col)

    @classmethod
    def _from_file_or_url(cls, name: str, path: str, kind: str, geo_col: str = 'geometry') -> 'Area':
        def _set_attributes(self: Area):
            if self._attributes_are_set is True:
                return

            try:
                gdf = read_file(path, engine='fiona')
            except (DriverError, FionaValueError):
                raise ValueError(f"The {kind} you provided must point to a file of any file format recognized by 'fiona' (see http://fiona.readthedocs.io/en/latest/manual.html).")

            if len(gdf) != 1:
                raise ValueError(f'The {kind} you provided must point to a file that has exactly one object.')

            if geo_col not in gdf:
                raise ValueError(f"The {kind} you provided must point to a file with the geometry column '{geo_col}'. The columns of the file were: {list(gdf.columns)}")

            self.name = name
            self.geometry = gdf[geo_col].values[0]
            self.crs = gdf.crs
            self.attributes = gdf.drop(columns=[geo_col]).to_dict(orient='records')[0]
            self._attributes_are_set = True

        area = cls()
        area._set_attributes = MethodType(_set_attributes, area)
        return area


class Layer:
    """
    An object representing a layer of a TIGERweb MapService.

    Parameters
    ==========
    info : :obj:`dict` of :obj:`str`: :obj:`str`
        A dictionary detailing the attributes of the layer.
    tiger_client : :class:`.TIGERClient`
        A client to use to interface with TIGERweb.

    Attributes
    ==========
    name : :obj:`str`
        The name of the TIGERweb MapService layer.
    id : :obj:`str`
        The identifier of the TIGERweb MapService layer.
    """
    def __init__(self, info: Dict[str, str], tiger_client: TIGERClient) -> None:
        self.name = info['name']
        self.id = info['id']

        self.tiger_client = tiger_client

    def __repr__(self) -> str:
        return f'MapService Layer ({self.name})'

    @staticmethod
    def _spatial_params(bbox: Iterable[float] = None) -> Dict[str, str]:
        if not bbox:
            return {}
        return {
            'geometry': ','.join(str(b) for b in bbox),
            'geometryType': 'esriGeometryEnvelope',
            'inSR': '4326',
            'spatialRel': 'esriSpatialRelIntersects'
        }

    def _get_feature_attributes(self, where: str = '1=1', bbox: Iterable[float] = None, out_fields: str = '*') -> DataFrame:
        params = {
            'where': where,
            'outFields': out_fields,
            'returnGeometry': 'false'
        }
        params.update(self._spatial_params(bbox))

        features_resp = self.tiger_client.get_sync(url=f'{self.id}/query', params=params, return_type='json')
        try:
            features = features_resp.json().get('features', [])
        except JSONDecodeError:
            raise TIGERWebAPIError(None, 'There was a problem decoding the result of your TIGERweb call. Please try again or request a different geography.')
        return DataFrame([f['attributes'] for f in features])

    def _get_feature_geometry(self, where: str = '1=1', bbox: Iterable[float] = None, feature_count: int = None) -> GeoDataFrame:
        params = {
            'where': where,
            'outFields': 'GEOID',
            'returnGeometry': 'true',
            'geometryPrecision': '6',
            'outSR': '4326'
        }
        params.update(self._spatial_params(bbox))

        if feature_count is None:
            canary_params = {
                'where': where,
                'returnCountOnly': 'true'
            }
            canary_params.update(self._spatial_params(bbox))
            feature_count = self.tiger_client.get_sync(url=f'{self.id}/query', params=canary_params).json()['count']

        result_record_count = LAYER_RESULT_COUNT_MAP.get(self.name, 100)

        tries = 0
        while True:
            try:
                tries += 1
                params_list = []
                for i in range(1 + (feature_count//result_record_count)):
                    page_params = params.copy()
                    page_params['resultRecordCount'] = result_record_count
                    page_params['resultOffset'] = i*result_record_count
                    params_list.append(page_params)

                url_params_list = [(f'{self.id}/query', p) for p in params_list]
                features_responses = self.tiger_client.get_many_sync(url_params_list=url_params_list, return_type='geojson')

                gdfs = []
                for features_resp in features_responses:
                    features = features_resp.json()['features']
                    if features:
                        gdfs.append(GeoDataFrame.from_features(features, crs=TIGERWEB_CRS))

                if not gdfs:
                    return GeoDataFrame({'GEOID': []}, geometry=[], crs=TIGERWEB_CRS)
                return GeoDataFrame(concat(gdfs, ignore_index=True), crs=TIGERWEB_CRS)
            except TIGERWebAPIError:
                if tries <= 2 and result_record_count > 1:
                    result_record_count = max(1, result_record_count // 2)
                    logger.warning("TIGERweb rejected pages of layer '%s'; retrying with %d features per page", self.name, result_record_count)
                else:
                    raise TIGERWebAPIError(None, 'There was a problem generating TIGERweb API calls. Please try again or request a smaller geography set.')
            except JSONDecodeError:
                raise TIGERWebAPIError(None, 'There was a problem decoding the result of your TIGERweb call. Please try again or request a different geography.')

    def get_features(self, where: str = '1=1', bbox: Iterable[float] = None, out_fields: str = '*', return_geometry: bool = False) -> Union[DataFrame, GeoDataFrame]:
        """
        Get a set of features in this layer.

        Parameters
        ==========
        where : :obj:`str` = '1=1'
            An SQL where clause over the layer's attributes, for example
            ``STATE='53' AND COUNTY='033'``.
        bbox : array-like of :obj:`float` = None
            A bounding box (EPSG:4326) to subset the layer, of length four.
        out_fields : :obj:`str` = '*'
            Controls what attributes are returned for each feature.
        return_geometry : :obj:`bool` = False
            Determines whether or not the geometry of each feature is included, in which
            case a :class:`geopandas.GeoDataFrame` is returned.
        """
        features = self._get_feature_attributes(where=where, bbox=bbox, out_fields=out_fields)
        if return_geometry:
            geometries = self._get_feature_geometry(where=where, bbox=bbox, feature_count=len(features))
            if len(features) == 0:
                return _normalize_columns(geometries, FEATURE_ATTRIBUTE_MAP)
            features = GeoDataFrame(features.merge(geometries[['GEOID', 'geometry']], on='GEOID', how='inner'), geometry='geometry', crs=TIGERWEB_CRS)
        return _normalize_columns(features, FEATURE_ATTRIBUTE_MAP)

    def get_area_by_geo_id(self, geoid: str) -> Area:
        """
        Searches the layer for a feature from a geographic identifier.
        """
        geoid = str(geoid)
        features = self.get_features(where=f"GEOID='{geoid}'", out_fields='GEOID')
        if len(features) > 0:
            logger.info("matched GEOID = %s in layer '%s'", geoid, self.name)
            area = Area.from_tiger(geo_id=geoid, layer_id=self.id, layer_name=self.name, tiger_client=self.tiger_client)
            area._set_attributes()
            return area

        raise AreaNotFound(f"The GEOID '{geoid}' does not have any matches within the layer '{self.name}'. Please ensure you are searching at the correct geographic level.")

    def get_area_by_name(self, name: str, where: str = '1=1') -> Area:
        """
        Searches the layer for a feature from a name. Please be as detailed as possible
        when searching for a name. For example, you should use ``Seattle, Washington``
        instead of ``Seattle``. Name matching is done with a custom string distance
        function partially based on Normalized Setwise Levenshtein Distance, as
        defined in https://arxiv.org/pdf/1903.09238.pdf.

        Parameters
        ==========
        name : :obj:`str`
            The name to search for.
        where : :obj:`str` = '1=1'
            Restricts the candidates, for example to a single state.
        """
        parsed_name = parse_name(name=name)
        parsed_name_token_set = tokenize_feature_name(feature_name=parsed_name.lower())

        features = self.get_features(where=where)
        if len(features) == 0:
            raise AreaNotFound(f"The layer '{self.name}' has no features matching {where}.")

        features['detailed_name'] = features.apply(func=lambda f : generate_detailed_name(feature=f, layer_name=self.name), axis=1)
        token_sets = features['detailed_name'].apply(lambda n : tokenize_feature_name(n.lower())).to_list()
        N = len(token_sets)
        count_map = defaultdict(int)
        for token_set in token_sets:
            for token in token_set:
                count_map[token] += 1

        custom_scorer, _ = build_custom_scorer(count_map=count_map, N=N)

        geoid_name_dict = dict(zip(features['GEOID'], features['detailed_name']))
        geoid_token_set_dict = dict(zip(features['GEOID'], token_sets))
        best_matches = process.extractBests(query=parsed_name, choices=geoid_name_dict, scorer=custom_scorer, limit=20, score_cutoff=0.8)

        geoid = None
        if len(best_matches) == 0:
            exception_string = f"The name '{name}' does not have any matches within the layer '{self.name}'. Please ensure you've spelled everything correctly and are searching at the correct geographic level. For reference, here are some examples of names within this layer.\n"
            for example in features['detailed_name'].to_list()[:5]:
                exception_string += f'  - {example}\n'
            raise AreaNotFound(exception_string)

        elif len(best_matches) == 1 or best_matches[0][1] >= 0.99:
            area_name, _, geoid = best_matches[0]

        elif best_matches[0][1] > 0.95 and best_matches[0][1] - best_matches[1][1] > 0.05:
            area_name, _, geoid = best_matches[0]

        else:
            best_match_token_sets = [geoid_token_set_dict[bm[2]] for bm in best_matches]
            best_match_geoid_name_dict = {bm[2]: geoid_name_dict[bm[2]] for bm in best_matches}
            all_missing_tokens = set.union(*best_match_token_sets).difference(parsed_name_token_set)

            new_matches = set()
            for token in all_missing_tokens:
                new_parsed_name = ' '.join(parsed_name_token_set | {token})
                new_best_matches = process.extractBests(query=new_parsed_name, choices=best_match_geoid_name_dict, scorer=custom_scorer, limit=20, score_cutoff=0.8)

                if (len(new_best_matches) == 1 and new_best_matches[0][1] > 0.95) or (len(new_best_matches) > 0 and new_best_matches[0][1] >= 0.98):
                    new_matches.add((new_best_matches[0][0], new_best_matches[0][2]))

            if len(new_matches) == 1:
                area_name, geoid = new_matches.pop()

        if geoid is None:
            exception_string = f"The name '{name}' is ambiguous. Is there a typo? Could you be more specific? Did you mean any of the following (in no particular order)?\n"
            for match in best_matches[:10]:
                exception_string += f'  - {match[0]} (GEOID = {match[2]})\n'
            raise AreaNotFound(exception_string)

        logger.info("matched '%s' to '%s' (GEOID = %s) in layer '%s'", name, area_name, geoid, self.name)
        area = Area.from_tiger(geo_id=geoid, layer_id=self.id, layer_name=self.name, tiger_client=self.tiger_client)
        area._set_attributes()
        return area


class AreaCollection:
    """
    An object that represents the geographic areas of one TIGERweb MapService.

    Parameters
    ==========
    map_service : :obj:`str` = 'tigerWMS_Current'
        The TIGERweb MapService to use as the basis for this collection.
    transport : :class:`httpx.AsyncBaseTransport` = None
        An alternative transport for the underlying :class:`.TIGERClient`.

    Attributes
    ==========
    tiger_client : :class:`.TIGERClient`
        A client to use to interface with TIGERweb.
    available_layers : :obj:`dict` of :obj:`str`, :class:`.Layer`
        The layers of the MapService, by name.
    """
    def __init__(self, map_service: str = 'tigerWMS_Current', transport: AsyncBaseTransport = None) -> None:
        self.map_service = map_service
        self.tiger_client = TIGERClient(map_service=map_service, transport=transport)
        self.available_layers = self._find_available_layers()

    def __repr__(self) -> str:
        return f'AreaCollection ({self.map_service}, {len(self.available_layers)} layers)'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        """
        Closes the connections of the underlying :class:`.TIGERClient`. Areas found
        through this collection can no longer fetch their geometry afterwards.
        """
        self.tiger_client.close()

    def _find_available_layers(self) -> Dict[str, Layer]:
        available_layers = {}
        layers_response = self.tiger_client.get_sync('layers')
        for l in layers_response.json()['layers']:
            if 'Labels' not in l['name']:
                layer = Layer(l, tiger_client=self.tiger_client)
                available_layers[layer.name] = layer
        return available_layers

    def get_layer(self, layer_name: str) -> Layer:
        """
        Searches the available layers by name. Close spellings are accepted.
        """
        if layer_name in self.available_layers:
            return self.available_layers[layer_name]
        match = process.extractOne(query=layer_name, choices=list(self.available_layers.keys()))
        if match is not None and match[1] >= 90:
            return self.available_layers[match[0]]
        raise ValueError(f"The layer '{layer_name}' is not available for this map service. To see the available layers, see AreaCollection.available_layers.")

    def layers_for(self, geography: str) -> List[Layer]:
        """
        Returns the layers holding the areas of a Census geography level (``tract``,
        ``place``, ...). Places span two layers.
        """
        if geography not in GEOGRAPHY_LAYER_MAP:
            raise ValueError(f"geometries are not available for '{geography}'; expected one of {list(GEOGRAPHY_LAYER_MAP)}")

        layer_names = GEOGRAPHY_LAYER_MAP[geography]
        layers = [self.available_layers[n] for n in layer_names if n in self.available_layers]
        if geography == 'place':
            if layers:
                return layers
        elif layers:
            return layers[:1]

        for n in layer_names:
            try:
                return [self.get_layer(n)]
            except ValueError:
                continue
        raise ValueError(f"The map service '{self.map_service}' has no layer for '{geography}'.")

    def area(self, name: str = None, geoid: str = None, layer_name: str = '', where: str = '1=1') -> Area:
        """
        Searches a layer for an area with a given name or identifier. Supply a name or
        an identifier, but not both.
        """
        layer = self.get_layer(layer_name=layer_name)

        if not ((name is not None) ^ (geoid is not None)):
            raise ValueError('Must provide either a name or a geoid, but not both.')

        if name:
            return layer.get_area_by_name(name=name, where=where)
        return layer.get_area_by_geo_id(geoid=geoid)

    def area_multilayer(self, name: str = None, geoid: str = None, layer_names: List[str] = (), where: str = '1=1') -> Area:
        """
        Searches several layers, in order, for an area with a given name or identifier.
        """
        exceptions = []
        for layer_name in layer_names:
            if layer_name in self.available_layers:
                try:
                    return self.area(name=name, geoid=geoid, layer_name=layer_name, where=where)
                except AreaNotFound as e:
                    exceptions.append(str(e))

        exception_string = f"Searched for '{name or geoid}' among the layers {list(layer_names)}. No search was successful. The searches raised the following exceptions:\n\n"
        for e in exceptions:
            exception_string += f'{e}\n\n'

        raise AreaNotFound(exception_string)

    def state(self, state: str = None, geoid: str = None) -> Area:
        """
        Searches the States layer for a state by name (``Washington``, ``WA``) or
        identifier.
        """
        return self.area(name=state, geoid=geoid, layer_name='States')

    def county(self, county: str = None, geoid: str = None, state: str = None) -> Area:
        """
        Searches the Counties layer for a county. Names should be as specific as
        possible, e.g. ``King County, Washington``; passing ``state`` restricts the
        search to one state.
        """
        where = f"STATE='{validate_state(state)}'" if state is not None else '1=1'
        return self.area(name=county, geoid=geoid, layer_name='Counties', where=where)

    def tract(self, geoid: str = None) -> Area:
        """
        Searches the Census Tracts layer for a specific tract.
        """
        return self.area(geoid=geoid, layer_name='Census Tracts')

    def place(self, place: str = None, geoid: str = None, state: str = None) -> Area:
        """
        Searches the Incorporated Places and Census Designated Places layers for a
        place, for example ``Seattle, Washington``. Passing ``state`` restricts the
        search to one state, which is much faster.
        """
        where = f"STATE='{validate_state(state)}'" if state is not None else '1=1'
        return self.area_multilayer(name=place, geoid=geoid, layer_names=GEOGRAPHY_LAYER_MAP['place'], where=where)


def map_service_for(year: int = None, survey: str = 'acs') -> str:
    """
    Picks the TIGERweb MapService whose vintage matches an ACS or Decennial dataset.

    Parameters
    ==========
    year : :obj:`int` = None
        The data year. ``None`` selects the current service.
    survey : :obj:`str` = 'acs'
        ``acs`` or ``dec``.
    """
    if year is None:
        return 'tigerWMS_Current'

    year = int(year)
    if survey == 'dec':
        return f'tigerWMS_Census{year}'

    if year == 2020:
        logger.warning('No ACS MapService is available for 2020, so using 2021')
        return 'tigerWMS_ACS2021'
    if year <= 2011:
        logger.warning('No ACS MapService is available for %d, so using earliest available (2012)', year)
        return 'tigerWMS_ACS2012'
    return f'tigerWMS_ACS{year}'


def _where(state: str = None, county: str = None) -> str:
    clauses = []
    if state is not None:
        clauses.append(f"STATE='{state}'")
    if county is not None:
        clauses.append(f"COUNTY='{county}'")
    return ' AND '.join(clauses) if clauses else '1=1'


def _resolve_county(state: str, county, areas: AreaCollection = None, year: int = None) -> str:
    if county is None:
        return None
    if str(county).strip().isdigit():
        return validate_county(state, county)
    if areas is None:
        with AreaCollection(map_service=map_service_for(year)) as owned:
            return _resolve_county(state, county, areas=owned, year=year)
    counties_table = areas.layers_for('county')[0].get_features(where=_where(state), out_fields='GEOID,STATE,COUNTY,NAME,BASENAME')
    return validate_county(state, county, counties=counties_table)


def _cartographic_features(geography: str, year: int, state: str = None, county: str = None, resolution: str = '500k') -> GeoDataFrame:
    if geography not in CARTOGRAPHIC_FILES:
        raise ValueError(f"cartographic boundary files are not available for '{geography}'; expected one of {list(CARTOGRAPHIC_FILES)}")
    if year is None:
        raise ValueError('a year is required when downloading cartographic boundary files')

    stem, national = CARTOGRAPHIC_FILES[geography]
    if not national and state is None:
        raise ValueError(f"'state' is required for {geography} cartographic boundary files")
    scope = 'us' if national else state
    url = f'{CARTOGRAPHIC_ROOT}GENZ{year}/shp/cb_{year}_{scope}_{stem}_{resolution}.zip'

    logger.info('downloading %s', url)
    try:
        gdf = read_file(url, engine='fiona')
    except (DriverError, FionaValueError):
        raise ValueError(f'Unable to read the cartographic boundary file at {url}. Is {year} a valid vintage for {geography}?')

    gdf = _normalize_columns(gdf, CARTOGRAPHIC_ATTRIBUTE_MAP)
    if state is not None and 'state' in gdf.columns:
        gdf = gdf[gdf['state'] == state]
    if county is not None and 'county' in gdf.columns:
        gdf = gdf[gdf['county'] == county]
    return gdf.reset_index(drop=True)


def shapes(geography: str, state: Union[str, int] = None, county: Union[str, int] = None, year: int = None, cb: bool = False, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches boundary geometries for a Census geography level, with no statistical
    attributes.

    Parameters
    ==========
    geography : :obj:`str`
        One of ``state``, ``county``, ``tract``, ``block group``, ``block``,
        ``place`` (or any level in TIGERweb, such as ``county subdivision``).
    state : :obj:`str` or :obj:`int` = None
        A state FIPS code, abbreviation or name.
    county : :obj:`str` or :obj:`int` = None
        A county FIPS code or name within ``state``.
    year : :obj:`int` = None
        The vintage of the boundaries. ``None`` uses the current TIGERweb service.
    cb : :obj:`bool` = False
        Download the generalized cartographic boundary file instead of querying
        TIGERweb. Cartographic boundaries are clipped to the shoreline and render
        faster.
    areas : :class:`.AreaCollection` = None
        An existing collection to query, which avoids re-listing the layers.
    """
    state = validate_state(state) if state is not None else None
    if county is not None and state is None:
        raise ValueError("'county' can only be used together with 'state'")

    if cb:
        county = _resolve_county(state, county, areas=areas, year=year)
        gdf = _cartographic_features(geography=geography, year=year, state=state, county=county)
    elif areas is None:
        with AreaCollection(map_service=map_service_for(year)) as owned:
            return shapes(geography, state=state, county=county, year=year, areas=owned)
    else:
        county = _resolve_county(state, county, areas=areas, year=year)
        where = _where(state, county)
        gdfs = [layer.get_features(where=where, return_geometry=True) for layer in areas.layers_for(geography)]
        gdf = GeoDataFrame(concat(gdfs, ignore_index=True), geometry='geometry', crs=TIGERWEB_CRS) if len(gdfs) > 1 else gdfs[0]

    logger.info('fetched %d %s geometries', len(gdf), geography)
    first = [c for c in ('GEOID', 'NAME') if c in gdf.columns]
    return gdf[first + [c for c in gdf.columns if c not in first]]


def states(year: int = None, cb: bool = False, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches state boundaries.
    """
    return shapes('state', year=year, cb=cb, areas=areas)


def counties(state: Union[str, int] = None, year: int = None, cb: bool = False, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches county boundaries, optionally for a single state.
    """
    return shapes('county', state=state, year=year, cb=cb, areas=areas)


def tracts(state: Union[str, int], county: Union[str, int] = None, year: int = None, cb: bool = False, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches Census tract boundaries for a state, optionally for a single county.
    """
    return shapes('tract', state=state, county=county, year=year, cb=cb, areas=areas)


def block_groups(state: Union[str, int], county: Union[str, int] = None, year: int = None, cb: bool = False, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches Census block group boundaries for a state, optionally for a single
    county.
    """
    return shapes('block group', state=state, county=county, year=year, cb=cb, areas=areas)


def blocks(state: Union[str, int], county: Union[str, int] = None, year: int = None, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches Census block boundaries. Blocks are large; restrict by county when you
    can. There are no cartographic boundary files for blocks.
    """
    if county is None:
        logger.warning('fetching every block in a state can take a long time; consider passing a county')
    if areas is None and year is not None:
        with AreaCollection(map_service=map_service_for(year, survey='dec')) as owned:
            return shapes('block', state=state, county=county, year=year, areas=owned)
    return shapes('block', state=state, county=county, year=year, areas=areas)


def places(state: Union[str, int], year: int = None, cb: bool = False, areas: AreaCollection = None) -> GeoDataFrame:
    """
    Fetches place boundaries (incorporated places and Census designated places) for
    a state.
    """
    return shapes('place', state=state, year=year, cb=cb, areas=areas)
