from typing import Union, Dict, List
from logging import getLogger
from json.decoder import JSONDecodeError
from httpx import AsyncBaseTransport, Response
from numpy import nan
from pandas import DataFrame, concat, to_numeric
from geopandas import GeoDataFrame

import censuskit.census_accessors  # noqa: F401 (registers the census accessor)
from censuskit.api import CensusClient, CensusAPIError
from censuskit.config import get_api_key
from censuskit.constants import BAD_VALUES, MOE_Z_SCORES
from censuskit.geoid import add_geoid
from censuskit.geography import GeographyCollection
from censuskit.recode import validate_state, validate_county
from censuskit.tiger import AreaCollection, map_service_for, shapes
from censuskit.variable import GroupCollection, Variable, VariableCollection, RequestedVariable

logger = getLogger(__name__)

NUMERIC_BAD_VALUES = [v for v in BAD_VALUES if isinstance(v, int)]


class DatasetError(Exception):
    pass


def _response_to_df(response: Response) -> DataFrame:
    try:
        data = response.json()
    except JSONDecodeError:
        raise DatasetError(f'There was a problem decoding the result of your Census API call. The following is the response from the Census API:\n\n{response.text}')
    return DataFrame(data[1:], columns=data[0])


class Dataset:
    """
    A base class to represent a Census dataset (product). Use :class:`.ACS1`,
    :class:`.ACS5` or :class:`.Decennial` where they apply.

    Parameters
    ==========
    url_extension : :obj:`str`
        A unique url path that accesses the content for this dataset. Appended to
        ``https://api.census.gov/data/``. For example, ``2021/acs/acs1`` is the
        extension for the American Community Survey 1-Year Estimates published
        in 2021.
    map_service : :obj:`str` = 'tigerWMS_Current'
        The name of the TIGERweb MapService to use for the geometries of this
        dataset.
    census_api_key : :obj:`str` = None
        A Census API key. Falls back to the ``CENSUS_API_KEY`` environment variable.
    transport : :class:`httpx.AsyncBaseTransport` = None
        An alternative transport shared by the Census and TIGERweb clients.
    """
    # tidy value columns; datasets without margins of error override this
    value_columns = ('estimate', 'moe')

    def __init__(
        self,
        url_extension: str,
        map_service: str = 'tigerWMS_Current',
        census_api_key: str = None,
        transport: AsyncBaseTransport = None,
    ) -> None:

        self.url_extension = url_extension
        self.map_service = map_service
        self.year : int = None
        self.transport = transport
        self.census_client = CensusClient(url_extension=url_extension, api_key=get_api_key(census_api_key), transport=transport)

        try:
            self._geographies = self._find_supported_geographies()
            self._variables = self._find_variables()
        except CensusAPIError as e:
            self.census_client.close()
            if e.status_code == 404:
                raise DatasetError(f"The dataset you requested - '{self.url_extension}' - does not exist.")
            raise e

        self._areas : AreaCollection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        """
        Closes the connections of this dataset's Census and TIGERweb clients.
        """
        self.census_client.close()
        if self._areas is not None:
            self._areas.close()

    def __repr__(self):
        class_name = self.__class__.__name__
        if class_name == 'Dataset':
            dataset_str = 'Abstract Dataset object\n'
        else:
            dataset_str = f'{class_name} dataset object\n'
        dataset_str += f'  URL extension: {self.url_extension}\n'
        dataset_str += f'  {len(self.geographies)} supported geographies\n'
        dataset_str += f'  {len(self.variables)} variables'
        return dataset_str

    @property
    def geographies(self) -> GeographyCollection:
        '''
        The supported geographies of this dataset, from
        ``https://api.census.gov/data/<url_extension>/geography.json``.
        '''
        return self._geographies

    @property
    def variables(self) -> VariableCollection:
        '''
        The available variables of this dataset, from
        ``https://api.census.gov/data/<url_extension>/variables.json``.
        '''
        return self._variables

    @property
    def groups(self) -> GroupCollection:
        return self.variables.groups

    @property
    def areas(self) -> AreaCollection:
        '''
        The TIGERweb layers matching this dataset's vintage. Created on first use.
        '''
        if self._areas is None:
            self._areas = AreaCollection(map_service=self.map_service, transport=self.transport)
        return self._areas

    def _find_supported_geographies(self) -> GeographyCollection:
        supported_geographies_response = self.census_client.get_sync('/geography.json')
        return GeographyCollection(supported_geographies_response.json()['fips'])

    def _find_variables(self) -> VariableCollection:
        variables_json = self.census_client.get_sync('/variables.json').json()['variables']
        return VariableCollection(variables_json)

    def _county_code(self, state: str, county: Union[str, int]) -> str:
        if str(county).strip().isdigit():
            return validate_county(state, county)

        response = self.census_client.get_sync('', params={'get': 'NAME', 'for': 'county:*', 'in': f'state:{state}'})
        counties = _response_to_df(response)
        counties['BASENAME'] = counties['NAME'].str.split(',').str[0]
        return validate_county(state, county, counties=counties)

    def _request(self, geography_params: Dict[str, List[str]], variable_params_list: List[Dict[str, str]], extra_census_params: Dict[str, str] = None) -> List[DataFrame]:
        params_list = []
        for variable_params in variable_params_list:
            params = {}
            params.update(geography_params)
            params.update(variable_params)
            if extra_census_params:
                params.update(extra_census_params)
            params_list.append(params)

        responses = self.census_client.get_many_sync(url_params_list=[('', p) for p in params_list])

        dfs = []
        for response in responses:
            # only 200s and 204s (empty result) make it back from the client
            if response.status_code == 200:
                dfs.append(_response_to_df(response))
        return dfs

    def _clean_values(self, df: DataFrame, value_cols: List[str]) -> DataFrame:
        for col in value_cols:
            variable = self.variables.get(col)
            if variable is not None and variable.type is not None:
                values = to_numeric(df[col], errors='coerce')
                df[col] = values.mask(values.isin(NUMERIC_BAD_VALUES))
            else:
                df[col] = df[col].replace(BAD_VALUES, nan)
        return df

    def _tidy(self, df: DataFrame, requested: List[RequestedVariable]) -> DataFrame:
        frames = []
        for r in requested:
            frame = DataFrame({'GEOID': df['GEOID'], 'NAME': df['NAME'], 'variable': r.output})
            if len(self.value_columns) == 1:
                frame[self.value_columns[0]] = df[r.estimate]
            else:
                estimate_col, moe_col = self.value_columns
                frame[estimate_col] = df[r.estimate]
                frame[moe_col] = df[r.moe] if r.moe is not None else nan
            frames.append(frame)

        tidy = concat(frames, ignore_index=True)
        return tidy.sort_values(by='GEOID', kind='stable').reset_index(drop=True)

    @staticmethod
    def _wide(df: DataFrame, requested: List[RequestedVariable]) -> DataFrame:
        wide = df[['GEOID', 'NAME']].copy()
        for r in requested:
            if r.moe is not None:
                wide[f'{r.output}E'] = df[r.estimate]
                wide[f'{r.output}M'] = df[r.moe]
            else:
                wide[r.output] = df[r.estimate]
        return wide.sort_values(by='GEOID', kind='stable').reset_index(drop=True)

    def get(
        self,
        geography: str,
        variables: Union[str, List[str], List[Variable], VariableCollection, Dict[str, str]] = None,
        table: Union[str, List[str]] = None,
        state: Union[str, int] = None,
        county: Union[str, int] = None,
        output: str = 'tidy',
        geometry: bool = False,
        cb: bool = False,
        moe_level: int = 90,
        extra_census_params: Dict[str, str] = None,
    ) -> Union[DataFrame, GeoDataFrame]:
        """
        Get Census data for every area of a geography level, optionally restricted to
        a state and county.

        Parameters
        ==========
        geography : :obj:`str`
            The geography level, for example ``state``, ``county``, ``tract``,
            ``block group`` or ``place``. To see the available geographies, see
            :attr:`.Dataset.geographies`.
        variables : :obj:`str` or :obj:`list` of :obj:`str` or :class:`.VariableCollection` or dict of :obj:`str`: :obj:`str` = None
            The Census variables to get. ACS variables can be given with or without
            their ``E`` suffix; both the estimate and the margin of error are
            requested. A dictionary renames variables:
            ``{'medinc': 'B19013_001'}``.
        table : :obj:`str` or :obj:`list` of :obj:`str` = None
            Census tables (groups) whose variables should all be requested.
        state : :obj:`str` or :obj:`int` = None
            A state FIPS code, abbreviation or name.
        county : :obj:`str` or :obj:`int` = None
            A county FIPS code or name within ``state``.
        output : :obj:`str` = 'tidy'
            ``tidy`` returns one row per area and variable; ``wide`` returns one row
            per area with ``<name>E`` and ``<name>M`` columns.
        geometry : :obj:`bool` = False
            Attach each area's boundary and return a
            :class:`geopandas.GeoDataFrame`.
        cb : :obj:`bool` = False
            Use cartographic boundary files for the geometry.
        moe_level : :obj:`int` = 90
            The confidence level of the returned margins of error: 90, 95 or 99.
        extra_census_params : dict of :obj:`str`: :obj:`str` = None
            Extra query parameters to pass to the Census API.
        """
        if output not in ('tidy', 'wide'):
            raise ValueError("'output' must be either 'tidy' or 'wide'")
        if moe_level not in MOE_Z_SCORES:
            raise ValueError(f"'moe_level' must be one of {list(MOE_Z_SCORES)}")
        if county is not None and state is None:
            raise ValueError("'county' can only be used together with 'state'")

        masked_variables, variable_params_list, requested = self.variables._build_variable_params(variables=variables, table=table)

        geo_filters = {}
        if state is not None:
            state = validate_state(state)
            geo_filters['state'] = state
        if county is not None:
            county = self._county_code(state, county)
            geo_filters['county'] = county

        geo, geography_params = self.geographies._build_geography_params(name=geography, geo_filters=geo_filters)

        logger.info('requesting %d variables for %s from %s', len(requested), geo.readable_path, self.url_extension)
        dfs = self._request(geography_params=geography_params, variable_params_list=variable_params_list, extra_census_params=extra_census_params)
        if not dfs:
            raise DatasetError(f"The Census API returned no data for '{geography}' with the filters {geo_filters}.")

        value_cols = set()
        for r in requested:
            value_cols.add(r.estimate)
            if r.moe is not None:
                value_cols.add(r.moe)

        id_cols = [c for c in dfs[0].columns if c not in value_cols]
        df = dfs[0]
        for other in dfs[1:]:
            df = df.merge(other, on=id_cols, how='outer')

        df = self._clean_values(df, [c for c in df.columns if c in value_cols])

        if moe_level != 90:
            factor = MOE_Z_SCORES[moe_level] / MOE_Z_SCORES[90]
            for r in requested:
                if r.moe is not None:
                    df[r.moe] = df[r.moe] * factor

        df = add_geoid(df)
        logger.info('received %d rows', len(df))

        if output == 'tidy':
            df = self._tidy(df, requested)
        else:
            df = self._wide(df, requested)

        if geometry:
            df = self._attach_geometry(df, geography=geography, state=state, county=county, cb=cb)

        df.census.geography = geo
        df.census.variables = masked_variables
        return df

    def _attach_geometry(self, df: DataFrame, geography: str, state: str = None, county: str = None, cb: bool = False) -> GeoDataFrame:
        areas = None if cb else self.areas
        boundaries = shapes(geography, state=state, county=county, year=self.year, cb=cb, areas=areas)

        gdf = boundaries[['GEOID', 'geometry']].merge(df, on='GEOID', how='inner')
        dropped = set(df['GEOID']) - set(gdf['GEOID'])
        if dropped:
            logger.warning('%d areas have no boundary and were dropped: %s', len(dropped), sorted(dropped)[:10])

        gdf = gdf[[c for c in gdf.columns if c != 'geometry'] + ['geometry']]
        return GeoDataFrame(gdf, geometry='geometry', crs=boundaries.crs)


class ACS(Dataset):
    """
    Data from the American Community Survey. Use :class:`.ACS1` or :class:`.ACS5`
    for the standard detailed tables.

    Parameters
    ==========
    year : :obj:`int` = 2021
        The year to get data from. For 5-year data this is the final year of the
        period: 2021 covers 2017-2021.
    survey : :obj:`str` = 'acs5'
        ``acs1`` or ``acs5`` (or another ACS product such as ``acsse``).
    extension : :obj:`str` = None
        A product extension such as ``subject`` or ``profile``.
    census_api_key : :obj:`str` = None
        A Census API key.
    transport : :class:`httpx.AsyncBaseTransport` = None
        An alternative transport.
    """
    def __init__(
        self,
        year: int = 2021,
        survey: str = 'acs5',
        extension: str = None,
        census_api_key: str = None,
        transport: AsyncBaseTransport = None,
    ) -> None:

        super().__init__(
            url_extension=self._make_url_extension(year=year, survey=survey, extension=extension),
            map_service=map_service_for(year, survey='acs'),
            census_api_key=census_api_key,
            transport=transport,
        )
        self.year = int(year)
        self.survey = survey

    @staticmethod
    def _make_url_extension(year, survey, extension=None):
        url = f'{year}/acs/{survey}'
        if extension:
            url += f'/{extension}'
        return url


class ACS1(ACS):
    """
    Data from the American Community Survey 1-Year Estimates. Only areas with at
    least 65,000 people are published.
    """
    def __init__(self, year: int = 2021, extension: str = None, census_api_key: str = None, transport: AsyncBaseTransport = None) -> None:
        super().__init__(year=year, survey='acs1', extension=extension, census_api_key=census_api_key, transport=transport)


class ACS5(ACS):
    """
    Data from the American Community Survey 5-Year Estimates.
    """
    def __init__(self, year: int = 2021, extension: str = None, census_api_key: str = None, transport: AsyncBaseTransport = None) -> None:
        super().__init__(year=year, survey='acs5', extension=extension, census_api_key=census_api_key, transport=transport)


class Decennial(Dataset):
    """
    Data from the Decennial Census. Tidy results have a single ``value`` column since
    Decennial counts carry no margin of error.

    Parameters
    ==========
    year : :obj:`int` = 2020
        2000, 2010 or 2020.
    product : :obj:`str` = 'pl'
        The summary file, for example ``pl`` (redistricting data), ``dhc`` or
        ``sf1`` (2010 and 2000).
    census_api_key : :obj:`str` = None
        A Census API key.
    transport : :class:`httpx.AsyncBaseTransport` = None
        An alternative transport.
    """
    value_columns = ('value',)

    def __init__(
        self,
        year: int = 2020,
        product: str = 'pl',
        census_api_key: str = None,
        transport: AsyncBaseTransport = None,
    ) -> None:

        super().__init__(
            url_extension=self._make_url_extension(year=year, product=product),
            map_service=map_service_for(year, survey='dec'),
            census_api_key=census_api_key,
            transport=transport,
        )
        self.year = int(year)
        self.product = product

    @staticmethod
    def _make_url_extension(year, product):
        return f'{year}/dec/{product}'


def _survey_url_extension(year: int, dataset: str) -> str:
    if dataset.startswith('acs'):
        return f'{year}/acs/{dataset}'
    return f'{year}/dec/{dataset}'


def load_variables(year: int, dataset: str = 'acs5', census_api_key: str = None, transport: AsyncBaseTransport = None) -> DataFrame:
    """
    Lists the variables of a dataset as a :class:`pandas.DataFrame` with ``name``,
    ``label``, ``concept``, ``group`` and ``type`` columns. Only the variable list
    is downloaded.

    Parameters
    ==========
    year : :obj:`int`
        The year of the dataset.
    dataset : :obj:`str` = 'acs5'
        ``acs1``, ``acs5``, ``acs5/subject``, ``acs5/profile``, ``pl``, ``dhc``,
        ``sf1``, ...
    """
    url_extension = _survey_url_extension(year, dataset)
    with CensusClient(url_extension=url_extension, api_key=get_api_key(census_api_key), transport=transport) as client:
        try:
            variables_json = client.get_sync('/variables.json').json()['variables']
        except CensusAPIError as e:
            if e.status_code == 404:
                raise DatasetError(f"The dataset you requested - '{url_extension}' - does not exist.")
            raise e

    variables = VariableCollection(variables_json)
    logger.info('loaded %d variables from %s', len(variables), url_extension)
    return variables.to_df()


def get_acs(
    geography: str,
    variables: Union[str, List[str], Dict[str, str]] = None,
    table: Union[str, List[str]] = None,
    year: int = 2021,
    survey: str = 'acs5',
    state: Union[str, int] = None,
    county: Union[str, int] = None,
    output: str = 'tidy',
    geometry: bool = False,
    moe_level: int = 90,
    cb: bool = False,
    key: str = None,
    transport: AsyncBaseTransport = None,
) -> Union[DataFrame, GeoDataFrame]:
    """
    Fetches American Community Survey estimates and margins of error. See
    :meth:`.Dataset.get` for the parameters.

    Examples
    ========
    >>> get_acs('county', variables={'medinc': 'B19013_001'}, state='WA', year=2021, survey='acs1')
    """
    if survey not in ('acs1', 'acs3', 'acs5'):
        raise ValueError("'survey' must be one of 'acs1', 'acs3' or 'acs5'")
    if survey == 'acs1' and int(year) == 2020:
        logger.warning('the standard 2020 1-year ACS was not released; expect the request to fail')

    with ACS(year=year, survey=survey, census_api_key=key, transport=transport) as dataset:
        return dataset.get(geography, variables=variables, table=table, state=state, county=county, output=output, geometry=geometry, cb=cb, moe_level=moe_level)


def get_decennial(
    geography: str,
    variables: Union[str, List[str], Dict[str, str]] = None,
    table: Union[str, List[str]] = None,
    year: int = 2020,
    sumfile: str = 'pl',
    state: Union[str, int] = None,
    county: Union[str, int] = None,
    output: str = 'tidy',
    geometry: bool = False,
    cb: bool = False,
    key: str = None,
    transport: AsyncBaseTransport = None,
) -> Union[DataFrame, GeoDataFrame]:
    """
    Fetches Decennial Census counts. See :meth:`.Dataset.get` for the parameters.
    """
    with Decennial(year=year, product=sumfile, census_api_key=key, transport=transport) as dataset:
        return dataset.get(geography, variables=variables, table=table, state=state, county=county, output=output, geometry=geometry, cb=cb)
