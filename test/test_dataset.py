from unittest import TestCase, main
from threading import active_count
from pandas import DataFrame
from geopandas import GeoDataFrame

from censuskit.dataset import ACS, ACS1, ACS5, Decennial, DatasetError, load_variables, get_acs, get_decennial
from censuskit.compare import to_wide
from censuskit.geography import GeographyCollection
from censuskit.spatial import filter_by_boundary
from censuskit.variable import VariableCollection

from mock_census import census_transport


class DatasetTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.requests = []
        cls.transport = census_transport(cls.requests)
        cls.acs5 = ACS5(year=2021, census_api_key='test-key', transport=cls.transport)
        cls.acs1 = ACS1(year=2021, census_api_key='test-key', transport=cls.transport)
        cls.decennial = Decennial(year=2020, census_api_key='test-key', transport=cls.transport)

    def test_metadata(self):
        self.assertIsInstance(self.acs5.geographies, GeographyCollection)
        self.assertIsInstance(self.acs5.variables, VariableCollection)
        self.assertEqual(self.acs5.url_extension, '2021/acs/acs5')
        self.assertEqual(self.acs5.map_service, 'tigerWMS_ACS2021')
        self.assertEqual(self.decennial.url_extension, '2020/dec/pl')
        self.assertIn('B19013', self.acs5.groups)

    def test_unknown_dataset(self):
        with self.assertRaises(DatasetError):
            ACS(year=2021, survey='acs9', transport=self.transport)

    def test_tidy(self):
        df = self.acs5.get('county', variables='B19013_001', state='WA')
        self.assertEqual(df.columns.to_list(), ['GEOID', 'NAME', 'variable', 'estimate', 'moe'])
        self.assertEqual(df['GEOID'].to_list(), ['53033', '53053', '53061'])
        self.assertTrue((df['variable'] == 'B19013_001').all())

        king = df[df['GEOID'] == '53033'].iloc[0]
        self.assertEqual(king['NAME'], 'King County, Washington')
        self.assertEqual(king['estimate'], 100000)
        self.assertEqual(king['moe'], 1200)

        get_params = self.requests[-1].url.params
        self.assertEqual(get_params['for'], 'county:*')
        self.assertEqual(get_params.get_list('in'), ['state:53'])
        self.assertIn('B19013_001M', get_params['get'].split(','))

    def test_wide(self):
        df = self.acs5.get('county', variables={'medinc': 'B19013_001'}, state='WA', output='wide')
        self.assertEqual(df.columns.to_list(), ['GEOID', 'NAME', 'medincE', 'medincM'])
        self.assertEqual(df.set_index('GEOID').loc['53061', 'medincE'], 95000)

        with self.assertRaises(ValueError):
            self.acs5.get('county', variables='B19013_001', state='WA', output='long')

    def test_table(self):
        df = self.acs5.get('tract', table='B01001', state='WA', county='033')
        self.assertEqual(len(df), 9)
        self.assertEqual(sorted(df['variable'].unique()), ['B01001_001', 'B01001_002', 'B01001_026'])
        first = df[(df['GEOID'] == '53033005100') & (df['variable'] == 'B01001_001')].iloc[0]
        self.assertEqual(first['estimate'], 1100)
        self.assertEqual(first['moe'], 50)

    def test_sentinels(self):
        df = self.acs1.get('county', variables='B19013_001', state='WA')
        self.assertEqual(df['GEOID'].to_list(), ['53033', '53061'])
        snohomish = df[df['GEOID'] == '53061'].iloc[0]
        self.assertTrue(snohomish[['estimate', 'moe']].isna().all())
        self.assertEqual(df['estimate'].dtype.kind, 'f')

    def test_moe_level(self):
        df = self.acs5.get('county', variables='B19013_001', state='WA', moe_level=95)
        king = df[df['GEOID'] == '53033'].iloc[0]
        self.assertAlmostEqual(king['moe'], 1200 * 1.96 / 1.645)
        self.assertEqual(king['estimate'], 100000)

        with self.assertRaises(ValueError):
            self.acs5.get('county', variables='B19013_001', state='WA', moe_level=80)

    def test_county_by_name(self):
        df = self.acs5.get('tract', variables='B01001_001', state='Washington', county='King')
        self.assertEqual(sorted(df['GEOID']), ['53033005100', '53033005200', '53033005300'])

        with self.assertRaises(ValueError):
            self.acs5.get('tract', variables='B01001_001', county='033')

    def test_geoid_lengths(self):
        tracts = self.decennial.get('tract', variables='P1_001N', state='WA')
        self.assertEqual(len(tracts), 4)
        self.assertTrue((tracts['GEOID'].str.len() == 11).all())

        block_groups = self.acs5.get('block group', variables='B01001_001', state='WA', county='033')
        self.assertEqual(sorted(block_groups['GEOID']), ['530330051001', '530330051002'])

        blocks = self.decennial.get('block', variables='P1_001N', state='WA', county='033')
        self.assertEqual(blocks['GEOID'].to_list(), ['530330051001001'])
        self.assertEqual(blocks.columns.to_list(), ['GEOID', 'NAME', 'variable', 'value'])
        self.assertEqual(blocks['value'].iloc[0], 2001)

    def test_county_subdivisions(self):
        df = self.acs5.get('county subdivision', variables='B01001_001', state='WA', county='033')
        self.assertEqual(df['GEOID'].to_list(), ['5303390904', '5303393120'])
        self.assertEqual(df['estimate'].to_list(), [1904, 1120])

        wide = to_wide(df)
        self.assertEqual(len(wide), 2)

        gdf = self.acs5.get('county subdivision', variables='B01001_001', state='WA', county='033', output='wide', geometry=True)
        self.assertEqual(gdf['GEOID'].to_list(), ['5303390904', '5303393120'])
        self.assertFalse(gdf.geometry.is_empty.any())

    def test_empty_result(self):
        with self.assertRaises(DatasetError):
            self.acs5.get('county', variables='B19013_001', state='AK')

    def test_geometry(self):
        gdf = self.acs5.get('tract', variables='B19013_001', state='WA', county='King', output='wide', geometry=True)
        self.assertIsInstance(gdf, GeoDataFrame)
        self.assertEqual(gdf.crs.to_epsg(), 4326)
        self.assertEqual(len(gdf), 3)
        self.assertEqual(gdf.columns[-1], 'geometry')
        self.assertEqual(gdf.census.geography.name, 'tract')

        seattle = self.acs5.areas.place('Seattle, Washington', state='WA')
        in_seattle = filter_by_boundary(gdf, seattle)
        self.assertEqual(in_seattle['GEOID'].to_list(), ['53033005100'])

    def test_accessor(self):
        df = self.acs5.get('county', variables='B19013_001', state='WA')
        self.assertEqual(df.census.geography.name, 'county')
        self.assertEqual(df.census.variables.names, ['B19013_001E'])
        self.assertIn('Median household income', df.census.label('B19013_001'))
        self.assertEqual(df.census.variable('B19013_001E').group, 'B19013')
        self.assertIsNone(df.census.label('B99999_001'))

        # the metadata is kept on the frame, not on one accessor instance
        self.assertIs(df.attrs['census_geography'], df.census.geography)
        self.assertEqual(df.copy().census.geography.name, 'county')
        self.assertEqual(df.copy().census.variables.names, ['B19013_001E'])
        self.assertIsNone(DataFrame({'GEOID': ['53']}).census.geography)


class ConvenienceTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.transport = census_transport()

    def test_load_variables(self):
        variables = load_variables(2021, 'acs5', census_api_key='test-key', transport=self.transport)
        self.assertIsInstance(variables, DataFrame)
        self.assertIn('B19013_001E', variables['name'].values)

        decennial_variables = load_variables(2020, 'pl', census_api_key='test-key', transport=self.transport)
        self.assertIn('P1_001N', decennial_variables['name'].values)

        with self.assertRaises(DatasetError):
            load_variables(2021, 'acs9', transport=self.transport)

    def test_no_leftover_threads(self):
        load_variables(2021, 'acs5', transport=self.transport)
        before = active_count()
        for _ in range(10):
            load_variables(2021, 'acs5', transport=self.transport)
        self.assertLessEqual(active_count(), before)

    def test_dataset_close(self):
        with ACS5(year=2021, census_api_key='test-key', transport=self.transport) as acs:
            areas = acs.areas
            acs.get('state', variables='B01001_001')
        self.assertTrue(acs.census_client.is_closed)
        self.assertTrue(areas.tiger_client.is_closed)

    def test_get_acs(self):
        df = get_acs('county', variables='B19013_001', state='WA', survey='acs1', key='test-key', transport=self.transport)
        self.assertEqual(df['GEOID'].to_list(), ['53033', '53061'])

        with self.assertRaises(ValueError):
            get_acs('county', variables='B19013_001', state='WA', survey='acs2', transport=self.transport)

    def test_get_decennial(self):
        df = get_decennial('state', variables='P1_001N', key='test-key', transport=self.transport)
        self.assertEqual(df['GEOID'].to_list(), ['41', '53'])
        self.assertEqual(df['value'].to_list(), [2041, 2053])


if __name__ == "__main__":
    main()
