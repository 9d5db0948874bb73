from unittest import TestCase, main
from unittest.mock import patch
from os import path
from tempfile import TemporaryDirectory
from geopandas import GeoDataFrame
from shapely.geometry import box

from censuskit.tiger import (
    Area, AreaCollection, AreaNotFound, Layer, map_service_for, parse_name,
    shapes, states, counties, tracts, block_groups, blocks, places,
)

from mock_census import census_transport


class TIGERTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.areas = AreaCollection(transport=census_transport())

    def test_available_layers(self):
        self.assertIn('States', self.areas.available_layers)
        self.assertNotIn('States Labels', self.areas.available_layers)
        self.assertIsInstance(self.areas.get_layer('Census Tracts'), Layer)
        self.assertEqual(self.areas.get_layer('Census Tract').name, 'Census Tracts')
        with self.assertRaises(ValueError):
            self.areas.get_layer('Zip Code Tabulation Areas')

    def test_layers_for(self):
        self.assertEqual([l.name for l in self.areas.layers_for('place')], ['Incorporated Places', 'Census Designated Places'])
        self.assertEqual([l.name for l in self.areas.layers_for('block')], ['Census Blocks'])
        with self.assertRaises(ValueError):
            self.areas.layers_for('planet')

    def test_map_service(self):
        self.assertEqual(map_service_for(), 'tigerWMS_Current')
        self.assertEqual(map_service_for(2021), 'tigerWMS_ACS2021')
        self.assertEqual(map_service_for(2020, survey='dec'), 'tigerWMS_Census2020')
        with self.assertLogs('censuskit.tiger', level='WARNING'):
            self.assertEqual(map_service_for(2020), 'tigerWMS_ACS2021')
        with self.assertLogs('censuskit.tiger', level='WARNING'):
            self.assertEqual(map_service_for(2009), 'tigerWMS_ACS2012')

    def test_parse_name(self):
        self.assertEqual(parse_name('Seattle, WA'), 'Seattle, Washington')
        self.assertEqual(parse_name('Census Tract 0051'), 'Census Tract 51')

    def test_area_by_geoid(self):
        area = self.areas.tract(geoid='53033005100')
        self.assertIsInstance(area, Area)
        self.assertEqual(area.name, 'Census Tract 51')
        self.assertEqual(area.attributes['state'], '53')
        self.assertEqual(area.attributes['county'], '033')
        self.assertTrue(area.geometry.equals(box(-122.40, 47.60, -122.30, 47.70)))

        with self.assertRaises(AreaNotFound):
            self.areas.tract(geoid='53033999900')
        with self.assertRaises(ValueError):
            self.areas.area(name='Seattle', geoid='5363000', layer_name='Incorporated Places')

    def test_area_by_name(self):
        seattle = self.areas.place('Seattle, Washington', state='WA')
        self.assertEqual(seattle.attributes['GEOID'], '5363000')
        self.assertEqual(seattle.layer_name, 'Incorporated Places')

        seattle_gdf = seattle.to_gdf()
        self.assertIsInstance(seattle_gdf, GeoDataFrame)
        self.assertEqual(len(seattle_gdf), 1)
        self.assertEqual(seattle_gdf.crs.to_epsg(), 4326)

        king = self.areas.county('King County, WA', state='WA')
        self.assertEqual(king.attributes['GEOID'], '53033')

        with self.assertRaises(AreaNotFound):
            self.areas.place('Springfield, Washington', state='WA')

    def test_tracts(self):
        gdf = tracts(state='WA', county='033', areas=self.areas)
        self.assertIsInstance(gdf, GeoDataFrame)
        self.assertEqual(gdf.crs.to_epsg(), 4326)
        self.assertEqual(sorted(gdf['GEOID']), ['53033005100', '53033005200', '53033005300'])
        self.assertTrue((gdf['GEOID'].str.len() == 11).all())
        self.assertEqual(gdf.columns[:2].to_list(), ['GEOID', 'NAME'])
        self.assertIn('tract', gdf.columns)

        by_name = tracts(state='Washington', county='King', areas=self.areas)
        self.assertEqual(sorted(by_name['GEOID']), sorted(gdf['GEOID']))

        statewide = tracts(state=53, areas=self.areas)
        self.assertEqual(len(statewide), 4)

    def test_other_levels(self):
        self.assertEqual(sorted(states(areas=self.areas)['GEOID']), ['41', '53'])
        self.assertEqual(len(counties(state='WA', areas=self.areas)), 3)

        bgs = block_groups(state='WA', county='033', areas=self.areas)
        self.assertTrue((bgs['GEOID'].str.len() == 12).all())
        self.assertTrue(bgs['GEOID'].str.startswith('53033005100').all())

        block_gdf = blocks(state='WA', county='033', areas=self.areas)
        self.assertEqual(block_gdf['GEOID'].to_list(), ['530330051001001'])

        place_gdf = places(state='WA', areas=self.areas)
        self.assertEqual(sorted(place_gdf['GEOID']), ['5363000', '5370000'])
        self.assertEqual(place_gdf.crs.to_epsg(), 4326)

        with self.assertRaises(ValueError):
            shapes('tract', county='033', areas=self.areas)

    def test_cartographic_boundaries(self):
        cb_states = GeoDataFrame(
            {'STATEFP': ['53', '41'], 'GEOID': ['53', '41'], 'NAME': ['Washington', 'Oregon']},
            geometry=[box(-124.8, 45.5, -116.9, 49.0), box(-124.6, 42.0, -116.5, 45.5)],
            crs='EPSG:4269',
        )
        with patch('censuskit.tiger.read_file', return_value=cb_states) as read_file:
            gdf = states(year=2021, cb=True)
            read_file.assert_called_with('https://www2.census.gov/geo/tiger/GENZ2021/shp/cb_2021_us_state_500k.zip', engine='fiona')
            self.assertEqual(len(gdf), 2)
            self.assertIn('state', gdf.columns)

        cb_tracts = GeoDataFrame(
            {'STATEFP': ['53', '53'], 'COUNTYFP': ['033', '061'], 'TRACTCE': ['005100', '040100'], 'GEOID': ['53033005100', '53061040100'], 'NAME': ['51', '401']},
            geometry=[box(-122.40, 47.60, -122.30, 47.70), box(-122.30, 47.90, -122.20, 48.00)],
            crs='EPSG:4269',
        )
        with patch('censuskit.tiger.read_file', return_value=cb_tracts) as read_file:
            gdf = tracts(state='WA', county=33, year=2021, cb=True)
            read_file.assert_called_with('https://www2.census.gov/geo/tiger/GENZ2021/shp/cb_2021_53_tract_500k.zip', engine='fiona')
            self.assertEqual(gdf['GEOID'].to_list(), ['53033005100'])

        with self.assertRaises(ValueError):
            states(cb=True)

    def test_area_from_file(self):
        boundary = box(-122.45, 47.50, -122.20, 47.75)
        seattle = GeoDataFrame({'GEOID': ['5363000']}, geometry=[boundary], crs='EPSG:4326')
        with TemporaryDirectory() as tmp:
            filename = path.join(tmp, 'seattle.geojson')
            seattle.to_file(filename, driver='GeoJSON', engine='fiona')
            area = Area.from_file(name='Seattle', filename=filename)
            gdf = area.to_gdf()

            two = path.join(tmp, 'two.geojson')
            GeoDataFrame({'GEOID': ['5363000', '5370000']}, geometry=[boundary, boundary], crs='EPSG:4326').to_file(two, driver='GeoJSON', engine='fiona')
            with self.assertRaises(ValueError):
                Area.from_file(name='Two places', filename=two).to_gdf()
            with self.assertRaises(ValueError):
                Area.from_file(name='Seattle', filename=filename, geo_col='shape').to_gdf()

        self.assertEqual(area.name, 'Seattle')
        self.assertEqual(area.attributes, {'GEOID': '5363000'})
        self.assertTrue(area.geometry.equals(boundary))
        self.assertEqual(gdf['NAME'].to_list(), ['Seattle'])
        self.assertEqual(gdf.crs.to_epsg(), 4326)

    def test_area_from_url(self):
        seattle = GeoDataFrame({'GEOID': ['5363000']}, geometry=[box(-122.45, 47.50, -122.20, 47.75)], crs='EPSG:4326')
        with patch('censuskit.tiger.read_file', return_value=seattle) as read_file:
            area = Area.from_url(name='Seattle', url='https://example.com/seattle.geojson')
            read_file.assert_not_called()
            self.assertEqual(area.to_gdf()['GEOID'].to_list(), ['5363000'])
            read_file.assert_called_once_with('https://example.com/seattle.geojson', engine='fiona')


if __name__ == "__main__":
    main()
