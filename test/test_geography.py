from unittest import TestCase, main
from pandas import DataFrame

from censuskit.geography import Geography, GeographyCollection, UnknownGeography, InvalidGeographyHierarchy, pad_geography_filters

from mock_census import GEOGRAPHIES


class GeographyTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.geographies = GeographyCollection(GEOGRAPHIES)

    def test_existing_geography(self):
        counties_geography = self.geographies.get(level='050')
        self.assertIn('state', counties_geography.requires)
        self.assertIsInstance(counties_geography, Geography)
        self.assertEqual(self.geographies.get(name='tract').path, ('state', 'county', 'tract'))

    def test_nonexisting_geography(self):
        with self.assertRaises(UnknownGeography):
            self.geographies.get(level='000')
        with self.assertRaises(UnknownGeography):
            self.geographies.get(name='zip code tabulation area')
        with self.assertRaises(ValueError):
            self.geographies.get()

    def test_collection_length(self):
        self.assertEqual(len(self.geographies), 7)

    def test_collection_outputs(self):
        self.assertIsInstance(self.geographies.to_df(), DataFrame)
        self.assertIsInstance(self.geographies.to_list(), list)

    def test_geography_params(self):
        _, params = self.geographies._build_geography_params('tract', {'state': 53})
        self.assertEqual(params, {'for': ['tract:*'], 'in': ['state:53', 'county:*']})

        _, params = self.geographies._build_geography_params('tract', {'state': '53', 'county': 33})
        self.assertEqual(params, {'for': ['tract:*'], 'in': ['state:53', 'county:033']})

        _, params = self.geographies._build_geography_params('state', {'state': 6})
        self.assertEqual(params, {'for': ['state:06']})

        _, params = self.geographies._build_geography_params('county')
        self.assertEqual(params, {'for': ['county:*'], 'in': ['state:*']})

    def test_invalid_hierarchy(self):
        with self.assertRaises(InvalidGeographyHierarchy):
            self.geographies._build_geography_params('tract', {'county': '033'})
        with self.assertRaises(InvalidGeographyHierarchy):
            self.geographies._build_geography_params('place', {'state': '53', 'county': '033'})
        with self.assertRaises(InvalidGeographyHierarchy):
            self.geographies._build_geography_params('block group', {'state': '53', 'tract': '005100'})

    def test_pad_filters(self):
        padded = pad_geography_filters({'state': 6, 'county': '1', 'tract': '*', 'block group': 2})
        self.assertEqual(padded, {'state': '06', 'county': '001', 'tract': '*', 'block group': '2'})


if __name__ == "__main__":
    main()
