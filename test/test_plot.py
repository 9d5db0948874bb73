from unittest import TestCase, main
from os import path
from tempfile import TemporaryDirectory
import matplotlib
matplotlib.use('Agg')
from matplotlib.axes import Axes
from matplotlib.pyplot import close
from numpy import nan
from pandas import DataFrame
from geopandas import GeoDataFrame
from shapely.geometry import box
from folium import Map

from censuskit.plot import bar_chart, choropleth, interactive_map


class PlotTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.counties = GeoDataFrame(
            {
                'GEOID': ['53033', '53053', '53061'],
                'NAME': ['King County, Washington', 'Pierce County, Washington', 'Snohomish County, Washington'],
                'estimate': [100000, 80000, 95000],
                'moe': [1200, 1100, 1500],
            },
            geometry=[box(-122.5, 47.1, -121.0, 47.8), box(-122.8, 46.7, -121.2, 47.1), box(-122.5, 47.8, -121.0, 48.3)],
            crs='EPSG:4326',
        )

    def tearDown(self):
        close('all')

    def test_bar_chart(self):
        ax = bar_chart(self.counties, value='estimate', moe='moe', title='Median household income')
        self.assertIsInstance(ax, Axes)
        self.assertEqual(len(ax.patches), 3)
        self.assertEqual([p.get_width() for p in ax.patches], [80000, 95000, 100000])
        self.assertEqual(ax.get_title(), 'Median household income')

    def test_bar_chart_missing_values(self):
        data = DataFrame({'NAME': ['A', 'B', 'C'], 'estimate': [3, nan, 1]})
        with self.assertLogs('censuskit.plot', level='WARNING'):
            ax = bar_chart(data, value='estimate')
        self.assertEqual([p.get_width() for p in ax.patches], [1, 3])

        with self.assertRaises(ValueError):
            bar_chart(data, value='moe')

    def test_choropleth(self):
        ax = choropleth(self.counties, column='estimate', title='Median household income')
        self.assertIsInstance(ax, Axes)
        self.assertGreater(len(ax.collections), 0)

        with self.assertRaises(TypeError):
            choropleth(DataFrame(self.counties.drop(columns='geometry')), column='estimate')
        with self.assertRaises(ValueError):
            choropleth(self.counties, column='relative_diff')

    def test_interactive_map(self):
        m = interactive_map(self.counties, column='estimate', tooltip=['NAME', 'estimate'])
        self.assertIsInstance(m, Map)

        with TemporaryDirectory() as tmp:
            filename = path.join(tmp, 'map.html')
            interactive_map(self.counties, filename=filename)
            self.assertTrue(path.exists(filename))

        with self.assertRaises(TypeError):
            interactive_map(DataFrame({'estimate': [1]}))


if __name__ == "__main__":
    main()
