from typing import Union
from logging import getLogger
from pandas import DataFrame
from geopandas import GeoDataFrame
from matplotlib.axes import Axes
from matplotlib.pyplot import subplots
from folium import Map

logger = getLogger(__name__)


def bar_chart(data: DataFrame, value: str, label: str = 'NAME', moe: str = None, ax: Axes = None, title: str = None, **kwargs) -> Axes:
    """
    Draws a horizontal bar chart of one value per area, sorted from smallest to
    largest, with margins of error drawn as error bars.

    Parameters
    ==========
    data : :class:`pandas.DataFrame`
        One row per area, for example a wide table or a tidy table filtered to one
        variable.
    value : :obj:`str`
        The column to plot (``estimate``, ``B19013_001E``, ...).
    label : :obj:`str` = 'NAME'
        The column holding the bar labels.
    moe : :obj:`str` = None
        The column holding margins of error, if error bars should be drawn.
    ax : :class:`matplotlib.axes.Axes` = None
        The axes to draw on. A new figure is created when ``None``.
    title : :obj:`str` = None
        The title of the chart.
    **kwargs
        Passed on to :meth:`matplotlib.axes.Axes.barh`.
    """
    for col in (value, label, moe):
        if col is not None and col not in data.columns:
            raise ValueError(f"'{col}' is not a column of the data")

    plotted = data.dropna(subset=[value]).sort_values(by=value)
    if len(plotted) < len(data):
        logger.warning('%d rows without a value were left out of the chart', len(data) - len(plotted))

    if ax is None:
        _, ax = subplots(figsize=(8, max(3, 0.3 * len(plotted))))

    xerr = plotted[moe].fillna(0).values if moe is not None else None
    ax.barh(plotted[label].astype(str).values, plotted[value].values, xerr=xerr, **kwargs)
    ax.set_xlabel(value)
    if title:
        ax.set_title(title)
    return ax


def choropleth(data: GeoDataFrame, column: str, ax: Axes = None, cmap: str = 'viridis', legend: bool = True, title: str = None, **kwargs) -> Axes:
    """
    Draws a static choropleth map of ``column``.

    Parameters
    ==========
    data : :class:`geopandas.GeoDataFrame`
        Areas with geometry, for example the result of
        ``get_acs(..., geometry=True)``.
    column : :obj:`str`
        The column that colors the areas.
    **kwargs
        Passed on to :meth:`geopandas.GeoDataFrame.plot`, for example
        ``scheme='quantiles'``.
    """
    if not isinstance(data, GeoDataFrame):
        raise TypeError('choropleth needs a GeoDataFrame; request the data with geometry=True')
    if column not in data.columns:
        raise ValueError(f"'{column}' is not a column of the data")

    ax = data.plot(column=column, ax=ax, cmap=cmap, legend=legend, missing_kwds={'color': 'lightgrey'}, **kwargs)
    ax.set_axis_off()
    if title:
        ax.set_title(title)
    return ax


def interactive_map(data: GeoDataFrame, column: str = None, tooltip: Union[str, list, bool] = True, filename: str = None, **kwargs) -> Map:
    """
    Builds an interactive :class:`folium.Map` of the areas, colored by ``column``
    if one is given.

    Parameters
    ==========
    data : :class:`geopandas.GeoDataFrame`
        Areas with geometry.
    column : :obj:`str` = None
        The column that colors the areas.
    tooltip : :obj:`str` or :obj:`list` or :obj:`bool` = True
        The columns shown when hovering over an area.
    filename : :obj:`str` = None
        Also save the map as an HTML file.
    **kwargs
        Passed on to :meth:`geopandas.GeoDataFrame.explore`.
    """
    if not isinstance(data, GeoDataFrame):
        raise TypeError('interactive_map needs a GeoDataFrame; request the data with geometry=True')
    if column is not None and column not in data.columns:
        raise ValueError(f"'{column}' is not a column of the data")

    m = data.explore(column=column, tooltip=tooltip, **kwargs)
    if filename:
        m.save(filename)
        logger.info('saved interactive map to %s', filename)
    return m
