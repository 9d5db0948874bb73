from typing import Union
from pandas.api.extensions import register_dataframe_accessor

from censuskit.geography import Geography
from censuskit.variable import Variable, VariableCollection

GEOGRAPHY_ATTR = 'census_geography'
VARIABLES_ATTR = 'census_variables'


def _readable_label(variable: Variable) -> str:
    label = variable.info.get('label', variable.label)
    return ' '.join(p.strip(':') for p in label.split('!!'))


@register_dataframe_accessor('census')
class DataFrameCensusAccessor:
    """
    Holds the Census metadata of a fetched table: the geography it was requested at
    and the variables it contains. Reached as ``df.census``. The metadata lives in
    :attr:`pandas.DataFrame.attrs`, so it survives copies and is shared by every
    accessor instance.
    """
    def __init__(self, pandas_obj) -> None:
        self._obj = pandas_obj

    @property
    def geography(self) -> Union[Geography, None]:
        return self._obj.attrs.get(GEOGRAPHY_ATTR)

    @geography.setter
    def geography(self, geography: Geography):
        self._obj.attrs[GEOGRAPHY_ATTR] = geography

    @property
    def variables(self) -> Union[VariableCollection, None]:
        return self._obj.attrs.get(VARIABLES_ATTR)

    @variables.setter
    def variables(self, variables: VariableCollection):
        self._obj.attrs[VARIABLES_ATTR] = variables

    def variable(self, column: str) -> Union[Variable, None]:
        """
        Returns the :class:`.Variable` behind a column (``B19013_001E``) or a tidy
        variable name (``B19013_001``), if it is known.
        """
        variables = self.variables
        if variables is None:
            return None
        v = variables.get(column)
        if v is None:
            v = variables.get(f'{column}E')
        return v

    def label(self, column: str) -> Union[str, None]:
        """
        Returns the readable label of a variable, for example
        ``Estimate Median household income in the past 12 months ...``.

        Parameters
        ==========
        column : :obj:`str`
            A wide column name or a tidy variable name.
        """
        v = self.variable(column)
        if v is None:
            return None
        return _readable_label(v)
