from typing import Union
from itertools import permutations
from pandas import DataFrame

from censuskit.constants import STATES


class RecodeError(Exception):
    ...


class StateRecoder:
    """
    An object that handles recoding states to various formats. The available formats are:

       + ``FIPS``: FIPS codes with no zero-padding (1, 2, 4, etc.)
       + ``FIPS_PADDED``: FIPS codes with two-digit zero-padding (01, 02, 04, etc.)
       + ``ABBR``: state abbreviations (AL, AK, AZ, etc.)
       + ``NAME``: full state names (Alabama, Alaska, Arizona, etc.)
    """
    def __init__(self) -> None:
        self.types = ['FIPS', 'FIPS_PADDED', 'ABBR', 'NAME']
        self.type_explanations = {
            'FIPS': 'Integer codes. For example: 1 for Alabama, 2 for Alaska, etc.',
            'FIPS_PADDED': '0-padded two-digit integer codes. For example: 01 for Alabama, 02 for Alaska, etc.',
            'ABBR': 'Two character state abbreviations (postal codes). For example: AL for Alabama, AK for Alaska, etc.',
            'NAME': 'Full state names. For example: Alabama, Alaska, etc.',
        }

        state_ids = DataFrame(STATES, columns=['FIPS_PADDED', 'ABBR', 'NAME'])
        state_ids['FIPS'] = state_ids['FIPS_PADDED'].astype(int).astype(str)
        self.recode_dicts = {}
        for from_type, to_type in permutations(self.types, r=2):
            self.recode_dicts[f'{from_type}_{to_type}'] = dict(zip(state_ids[from_type], state_ids[to_type]))

        # any accepted spelling -> FIPS_PADDED; names are keyed lower-case
        self._fips_lookup = {}
        for _, row in state_ids.iterrows():
            self._fips_lookup[row['FIPS_PADDED']] = row['FIPS_PADDED']
            self._fips_lookup[row['FIPS']] = row['FIPS_PADDED']
            self._fips_lookup[row['ABBR']] = row['FIPS_PADDED']
            self._fips_lookup[row['NAME'].lower()] = row['FIPS_PADDED']

    def recode(self, state: Union[str, int], new_type: str) -> str:
        """
        Recodes a single state identifier, inferring its original format. Names and
        abbreviations are matched case-insensitively.

        Parameters
        ==========
        state : :obj:`str` or :obj:`int`
            The state to recode (``53``, ``'53'``, ``'WA'``, ``'washington'``).
        new_type : :obj:`str`
            One of the available formats.
        """
        if new_type not in self.types:
            raise ValueError(f'new_type must be one of {self.types}')

        key = str(state).strip()
        fips = None
        for candidate in (key, key.upper(), key.lower()):
            if candidate in self._fips_lookup:
                fips = self._fips_lookup[candidate]
                break

        if fips is None:
            raise RecodeError(self._error_string(state))
        if new_type == 'FIPS_PADDED':
            return fips
        return self.recode_dicts[f'FIPS_PADDED_{new_type}'][fips]

    def _error_string(self, state) -> str:
        exception_string = f"Unable to match '{state}' to any state format. Please make sure you are following one of the following formats.\n\n"
        for type in self.types:
            explanation = self.type_explanations[type]
            exception_string += f'  - {type}: {explanation}\n'
        return exception_string

    def _to_new(self, data: DataFrame, new_type: str, state_col: str = 'state') -> DataFrame:
        data[state_col] = data[state_col].apply(lambda s : self.recode(s, new_type=new_type))
        return data

    def to_FIPS(self, data: DataFrame, state_col: str = 'state') -> DataFrame:
        """
        Recodes the ``state_col`` column as FIPS codes (1, 2, 4, etc.).
        """
        return self._to_new(data=data, new_type='FIPS', state_col=state_col)

    def to_FIPS_PADDED(self, data: DataFrame, state_col: str = 'state') -> DataFrame:
        """
        Recodes the ``state_col`` column as two-digit zero-padded FIPS codes
        (01, 02, 04, etc.).
        """
        return self._to_new(data=data, new_type='FIPS_PADDED', state_col=state_col)

    def to_ABBR(self, data: DataFrame, state_col: str = 'state') -> DataFrame:
        """
        Recodes the ``state_col`` column as abbreviations (AL, AK, AZ, etc.).
        """
        return self._to_new(data=data, new_type='ABBR', state_col=state_col)

    def to_NAME(self, data: DataFrame, state_col: str = 'state') -> DataFrame:
        """
        Recodes the ``state_col`` column as full names (Alabama, Alaska, etc.).
        """
        return self._to_new(data=data, new_type='NAME', state_col=state_col)


STATE_RECODER = StateRecoder()


def validate_state(state: Union[str, int]) -> str:
    """
    Returns the two-digit FIPS code of a state given as a FIPS code, postal
    abbreviation or name.
    """
    return STATE_RECODER.recode(state, new_type='FIPS_PADDED')


def validate_county(state: Union[str, int], county: Union[str, int], counties: DataFrame = None) -> str:
    """
    Returns the three-digit FIPS code of a county. Numeric codes are padded; names
    ("King", "King County") are looked up in ``counties``, a table with ``state``,
    ``county``, ``NAME`` and ``BASENAME`` columns such as the one returned by
    :func:`censuskit.tiger.counties`.
    """
    county = str(county).strip()
    if county.isdigit():
        if len(county) > 3:
            raise RecodeError(f"'{county}' is not a valid county FIPS code")
        return county.zfill(3)

    if counties is None:
        raise RecodeError(f"County names such as '{county}' can only be resolved with a table of counties.")

    state = validate_state(state)
    in_state = counties[counties['state'].astype(str) == state]
    wanted = county.lower()
    mask = (in_state['NAME'].str.lower() == wanted) | (in_state['BASENAME'].str.lower() == wanted)
    matches = in_state[mask]
    if len(matches) == 0:
        mask = in_state['NAME'].str.lower().str.startswith(wanted)
        matches = in_state[mask]

    if len(matches) == 1:
        return str(matches['county'].values[0]).zfill(3)
    if len(matches) == 0:
        raise RecodeError(f"'{county}' is not a valid name for counties in {STATE_RECODER.recode(state, 'NAME')}.")
    raise RecodeError(f"'{county}' matches more than one county: {matches['NAME'].to_list()}. Please be more specific.")
