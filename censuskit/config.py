from os import environ, path
from logging import getLogger
from dotenv import load_dotenv, find_dotenv, dotenv_values, set_key

from censuskit.api import CensusAPIKeyError
from censuskit.constants import API_KEY_ENV_VAR

logger = getLogger(__name__)

load_dotenv(find_dotenv(usecwd=True))


def get_api_key(api_key: str = None, required: bool = False) -> str:
    """
    Resolves the Census API key to use for a request. An explicit ``api_key`` wins;
    otherwise the ``CENSUS_API_KEY`` environment variable (which may come from a
    ``.env`` file) is used.

    Parameters
    ==========
    api_key : :obj:`str` = None
        An explicit key.
    required : :obj:`bool` = False
        Raise :class:`.CensusAPIKeyError` instead of returning ``None`` when no key
        can be found.
    """
    if api_key:
        return api_key

    api_key = environ.get(API_KEY_ENV_VAR)
    if api_key:
        return api_key

    if required:
        raise CensusAPIKeyError()

    logger.warning('no Census API key found in %s; requests are limited to 500 per day without one', API_KEY_ENV_VAR)
    return None


def census_api_key(key: str, install: bool = False, overwrite: bool = False, dotenv_path: str = '.env') -> str:
    """
    Sets the Census API key for the current session and, optionally, installs it
    into a ``.env`` file so that future sessions pick it up.

    Parameters
    ==========
    key : :obj:`str`
        The key. Can be obtained `here <https://api.census.gov/data/key_signup.html>`_.
    install : :obj:`bool` = False
        Write the key into ``dotenv_path``.
    overwrite : :obj:`bool` = False
        Replace a key that is already installed in ``dotenv_path``.
    dotenv_path : :obj:`str` = '.env'
        The file to install the key into.
    """
    if not key:
        raise ValueError('key must be a non-empty string')

    if install:
        if path.exists(dotenv_path) and API_KEY_ENV_VAR in dotenv_values(dotenv_path) and not overwrite:
            raise ValueError(f'A {API_KEY_ENV_VAR} already exists in {dotenv_path}. You can overwrite it with the argument overwrite=True.')
        if not path.exists(dotenv_path):
            open(dotenv_path, 'a').close()
        set_key(dotenv_path, API_KEY_ENV_VAR, key, quote_mode='never')
        logger.info('installed %s into %s', API_KEY_ENV_VAR, dotenv_path)

    environ[API_KEY_ENV_VAR] = key
    return key
