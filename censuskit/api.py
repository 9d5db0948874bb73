from typing import Dict, List, Tuple, Iterable
from httpx import AsyncClient, AsyncBaseTransport, Timeout, Response, ConnectTimeout, ConnectError, ReadTimeout, PoolTimeout
from asyncio import new_event_loop, set_event_loop, run_coroutine_threadsafe, sleep, gather
from threading import Thread, Lock
from logging import getLogger

from censuskit.constants import CENSUS_API_ROOT, TIGERWEB_ROOT, DEFAULT_TIMEOUT, DEFAULT_RETRY_LIMIT

logger = getLogger(__name__)


class CensusAPIKeyError(Exception):
    def __init__(self) -> None:
        super().__init__('Looks like you are missing an API key! You can obtain one at https://api.census.gov/data/key_signup.html. You can set it by passing it into the api_key parameter or by setting the CENSUS_API_KEY environment variable.')


class CensusAPIError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f'The Census API had an error (status code {status_code}) and returned the following message:\n\n{message}')
        self.status_code = status_code
        self.message = message


class TIGERWebAPIError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        if status_code:
            super().__init__(f'The TIGER API had an error (status code {status_code}) and returned the following message:\n\n{message}')
        else:
            super().__init__(message)

        self.status_code = status_code
        self.message = message


class AsyncLoopHandler(Thread):
    """
    Runs an event loop in a daemon thread so that synchronous callers (including
    code running inside an IPython kernel, which already owns a loop) can submit
    coroutines to it.

    Adapted from https://stackoverflow.com/a/66055205/17834461
    """
    def __init__(self):
        super().__init__(daemon=True)
        self.loop = new_event_loop()

    def run(self):
        set_event_loop(self.loop)
        self.loop.run_forever()
        return self.loop


_loop_handler : AsyncLoopHandler = None
_loop_lock = Lock()


def shared_loop_handler() -> AsyncLoopHandler:
    """
    Returns the event loop thread shared by every client, starting it on first use.
    """
    global _loop_handler
    with _loop_lock:
        if _loop_handler is None or not _loop_handler.is_alive():
            _loop_handler = AsyncLoopHandler()
            _loop_handler.start()
    return _loop_handler


class SyncClientMixin:
    """
    Lets an :class:`httpx.AsyncClient` running on the shared loop be closed from
    synchronous code, directly or as a context manager.
    """
    def close(self) -> None:
        """
        Closes the connection pool. The client cannot be used afterwards.
        """
        if not self.is_closed:
            run_coroutine_threadsafe(self.aclose(), self._loop_handler.loop).result()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class CensusClient(SyncClientMixin, AsyncClient):
    """
    An object that interfaces with the Census API. Extends the
    :class:`httpx.AsyncClient` class to allow for asynchronous requests.

    Parameters
    ==========
    url_extension : :obj:`str`
        A URL extension to append to ``https://api.census.gov/data/`` for accessing
        data related to a specific :class:`.Dataset`.
    api_key : :obj:`str` = None
        A Census API key. Can be obtained
        `here <https://api.census.gov/data/key_signup.html>`_. Appended to every
        request as the ``key`` query parameter when set.
    retry_limit : :obj:`int` = 2
        The number of attempts made for each request. ``None`` retries forever.
    transport : :class:`httpx.AsyncBaseTransport` = None
        An alternative transport, mostly useful for testing.
    """
    def __init__(self, url_extension: str, api_key: str = None, retry_limit: int = DEFAULT_RETRY_LIMIT, transport: AsyncBaseTransport = None):
        timeout = Timeout(DEFAULT_TIMEOUT, connect=DEFAULT_TIMEOUT)
        super().__init__(timeout=timeout, transport=transport)

        self.root = f'{CENSUS_API_ROOT}{url_extension}'
        self.api_key = api_key
        self.chunk_size = 50
        self.retry_limit = retry_limit

        self._loop_handler = shared_loop_handler()

    def get_sync(self, url: str = '', params: Dict[str, str] = None) -> Response:
        """
        Make a single request to the Census API synchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The relative URL to request.
        params : :obj:`dict` of :obj:`str`: :obj:`str`
            Query parameters to supply to the Census API.
        """
        future = run_coroutine_threadsafe(self.get(url=url, params=params), self._loop_handler.loop)
        return future.result()

    def get_many_sync(self, url_params_list: Iterable[Tuple[str, Dict[str, str]]] = ()) -> List[Response]:
        """
        Make more than one request to the Census API synchronously. The requests
        are still sent concurrently; only the call itself blocks.

        Parameters
        ==========
        url_params_list : array-like of :obj:`tuple` of :obj:`str` and :obj:`dict` of :obj:`str`: :obj:`str`
            An array-like of tuples, where each tuple consists of a URL to request and a
            set of query parameters to supply to the Census API.
        """
        future = run_coroutine_threadsafe(self.get_many(url_params_list=url_params_list), self._loop_handler.loop)
        return future.result()

    async def get(self, url: str = '', params: Dict[str, str] = None) -> Response:
        """
        Make a single request to the Census API asynchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The relative URL to request.
        params : :obj:`dict` of :obj:`str`: :obj:`str`
            Query parameters to supply to the Census API.
        """
        params = dict(params or {})
        if self.api_key is not None:
            params.update({'key': self.api_key})
        url = self.root + url

        response = None
        retry_count = 0
        while self.retry_limit is None or retry_count < self.retry_limit:
            retry_count += 1
            try:
                response = await super().get(url=url, params=params)
            except (ConnectTimeout, ConnectError, ReadTimeout, PoolTimeout) as e:
                logger.warning('request to %s failed (%s), attempt %d', url, e.__class__.__name__, retry_count)
                response = None

            if response is None:
                await sleep(2)
                continue

            if response.status_code == 200 or response.status_code == 204:
                return response

            # client errors (unknown variable, unsupported geography) will not succeed on retry
            if 400 <= response.status_code < 500:
                break

        if response is None:
            raise CensusAPIError(status_code=None, message=f'Unable to reach {url}.')
        raise CensusAPIError(status_code=response.status_code, message=response.text)

    async def get_many(self, url_params_list: Iterable[Tuple[str, Dict[str, str]]] = ()) -> List[Response]:
        """
        Make more than one request to the Census API asynchronously.

        Parameters
        ==========
        url_params_list : array-like of :obj:`tuple` of :obj:`str` and :obj:`dict` of :obj:`str`: :obj:`str`
            An array-like of tuples, where each tuple consists of a URL to request and a set
            of query parameters to supply to the Census API.
        """
        url_params_list = list(url_params_list)
        chunks = [url_params_list[i:i + self.chunk_size] for i in range(0, len(url_params_list), self.chunk_size)]
        responses = []
        for chunk in chunks:
            chunk_responses = await gather(*[self.get(url, params=params) for url, params in chunk])
            responses.extend(chunk_responses)

        return responses


class TIGERClient(SyncClientMixin, AsyncClient):
    """
    An object that interfaces with the TIGERweb API. Extends the
    :class:`httpx.AsyncClient` class to allow for asynchronous requests.

    Parameters
    ==========
    map_service : :obj:`str` = 'tigerWMS_Current'
        The TIGERweb MapService to use as the basis for this client. Defaults to the
        current map service.
    retry_limit : :obj:`int` = 2
        The number of attempts made for each request.
    transport : :class:`httpx.AsyncBaseTransport` = None
        An alternative transport, mostly useful for testing.
    """
    def __init__(self, map_service: str = 'tigerWMS_Current', retry_limit: int = DEFAULT_RETRY_LIMIT, transport: AsyncBaseTransport = None):
        timeout = Timeout(DEFAULT_TIMEOUT, connect=DEFAULT_TIMEOUT)
        super().__init__(base_url=f'{TIGERWEB_ROOT}{map_service}/MapServer', timeout=timeout, transport=transport)
        self.map_service = map_service
        self.chunk_size = 100
        self.retry_limit = retry_limit

        self._loop_handler = shared_loop_handler()

    def get_sync(self, url: str = '', params: Dict[str, str] = None, return_type: str = 'json') -> Response:
        """
        Make a single request to the TIGERweb API synchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The relative URL to request.
        params : :obj:`dict` of :obj:`str`: :obj:`str`
            Query parameters to supply to the TIGERweb API.
        return_type : :obj:`str` = 'json'
            Determines the type of data to return. Should either be ``json`` or
            ``geojson``.
        """
        future = run_coroutine_threadsafe(self.get(url=url, params=params, return_type=return_type), self._loop_handler.loop)
        return future.result()

    def get_many_sync(self, url_params_list: Iterable[Tuple[str, Dict[str, str]]] = (), return_type: str = 'json') -> List[Response]:
        """
        Make more than one request to the TIGERweb API synchronously.

        Parameters
        ==========
        url_params_list : array-like of :obj:`tuple` of :obj:`str` and :obj:`dict` of :obj:`str`: :obj:`str`
            An array-like of tuples, where each tuple consists of a URL to request and a
            set of query parameters to supply to the TIGERweb API.
        return_type : :obj:`str` = 'json'
            Either ``json`` or ``geojson``.
        """
        future = run_coroutine_threadsafe(self.get_many(url_params_list=url_params_list, return_type=return_type), self._loop_handler.loop)
        return future.result()

    async def get(self, url: str = '', params: Dict[str, str] = None, return_type: str = 'json') -> Response:
        """
        Make a single request to the TIGERweb API asynchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The relative URL to request.
        params : :obj:`dict` of :obj:`str`: :obj:`str`
            Query parameters to supply to the TIGERweb API.
        return_type : :obj:`str` = 'json'
            Either ``json`` or ``geojson``.
        """
        params = dict(params or {})
        params.update({'f': return_type})
        retry_count = 0
        while self.retry_limit is None or retry_count < self.retry_limit:
            retry_count += 1
            try:
                response = await super().get(url=url, params=params)
            except (ConnectTimeout, ConnectError, ReadTimeout, PoolTimeout) as e:
                logger.warning('TIGERweb request to %s failed (%s), attempt %d', url, e.__class__.__name__, retry_count)
                response = None

            if response is None:
                await sleep(2)
                continue

            if 'The requested URL was rejected' in response.text:
                raise TIGERWebAPIError(200, 'The requested URL was rejected.')
            if 'Invalid URL' in response.text:
                raise TIGERWebAPIError(400, 'Invalid URL.')
            if 'Error performing query operation' in response.text or 'Failed to execute query' in response.text:
                raise TIGERWebAPIError(500, 'Error performing query operation.')

            if response.status_code == 200:
                return response

        raise TIGERWebAPIError(status_code=None, message='Your TIGERweb request failed for an unknown reason.')

    async def get_many(self, url_params_list: Iterable[Tuple[str, Dict[str, str]]] = (), return_type: str = 'json') -> List[Response]:
        """
        Make more than one request to the TIGERweb API asynchronously.

        Parameters
        ==========
        url_params_list : array-like of :obj:`tuple` of :obj:`str` and :obj:`dict` of :obj:`str`: :obj:`str`
            An array-like of tuples, where each tuple consists of a URL to request and a
            set of query parameters to supply to the TIGERweb API.
        return_type : :obj:`str` = 'json'
            Either ``json`` or ``geojson``.
        """
        url_params_list = list(url_params_list)
        chunks = [url_params_list[i:i + self.chunk_size] for i in range(0, len(url_params_list), self.chunk_size)]
        responses = []
        for chunk in chunks:
            chunk_responses = await gather(*[self.get(url, params=params, return_type=return_type) for url, params in chunk])
            responses.extend(chunk_responses)

        return responses
