from unittest import TestCase, main
from httpx import Response, MockTransport, ConnectError
from typing import List
from threading import active_count

from censuskit.api import CensusClient, TIGERClient, CensusAPIError, TIGERWebAPIError

from mock_census import census_transport


class APITest(TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.requests = []
        cls.census_client = CensusClient(url_extension='2021/acs/acs5', api_key='test-key', transport=census_transport(cls.requests))
        cls.tiger_client = TIGERClient(transport=census_transport(cls.requests))

    def test_census_client(self):
        valid_urls = ['/geography.json', '/variables.json']
        for url in valid_urls:
            response = self.census_client.get_sync(url=url)
            self.assertIsInstance(response, Response)
            self.assertEqual(response.status_code, 200)

        valid_url_params_list = list(zip(valid_urls, [{}]*len(valid_urls)))
        responses = self.census_client.get_many_sync(url_params_list=valid_url_params_list)
        self.assertIsInstance(responses, List)
        self.assertIn('fips', responses[0].json())
        self.assertIn('variables', responses[1].json())

    def test_api_key_is_sent(self):
        self.census_client.get_sync(url='/variables.json')
        self.assertEqual(self.requests[-1].url.params['key'], 'test-key')

    def test_params_are_not_mutated(self):
        params = {'get': 'NAME', 'for': 'state:53'}
        self.census_client.get_sync(url='', params=params)
        self.assertNotIn('key', params)

    def test_census_not_found(self):
        client = CensusClient(url_extension='2021/acs/acs9', transport=census_transport())
        with self.assertRaises(CensusAPIError) as context:
            client.get_sync(url='/variables.json')
        self.assertEqual(context.exception.status_code, 404)

    def test_census_empty_response(self):
        response = self.census_client.get_sync(url='', params={'get': 'NAME', 'for': 'state:99'})
        self.assertEqual(response.status_code, 204)

    def test_census_connection_failure(self):
        def handler(request):
            raise ConnectError('unreachable', request=request)

        client = CensusClient(url_extension='2021/acs/acs5', retry_limit=1, transport=MockTransport(handler))
        with self.assertLogs('censuskit.api', level='WARNING'):
            with self.assertRaises(CensusAPIError) as context:
                client.get_sync(url='/variables.json')
        self.assertIsNone(context.exception.status_code)

    def test_census_client_error_is_not_retried(self):
        requests = []

        def handler(request):
            requests.append(request)
            return Response(400, text="error: unknown variable 'B99999_001E'")

        client = CensusClient(url_extension='2021/acs/acs5', retry_limit=None, transport=MockTransport(handler))
        with self.assertRaises(CensusAPIError) as context:
            client.get_sync(url='', params={'get': 'B99999_001E', 'for': 'state:53'})
        self.assertEqual(context.exception.status_code, 400)
        self.assertEqual(len(requests), 1)

    def test_census_server_error_is_retried(self):
        requests = []

        def handler(request):
            requests.append(request)
            return Response(500, text='internal error')

        client = CensusClient(url_extension='2021/acs/acs5', retry_limit=2, transport=MockTransport(handler))
        with self.assertRaises(CensusAPIError) as context:
            client.get_sync(url='/variables.json')
        self.assertEqual(context.exception.status_code, 500)
        self.assertEqual(len(requests), 2)

    def test_clients_share_one_loop(self):
        census_client = CensusClient(url_extension='2021/acs/acs5', transport=census_transport())
        tiger_client = TIGERClient(transport=census_transport())
        self.assertIs(census_client._loop_handler, tiger_client._loop_handler)
        census_client.close()
        tiger_client.close()

        before = active_count()
        for _ in range(10):
            with CensusClient(url_extension='2021/acs/acs5', transport=census_transport()) as client:
                client.get_sync(url='/variables.json')
            self.assertTrue(client.is_closed)
        self.assertEqual(active_count(), before)

        # closing twice is harmless
        client.close()

    def test_tiger_client(self):
        response = self.tiger_client.get_sync(url='layers')
        self.assertIsInstance(response, Response)
        self.assertEqual(self.requests[-1].url.params['f'], 'json')
        self.assertIn('layers', response.json())

        url_params_list = [('80/query', {'where': "STATE='53'", 'returnCountOnly': 'true'}), ('82/query', {'where': "STATE='53'", 'returnCountOnly': 'true'})]
        responses = self.tiger_client.get_many_sync(url_params_list=url_params_list)
        self.assertEqual([r.json()['count'] for r in responses], [1, 3])

    def test_tiger_error_body(self):
        def handler(request):
            return Response(200, text='{"error": {"code": 400, "message": "Error performing query operation"}}')

        client = TIGERClient(transport=MockTransport(handler))
        with self.assertRaises(TIGERWebAPIError) as context:
            client.get_sync(url='82/query', params={'where': 'bad_param=bad_value'})
        self.assertEqual(context.exception.status_code, 500)


if __name__ == "__main__":
    main()
