from unittest import TestCase, main
from pandas import DataFrame

from censuskit.variable import Variable, VariableCollection, VariableError, UnknownGroup

from mock_census import ACS_VARIABLES


class VariableTest(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.variables = VariableCollection(ACS_VARIABLES)

    def test_existing_variable(self):
        income = self.variables.get('B19013_001E')
        self.assertIsInstance(income, Variable)
        self.assertEqual(income.group, 'B19013')
        self.assertIs(income.type, int)
        self.assertEqual(income.moe, 'B19013_001M')
        self.assertIn('B19013_001E', self.variables)
        self.assertIn('B19013_001M', self.variables)

        moe = self.variables.get('B19013_001M')
        self.assertEqual(moe.attribute_type, 'margin of error')
        self.assertEqual(self.variables.get('B19013_001EA').attribute_type, 'annotation')

    def test_nonexisting_variable(self):
        self.assertIsNone(self.variables.get('B99999_001E'))
        self.assertNotIn('B99999_001E', self.variables)
        with self.assertRaises(VariableError):
            self.variables._build_variable_params(variables=['B99999_001'])
        with self.assertRaises(VariableError):
            self.variables._build_variable_params()
        with self.assertRaises(UnknownGroup):
            self.variables.filter_by_group('B99999')

    def test_resolve(self):
        self.assertEqual(self.variables._resolve('B19013_001'), ('B19013_001', 'B19013_001E', 'B19013_001M'))
        self.assertEqual(self.variables._resolve('B19013_001E'), ('B19013_001', 'B19013_001E', 'B19013_001M'))
        self.assertEqual(self.variables._resolve('NAME'), ('NAME', 'NAME', None))

    def test_variable_params(self):
        masked, params_list, requested = self.variables._build_variable_params(variables={'median_income': 'B19013_001'})
        self.assertEqual(params_list, [{'get': 'B19013_001E,B19013_001M,NAME,GEO_ID'}])
        self.assertEqual(requested[0].output, 'median_income')
        self.assertEqual(masked.names, ['B19013_001E'])

        _, params_list, requested = self.variables._build_variable_params(table='B01001', moe=False)
        self.assertEqual(len(requested), 3)
        self.assertEqual(params_list, [{'get': 'B01001_001E,B01001_002E,B01001_026E,NAME,GEO_ID'}])

        _, _, requested = self.variables._build_variable_params(variables=['B01001_001', 'B01001_001E'])
        self.assertEqual(len(requested), 1)

    def test_variable_chunks(self):
        many = {'NAME': ACS_VARIABLES['NAME'], 'GEO_ID': ACS_VARIABLES['GEO_ID']}
        for i in range(1, 61):
            many[f'B99999_{i:03d}E'] = {'label': f'Estimate!!Total:!!Item {i}', 'concept': 'MANY', 'predicateType': 'int', 'group': 'B99999'}
        collection = VariableCollection(many)

        _, params_list, requested = collection._build_variable_params(table='B99999')
        self.assertEqual(len(requested), 60)
        self.assertEqual(len(params_list), 2)
        for params in params_list:
            get = params['get'].split(',')
            self.assertLessEqual(len(get), 50)
            self.assertEqual(get[-2:], ['NAME', 'GEO_ID'])
        requested_names = sum((p['get'].split(',')[:-2] for p in params_list), [])
        self.assertEqual(sorted(requested_names), sorted(r.estimate for r in requested))

    def test_tree(self):
        self.assertEqual(self.variables.parent_of('B01001_002E').name, 'B01001_001E')
        self.assertIsNone(self.variables.parent_of('B01001_001E'))
        self.assertEqual(sorted(self.variables.children_of('B01001_001E').names), ['B01001_002E', 'B01001_026E'])
        with self.assertRaises(VariableError):
            self.variables.children_of('B99999_001E')

    def test_filters(self):
        self.assertEqual(self.variables.filter_by_term('median household income').names, ['B19013_001E'])
        self.assertEqual(self.variables.filter_by_term(['total', 'male'], by='label').names, ['B01001_002E', 'B01001_026E'])
        self.assertEqual(len(self.variables.filter_by_term('sex by age', by='concept')), 3)
        self.assertEqual(sorted(self.variables.filter_by_group('B01001').names), ['B01001_001E', 'B01001_002E', 'B01001_026E'])
        with self.assertRaises(ValueError):
            self.variables.filter_by_term('total', by='group')

    def test_collection_outputs(self):
        df = self.variables.to_df()
        self.assertIsInstance(df, DataFrame)
        self.assertEqual(df.columns.to_list(), ['name', 'label', 'concept', 'group', 'type'])
        self.assertEqual(len(df), len(ACS_VARIABLES))
        self.assertIsInstance(self.variables.to_list(), list)
        self.assertEqual(len(self.variables.groups), 2)


if __name__ == "__main__":
    main()
