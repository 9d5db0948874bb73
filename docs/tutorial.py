from censuskit.dataset import ACS5, load_variables, get_acs, get_decennial
from censuskit.compare import compare_estimates, to_wide
from censuskit.plot import bar_chart, choropleth, interactive_map
from censuskit.spatial import filter_by_boundary
from censuskit.tiger import AreaCollection, tracts

# censuskit.config.census_api_key('YOUR KEY', install=True) stores the key in .env

variables = load_variables(2021, 'acs5')
print(variables[variables['label'].str.contains('Median household income', case=False)].head())

acs = ACS5(year=2021)
print(acs.variables.children_of(variable='B01001_002E'))
print(acs.geographies.get(name='tract'))

income_1yr = get_acs('county', variables={'medinc': 'B19013_001'}, state='WA', year=2021, survey='acs1')
income_5yr = get_acs('county', variables={'medinc': 'B19013_001'}, state='WA', year=2021, survey='acs5')
print(to_wide(income_5yr))

comparison = compare_estimates(income_1yr, income_5yr)
print(comparison.sort_values(by='relative_diff'))

import matplotlib.pyplot as plt
bar_chart(income_5yr, value='estimate', moe='moe', title='Median household income, Washington counties')
plt.savefig('source/wa_income.png', transparent=True, dpi=200, bbox_inches='tight')

king_tracts = get_acs('tract', variables={'medinc': 'B19013_001'}, state='WA', county='King', year=2021, geometry=True)
choropleth(king_tracts, column='estimate', title='Median household income, King County tracts')
plt.savefig('source/king_income.png', transparent=True, dpi=200)

seattle = AreaCollection().place('Seattle, Washington', state='WA')
seattle_tracts = filter_by_boundary(king_tracts, seattle, how='centroid')
print(f'{len(seattle_tracts)} of {len(king_tracts)} King County tracts are in Seattle')

interactive_map(seattle_tracts, column='estimate', tooltip=['NAME', 'estimate', 'moe'], filename='source/seattle_income.html')

outlines = tracts(state='WA', county='King', year=2021, cb=True)
print(outlines.head())

blocks = get_decennial('block', variables='P1_001N', state='WA', county='King', year=2020)
print(blocks['GEOID'].str.len().unique())
