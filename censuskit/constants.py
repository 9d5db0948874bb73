from re import compile

CENSUS_API_ROOT = 'https://api.census.gov/data/'
TIGERWEB_ROOT = 'https://tigerweb.geo.census.gov/arcgis/rest/services/TIGERweb/'
CARTOGRAPHIC_ROOT = 'https://www2.census.gov/geo/tiger/'

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_LIMIT = 2

API_KEY_ENV_VAR = 'CENSUS_API_KEY'

# (FIPS, postal abbreviation, name)
STATES = [
    ('01', 'AL', 'Alabama'),
    ('02', 'AK', 'Alaska'),
    ('04', 'AZ', 'Arizona'),
    ('05', 'AR', 'Arkansas'),
    ('06', 'CA', 'California'),
    ('08', 'CO', 'Colorado'),
    ('09', 'CT', 'Connecticut'),
    ('10', 'DE', 'Delaware'),
    ('11', 'DC', 'District of Columbia'),
    ('12', 'FL', 'Florida'),
    ('13', 'GA', 'Georgia'),
    ('15', 'HI', 'Hawaii'),
    ('16', 'ID', 'Idaho'),
    ('17', 'IL', 'Illinois'),
    ('18', 'IN', 'Indiana'),
    ('19', 'IA', 'Iowa'),
    ('20', 'KS', 'Kansas'),
    ('21', 'KY', 'Kentucky'),
    ('22', 'LA', 'Louisiana'),
    ('23', 'ME', 'Maine'),
    ('24', 'MD', 'Maryland'),
    ('25', 'MA', 'Massachusetts'),
    ('26', 'MI', 'Michigan'),
    ('27', 'MN', 'Minnesota'),
    ('28', 'MS', 'Mississippi'),
    ('29', 'MO', 'Missouri'),
    ('30', 'MT', 'Montana'),
    ('31', 'NE', 'Nebraska'),
    ('32', 'NV', 'Nevada'),
    ('33', 'NH', 'New Hampshire'),
    ('34', 'NJ', 'New Jersey'),
    ('35', 'NM', 'New Mexico'),
    ('36', 'NY', 'New York'),
    ('37', 'NC', 'North Carolina'),
    ('38', 'ND', 'North Dakota'),
    ('39', 'OH', 'Ohio'),
    ('40', 'OK', 'Oklahoma'),
    ('41', 'OR', 'Oregon'),
    ('42', 'PA', 'Pennsylvania'),
    ('44', 'RI', 'Rhode Island'),
    ('45', 'SC', 'South Carolina'),
    ('46', 'SD', 'South Dakota'),
    ('47', 'TN', 'Tennessee'),
    ('48', 'TX', 'Texas'),
    ('49', 'UT', 'Utah'),
    ('50', 'VT', 'Vermont'),
    ('51', 'VA', 'Virginia'),
    ('53', 'WA', 'Washington'),
    ('54', 'WV', 'West Virginia'),
    ('55', 'WI', 'Wisconsin'),
    ('56', 'WY', 'Wyoming'),
    ('60', 'AS', 'American Samoa'),
    ('66', 'GU', 'Guam'),
    ('69', 'MP', 'Northern Mariana Islands'),
    ('72', 'PR', 'Puerto Rico'),
    ('78', 'VI', 'U.S. Virgin Islands'),
]

FIPS_TO_FULL = {fips: name for fips, _, name in STATES}
ABBR_TO_FULL = {abbr: name for _, abbr, name in STATES}
ABBR_TO_FULL_REGEX = compile(r'\b(' + '|'.join(ABBR_TO_FULL.keys()) + r')\b')

# Sentinels the Census API returns in place of an estimate or margin of error.
BAD_VALUES = [
    -999999999,
    -888888888,
    -666666666,
    -555555555,
    -333333333,
    -222222222,
    '-999999999',
    '-888888888',
    '-666666666',
    '-555555555',
    '-333333333',
    '-222222222',
]

# z-scores used to rescale the published 90% margins of error.
MOE_Z_SCORES = {
    90: 1.645,
    95: 1.96,
    99: 2.56,
}

# geography level -> TIGERweb layer names, in search order
GEOGRAPHY_LAYER_MAP = {
    'us': [],
    'region': ['Census Regions'],
    'division': ['Census Divisions'],
    'state': ['States'],
    'county': ['Counties'],
    'county subdivision': ['County Subdivisions'],
    'tract': ['Census Tracts'],
    'block group': ['Census Block Groups'],
    'block': ['Census Blocks', '2020 Census Blocks', '2010 Census Blocks'],
    'place': ['Incorporated Places', 'Census Designated Places'],
    'zip code tabulation area': ['Zip Code Tabulation Areas', '2020 Census ZIP Code Tabulation Areas'],
}

# Page sizes that TIGERweb can serve with geometry in a single request.
LAYER_RESULT_COUNT_MAP = {
    'States': 5,
    'Counties': 50,
    'Census Tracts': 250,
    'Census Block Groups': 250,
    'Census Blocks': 500,
    '2020 Census Blocks': 500,
    'Incorporated Places': 100,
    'Census Designated Places': 100,
    'Census Regions': 1,
    'Census Divisions': 1,
    'County Subdivisions': 100,
}

# TIGERweb attribute names -> Census API geography names
FEATURE_ATTRIBUTE_MAP = {
    'STATE': 'state',
    'COUNTY': 'county',
    'TRACT': 'tract',
    'BLKGRP': 'block group',
    'BLOCK': 'block',
    'PLACE': 'place',
    'COUSUB': 'county subdivision',
    'REGION': 'region',
    'DIVISION': 'division',
    'ZCTA5': 'zip code tabulation area',
}

# Cartographic boundary file stems (GENZ) per geography level. Levels marked
# national are published as one file for the whole country.
CARTOGRAPHIC_FILES = {
    'state': ('state', True),
    'county': ('county', True),
    'tract': ('tract', False),
    'block group': ('bg', False),
    'place': ('place', False),
}
