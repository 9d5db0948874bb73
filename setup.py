from setuptools import setup, find_packages

setup(
    name="censuskit",
    version="0.1.0",
    description="Fetch, reshape, compare and map U.S. Census Bureau ACS and Decennial data and TIGER boundaries.",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["test", "test.*", "docs", "docs.*"]),
    python_requires=">=3.9",
    install_requires=[
        "httpx",
        "pandas",
        "numpy",
        "scipy",
        "shapely>=2.0",
        "geopandas>=0.14",
        "fiona",
        "thefuzz",
        "Levenshtein",
        "matplotlib",
        "folium",
        "mapclassify",
        "python-dotenv",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
