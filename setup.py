from setuptools import setup, find_packages

setup(
    name='mammal-richness',
    version='0.1.0',
    description='Data fusion and model comparison for mammal species richness',
    author='Matthew Whittle',
    author_email='matthewjwhittle@gmail.com',
    packages=find_packages(include=['richness', 'richness.*']),
    python_requires='>=3.11',
    install_requires=[
        'numpy',
        'pandas',
        'pyarrow',
        'xarray',
        'rasterio',
        'affine<3',
        'pyproj',
        'geopandas',
        'pyogrio',
        'statsmodels',
        'patsy',
        'pydantic>=2',
        'pyyaml',
        'typer',
        'typing_extensions',
        'tqdm',
    ],
    extras_require={
        'test': ['pytest', 'shapely'],
    },
    entry_points={
        'console_scripts': [
            'richness=richness.cli:app',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
