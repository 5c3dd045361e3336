from setuptools import setup, find_packages

setup(
    name='device_datasource',
    version='0.1.0',
    description='Device metrics data source: query normalization, variable expansion and frame decoding',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(include=['device_datasource', 'device_datasource.*']),
    install_requires=[         # Add dependencies from requirements.txt
        line.strip() for line in open('requirements.txt').readlines() if line.strip()
    ],
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.9,<3.14',
    license='BSD-3-Clause'
)
