# -*- coding: utf-8 -*-
from setuptools import setup, find_packages


def get_long_description():

    for line in open('README.rst'):
        if '.. < package description' in line:
            break
        yield line

    for line in open('HISTORY.rst'):
        yield line


setup(
    name='fleetres',
    version='0.1.0',
    license='BSD',
    description='A library to assign vehicles of a fleet without overlaps',
    long_description=''.join(get_long_description()),
    package_dir={'': 'src'},
    packages=find_packages('src'),
    include_package_data=True,
    zip_safe=False,
    platforms='any',
    python_requires='>=3.10',
    install_requires=[
        'psycopg2-binary',
        'pytz',
        'sedate',
        'SQLAlchemy>=2.0',
    ],
    extras_require=dict(
        test=[
            'mock',
            'pytest',
            'testing.postgresql',
        ],
    ),
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules'
    ],
)
