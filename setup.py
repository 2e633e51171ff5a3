import os
import re

from setuptools import setup, find_packages


def requirements_from_file(filename):
    with open(os.path.join(here, filename), encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]


here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, 'devtools_throttle', '__init__.py'), encoding='utf-8') as f:
    try:
        version = re.findall(r"^__version__ = '([^']+)'\r?$", f.read(), re.M)[0]
    except IndexError:
        raise RuntimeError('Unable to determine version')

setup(
    name='devtools-throttle',

    version=version,

    description='DevTools Throttle',
    long_description='CPU and network throttling plus request latency recording for Chrome over DevTools',

    author='Alexander Bayandin',
    author_email='a.bayandin@gmail.com',

    license='MIT',

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: MacOS :: MacOS X',
        'Operating System :: POSIX',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python',
        'Topic :: Software Development :: Testing',
    ],

    keywords='selenium chrome chromedriver devtools throttling latency',

    packages=find_packages(exclude=['tests', 'tests.*']),

    python_requires='>=3.8',

    install_requires=requirements_from_file('requirements.txt'),

    extras_require={
        'test': requirements_from_file('requirements-test.txt'),
        'speedups': ['ujson', 'uvloop'],
    },

    entry_points={
        'console_scripts': [
            'devtools-throttle=devtools_throttle.cli:main',
        ],
    },
)
