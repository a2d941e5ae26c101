#!/usr/bin/env python
from setuptools import setup

setup(
        name='nvui',
        version='0.1',
        entry_points={
            'console_scripts': ['nvui = nvui.run:start'],
        },
        description='Terminal user interface for Neovim',
        long_description=open("README.rst").read(),
        packages=['nvui'],
        install_requires = [ 'msgpack>=1.0', 'pyte>=0.8', 'wcwidth', 'docopt' ],
        extras_require = {
            'test': [ 'pytest' ],
        },
)
