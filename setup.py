#!/usr/bin/env python3
"""
Setup script for Quackdown - markdown blog generator.
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='quackdown',
    version='1.0.0',
    description='Turns a directory of markdown posts into a static blog with optimized images',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'quackdown_pkg': [
            'templates/*.html',
        ],
    },
    include_package_data=True,
    install_requires=[
        'mistune>=3.0,<4',
        'Jinja2>=3.0',
        'Pillow>=9.1',
        'PyYAML>=6.0',
        'rcssmin>=1.1',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP :: Site Management',
        'Topic :: Software Development :: Code Generators',
        'Topic :: Text Processing :: Markup :: HTML',
    ],
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'quackdown=quackdown_pkg.cli:main',
        ],
    },
    keywords='static site generator, markdown, blog, webp',
)
