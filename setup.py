#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Created on Fri Feb 16 20:21:12 2018

@author: leon
"""

from setuptools import setup, find_packages

setup(name='morphface',
      packages=find_packages(exclude=['tests']),
      version='0.1.0',
      description='Rendering and inverse rendering of 3D morphable face models',
      author='Leon Nguyen',
      author_email='leonnguyen94@gmail.com',
      license='MIT',
      python_requires='>=3.7',
      install_requires=['numpy', 'scipy>=1.6', 'scikit-learn'],
      extras_require={'test': ['pytest']},)
