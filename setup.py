#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""pyClusterGAM setup script"""
from setuptools import setup

if __name__ == "__main__":
    setup(
        zip_safe=False,
    )
