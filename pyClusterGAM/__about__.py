# emacs: -*- mode: python; py-indent-offset: 4; indent-tabs-mode: nil -*-
# vi: set ft=python sts=4 ts=4 sw=4 et:
"""Base module variables."""

__version__ = "0.1.0"
__packagename__ = "pyClusterGAM"
__copyright__ = "Copyright 2026, The pyClusterGAM developers"
__credits__ = ["Angel Garcia de la Garza", "The pyClusterGAM developers"]
__url__ = "https://github.com/pyClusterGAM/pyClusterGAM"
DOWNLOAD_URL = f"https://github.com/pyClusterGAM/{__packagename__}/archive/{__version__}.tar.gz"
