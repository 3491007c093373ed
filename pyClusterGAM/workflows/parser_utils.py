"""Functions for parsers."""

import argparse
import os.path as op

from pyClusterGAM.formula import CLUSTER_PLACEHOLDER


def check_formula_value(string):
    """
    Check if argument is a formula template.

    The template must start with '~' or contain the '{cluster}' placeholder.
    """
    string = string.strip()
    if "~" in string and (string.startswith("~") or CLUSTER_PLACEHOLDER in string):
        return string
    else:
        raise argparse.ArgumentTypeError(
            "Formula must be a one-sided formula such as '~ s(age)' or contain the "
            f"{CLUSTER_PLACEHOLDER} placeholder, e.g. '{CLUSTER_PLACEHOLDER} ~ s(age)'."
        )


def is_valid_file(parser, arg):
    """
    Check if argument is existing file.

    Parameters
    ----------
    parser : argparse.ArgumentParser
        Argument parser.
    arg : str
        Argument to check.

    Returns
    -------
    arg : str
        Argument if it is an existing file.
    """
    if not op.isfile(arg) and arg is not None:
        parser.error(f"The file {arg} does not exist!")

    return arg
