"""Main pyClusterGAM workflow."""

import argparse
import datetime
import logging
import os
import sys
from os import path as op

import pandas as pd

from pyClusterGAM import __version__, utils
from pyClusterGAM.formula import list_formula
from pyClusterGAM.gamcluster import gam_cluster
from pyClusterGAM.io import (
    read_covariates,
    write_cluster_map,
    write_json,
    write_models,
    write_table,
)
from pyClusterGAM.model import GRIDSEARCH_OBJECTIVES, summarize_model
from pyClusterGAM.utils import get_outname
from pyClusterGAM.workflows.parser_utils import check_formula_value, is_valid_file

LGR = logging.getLogger("GENERAL")
RefLGR = logging.getLogger("REFERENCES")


def _get_parser():
    """
    Parse command line inputs for this function.

    Returns
    -------
    parser.parse_args() : argparse dict

    Notes
    -----
    # Argument parser follow template provided by RalphyZ.
    # https://stackoverflow.com/a/43456577
    """
    parser = argparse.ArgumentParser(prog="pyClusterGAM")
    optional = parser._action_groups.pop()
    required = parser.add_argument_group("Required Argument:")
    required.add_argument(
        "-i",
        "--input",
        dest="data_fn",
        type=lambda x: is_valid_file(parser, x),
        nargs="+",
        help=(
            "The name of the nifti-like file(s) with the data. Volumes are in the last "
            "dimension. If more than one file is given, the files are merged across time."
        ),
        required=True,
    )
    required.add_argument(
        "-m",
        "--mask",
        dest="mask_fn",
        type=lambda x: is_valid_file(parser, x),
        help="The name of the mask file. All clusters must be labeled with integers.",
        required=True,
    )
    required.add_argument(
        "-f",
        "--formula",
        dest="formula",
        type=check_formula_value,
        help=(
            "Right-hand side of the model, e.g. '~ s(age) + sex'. Supported terms are s(), "
            "l(), f(), te() and plain covariates."
        ),
        required=True,
    )
    required.add_argument(
        "-c",
        "--covariates",
        dest="covariates_fn",
        type=lambda x: is_valid_file(parser, x),
        help=(
            "Table (csv, tsv or txt) with one row per volume and one column per covariate. "
            "The first row must contain the covariate names."
        ),
        required=True,
    )
    required.add_argument(
        "-o",
        "--output",
        dest="output_filename",
        type=str,
        help="The name of the output file with no extension.",
        required=True,
    )
    optional.add_argument(
        "-d",
        "--dir",
        dest="out_dir",
        type=str,
        help="Output directory. Default is current.",
        default=".",
    )
    optional.add_argument(
        "--fourd_out",
        dest="fourd_out",
        type=str,
        help=(
            "Path and file name without the suffix to save the merged 4D image when more "
            "than one input file is given (default = None, not saved)."
        ),
        default=None,
    )
    optional.add_argument(
        "--distribution",
        dest="distribution",
        type=str,
        choices=["normal", "binomial", "poisson", "gamma", "inv_gauss"],
        help="Distribution of the response (default = 'normal').",
        default="normal",
    )
    optional.add_argument(
        "--link",
        dest="link",
        type=str,
        choices=["identity", "logit", "log", "inverse", "inverse-squared"],
        help="Link function (default = 'identity').",
        default="identity",
    )
    optional.add_argument(
        "--method",
        dest="method",
        type=str,
        choices=GRIDSEARCH_OBJECTIVES,
        help=(
            "Objective to select the smoothing parameters with a grid search. "
            "Default = None, i.e. the penalties in the formula are used."
        ),
        default=None,
    )
    optional.add_argument(
        "--max_iter",
        dest="max_iter",
        type=int,
        help="Maximum number of iterations of the model fit (default = 100).",
        default=100,
    )
    optional.add_argument(
        "--jobqueue",
        help="Jobqueue.yaml file to set up parallel processing (default = None).",
        default=None,
        type=str,
        dest="jobqueue",
    )
    optional.add_argument(
        "-j",
        "--jobs",
        dest="n_jobs",
        type=int,
        help="Number of worker processes to fit the models (default = 1).",
        default=1,
    )
    optional.add_argument(
        "--no_preschedule",
        dest="preschedule",
        action="store_false",
        help=(
            "Send one job per cluster to the workers instead of splitting the clusters into "
            "as many batches as jobs beforehand."
        ),
        default=True,
    )
    optional.add_argument(
        "-bids",
        "--bids",
        dest="use_bids",
        action="store_true",
        help=(
            "Use BIDS-style suffix on the given `output` and write a dataset_description.json "
            "file (default = False)."
        ),
        default=False,
    )
    optional.add_argument(
        "-debug",
        "--debug",
        dest="debug",
        action="store_true",
        help="Logs in the terminal will have increased "
        "verbosity, and will also be written into "
        "a .tsv file in the output directory.",
        default=False,
    )
    optional.add_argument(
        "-quiet",
        "--quiet",
        dest="quiet",
        help=argparse.SUPPRESS,
        action="store_true",
        default=False,
    )
    optional.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")

    parser._action_groups.append(optional)

    return parser


def pyClusterGAM(
    data_fn,
    mask_fn,
    formula,
    covariates_fn,
    output_filename,
    out_dir=".",
    fourd_out=None,
    distribution="normal",
    link="identity",
    method=None,
    max_iter=100,
    jobqueue=None,
    n_jobs=1,
    preschedule=True,
    use_bids=False,
    debug=False,
    quiet=False,
    command_str=None,
):
    """Fit a generalized additive model on the mean intensity of every cluster of a mask.

    Parameters
    ----------
    data_fn : list of str
        Input data file(s). Multiple files are merged across time.
    mask_fn : str
        Mask file with clusters labeled with integers.
    formula : str
        Formula template, e.g. '~ s(age) + sex'.
    covariates_fn : str
        Table with the covariates, one row per volume.
    output_filename : str
        Prefix of output files.
    out_dir : str, optional
        Output directory, by default "."
    fourd_out : str, optional
        Path and file name without the suffix to save the merged 4D image, by default None
    distribution : str, optional
        Distribution of the response, by default "normal"
    link : str, optional
        Link function, by default "identity"
    method : str, optional
        Objective of the grid search of the smoothing parameters, by default None
    max_iter : int, optional
        Maximum number of iterations of the model fit, by default 100
    jobqueue : str, optional
        Jobqueue to use for parallel processing, by default None
    n_jobs : int, optional
        Number of worker processes, by default 1
    preschedule : bool, optional
        Whether to split the clusters into batches before sending them to the workers,
        by default True
    use_bids : bool, optional
        Use BIDS-style suffix on the given `output`, by default False
    debug : bool, optional
        Logger option for debugging, by default False
    quiet : bool, optional
        Quiet logger option (no messages shown), by default False
    command_str : str, optional
        Command string to be used in the log file, by default None.
    """
    # Generate output directory if it doesn't exist
    out_dir = op.abspath(out_dir)
    if not op.isdir(out_dir):
        os.makedirs(out_dir)

    # Save command into sh file, if the command-line interface was used
    if command_str is not None:
        with open(os.path.join(out_dir, "call.sh"), "w") as command_file:
            command_file.write(command_str)

    # create logfile name
    basename = "pyClusterGAM_"
    extension = "tsv"
    start_time = datetime.datetime.now().strftime("%Y-%m-%dT%H%M%S")
    logname = op.join(out_dir, (basename + start_time + "." + extension))
    refname = op.join(out_dir, "_references.txt")
    utils.setup_loggers(logname, refname, quiet=quiet, debug=debug)

    try:
        LGR.info(f"Using output directory: {out_dir}")

        LGR.info("Reading covariates...")
        subj_data = read_covariates(covariates_fn)

        models, cluster_means, masker = gam_cluster(
            data_fn,
            mask_fn,
            formula,
            subj_data,
            fourd_out=fourd_out,
            preschedule=preschedule,
            n_jobs=n_jobs,
            jobqueue=jobqueue,
            return_data=True,
            distribution=distribution,
            link=link,
            method=method,
            max_iter=max_iter,
        )

        RefLGR.info(
            "Serven D., Brummitt C. (2018). pyGAM: Generalized Additive Models in Python. "
            "Zenodo. DOI: 10.5281/zenodo.1208723"
        )

        # Initialize list to save keywords used for BIDS compatible outputs
        out_bids_keywords = []

        LGR.info(f"Saving results to {out_dir}...")
        out_keyword = "meanCluster"
        out_bids_keywords.append(out_keyword)
        output_name = get_outname(output_filename, out_keyword, "tsv", use_bids)
        write_table(cluster_means, os.path.join(out_dir, output_name))

        summaries = []
        for cluster_name, model in zip(cluster_means.columns, models):
            summary = {"cluster": cluster_name}
            summary.update(summarize_model(model, list_formula(cluster_name, formula)))
            summaries.append(summary)
        summary_table = pd.DataFrame(summaries)

        out_keyword = "summary"
        out_bids_keywords.append(out_keyword)
        output_name = get_outname(output_filename, out_keyword, "tsv", use_bids)
        write_table(summary_table, os.path.join(out_dir, output_name))

        out_keyword = "models"
        out_bids_keywords.append(out_keyword)
        output_name = get_outname(output_filename, out_keyword, "pkl", use_bids)
        write_models(models, os.path.join(out_dir, output_name))

        # Save one value per cluster as a map
        for out_keyword, column in [("devExplained", "explained_deviance"), ("edof", "edof")]:
            if use_bids:
                out_keyword = f"stat-{out_keyword}_statmap"
            out_bids_keywords.append(out_keyword)
            output_name = get_outname(output_filename, out_keyword, "nii.gz", use_bids)
            write_cluster_map(
                summary_table[column].to_numpy(), os.path.join(out_dir, output_name), masker
            )

        # Save BIDS compatible sidecar file
        if use_bids:
            write_json(out_bids_keywords, out_dir)

        LGR.info("Results saved.")

        LGR.info("pyClusterGAM finished.")
    finally:
        utils.teardown_loggers()


def _main(argv=None):
    """pyClusterGAM entry point."""
    args = sys.argv[1:] if argv is None else argv
    command_str = "pyClusterGAM " + " ".join(args)
    options = _get_parser().parse_args(args)
    pyClusterGAM(**vars(options), command_str=command_str)


if __name__ == "__main__":
    _main()
