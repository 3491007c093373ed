"""Utils of pyClusterGAM."""

import logging

import yaml
from dask import config
from dask.distributed import Client
from dask_jobqueue import PBSCluster, SGECluster, SLURMCluster

LGR = logging.getLogger("GENERAL")
RefLGR = logging.getLogger("REFERENCES")

JOBQUEUE_WARNING = (
    "dask configuration wasn't detected, "
    "if you are using a cluster please look at "
    "the jobqueue YAML example, modify it so it works in your cluster "
    "and add it to ~/.config/dask "
    "local configuration will be used. "
    "You can find a jobqueue YAML example in the pyClusterGAM/jobqueue.yaml file."
)


def setup_loggers(logname=None, refname=None, quiet=False, debug=False):
    """Set up loggers.

    Parameters
    ----------
    logname : str, optional
        Name of the log file, by default None
    refname : str, optional
        Name of the reference file, by default None
    quiet : bool, optional
        Whether the logger should run in quiet mode, by default False
    debug : bool, optional
        Whether the logger should run in debug mode, by default False
    """
    # Set up the general logger
    log_formatter = logging.Formatter(
        "%(asctime)s\t%(module)s.%(funcName)-12s\t%(levelname)-8s\t%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    stream_formatter = logging.Formatter(
        "%(levelname)-8s %(module)s:%(funcName)s:%(lineno)d %(message)s"
    )
    # set up general logging file and open it for writing
    if logname:
        log_handler = logging.FileHandler(logname)
        log_handler.setFormatter(log_formatter)
        LGR.addHandler(log_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(stream_formatter)
    LGR.addHandler(stream_handler)

    if quiet:
        LGR.setLevel(logging.WARNING)
    elif debug:
        LGR.setLevel(logging.DEBUG)
    else:
        LGR.setLevel(logging.INFO)

    # Loggers for references
    text_formatter = logging.Formatter("%(message)s")

    if refname:
        ref_handler = logging.FileHandler(refname)
        ref_handler.setFormatter(text_formatter)
        RefLGR.setLevel(logging.INFO)
        RefLGR.addHandler(ref_handler)
        RefLGR.propagate = False


def teardown_loggers():
    """Remove logger handler."""
    for local_logger in (RefLGR, LGR):
        for handler in local_logger.handlers[:]:
            handler.close()
            local_logger.removeHandler(handler)


def get_outname(outname, keyword, ext, use_bids=False):
    """Get the output name.

    Parameters
    ----------
    outname : str
        Name of the output file.
    keyword : str
        Keyword added by pyClusterGAM.
    ext : str
        Extension of the output file.
    use_bids : bool, optional
        Whether the output file is in BIDS format, by default False

    Returns
    -------
    outname : str
        Name of the output file.
    """
    if use_bids:
        outname = f"{outname}_desc-{keyword}.{ext}"
    else:
        outname = f"{outname}_pyClusterGAM_{keyword}.{ext}"
    return outname


def get_keyword_description(keyword):
    """
    Get the description of the keyword for BIDS sidecar.

    Parameters
    ----------
    keyword : str
        Keyword added by pyClusterGAM.

    Returns
    -------
    keyword_description : str
        Description of the keyword.
    """
    if "meanCluster" in keyword:
        keyword_description = (
            "Mean intensity of every labeled cluster in every volume of the input data; "
            "i.e., the response variable of the models."
        )
    elif "summary" in keyword:
        keyword_description = (
            "Goodness of fit and term p-values of the generalized additive model "
            "fitted to each cluster."
        )
    elif "models" in keyword:
        keyword_description = "Fitted generalized additive models, one per cluster."
    elif "devExplained" in keyword:
        keyword_description = (
            "Map of the proportion of deviance explained by the model fitted to each cluster."
        )
    elif "edof" in keyword:
        keyword_description = (
            "Map of the effective degrees of freedom of the model fitted to each cluster."
        )
    else:
        keyword_description = f"pyClusterGAM output: {keyword}"

    return keyword_description


def dask_scheduler(jobs, jobqueue=None):
    """
    Check if the user has a dask_jobqueue configuration file.

    If so, return the appropriate scheduler according to the file parameters.

    Parameters
    ----------
    jobs : int
        Number of jobs.
    jobqueue : str, optional
        Path to the jobqueue YAML file, by default None

    Returns
    -------
    client : dask.distributed.Client
        Dask client.
    cluster : dask.distributed.Cluster
        Dask cluster.
    """
    # look if jobqueue.yaml exists
    if jobqueue is None:
        data = None
    else:
        LGR.info(f"Using jobqueue configuration file: {jobqueue}")
        with open(jobqueue) as stream:
            data = yaml.load(stream, Loader=yaml.FullLoader)

    if data is None:
        LGR.debug(JOBQUEUE_WARNING)
        cluster = None
    else:
        cluster = initiate_cluster(data, jobs)
    client = None if cluster is None else Client(cluster)
    return client, cluster


def initiate_cluster(data, jobs):
    """
    Initiate a dask cluster.

    Parameters
    ----------
    data : dict
        Dictionary with the jobqueue parameters.
    jobs : int
        Number of jobs.

    Returns
    -------
    result : dask.distributed.Cluster
        Dask cluster.
    """
    config.set(distributed__comm__timeouts__tcp="90s")
    config.set(distributed__comm__timeouts__connect="90s")
    config.set({"distributed.scheduler.allowed-failures": 50})
    config.set(admin__tick__limit="3h")
    for kind, cluster_class in [("sge", SGECluster), ("pbs", PBSCluster), ("slurm", SLURMCluster)]:
        if kind in data["jobqueue"]:
            # YAML keys use dashes, constructor keywords use underscores
            settings = {
                key.replace("-", "_"): value
                for key, value in (data["jobqueue"][kind] or {}).items()
            }
            result = cluster_class(**settings)
            result.scale(jobs)
            return result

    LGR.warning(JOBQUEUE_WARNING)
    return None
