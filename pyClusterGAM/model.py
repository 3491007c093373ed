"""Fit generalized additive models."""

import logging

import numpy as np
from pygam import GAM

from pyClusterGAM.formula import build_design, parse_formula

LGR = logging.getLogger("GENERAL")

GRIDSEARCH_OBJECTIVES = ["GCV", "UBRE", "AIC", "AICc"]


def fit_gam(formula, data, distribution="normal", link="identity", method=None, **kwargs):
    """Fit a generalized additive model.

    Parameters
    ----------
    formula : str
        Model formula, e.g. ``"cluster1 ~ s(age) + sex"``.
    data : pandas.DataFrame
        Table with the response and the covariates used in the formula.
    distribution : str, optional
        Distribution of the response, by default "normal". Any distribution accepted by
        :class:`pygam.GAM`.
    link : str, optional
        Link function, by default "identity".
    method : str, optional
        Method to select the smoothing parameters. None (default) fits the model with the
        penalties given in the formula. "GCV", "UBRE", "AIC" and "AICc" run a grid search of
        the penalties minimizing the given objective.
    **kwargs
        Additional arguments passed to :class:`pygam.GAM` (e.g. ``max_iter`` or ``tol``).

    Returns
    -------
    model : pygam.GAM
        Fitted model.
    """
    if method is not None and method not in GRIDSEARCH_OBJECTIVES:
        raise ValueError(
            f"method must be None or one of {GRIDSEARCH_OBJECTIVES}. Got {method!r} instead."
        )

    parsed = parse_formula(formula)
    X, y = build_design(parsed, data)
    terms, fit_intercept = parsed.to_pygam()

    model = GAM(
        terms, distribution=distribution, link=link, fit_intercept=fit_intercept, **kwargs
    )
    if method is None:
        model.fit(X, y)
    else:
        model.gridsearch(X, y, objective=method, progress=False)

    LGR.debug(f"Fitted {formula}")

    return model


def fit_gam_batch(formulas, data, **kwargs):
    """Fit one model per formula, one after the other.

    Parameters
    ----------
    formulas : list of str
        Model formulas.
    data : pandas.DataFrame
        Table with the responses and the covariates.
    **kwargs
        Arguments passed to :func:`fit_gam`.

    Returns
    -------
    models : list of pygam.GAM
        Fitted models, in the order of ``formulas``.
    """
    return [fit_gam(formula, data, **kwargs) for formula in formulas]


def _statistic(statistics, key):
    value = statistics.get(key)
    return np.nan if value is None else float(value)


def summarize_model(model, formula):
    """Summarize a fitted model.

    Parameters
    ----------
    model : pygam.GAM
        Fitted model.
    formula : str
        Formula used to fit ``model``.

    Returns
    -------
    summary : dict
        Formula, response, number of samples, effective degrees of freedom, information
        criteria, explained deviance and the p-value of every term (``p_<term>``).
    """
    parsed = parse_formula(formula)
    statistics = model.statistics_

    summary = {
        "formula": formula,
        "response": parsed.response,
        "n_samples": int(statistics["n_samples"]),
        "edof": _statistic(statistics, "edof"),
        "AIC": _statistic(statistics, "AIC"),
        "AICc": _statistic(statistics, "AICc"),
        "GCV": _statistic(statistics, "GCV"),
        "UBRE": _statistic(statistics, "UBRE"),
        "deviance": _statistic(statistics, "deviance"),
        "explained_deviance": _statistic(statistics["pseudo_r2"], "explained_deviance"),
    }

    p_values = statistics.get("p_values", [])
    labels = parsed.labels
    if len(p_values) != len(labels):
        LGR.warning(
            f"Got {len(p_values)} p-values for {len(labels)} terms of {formula}; "
            "labelling them by position."
        )
        labels = [f"term{idx}" for idx in range(len(p_values))]

    for label, p_value in zip(labels, p_values):
        summary[f"p_{label}"] = float(p_value)

    return summary
