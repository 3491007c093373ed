"""Model formulas.

Formulas follow the R/mgcv convention ``response ~ term + term``. Supported terms are

``s(x, ...)``
    Penalized spline of ``x``.
``l(x)`` or ``x``
    Linear effect of ``x``.
``f(x)``
    Factor (categorical) effect of ``x``.
``te(x, z, ...)``
    Tensor product smooth of ``x`` and ``z``.
``1``, ``0`` and ``- 1``
    Keep (default) or drop the intercept.

Keyword arguments inside a term are passed to the corresponding :mod:`pygam` term. The mgcv
names ``k`` (basis dimension), ``sp`` (smoothing parameter) and ``bs="cc"`` (cyclic basis)
are translated to ``n_splines``, ``lam`` and ``basis="cp"``.
"""

import ast
import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from pygam import f, intercept, l, s, te

LGR = logging.getLogger("GENERAL")

TERM_FUNCTIONS = {"s": s, "l": l, "f": f, "te": te}
MGCV_KEYWORDS = {"k": "n_splines", "sp": "lam", "bs": "basis"}
MGCV_BASES = {"cc": "cp", "cp": "cp", "ps": "ps", "tp": "ps", "cr": "ps"}
CLUSTER_PLACEHOLDER = "{cluster}"


@dataclass
class ParsedFormula:
    """Model formula translated into pygam terms.

    Attributes
    ----------
    formula : str
        Original formula.
    response : str
        Name of the response variable.
    terms : list of dict
        Term specifications with the pygam term ``kind``, the ``features`` (variable names)
        and the term ``kwargs``.
    fit_intercept : bool
        Whether the model includes an intercept.
    """

    formula: str
    response: str
    terms: list = field(default_factory=list)
    fit_intercept: bool = True

    @property
    def features(self):
        """Variables used by the terms, in order of first appearance."""
        features = []
        for term in self.terms:
            for feature in term["features"]:
                if feature not in features:
                    features.append(feature)
        return features

    @property
    def labels(self):
        """Label of every term, intercept last as in fitted pygam models."""
        labels = [term["label"] for term in self.terms]
        if self.fit_intercept or not self.terms:
            labels.append("intercept")
        return labels

    def to_pygam(self):
        """Build the pygam terms.

        Returns
        -------
        terms : pygam.terms.Term or pygam.terms.TermList
            Terms with features indexed by their position in :attr:`features`.
        fit_intercept : bool
            Value for the ``fit_intercept`` parameter of the model.
        """
        if not self.terms:
            # Intercept-only model
            return intercept, False

        features = self.features
        pygam_terms = None
        for term in self.terms:
            idx = [features.index(feature) for feature in term["features"]]
            new_term = TERM_FUNCTIONS[term["kind"]](*idx, **term["kwargs"])
            pygam_terms = new_term if pygam_terms is None else pygam_terms + new_term

        return pygam_terms, self.fit_intercept


def list_formula(name, template):
    """Build the formula of one cluster from a formula template.

    Parameters
    ----------
    name : str
        Name of the response column, e.g. ``cluster1``.
    template : str
        One-sided formula (``"~ s(x)"``), to which ``name`` is prepended, or formula
        containing the ``{cluster}`` placeholder (``"{cluster} ~ s(x)"``).

    Returns
    -------
    formula : str
        Formula of the cluster.
    """
    template = template.strip()
    if CLUSTER_PLACEHOLDER in template:
        return template.replace(CLUSTER_PLACEHOLDER, name)
    elif template.startswith("~"):
        return f"{name} {template}"
    else:
        raise ValueError(
            f"Formula template must start with '~' or contain {CLUSTER_PLACEHOLDER}. "
            f"Got '{template}'."
        )


def _variable_name(node):
    if isinstance(node, ast.Name):
        return node.id
    elif isinstance(node, ast.Attribute):
        # R-style names such as age.z
        return f"{_variable_name(node.value)}.{node.attr}"
    raise ValueError(f"Expected a variable name but got '{ast.unparse(node)}'.")


def _translate_kwargs(keywords):
    kwargs = {}
    for keyword in keywords:
        if keyword.arg is None:
            raise ValueError("Unpacked keyword arguments are not supported in formulas.")
        value = ast.literal_eval(keyword.value)
        key = MGCV_KEYWORDS.get(keyword.arg, keyword.arg)
        if key == "basis":
            if value not in MGCV_BASES:
                raise ValueError(f"Unsupported spline basis '{value}'.")
            value = MGCV_BASES[value]
        kwargs[key] = value
    return kwargs


def _parse_term(node):
    if isinstance(node, (ast.Name, ast.Attribute)):
        name = _variable_name(node)
        return {"kind": "l", "features": [name], "kwargs": {}, "label": name}

    if isinstance(node, ast.Call):
        kind = node.func.id if isinstance(node.func, ast.Name) else None
        if kind not in TERM_FUNCTIONS:
            raise ValueError(
                f"Unsupported term '{ast.unparse(node)}'. "
                f"Use one of {', '.join(TERM_FUNCTIONS)}."
            )
        if not node.args:
            raise ValueError(f"Term '{ast.unparse(node)}' has no variable.")
        if kind != "te" and len(node.args) > 1:
            raise ValueError(f"Term '{ast.unparse(node)}' takes a single variable; use te().")
        features = [_variable_name(arg) for arg in node.args]
        return {
            "kind": kind,
            "features": features,
            "kwargs": _translate_kwargs(node.keywords),
            "label": f"{kind}({', '.join(features)})",
        }

    raise ValueError(f"Unsupported term '{ast.unparse(node)}'.")


def _flatten(node, sign=1):
    """Yield (sign, node) for every term of a sum."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, (ast.Add, ast.Sub)):
        yield from _flatten(node.left, sign)
        yield from _flatten(node.right, sign if isinstance(node.op, ast.Add) else -sign)
    elif isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        yield from _flatten(node.operand, -sign)
    else:
        yield sign, node


def parse_formula(formula):
    """Parse a model formula.

    Parameters
    ----------
    formula : str
        Two-sided formula, e.g. ``"cluster1 ~ s(age) + sex"``.

    Returns
    -------
    parsed : ParsedFormula
        Parsed formula.
    """
    if formula.count("~") != 1:
        raise ValueError(f"Formula must contain exactly one '~'. Got '{formula}'.")

    lhs, rhs = (side.strip() for side in formula.split("~"))
    if not lhs:
        raise ValueError(f"Formula has no response variable: '{formula}'.")
    if not rhs:
        raise ValueError(f"Formula has no terms: '{formula}'.")

    try:
        response = _variable_name(ast.parse(lhs, mode="eval").body)
        rhs_tree = ast.parse(rhs, mode="eval").body
    except SyntaxError as exc:
        raise ValueError(f"Invalid formula '{formula}': {exc.msg}") from exc

    parsed = ParsedFormula(formula=formula, response=response)
    for sign, node in _flatten(rhs_tree):
        if isinstance(node, ast.Constant) and node.value in (0, 1):
            parsed.fit_intercept = bool(node.value) and sign > 0
            continue
        if sign < 0:
            raise ValueError(f"Only the intercept can be removed from a formula: '{formula}'.")
        term = _parse_term(node)
        if term["label"] in [t["label"] for t in parsed.terms]:
            LGR.warning(f"Term {term['label']} is repeated in formula '{formula}'.")
        parsed.terms.append(term)

    if not parsed.terms and not parsed.fit_intercept:
        raise ValueError(f"Formula has no terms: '{formula}'.")

    return parsed


def build_design(parsed, data):
    """Build the design matrix and the response vector of a formula.

    Parameters
    ----------
    parsed : ParsedFormula
        Parsed formula.
    data : pandas.DataFrame
        Table with the response and all the covariates.

    Returns
    -------
    X : (n_samples, n_features) ndarray
        Design matrix with columns in the order of ``parsed.features``. Categorical
        columns are integer-coded.
    y : (n_samples,) ndarray
        Response.

    Notes
    -----
    Linear terms of non-numeric columns are turned into factor terms in ``parsed``, as
    mgcv does with character and factor covariates.
    """
    missing = [var for var in [parsed.response] + parsed.features if var not in data.columns]
    if missing:
        raise KeyError(f"Variables {missing} of formula '{parsed.formula}' are not in the data.")

    for term in parsed.terms:
        categorical = [
            feature
            for feature in term["features"]
            if not pd.api.types.is_numeric_dtype(data[feature])
        ]
        if not categorical:
            continue
        if term["kind"] == "l":
            term["kind"] = "f"
        elif term["kind"] != "f":
            raise ValueError(
                f"Term {term['label']} of formula '{parsed.formula}' can't smooth the "
                f"non-numeric variables {categorical}. Use f() instead."
            )

    columns = []
    for feature in parsed.features:
        column = data[feature]
        if not pd.api.types.is_numeric_dtype(column):
            column = pd.Series(pd.factorize(column, sort=True)[0], index=column.index)
        columns.append(column.to_numpy(dtype=float))

    if columns:
        X = np.column_stack(columns)
    else:
        # pygam needs at least one column even for intercept-only models
        X = np.zeros((data.shape[0], 1))

    y = data[parsed.response].to_numpy(dtype=float)

    return X, y
