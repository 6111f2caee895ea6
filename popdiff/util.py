import hashlib
import json
import logging
import sys
from functools import wraps
from inspect import getcallargs
from textwrap import dedent, fill
from typing import IO, Optional, Union

import numpy as np
import typeguard
import xarray as xr
from numpydoc_decorator.impl import humanize_type  # type: ignore
from typing_extensions import get_type_hints

DIM_SAMPLE = "samples"
DIM_LOCUS = "loci"
DIM_ALLELE = "alleles"
DIM_PLOIDY = "ploidy"


class InvalidInput(ValueError):
    pass


class DegenerateResample(InvalidInput):
    pass


class DegenerateResampleWarning(UserWarning):
    pass


class CacheMiss(Exception):
    pass


def value_error(
    name,
    value,
    expectation,
):
    message = (
        f"Bad value for parameter {name}; expected {expectation}, " f"found {value!r}"
    )
    raise InvalidInput(message)


def hash_params(params):
    """Helper function to hash function parameters."""
    s = json.dumps(params, sort_keys=True, indent=4)
    h = hashlib.md5(s.encode()).hexdigest()
    return h, s


def hash_dataset(ds: xr.Dataset) -> str:
    """Helper function to hash the genotype content of a dataset."""
    h = hashlib.md5()
    for v in ("sample_id", "locus_id", "locus_allele"):
        h.update("\t".join(str(x) for x in ds[v].values.ravel()).encode())
    gt = np.ascontiguousarray(ds["call_genotype"].values)
    h.update(str(gt.shape).encode())
    h.update(gt.tobytes())
    return h.hexdigest()


class LoggingHelper:
    def __init__(
        self, *, name: str, out: Optional[Union[str, IO]], debug: bool = False
    ):
        # set up a logger
        logger = logging.getLogger(name)
        if debug:
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.INFO)

        self._logger = logger

        # set up handler
        handler: Optional[logging.StreamHandler] = None
        if hasattr(out, "write"):
            handler = logging.StreamHandler(out)
        elif isinstance(out, str):
            handler = logging.FileHandler(out)
        self._handler = handler

        # configure handler
        if handler is not None:
            if debug:
                handler.setLevel(logging.DEBUG)
            else:
                handler.setLevel(logging.INFO)
            formatter = logging.Formatter(fmt="[%(levelname)s] %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    def flush(self):
        if self._handler is not None:
            self._handler.flush()

    def debug(self, msg):
        # get the name of the calling function, helps with debugging
        caller_name = sys._getframe().f_back.f_code.co_name
        msg = f"{caller_name}: {msg}"
        self._logger.debug(msg)

        # flush messages immediately
        self.flush()

    def info(self, msg):
        self._logger.info(msg)

        # flush messages immediately
        self.flush()


def check_types(f):
    """Simple decorator to provide runtime checking of parameter types.

    N.B., the typeguard package does have a decorator function called
    @typechecked which performs a similar purpose. However, the typeguard
    decorator performs runtime checking of all variables within the
    function as well as the arguments and return values. We only want
    checking of the arguments to help users provide correct inputs.

    """

    @wraps(f)
    def check_types_wrapper(*args, **kwargs):
        type_hints = get_type_hints(f)
        call_args = getcallargs(f, *args, **kwargs)
        for k, t in type_hints.items():
            if k in call_args:
                v = call_args[k]
                try:
                    typeguard.check_type(v, t)
                except typeguard.TypeCheckError as e:
                    expected_type = humanize_type(t)
                    actual_type = humanize_type(type(v))
                    message = fill(
                        dedent(
                            f"""
                        Parameter {k!r} with value {v!r} in call to function {f.__name__!r} has incorrect type:
                        found {actual_type}, expected {expected_type}. See below for further information.
                    """
                        )
                    )
                    message += f"\n\n{e}"
                    error = TypeError(message)
                    raise error from None
        return f(*args, **kwargs)

    return check_types_wrapper


def natural_sort_key(label: str):
    """Sort numeric allele codes numerically, everything else lexically."""
    try:
        return (0, float(label), label)
    except ValueError:
        return (1, 0.0, label)
